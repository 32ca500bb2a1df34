import io
import tempfile
from typing import Dict, List, Optional

import pytest
from rich.console import Console

from llm_tool.errors import ProviderError
from llm_tool.providers.base import ContentProvider


def make_console(**kwargs) -> Console:
    return Console(file=io.StringIO(), width=200, **kwargs)


def output_of(console: Console) -> str:
    return console.file.getvalue()


class FakeProvider(ContentProvider):
    """Returns canned content per filename and records every request."""

    name = "fake"

    def __init__(self, results: Optional[Dict[str, object]] = None, default: str = "rewritten\n") -> None:
        super().__init__("fake-model")
        self.results = results or {}
        self.default = default
        self.calls: List[str] = []

    def stream_chat(self, messages, model=None):
        yield from ["fake ", "answer"]

    def complete_chat(self, messages, model=None):
        return "fake answer"

    def refactor_file(self, filename, content, instructions, model=None):
        self.calls.append(filename)
        result = self.results.get(filename, self.default)
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def console():
    return make_console()


@pytest.fixture
def temp_root(tmp_path, monkeypatch):
    """Point tempfile at a private directory so staging dirs can be checked."""
    root = tmp_path / "tmp"
    root.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(root))
    return root


@pytest.fixture
def provider_error():
    return ProviderError("backend unavailable")
