"""
Abstract interface for LLM backends.

Every backend only has to provide a streaming and a blocking chat call;
asking, reviewing and refactoring are built on top of those here so the
CLI and the edit workflow can treat all backends alike.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterator, List, Optional

from ..errors import ProviderError
from ..prompts import Message, ask_messages, refactor_messages, review_messages, strip_code_fence

logger = logging.getLogger(__name__)


class ContentProvider(ABC):
    """
    Text generation capability shared by all backends.

    Implementations raise ProviderError for any backend failure.
    """

    name = "base"

    def __init__(self, model: str) -> None:
        self.model = model

    def resolve_model(self, model: Optional[str]) -> str:
        return model or self.model

    @abstractmethod
    def stream_chat(self, messages: List[Message], model: Optional[str] = None) -> Iterator[str]:
        """
        Yield the answer to ``messages`` fragment by fragment.

        Joining the fragments gives the same text :meth:`complete_chat`
        would have returned.
        """

    @abstractmethod
    def complete_chat(self, messages: List[Message], model: Optional[str] = None) -> str:
        """Return the whole answer to ``messages``."""

    def ask(self, prompt: str, model: Optional[str] = None) -> Iterator[str]:
        return self.stream_chat(ask_messages(prompt), model)

    def review_diff(self, diff: str, model: Optional[str] = None) -> Iterator[str]:
        return self.stream_chat(review_messages(diff), model)

    def refactor_file(
        self,
        filename: str,
        content: str,
        instructions: str,
        model: Optional[str] = None,
    ) -> str:
        """Return the complete new content for ``filename``."""
        logger.info("Requesting refactor of %s from %s", filename, self.name)
        result = self.complete_chat(refactor_messages(filename, content, instructions), model)
        if not result or not result.strip():
            raise ProviderError(f"{self.name} returned an empty result for {filename}")
        return strip_code_fence(result)

    def clear_chat_history(self) -> None:
        """Forget stored conversation history.  Most backends keep none."""
