import json
from types import SimpleNamespace

import pytest

from llm_tool.config import ToolConfig
from llm_tool.errors import ConfigError, ProviderError
from llm_tool.prompts import REFACTOR_SYSTEM, strip_code_fence
from llm_tool.providers import new_client
from llm_tool.providers.base import ContentProvider
from llm_tool.providers.history import MAX_MESSAGES, ChatHistory, HistoryStore


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)


class EchoProvider(ContentProvider):
    name = "echo"

    def __init__(self, answer):
        super().__init__("echo-1")
        self.answer = answer
        self.messages = None

    def stream_chat(self, messages, model=None):
        self.messages = messages
        yield from self.answer.split(" ")

    def complete_chat(self, messages, model=None):
        self.messages = messages
        return self.answer


# ---- factory ----

def test_unknown_provider_is_a_config_error():
    with pytest.raises(ConfigError) as excinfo:
        new_client("bard", ToolConfig())
    assert "unsupported provider: bard" in str(excinfo.value)


@pytest.mark.parametrize("name", ["openai", "gemini", "cboe"])
def test_missing_credentials_are_a_config_error(name):
    with pytest.raises(ConfigError):
        new_client(name, ToolConfig())


def test_cboe_client_uses_flag_datasource_over_config():
    config = ToolConfig()
    config.default_provider = "cboe"
    config.cboe.email = "me@example.com"
    config.cboe.token = "tok"
    config.cboe.datasource = "from-config"

    client = new_client(None, config, datasource="from-flag")

    assert client.name == "cboe"
    assert client.datasource == "from-flag"


# ---- shared behaviour ----

def test_refactor_sends_instructions_filename_and_content():
    provider = EchoProvider("print('new')\n")

    result = provider.refactor_file("a.py", "print('old')\n", "rename things")

    assert result == "print('new')\n"
    system, user = provider.messages
    assert system == {"role": "system", "content": REFACTOR_SYSTEM}
    assert "rename things" in user["content"]
    assert "Filename: a.py" in user["content"]
    assert "print('old')" in user["content"]


def test_refactor_rejects_empty_answers():
    with pytest.raises(ProviderError):
        EchoProvider("   \n").refactor_file("a.py", "x", "do it")


def test_refactor_strips_a_wrapping_code_fence():
    answer = "```python\nx = 1\n```"
    assert EchoProvider(answer).refactor_file("a.py", "x = 0\n", "bump") == "x = 1\n"


def test_strip_code_fence_leaves_plain_text_alone():
    assert strip_code_fence("x = 1\n") == "x = 1\n"
    assert strip_code_fence("see ```this``` inline") == "see ```this``` inline"


def test_review_streams_fragments():
    provider = EchoProvider("looks good")
    assert "".join(provider.review_diff("diff --git")) == "looksgood"
    assert "diff --git" in provider.messages[1]["content"]


# ---- chat history ----

def test_history_keeps_only_the_most_recent_messages():
    history = ChatHistory(model="m")
    for i in range(MAX_MESSAGES):
        history.append_exchange(f"q{i}", [f"a{i}"])

    assert len(history.messages) == MAX_MESSAGES
    assert history.messages[0].parts == [f"q{MAX_MESSAGES // 2}"]
    assert history.messages[-1].role == "model"


def test_history_store_round_trips_through_json(tmp_path):
    store = HistoryStore(tmp_path / "history" / "chat.json")
    history = store.load("m")
    assert history.messages == []

    history.append_exchange("hi", ["hel", "lo"])
    store.save(history)

    data = json.loads((tmp_path / "history" / "chat.json").read_text())
    assert data["messages"][0] == {"Role": "user", "Parts": ["hi"]}
    assert store.load("m").messages[1].parts == ["hel", "lo"]

    store.clear()
    assert not (tmp_path / "history" / "chat.json").exists()


def test_history_store_rejects_non_object_json(tmp_path):
    path = tmp_path / "chat.json"
    path.write_text("[1, 2, 3]")

    with pytest.raises(ValueError):
        HistoryStore(path).load("m")


def test_gemini_ask_carries_history_between_calls(tmp_path):
    from llm_tool.providers.gemini_client import GeminiClient

    seen_contents = []

    def fake_stream(model, contents, config):
        seen_contents.append(contents)
        return iter([SimpleNamespace(text="Hel"), SimpleNamespace(text=None), SimpleNamespace(text="lo")])

    client = GeminiClient(api_key="key", history_path=tmp_path / "gemini.json")
    client.client = SimpleNamespace(models=SimpleNamespace(generate_content_stream=fake_stream))

    assert "".join(client.ask("first")) == "Hello"
    assert "".join(client.ask("second")) == "Hello"

    assert len(seen_contents[0]) == 1
    assert [c["role"] for c in seen_contents[1]] == ["user", "model", "user"]
    assert seen_contents[1][1]["parts"] == [{"text": "Hel"}, {"text": "lo"}]

    client.clear_chat_history()
    assert not (tmp_path / "gemini.json").exists()


def test_gemini_ask_survives_corrupt_history(tmp_path):
    from llm_tool.providers.gemini_client import GeminiClient

    path = tmp_path / "gemini.json"
    path.write_text("{not json")
    client = GeminiClient(api_key="key", history_path=path)
    client.client = SimpleNamespace(
        models=SimpleNamespace(generate_content_stream=lambda **kw: iter([SimpleNamespace(text="ok")]))
    )

    assert "".join(client.ask("hi")) == "ok"
    assert json.loads(path.read_text())["messages"][0]["Parts"] == ["hi"]


def test_gemini_ask_survives_history_that_is_not_an_object(tmp_path):
    from llm_tool.providers.gemini_client import GeminiClient

    path = tmp_path / "gemini.json"
    path.write_text("[1, 2, 3]")
    client = GeminiClient(api_key="key", history_path=path)
    client.client = SimpleNamespace(
        models=SimpleNamespace(generate_content_stream=lambda **kw: iter([SimpleNamespace(text="ok")]))
    )

    assert "".join(client.ask("hi")) == "ok"
    assert json.loads(path.read_text())["messages"][0]["Parts"] == ["hi"]


# ---- OpenAI ----

def _openai_client(monkeypatch, model="gpt-4o-mini"):
    from llm_tool.providers.openai_client import OpenAIClient

    client = OpenAIClient(api_key="sk-test", model=model)
    monkeypatch.setattr(client, "estimate_tokens", lambda text, model=None: 1)
    return client


def test_openai_stream_yields_deltas(monkeypatch):
    client = _openai_client(monkeypatch)
    requests = []

    def create(**kwargs):
        requests.append(kwargs)
        return iter(
            [
                SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content="Hi"))]),
                SimpleNamespace(choices=[]),
                SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=" there"))]),
            ]
        )

    client.client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

    assert "".join(client.ask("hello")) == "Hi there"
    assert requests[0]["stream"] is True
    assert requests[0]["temperature"] == 0.2


def test_openai_complete_skips_temperature_for_reasoning_models(monkeypatch):
    client = _openai_client(monkeypatch, model="o3-mini")
    requests = []

    def create(**kwargs):
        requests.append(kwargs)
        message = SimpleNamespace(content="done")
        return SimpleNamespace(id="r1", choices=[SimpleNamespace(message=message, finish_reason="stop")])

    client.client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

    assert client.complete_chat([{"role": "user", "content": "x"}]) == "done"
    assert "temperature" not in requests[0]
    assert requests[0]["model"] == "o3-mini"


# ---- CBOE ----

class FakeResponse:
    def __init__(self, status_code=200, payload=None, lines=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self._lines = lines or []
        self.text = text or json.dumps(payload)
        self.closed = False

    def json(self):
        return self._payload

    def iter_lines(self, decode_unicode=False):
        return iter(self._lines)

    def close(self):
        self.closed = True


def _cboe(datasource=""):
    from llm_tool.providers.cboe_client import CBOEClient

    return CBOEClient(email="me@example.com", token="tok", endpoint="http://cboe.test/", datasource=datasource)


def test_cboe_stream_parses_server_sent_events(monkeypatch):
    posted = []
    response = FakeResponse(
        lines=["", 'data: {"answer": "Hello"}', "event: ping", "data: , world", 'data: {"other": 1}']
    )

    def fake_post(url, json=None, stream=False, timeout=None):
        posted.append((url, json, stream))
        return response

    monkeypatch.setattr("llm_tool.providers.cboe_client.requests.post", fake_post)

    out = "".join(_cboe(datasource="docs").ask("hi"))

    assert out == 'Hello, world{"other": 1}'
    url, payload, stream = posted[0]
    assert url == "http://cboe.test/chat_stream"
    assert stream is True
    assert payload["datasources"] == [{"name": "docs", "custom": True}]
    assert payload["messages"] == [{"role": "user", "content": [{"text": "hi"}]}]
    assert response.closed


def test_cboe_refactor_uses_blocking_endpoint(monkeypatch):
    posted = []

    def fake_post(url, json=None, stream=False, timeout=None):
        posted.append(url)
        return FakeResponse(payload={"answer": "new content\n"})

    monkeypatch.setattr("llm_tool.providers.cboe_client.requests.post", fake_post)

    assert _cboe().refactor_file("a.txt", "old", "improve") == "new content\n"
    assert posted == ["http://cboe.test/chat"]


def test_cboe_api_errors_become_provider_errors(monkeypatch):
    monkeypatch.setattr(
        "llm_tool.providers.cboe_client.requests.post",
        lambda url, **kw: FakeResponse(payload={"error": "bad token"}),
    )
    with pytest.raises(ProviderError) as excinfo:
        _cboe().complete_chat([{"role": "user", "content": "x"}])
    assert "bad token" in str(excinfo.value)

    monkeypatch.setattr(
        "llm_tool.providers.cboe_client.requests.post",
        lambda url, **kw: FakeResponse(status_code=500, text="server exploded"),
    )
    with pytest.raises(ProviderError) as excinfo:
        _cboe().complete_chat([{"role": "user", "content": "x"}])
    assert "status 500" in str(excinfo.value)


def test_cboe_review_appends_sources(monkeypatch):
    payload = {"answer": "Fine.", "sources": [{"name": "Guide", "url": "http://docs"}, {"name": "FAQ"}]}
    monkeypatch.setattr(
        "llm_tool.providers.cboe_client.requests.post",
        lambda url, **kw: FakeResponse(payload=payload),
    )

    review = "".join(_cboe().review_diff("diff"))

    assert review.startswith("Fine.")
    assert "=== Sources ===" in review
    assert "1. Guide" in review
    assert "   URL: http://docs" in review
    assert "2. FAQ" in review


def test_cboe_review_skips_malformed_sources(monkeypatch):
    payload = {"answer": "Fine.", "sources": ["just a string", {"name": "Guide"}, 42]}
    monkeypatch.setattr(
        "llm_tool.providers.cboe_client.requests.post",
        lambda url, **kw: FakeResponse(payload=payload),
    )

    review = "".join(_cboe().review_diff("diff"))

    assert "1. Guide" in review
    assert "just a string" not in review
    assert "2." not in review
