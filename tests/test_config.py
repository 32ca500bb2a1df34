import pytest
import yaml

from llm_tool.config import DEFAULT_CBOE_ENDPOINT, ToolConfig, get_config_path
from llm_tool.errors import ConfigError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("LLM_TOOL_CONFIG", raising=False)


def test_missing_file_gives_defaults(tmp_path):
    config = ToolConfig.load(tmp_path / "config.yaml")

    assert config.default_provider == "openai"
    assert config.openai.model == "gpt-4o-mini"
    assert config.gemini.model == "gemini-2.0-flash-lite"
    assert config.cboe.endpoint == DEFAULT_CBOE_ENDPOINT
    assert config.openai_api_key == ""


def test_yaml_values_override_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "defaultProvider: gemini\n"
        "openai:\n"
        "  apiKey: sk-file\n"
        "gemini:\n"
        "  model: gemini-pro\n"
        "cboe:\n"
        "  email: me@example.com\n"
        "  datasource: docs\n"
    )

    config = ToolConfig.load(path)

    assert config.default_provider == "gemini"
    assert config.openai_api_key == "sk-file"
    assert config.openai.model == "gpt-4o-mini"
    assert config.gemini.model == "gemini-pro"
    assert config.cboe.email == "me@example.com"
    assert config.cboe.datasource == "docs"
    assert config.cboe.endpoint == DEFAULT_CBOE_ENDPOINT


def test_environment_fills_empty_api_keys_only(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text("openai:\n  apiKey: sk-file\n")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.setenv("GEMINI_API_KEY", "gem-env")

    config = ToolConfig.load(path)

    assert config.openai_api_key == "sk-file"
    assert config.gemini_api_key == "gem-env"


def test_invalid_yaml_raises_config_error(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("openai: [unclosed\n")

    with pytest.raises(ConfigError):
        ToolConfig.load(path)


def test_save_does_not_persist_environment_keys(tmp_path, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    path = tmp_path / "nested" / "config.yaml"
    config = ToolConfig.load(path)
    config.cboe.email = "me@example.com"
    config.cboe.token = "tok"

    config.save()

    data = yaml.safe_load(path.read_text())
    assert data["cboe"]["email"] == "me@example.com"
    assert data["cboe"]["token"] == "tok"
    assert data["openai"]["apiKey"] == ""
    assert ToolConfig.load(path).cboe.token == "tok"


def test_config_path_can_be_overridden(tmp_path, monkeypatch):
    monkeypatch.setenv("LLM_TOOL_CONFIG", str(tmp_path / "custom.yaml"))

    assert get_config_path() == tmp_path / "custom.yaml"
