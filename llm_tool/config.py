"""
Configuration management for llm-tool.

This module centralizes loading of configuration values from the YAML
configuration file and the environment.  It defines sane defaults and
provides an interface for the rest of the application to query these
settings.

The configuration file lives at ``~/.config/llm-tool/config.yaml`` unless
the ``LLM_TOOL_CONFIG`` environment variable points elsewhere.  It selects
the default provider and holds per-provider credentials and model names.
If the file is absent, defaults are used.  Empty API keys fall back to
``OPENAI_API_KEY`` and ``GEMINI_API_KEY`` from the environment.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "LLM_TOOL_CONFIG"
DEFAULT_CBOE_ENDPOINT = "http://ai.api.us.cboe.net:5005"


def config_dir() -> Path:
    """Return the directory holding the config file and chat history."""
    return Path.home() / ".config" / "llm-tool"


def get_config_path() -> Path:
    """Return the path of the YAML configuration file."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return config_dir() / "config.yaml"


@dataclass
class OpenAIConfig:
    """Settings for the OpenAI provider."""

    api_key: str = ""
    model: str = "gpt-4o-mini"


@dataclass
class CBOEConfig:
    """Settings for the CBOE HTTP provider.

    Attributes
    ----------
    email, token: str
        Credentials registered with ``llm-tool config setup-cboe``.

    endpoint: str
        Base URL of the service; ``/chat``, ``/chat_stream`` and
        ``/setup_token`` are appended to it.

    datasource: str
        Optional datasource name sent with every request.
    """

    email: str = ""
    token: str = ""
    endpoint: str = DEFAULT_CBOE_ENDPOINT
    model: str = "default"
    datasource: str = ""


@dataclass
class GeminiConfig:
    """Settings for the Google Gemini provider."""

    api_key: str = ""
    model: str = "gemini-2.0-flash-lite"


# YAML keys are camelCase to stay compatible with existing config files.
_OPENAI_KEYS = {"apiKey": "api_key", "model": "model"}
_GEMINI_KEYS = {"apiKey": "api_key", "model": "model"}
_CBOE_KEYS = {
    "email": "email",
    "token": "token",
    "endpoint": "endpoint",
    "model": "model",
    "datasource": "datasource",
}


def _section(data: Dict[str, Any], name: str, keys: Dict[str, str]) -> Dict[str, Any]:
    raw = data.get(name) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"config section '{name}' must be a mapping")
    return {attr: str(raw[key]) for key, attr in keys.items() if raw.get(key) is not None}


def _dump_section(obj: Any, keys: Dict[str, str]) -> Dict[str, str]:
    return {key: getattr(obj, attr) for key, attr in keys.items()}


@dataclass
class ToolConfig:
    """Top-level configuration for llm-tool.

    Attributes
    ----------
    default_provider: str
        Provider used when ``--provider`` is not given.

    openai, cboe, gemini:
        Per-provider settings.

    config_path: Path
        Path the configuration was loaded from and is saved to.  Retained
        for logging and for ``llm-tool config path``.
    """

    default_provider: str = "openai"
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    cboe: CBOEConfig = field(default_factory=CBOEConfig)
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    config_path: Optional[Path] = None

    @staticmethod
    def load(path: Optional[Path] = None) -> "ToolConfig":
        """Load configuration values from the YAML file and the environment.

        Parameters
        ----------
        path: Path, optional
            Explicit config file.  Defaults to :func:`get_config_path`.

        Returns
        -------
        ToolConfig
            A populated configuration object.

        Raises
        ------
        ConfigError
            If the file exists but cannot be read or parsed.
        """
        config_path = path or get_config_path()
        config = ToolConfig(config_path=config_path)

        if config_path.exists():
            try:
                data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
            except (OSError, yaml.YAMLError) as exc:
                raise ConfigError(f"failed to parse config file {config_path}: {exc}") from exc
            if not isinstance(data, dict):
                raise ConfigError(f"config file {config_path} must contain a mapping")

            if data.get("defaultProvider"):
                config.default_provider = str(data["defaultProvider"])
            config.openai = OpenAIConfig(**_section(data, "openai", _OPENAI_KEYS))
            config.cboe = CBOEConfig(**_section(data, "cboe", _CBOE_KEYS))
            config.gemini = GeminiConfig(**_section(data, "gemini", _GEMINI_KEYS))
            logger.debug("Loaded configuration from %s", config_path)
        else:
            logger.debug("No config file at %s; using defaults", config_path)

        return config

    # Environment keys are consulted at use time so that save() never
    # copies them into the file.
    @property
    def openai_api_key(self) -> str:
        return self.openai.api_key or os.environ.get("OPENAI_API_KEY", "")

    @property
    def gemini_api_key(self) -> str:
        return self.gemini.api_key or os.environ.get("GEMINI_API_KEY", "")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "defaultProvider": self.default_provider,
            "openai": _dump_section(self.openai, _OPENAI_KEYS),
            "cboe": _dump_section(self.cboe, _CBOE_KEYS),
            "gemini": _dump_section(self.gemini, _GEMINI_KEYS),
        }

    def save(self) -> Path:
        """Write the configuration back to its YAML file and return the path."""
        path = self.config_path or get_config_path()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(yaml.safe_dump(self.to_dict(), sort_keys=False), encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"failed to write config file {path}: {exc}") from exc
        logger.info("Configuration saved to %s", path)
        return path
