"""
LLM backends behind the ContentProvider interface.

``new_client`` picks the implementation named by the configuration or
the ``--provider`` flag.
"""

from __future__ import annotations

from typing import Optional

from ..config import ToolConfig
from ..errors import ConfigError
from .base import ContentProvider

PROVIDERS = ("openai", "cboe", "gemini")


def new_client(provider: Optional[str], config: ToolConfig, datasource: Optional[str] = None) -> ContentProvider:
    """Return a client for ``provider`` (default: the configured one)."""
    name = (provider or config.default_provider).lower()

    # Each backend imports its own SDK on first use.
    if name == "openai":
        from .openai_client import OpenAIClient

        return OpenAIClient(api_key=config.openai_api_key, model=config.openai.model)
    if name == "cboe":
        from .cboe_client import CBOEClient

        return CBOEClient(
            email=config.cboe.email,
            token=config.cboe.token,
            endpoint=config.cboe.endpoint,
            model=config.cboe.model,
            datasource=datasource or config.cboe.datasource,
        )
    if name == "gemini":
        from .gemini_client import GeminiClient

        return GeminiClient(api_key=config.gemini_api_key, model=config.gemini.model)
    raise ConfigError(f"unsupported provider: {name}")


__all__ = ["ContentProvider", "PROVIDERS", "new_client"]
