"""
Google Gemini client for llm-tool.

Uses the ``google-genai`` SDK.  Free-form questions are chat-history
aware: the previous exchanges are loaded from a JSON file, sent along
with the new prompt, and the extended history is saved afterwards.
Reviews and refactors are one-shot requests without history.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..config import config_dir
from ..errors import ConfigError, ProviderError
from ..prompts import Message
from .base import ContentProvider
from .history import ChatHistory, HistoryStore

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash-lite"


def default_history_path() -> Path:
    return config_dir() / "history" / "gemini_chat_history.json"


def _to_contents(messages: List[Message]) -> List[Dict[str, Any]]:
    contents: List[Dict[str, Any]] = []
    for msg in messages:
        if msg["role"] == "system":
            continue
        role = "model" if msg["role"] in ("assistant", "model") else "user"
        contents.append({"role": role, "parts": [{"text": msg["content"]}]})
    return contents


def _system_instruction(messages: List[Message]) -> Optional[str]:
    parts = [msg["content"] for msg in messages if msg["role"] == "system"]
    return "\n".join(parts) if parts else None


class GeminiClient(ContentProvider):
    """ContentProvider backed by Google's Gemini API."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "",
        history_path: Optional[Path] = None,
        temperature: float = 0.2,
    ) -> None:
        if not api_key:
            raise ConfigError("gemini API key not set in config (gemini.apiKey or GEMINI_API_KEY)")
        super().__init__(model or DEFAULT_MODEL)
        self.temperature = temperature
        self.history = HistoryStore(history_path or default_history_path())
        self.client = genai.Client(api_key=api_key)

    def _config(self, messages: List[Message]) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=_system_instruction(messages),
            temperature=self.temperature,
        )

    def _stream_contents(
        self,
        contents: List[Dict[str, Any]],
        config: types.GenerateContentConfig,
        model: str,
    ) -> Iterator[str]:
        try:
            for chunk in self.client.models.generate_content_stream(
                model=model,
                contents=contents,
                config=config,
            ):
                text = chunk.text
                if text:
                    yield text
        except genai_errors.APIError as exc:
            raise ProviderError(f"error receiving response from Gemini: {exc}") from exc

    def stream_chat(self, messages: List[Message], model: Optional[str] = None) -> Iterator[str]:
        return self._stream_contents(_to_contents(messages), self._config(messages), self.resolve_model(model))

    def complete_chat(self, messages: List[Message], model: Optional[str] = None) -> str:
        try:
            response = self.client.models.generate_content(
                model=self.resolve_model(model),
                contents=_to_contents(messages),
                config=self._config(messages),
            )
        except genai_errors.APIError as exc:
            raise ProviderError(f"failed to generate content: {exc}") from exc
        return response.text or ""

    # ----------------
    # Chat history
    # ----------------
    def chat_with_history(self, prompt: str, history: ChatHistory, model: Optional[str] = None) -> Iterator[str]:
        """
        Stream the answer to ``prompt`` in the context of ``history``.

        Once the stream is exhausted the exchange is appended to
        ``history``; saving it is up to the caller.
        """

        contents: List[Dict[str, Any]] = [
            {"role": m.role, "parts": [{"text": p} for p in m.parts]} for m in history.messages
        ]
        contents.append({"role": "user", "parts": [{"text": prompt}]})
        config = types.GenerateContentConfig(temperature=self.temperature)

        response_parts: List[str] = []
        for text in self._stream_contents(contents, config, self.resolve_model(model)):
            response_parts.append(text)
            yield text
        history.append_exchange(prompt, response_parts)

    def ask(self, prompt: str, model: Optional[str] = None) -> Iterator[str]:
        resolved = self.resolve_model(model)
        try:
            history = self.history.load(resolved)
        except (OSError, ValueError) as exc:
            logger.warning("Could not load chat history: %s", exc)
            history = ChatHistory(model=resolved)

        yield from self.chat_with_history(prompt, history, resolved)

        try:
            self.history.save(history)
        except OSError as exc:
            logger.warning("Could not save chat history: %s", exc)

    def clear_chat_history(self) -> None:
        try:
            self.history.clear()
        except OSError as exc:
            raise ProviderError(f"failed to clear chat history: {exc}") from exc
