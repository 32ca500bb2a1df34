"""
OpenAI client wrapper for llm-tool.

This module encapsulates interactions with OpenAI's Chat Completions API.
It centralizes error handling, token estimation, and configuration of API
requests so the rest of the application only sees the ContentProvider
interface.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional

import openai
import tiktoken

from ..errors import ConfigError, ProviderError
from ..prompts import Message
from .base import ContentProvider

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-3.5-turbo"


class OpenAIClient(ContentProvider):
    """Wrapper around the OpenAI API with token estimation and error handling."""

    name = "openai"

    def __init__(self, api_key: str, model: str = "", temperature: float = 0.2, timeout: float = 600.0) -> None:
        if not api_key:
            raise ConfigError("OpenAI API key not set in config (openai.apiKey or OPENAI_API_KEY)")
        super().__init__(model or DEFAULT_MODEL)
        self.temperature = temperature
        self.client = openai.OpenAI(api_key=api_key, timeout=timeout)

    def estimate_tokens(self, text: str, model: Optional[str] = None) -> int:
        """Estimate the number of tokens used by a text for the given model."""
        try:
            encoding = tiktoken.encoding_for_model(self.resolve_model(model))
        except KeyError:
            # Default to cl100k_base if model unknown
            encoding = tiktoken.get_encoding("cl100k_base")
        return len(encoding.encode(text))

    def _supports_temperature(self, model: str) -> bool:
        """Reasoning-first models generally don't accept temperature.
        Return False for those to avoid server-side errors."""
        m = model.lower()
        if m.startswith(("o1", "o3", "o4", "gpt-5")) or "reasoning" in m:
            return False
        return True

    def _request_kwargs(self, messages: List[Message], model: Optional[str]) -> Dict[str, Any]:
        resolved = self.resolve_model(model)
        text = "\n".join(msg["content"] for msg in messages)
        try:
            input_tokens = self.estimate_tokens(text, resolved)
        except Exception as exc:  # noqa: BLE001 - tokenizer data may be unavailable offline
            logger.warning("Failed to estimate tokens precisely (%s). Falling back to heuristic.", exc)
            input_tokens = max(1, len(text) // 4)
        logger.info("Request to %s will use ~%s input tokens", resolved, input_tokens)

        kwargs: Dict[str, Any] = {"model": resolved, "messages": messages}
        if self._supports_temperature(resolved):
            kwargs["temperature"] = self.temperature
        else:
            logger.info("Model '%s' does not use temperature; sending request without it.", resolved)
        return kwargs

    def _create(self, kwargs: Dict[str, Any]) -> Any:
        try:
            return self.client.chat.completions.create(**kwargs)
        except openai.BadRequestError as exc:
            # Retry once without temperature if the model rejects it
            if "temperature" in str(exc) and "temperature" in kwargs:
                logger.info("Retrying without 'temperature' because the model rejected it.")
                kwargs.pop("temperature", None)
                return self.client.chat.completions.create(**kwargs)
            raise

    def stream_chat(self, messages: List[Message], model: Optional[str] = None) -> Iterator[str]:
        kwargs = self._request_kwargs(messages, model)
        kwargs["stream"] = True
        try:
            stream = self._create(kwargs)
            for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except openai.OpenAIError as exc:
            raise ProviderError(f"OpenAI stream error: {exc}") from exc

    def complete_chat(self, messages: List[Message], model: Optional[str] = None) -> str:
        kwargs = self._request_kwargs(messages, model)
        try:
            response = self._create(kwargs)
        except openai.OpenAIError as exc:
            raise ProviderError(f"OpenAI API error: {exc}") from exc

        if not response.choices:
            raise ProviderError("no response from OpenAI API")
        logger.debug(
            "OpenAI response id=%s finish_reason=%s",
            getattr(response, "id", None),
            response.choices[0].finish_reason,
        )
        return response.choices[0].message.content or ""
