"""
CBOE chat service client for llm-tool.

The service speaks plain JSON over HTTP.  ``/chat`` returns a whole
answer, ``/chat_stream`` streams server-sent events whose ``data:``
lines carry either JSON with an ``answer`` field or raw text.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterator, List, Optional

import requests

from ..config import DEFAULT_CBOE_ENDPOINT
from ..errors import ConfigError, ProviderError
from ..prompts import Message, review_messages
from .base import ContentProvider

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = (10, 300)  # connect, read


def _to_cboe_messages(messages: List[Message]) -> List[Dict[str, Any]]:
    return [{"role": m["role"], "content": [{"text": m["content"]}]} for m in messages]


def parse_sse_line(line: str) -> Optional[str]:
    """Return the text carried by one server-sent-event line, if any."""
    if not line.startswith("data: "):
        return None
    data = line[len("data: "):]
    try:
        payload = json.loads(data)
    except ValueError:
        return data
    if isinstance(payload, dict) and isinstance(payload.get("answer"), str):
        return payload["answer"]
    return data


def _post(url: str, payload: Dict[str, Any], stream: bool = False) -> requests.Response:
    logger.debug("POST %s (stream=%s)", url, stream)
    try:
        response = requests.post(url, json=payload, stream=stream, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as exc:
        raise ProviderError(f"request failed: {exc}") from exc
    if response.status_code != 200:
        raise ProviderError(f"API error: status {response.status_code}, body: {response.text}")
    return response


def setup_token(email: str, token: str, endpoint: str = "") -> str:
    """Register ``token`` for ``email`` with the service and return its reply."""
    url = (endpoint or DEFAULT_CBOE_ENDPOINT).rstrip("/") + "/setup_token"
    response = _post(url, {"email": email, "token": token})
    logger.info("Token setup successful for %s", email)
    return response.text


class CBOEClient(ContentProvider):
    """ContentProvider backed by the CBOE chat service."""

    name = "cboe"

    def __init__(
        self,
        email: str,
        token: str,
        endpoint: str = "",
        model: str = "default",
        datasource: str = "",
    ) -> None:
        if not email or not token:
            raise ConfigError("CBOE email and token required in config")
        super().__init__(model or "default")
        self.email = email
        self.token = token
        self.endpoint = (endpoint or DEFAULT_CBOE_ENDPOINT).rstrip("/")
        self.datasource = datasource

    def _payload(self, messages: List[Message]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "messages": _to_cboe_messages(messages),
            "email": self.email,
            "token": self.token,
        }
        if self.datasource:
            payload["datasources"] = [{"name": self.datasource, "custom": True}]
        return payload

    def _chat(self, messages: List[Message]) -> Dict[str, Any]:
        response = _post(self.endpoint + "/chat", self._payload(messages))
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(f"failed to decode response: {exc}") from exc
        if not isinstance(data, dict):
            raise ProviderError(f"unexpected response from CBOE API: {data!r}")
        if data.get("error"):
            raise ProviderError(f"API returned error: {data['error']}")
        return data

    def stream_chat(self, messages: List[Message], model: Optional[str] = None) -> Iterator[str]:
        response = _post(self.endpoint + "/chat_stream", self._payload(messages), stream=True)
        try:
            for line in response.iter_lines(decode_unicode=True):
                if not line:
                    continue
                text = parse_sse_line(line)
                if text:
                    yield text
        except requests.RequestException as exc:
            raise ProviderError(f"stream error: {exc}") from exc
        finally:
            response.close()

    def complete_chat(self, messages: List[Message], model: Optional[str] = None) -> str:
        return str(self._chat(messages).get("answer") or "")

    def review_diff(self, diff: str, model: Optional[str] = None) -> Iterator[str]:
        # Reviews use the blocking endpoint so the cited sources come along.
        data = self._chat(review_messages(diff))
        yield str(data.get("answer") or "")

        raw_sources = data.get("sources")
        if not isinstance(raw_sources, list):
            raw_sources = []
        sources = [s for s in raw_sources if isinstance(s, dict)]
        if sources:
            lines = ["\n\n=== Sources ==="]
            for idx, source in enumerate(sources, start=1):
                lines.append(f"{idx}. {source.get('name', '')}")
                if source.get("url"):
                    lines.append(f"   URL: {source['url']}")
            yield "\n".join(lines) + "\n"
