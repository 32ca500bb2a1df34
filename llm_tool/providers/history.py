"""
Conversation history for chat-aware backends.

The history is a plain value: the caller loads it, hands it to the
generation call, and saves what comes back.  Nothing here is global.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

MAX_MESSAGES = 20  # ten exchanges


@dataclass
class HistoryMessage:
    role: str
    parts: List[str]


@dataclass
class ChatHistory:
    """Ordered messages of one conversation, oldest first."""

    model: str
    messages: List[HistoryMessage] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def append_exchange(self, prompt: str, response_parts: List[str]) -> None:
        """Record a user prompt and the model's answer, keeping the last MAX_MESSAGES."""
        self.messages.append(HistoryMessage(role="user", parts=[prompt]))
        self.messages.append(HistoryMessage(role="model", parts=list(response_parts)))
        if len(self.messages) > MAX_MESSAGES:
            self.messages = self.messages[-MAX_MESSAGES:]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"Role": m.role, "Parts": m.parts} for m in self.messages],
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], model: str) -> "ChatHistory":
        messages = [
            HistoryMessage(role=str(item.get("Role", "user")), parts=[str(p) for p in item.get("Parts") or []])
            for item in data.get("messages") or []
        ]
        return cls(
            model=str(data.get("model") or model),
            messages=messages,
            timestamp=str(data.get("timestamp") or datetime.now(timezone.utc).isoformat()),
        )


@dataclass
class HistoryStore:
    """JSON file holding one ChatHistory."""

    path: Path

    def load(self, model: str) -> ChatHistory:
        """Return the stored history, or an empty one when there is none."""
        if not self.path.exists():
            return ChatHistory(model=model)
        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"chat history in {self.path} must be a JSON object")
        return ChatHistory.from_dict(data, model)

    def save(self, history: ChatHistory) -> None:
        history.timestamp = datetime.now(timezone.utc).isoformat()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(history.to_dict()), encoding="utf-8")
        tmp.replace(self.path)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.info("Cleared chat history at %s", self.path)
