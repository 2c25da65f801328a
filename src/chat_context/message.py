from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .errors import SerializationError


class MessageType(str, Enum):
    LLM_OUTPUT = "llm-output"
    USER_INPUT = "user-input"
    TOOL_USAGE = "tool-usage"


@dataclass(frozen=True)
class MessageDraft:
    """A message without id/timestamp, as produced by the format adapters."""
    type: MessageType
    content: str
    metadata: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class Message:
    """
    A single stored conversation message.

    Fields:
        id: unique within a session (e.g. "msg-1f2e3d4c5b6a").
        type: one of :class:`MessageType`.
        timestamp: integer seconds since the epoch.
        content: message text.
        metadata: optional free-form mapping; omitted from the stored form when None.
    """
    id: str
    type: MessageType
    timestamp: int
    content: str
    metadata: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        # Reject anything from_dict() would refuse, before it reaches the store
        try:
            object.__setattr__(self, "type", MessageType(self.type))
        except ValueError as e:
            raise SerializationError(f"Unknown message type: {self.type!r}") from e
        # bool is an int subclass; reject it explicitly
        if not isinstance(self.timestamp, int) or isinstance(self.timestamp, bool):
            raise SerializationError(f"Timestamp must be an integer, got {self.timestamp!r}")
        if not isinstance(self.id, str) or not isinstance(self.content, str):
            raise SerializationError("Message id and content must be strings")
        if self.metadata is not None and not isinstance(self.metadata, dict):
            raise SerializationError("Message metadata must be an object")

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "timestamp": self.timestamp,
            "content": self.content,
        }
        if self.metadata is not None:
            d["metadata"] = self.metadata
        return d

    def to_bytes(self) -> bytes:
        """Canonical byte form: this is exactly what gets hashed."""
        try:
            return canonical_json(self.to_dict())
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Message {self.id} is not JSON-serializable: {e}") from e

    @classmethod
    def from_dict(cls, d: Any) -> "Message":
        if not isinstance(d, dict):
            raise SerializationError(f"Expected a JSON object, got {type(d).__name__}")
        missing = [k for k in ("id", "type", "timestamp", "content") if k not in d]
        if missing:
            raise SerializationError(f"Message is missing fields: {', '.join(missing)}")

        # field checks happen in __post_init__
        return cls(
            id=d["id"],
            type=d["type"],
            timestamp=d["timestamp"],
            content=d["content"],
            metadata=d.get("metadata"),
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "Message":
        try:
            raw = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise SerializationError(f"Stored message is not valid JSON: {e}") from e
        return cls.from_dict(raw)


def canonical_json(obj: Any) -> bytes:
    """Deterministic JSON: sorted keys, no insignificant whitespace, UTF-8."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
