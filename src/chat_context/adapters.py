"""Convert provider chat messages into :class:`MessageDraft` values.

Pure data mapping, no I/O. Inputs may be the pydantic models below or plain
mappings with the same shape (validated on the way in).
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .message import MessageDraft, MessageType


# -----------------------------
# Pydantic input schemas
# -----------------------------
class AnthropicSource(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    media_type: Optional[str] = None
    data: Optional[str] = None


class AnthropicContent(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    text: Optional[str] = None
    source: Optional[AnthropicSource] = None


class AnthropicMessage(BaseModel):
    model_config = ConfigDict(extra="allow", protected_namespaces=())

    role: str = Field(..., description="user | assistant | system")
    content: Union[str, List[AnthropicContent]]
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None


class OpenAIFunctionCall(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    arguments: str


class OpenAIToolCall(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    type: str
    function: OpenAIFunctionCall


class OpenAIMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: str = Field(..., description="system | user | assistant | function | tool")
    content: Optional[str] = None
    name: Optional[str] = None
    function_call: Optional[OpenAIFunctionCall] = None
    tool_calls: Optional[List[OpenAIToolCall]] = None


# -----------------------------
# Role tables (anything else -> USER_INPUT)
# -----------------------------
_ANTHROPIC_ROLES = {
    "assistant": MessageType.LLM_OUTPUT,
    "user": MessageType.USER_INPUT,
}

_GENERATION_FIELDS = ("model", "temperature", "max_tokens")

_OPENAI_ROLES = {
    "assistant": MessageType.LLM_OUTPUT,
    "user": MessageType.USER_INPUT,
    "function": MessageType.TOOL_USAGE,
    "tool": MessageType.TOOL_USAGE,
}


def _set_if_present(out: Dict[str, Any], key: str, value: Any) -> None:
    if value is None:
        return
    out[key] = value.model_dump(exclude_none=True) if isinstance(value, BaseModel) else value


# -----------------------------
# Converters
# -----------------------------
def from_anthropic_message(msg: Union[AnthropicMessage, Mapping[str, Any]]) -> MessageDraft:
    """Map an Anthropic-style message to a draft.

    List content keeps only ``type == "text"`` items, joined by newlines.
    Metadata is the source ``metadata`` with ``model``/``temperature``/``max_tokens``
    taken from the top-level fields only (dropped when those are unset).
    """
    if not isinstance(msg, AnthropicMessage):
        msg = AnthropicMessage.model_validate(dict(msg))

    mtype = _ANTHROPIC_ROLES.get(msg.role, MessageType.USER_INPUT)

    if isinstance(msg.content, str):
        content = msg.content
    else:
        content = "\n".join(item.text or "" for item in msg.content if item.type == "text")

    # top-level generation fields always win over same-named source metadata,
    # even when unset
    metadata: Dict[str, Any] = {
        k: v for k, v in (msg.metadata or {}).items() if k not in _GENERATION_FIELDS
    }
    _set_if_present(metadata, "model", msg.model)
    _set_if_present(metadata, "temperature", msg.temperature)
    _set_if_present(metadata, "max_tokens", msg.max_tokens)

    return MessageDraft(type=mtype, content=content, metadata=metadata)


def from_openai_message(msg: Union[OpenAIMessage, Mapping[str, Any]]) -> MessageDraft:
    """Map an OpenAI-style message to a draft. Null content becomes ``""``."""
    if not isinstance(msg, OpenAIMessage):
        msg = OpenAIMessage.model_validate(dict(msg))

    mtype = _OPENAI_ROLES.get(msg.role, MessageType.USER_INPUT)

    metadata: Dict[str, Any] = {"role": msg.role}
    _set_if_present(metadata, "name", msg.name)
    _set_if_present(metadata, "function_call", msg.function_call)
    if msg.tool_calls is not None:
        metadata["tool_calls"] = [tc.model_dump(exclude_none=True) for tc in msg.tool_calls]

    return MessageDraft(type=mtype, content=msg.content or "", metadata=metadata)
