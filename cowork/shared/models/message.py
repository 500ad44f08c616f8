"""Message and content block models.

Raw backend stream messages are loosely shaped dicts. ``message_from_raw``
normalizes them once at the boundary so the store and renderers only see
``Message`` values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
import uuid


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _gen_id() -> str:
    return str(uuid.uuid4())[:8]


class MessageRole(Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    RESULT = "result"
    OTHER = "other"


class MessageStatus(Enum):
    COMPLETE = "complete"
    IN_PROGRESS = "in_progress"


@dataclass(frozen=True)
class ContentBlock:
    kind: str
    payload: Any = None

    @property
    def text(self) -> str:
        """Best-effort plain text for this block ("" when it has none)."""
        if isinstance(self.payload, str):
            return self.payload
        if isinstance(self.payload, dict):
            value = self.payload.get("text") or self.payload.get(self.kind)
            if isinstance(value, str):
                return value
        return ""


@dataclass(frozen=True)
class Message:
    role: MessageRole
    content: tuple[ContentBlock, ...] = ()
    status: MessageStatus = MessageStatus.COMPLETE
    raw: dict[str, Any] = field(default_factory=dict, compare=False)
    id: str = field(default_factory=_gen_id, compare=False)
    timestamp: datetime = field(default_factory=_utcnow, compare=False)

    @property
    def text(self) -> str:
        return "\n".join(b.text for b in self.content if b.text)


_ROLE_BY_TYPE = {
    "user": MessageRole.USER,
    "user_prompt": MessageRole.USER,
    "assistant": MessageRole.ASSISTANT,
    "system": MessageRole.SYSTEM,
    "result": MessageRole.RESULT,
}


def is_stream_event(raw: Any) -> bool:
    """True for the ``stream_event`` wrapper carrying partial output."""
    return isinstance(raw, dict) and raw.get("type") == "stream_event"


def _blocks_from_content(content: Any) -> tuple[ContentBlock, ...]:
    if isinstance(content, str):
        return (ContentBlock("text", content),) if content else ()
    if not isinstance(content, list):
        return ()
    blocks: list[ContentBlock] = []
    for item in content:
        if isinstance(item, dict):
            kind = str(item.get("type") or "unknown")
            payload = {k: v for k, v in item.items() if k != "type"}
            blocks.append(ContentBlock(kind, payload))
        elif isinstance(item, str):
            blocks.append(ContentBlock("text", item))
    return tuple(blocks)


def message_from_raw(raw: dict[str, Any]) -> Message:
    """Build a finalized ``Message`` from a raw backend stream message."""
    msg_type = str(raw.get("type") or "")
    role = _ROLE_BY_TYPE.get(msg_type, MessageRole.OTHER)

    if msg_type == "user_prompt":
        content = _blocks_from_content(raw.get("prompt") or "")
    elif isinstance(raw.get("message"), dict):
        content = _blocks_from_content(raw["message"].get("content"))
    elif msg_type == "result":
        result = raw.get("result")
        content = (ContentBlock("result", result),) if result is not None else ()
    else:
        payload = {k: v for k, v in raw.items() if k != "type"}
        content = (ContentBlock(msg_type or "unknown", payload),)

    return Message(role=role, content=content, raw=dict(raw))


def user_prompt_message(prompt: str) -> Message:
    return message_from_raw({"type": "user_prompt", "prompt": prompt})
