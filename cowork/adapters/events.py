"""Event and command types exchanged with the backend agent process.

Inbound payloads arrive as ``{"type": ..., "payload": {...}}`` dicts with
camelCase keys. Each kind is parsed into a typed dataclass so the store
never reaches into raw dicts. Outbound commands go the other way through
``command_to_dict``.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field, fields
from typing import Any

from cowork.client.errors import InvalidEventError


# ── Inbound events ──────────────────────────────────────────────────


@dataclass
class ServerEvent:
    """Base inbound event. Unknown kinds parse to this class."""
    event_type: str = ""
    session_id: str | None = None


@dataclass
class SessionInfo:
    """One row of a ``session.list`` snapshot."""
    id: str = ""
    title: str = ""
    status: str = "idle"
    cwd: str | None = None
    created_at: int | None = None
    updated_at: int | None = None


@dataclass
class SessionList(ServerEvent):
    event_type: str = "session.list"
    sessions: list[SessionInfo] = field(default_factory=list)


@dataclass
class SessionHistory(ServerEvent):
    event_type: str = "session.history"
    status: str = "idle"
    messages: list = field(default_factory=list)


@dataclass
class SessionStatusChanged(ServerEvent):
    event_type: str = "session.status"
    status: str = "idle"
    title: str | None = None
    cwd: str | None = None
    error: str | None = None


@dataclass
class SessionDeleted(ServerEvent):
    event_type: str = "session.deleted"


@dataclass
class StreamMessage(ServerEvent):
    """A finalized message or a ``stream_event`` partial-output wrapper."""
    event_type: str = "stream.message"
    message: dict = field(default_factory=dict)


@dataclass
class StreamUserPrompt(ServerEvent):
    event_type: str = "stream.user_prompt"
    prompt: str = ""


@dataclass
class PermissionRequested(ServerEvent):
    event_type: str = "permission.request"
    tool_use_id: str = ""
    tool_name: str = ""
    input: Any = None


@dataclass
class RunnerError(ServerEvent):
    event_type: str = "runner.error"
    message: str = ""


_EVENT_MAP: dict[str, type[ServerEvent]] = {
    "session.list": SessionList,
    "session.history": SessionHistory,
    "session.status": SessionStatusChanged,
    "session.deleted": SessionDeleted,
    "stream.message": StreamMessage,
    "stream.user_prompt": StreamUserPrompt,
    "permission.request": PermissionRequested,
    "runner.error": RunnerError,
}

# Fields that must be present and non-empty for the event to be usable
_REQUIRED: dict[type[ServerEvent], tuple[str, ...]] = {
    SessionHistory: ("session_id",),
    SessionStatusChanged: ("session_id",),
    SessionDeleted: ("session_id",),
    StreamMessage: ("session_id",),
    StreamUserPrompt: ("session_id",),
    PermissionRequested: ("session_id", "tool_use_id"),
}

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")
_SNAKE_RE = re.compile(r"_([a-z])")


def _snake(key: str) -> str:
    return _CAMEL_RE.sub("_", key).lower()


def _camel(key: str) -> str:
    return _SNAKE_RE.sub(lambda m: m.group(1).upper(), key)


def _filtered(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    valid = {f.name for f in fields(cls)}
    out: dict[str, Any] = {}
    for key, value in data.items():
        name = _snake(key)
        if name in valid:
            out[name] = value
    return out


def _session_info(raw: Any) -> SessionInfo | None:
    if not isinstance(raw, dict):
        return None
    info = SessionInfo(**_filtered(SessionInfo, raw))
    return info if info.id else None


def dict_to_event(data: Any) -> ServerEvent:
    """Convert a raw inbound payload to a typed event.

    Unknown kinds come back as a bare ``ServerEvent`` so callers can
    ignore them. Known kinds missing required identifiers raise
    ``InvalidEventError``.
    """
    if not isinstance(data, dict):
        raise InvalidEventError("", f"expected object, got {type(data).__name__}")
    event_type = str(data.get("type") or "")
    payload = data.get("payload")
    if not isinstance(payload, dict):
        payload = {}

    cls = _EVENT_MAP.get(event_type)
    if cls is None:
        return ServerEvent(event_type=event_type)

    kwargs = _filtered(cls, payload)
    kwargs.pop("event_type", None)
    if cls is SessionList:
        raw_sessions = payload.get("sessions")
        infos = [_session_info(s) for s in raw_sessions] if isinstance(raw_sessions, list) else []
        kwargs["sessions"] = [i for i in infos if i is not None]
    elif cls is SessionHistory and not isinstance(kwargs.get("messages"), list):
        kwargs["messages"] = []
    elif cls is StreamMessage and not isinstance(kwargs.get("message"), dict):
        raise InvalidEventError(event_type, "message must be an object")

    event = cls(**kwargs)
    for name in _REQUIRED.get(cls, ()):
        if not getattr(event, name):
            raise InvalidEventError(event_type, f"missing {_camel(name)}")
    return event


# ── Outbound commands ───────────────────────────────────────────────


@dataclass
class ClientCommand:
    """Base outbound command."""
    command_type: str = ""


@dataclass
class ListSessions(ClientCommand):
    command_type: str = "session.list"


@dataclass
class RequestHistory(ClientCommand):
    command_type: str = "session.history"
    session_id: str = ""


@dataclass
class StartSession(ClientCommand):
    command_type: str = "session.start"
    title: str = ""
    prompt: str = ""
    cwd: str | None = None
    allowed_tools: str = ""


@dataclass
class ContinueSession(ClientCommand):
    command_type: str = "session.continue"
    session_id: str = ""
    prompt: str = ""


@dataclass
class StopSession(ClientCommand):
    command_type: str = "session.stop"
    session_id: str = ""


@dataclass
class DeleteSession(ClientCommand):
    command_type: str = "session.delete"
    session_id: str = ""


@dataclass
class PermissionResponse(ClientCommand):
    command_type: str = "permission.response"
    session_id: str = ""
    tool_use_id: str = ""
    # {"behavior": "allow", "updatedInput": ...} or {"behavior": "deny", "message": ...}
    result: dict = field(default_factory=dict)


def command_to_dict(command: ClientCommand) -> dict[str, Any]:
    """Serialize a command to its wire shape, omitting unset optionals."""
    payload: dict[str, Any] = {}
    for f in fields(command):
        if f.name == "command_type":
            continue
        value = getattr(command, f.name)
        if value is not None:
            payload[_camel(f.name)] = value
    out: dict[str, Any] = {"type": command.command_type}
    if payload:
        out["payload"] = payload
    return out
