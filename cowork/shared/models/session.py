"""Session state: per-session messages, status, and permission queue."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cowork.shared.models.message import Message


class SessionStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"
    ERRORED = "errored"


# Backend status vocabulary -> client status
_STATUS_ALIASES: dict[str, SessionStatus] = {
    "idle": SessionStatus.IDLE,
    "running": SessionStatus.RUNNING,
    "stopped": SessionStatus.STOPPED,
    "completed": SessionStatus.STOPPED,
    "errored": SessionStatus.ERRORED,
    "error": SessionStatus.ERRORED,
}


def parse_status(value: Any) -> SessionStatus:
    """Map a backend status string to ``SessionStatus`` (unknown -> idle)."""
    if isinstance(value, SessionStatus):
        return value
    return _STATUS_ALIASES.get(str(value or "").lower(), SessionStatus.IDLE)


@dataclass(frozen=True)
class PermissionRequest:
    """A backend ask for approval before a tool runs."""
    tool_use_id: str
    tool_name: str
    input: Any = None
    # Queue position; stands in for a creation timestamp
    position: int = 0


@dataclass
class Session:
    """Mutable session record. Only ``SessionStore`` mutates these."""

    id: str
    title: str = ""
    status: SessionStatus = SessionStatus.IDLE
    messages: list[Message] = field(default_factory=list)
    permission_requests: list[PermissionRequest] = field(default_factory=list)
    hydrated: bool = False
    cwd: str | None = None
    created_at: int | None = None
    updated_at: int | None = None

    @property
    def is_running(self) -> bool:
        return self.status is SessionStatus.RUNNING

    def freeze(self) -> SessionView:
        return SessionView(
            id=self.id,
            title=self.title,
            status=self.status,
            messages=tuple(self.messages),
            permission_requests=tuple(self.permission_requests),
            hydrated=self.hydrated,
            cwd=self.cwd,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


@dataclass(frozen=True)
class SessionView:
    """Read-only copy of a session handed to consumers."""

    id: str
    title: str
    status: SessionStatus
    messages: tuple[Message, ...]
    permission_requests: tuple[PermissionRequest, ...]
    hydrated: bool
    cwd: str | None = None
    created_at: int | None = None
    updated_at: int | None = None

    @property
    def is_running(self) -> bool:
        return self.status is SessionStatus.RUNNING

    @property
    def pending_permission(self) -> PermissionRequest | None:
        """Queue head; later requests stay hidden until it is resolved."""
        return self.permission_requests[0] if self.permission_requests else None
