"""Session store: the single source of truth for client-side session state.

Owns the session map, the active-session pointer, the history request
tracker, and the UI-local fields (prompt buffer, working directory,
pending start, global error). Inbound events are applied through
``apply_event``; every mutation publishes a fresh immutable
``StoreSnapshot`` to subscribers.

All calls happen on the one event loop, so there is no locking.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from cowork.adapters.events import (
    PermissionRequested,
    RunnerError,
    ServerEvent,
    SessionDeleted,
    SessionHistory,
    SessionInfo,
    SessionList,
    SessionStatusChanged,
    StreamMessage,
    StreamUserPrompt,
)
from cowork.client.permissions import PermissionQueue
from cowork.shared.models.message import (
    is_stream_event,
    message_from_raw,
    user_prompt_message,
)
from cowork.shared.models.session import (
    PermissionRequest,
    Session,
    SessionStatus,
    SessionView,
    parse_status,
)

logger = logging.getLogger(__name__)

Listener = Callable[["StoreSnapshot"], None]


@dataclass(frozen=True)
class StoreSnapshot:
    """Immutable view of the store after one mutation."""

    sessions: Mapping[str, SessionView] = field(
        default_factory=lambda: MappingProxyType({})
    )
    active_session_id: str | None = None
    history_requested: frozenset[str] = frozenset()
    global_error: str | None = None
    prompt: str = ""
    cwd: str = ""
    pending_start: bool = False
    show_start_modal: bool = False

    @property
    def active_session(self) -> SessionView | None:
        if self.active_session_id is None:
            return None
        return self.sessions.get(self.active_session_id)

    def sessions_by_recency(self) -> list[SessionView]:
        return sorted(
            self.sessions.values(),
            key=lambda s: s.updated_at or s.created_at or 0,
            reverse=True,
        )


class SessionStore:
    """Mutable session state plus change notification."""

    def __init__(self, cwd: str = "") -> None:
        self._sessions: dict[str, Session] = {}
        self._active_session_id: str | None = None
        self._history_requested: set[str] = set()
        self._global_error: str | None = None
        self._prompt = ""
        self._cwd = cwd
        self._pending_start = False
        # Session ids that existed when the pending start was requested
        self._known_at_start: frozenset[str] = frozenset()
        self._show_start_modal = False
        self._listeners: list[Listener] = []
        self._snapshot: StoreSnapshot | None = None

    # ── reads ───────────────────────────────────────────────────────

    def snapshot(self) -> StoreSnapshot:
        if self._snapshot is None:
            self._snapshot = StoreSnapshot(
                sessions=MappingProxyType(
                    {sid: s.freeze() for sid, s in self._sessions.items()}
                ),
                active_session_id=self._active_session_id,
                history_requested=frozenset(self._history_requested),
                global_error=self._global_error,
                prompt=self._prompt,
                cwd=self._cwd,
                pending_start=self._pending_start,
                show_start_modal=self._show_start_modal,
            )
        return self._snapshot

    @property
    def active_session_id(self) -> str | None:
        return self._active_session_id

    def get_session(self, session_id: str) -> SessionView | None:
        session = self._sessions.get(session_id)
        return session.freeze() if session else None

    @property
    def active_session(self) -> SessionView | None:
        if self._active_session_id is None:
            return None
        return self.get_session(self._active_session_id)

    def is_history_requested(self, session_id: str) -> bool:
        return session_id in self._history_requested

    def pending_permission(self, session_id: str) -> PermissionRequest | None:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        return PermissionQueue(session.permission_requests).head

    @property
    def prompt(self) -> str:
        return self._prompt

    @property
    def cwd(self) -> str:
        return self._cwd

    @property
    def pending_start(self) -> bool:
        return self._pending_start

    @property
    def global_error(self) -> str | None:
        return self._global_error

    # ── subscriptions ───────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        self._snapshot = None
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                logger.exception("Store listener failed")

    # ── inbound events ──────────────────────────────────────────────

    def apply_event(self, event: ServerEvent) -> None:
        """Apply one inbound event. Unknown kinds are ignored."""
        if isinstance(event, SessionList):
            self._apply_session_list(event)
        elif isinstance(event, SessionHistory):
            self._apply_history(event)
        elif isinstance(event, SessionStatusChanged):
            self._apply_status(event)
        elif isinstance(event, StreamMessage):
            self._apply_stream_message(event)
        elif isinstance(event, StreamUserPrompt):
            self._apply_user_prompt(event)
        elif isinstance(event, PermissionRequested):
            self._apply_permission_request(event)
        elif isinstance(event, SessionDeleted):
            self._apply_deleted(event)
        elif isinstance(event, RunnerError):
            self._apply_runner_error(event)
        else:
            logger.debug("Ignoring unknown event kind %r", event.event_type)

    def _apply_session_list(self, event: SessionList) -> None:
        next_sessions: dict[str, Session] = {}
        for info in event.sessions:
            session = self._sessions.get(info.id) or Session(id=info.id)
            self._merge_info(session, info)
            next_sessions[info.id] = session

        for dropped in set(self._sessions) - set(next_sessions):
            self._history_requested.discard(dropped)
        self._sessions = next_sessions

        if self._pending_start:
            started = [s for s in next_sessions.values() if self._is_started_session(s.id)]
            if started:
                self._adopt_started(max(
                    started, key=lambda s: s.updated_at or s.created_at or 0,
                ))
        if self._active_session_id not in self._sessions:
            self._active_session_id = None
        if self._active_session_id is None and self._sessions:
            latest = max(
                self._sessions.values(),
                key=lambda s: s.updated_at or s.created_at or 0,
            )
            self._active_session_id = latest.id
        if not self._sessions:
            self._show_start_modal = True
        self._publish()

    @staticmethod
    def _merge_info(session: Session, info: SessionInfo) -> None:
        session.title = info.title or session.title
        session.status = parse_status(info.status)
        if info.cwd is not None:
            session.cwd = info.cwd
        if info.created_at is not None:
            session.created_at = info.created_at
        if info.updated_at is not None:
            session.updated_at = info.updated_at

    def _apply_history(self, event: SessionHistory) -> None:
        session = self._sessions.get(event.session_id)
        if session is None:
            session = self._sessions[event.session_id] = Session(id=event.session_id)
        session.status = parse_status(event.status)
        session.messages = [
            message_from_raw(raw)
            for raw in event.messages
            if isinstance(raw, dict) and not is_stream_event(raw)
        ]
        session.hydrated = True
        self._publish()

    def _apply_status(self, event: SessionStatusChanged) -> None:
        session = self._sessions.get(event.session_id)
        if session is None:
            session = self._sessions[event.session_id] = Session(id=event.session_id)
        session.status = parse_status(event.status)
        if event.title is not None:
            session.title = event.title
        if event.cwd is not None:
            session.cwd = event.cwd

        if self._is_started_session(session.id):
            self._adopt_started(session)
        if event.error:
            self._global_error = event.error
        self._publish()

    def _is_started_session(self, session_id: str) -> bool:
        """True for the first id seen that was unknown when a start began."""
        return self._pending_start and session_id not in self._known_at_start

    def _adopt_started(self, session: Session) -> None:
        # Live events cover the new session; there is no history to fetch
        logger.debug("Adopting started session %s", session.id)
        session.hydrated = True
        self._active_session_id = session.id
        self._pending_start = False
        self._known_at_start = frozenset()
        self._show_start_modal = False

    def _apply_stream_message(self, event: StreamMessage) -> None:
        if is_stream_event(event.message):
            return
        session = self._sessions.get(event.session_id)
        if session is None:
            logger.debug("Stream message for unknown session %s", event.session_id)
            return
        session.messages.append(message_from_raw(event.message))
        self._publish()

    def _apply_user_prompt(self, event: StreamUserPrompt) -> None:
        session = self._sessions.get(event.session_id)
        if session is None:
            logger.debug("User prompt for unknown session %s", event.session_id)
            return
        session.messages.append(user_prompt_message(event.prompt))
        self._publish()

    def _apply_permission_request(self, event: PermissionRequested) -> None:
        session = self._sessions.get(event.session_id)
        if session is None:
            logger.debug(
                "Permission request %s for unknown session %s",
                event.tool_use_id, event.session_id,
            )
            return
        PermissionQueue(session.permission_requests).push(
            event.tool_use_id, event.tool_name, event.input,
        )
        self._publish()

    def _apply_deleted(self, event: SessionDeleted) -> None:
        self._sessions.pop(event.session_id, None)
        self._history_requested.discard(event.session_id)
        if self._active_session_id == event.session_id:
            self._active_session_id = None
        self._publish()

    def _apply_runner_error(self, event: RunnerError) -> None:
        if event.session_id and event.session_id in self._sessions:
            self._sessions[event.session_id].status = SessionStatus.ERRORED
        self._global_error = event.message or "Agent runner failed."
        self._publish()

    # ── local mutations ─────────────────────────────────────────────

    def set_active_session(self, session_id: str | None) -> None:
        if session_id is not None and session_id not in self._sessions:
            logger.warning("Ignoring switch to unknown session %s", session_id)
            return
        if session_id == self._active_session_id:
            return
        self._active_session_id = session_id
        self._publish()

    def mark_history_requested(self, session_id: str) -> None:
        if session_id in self._history_requested:
            return
        self._history_requested.add(session_id)
        self._publish()

    def resolve_permission_request(self, session_id: str, tool_use_id: str) -> None:
        """Drop a queued request. Absent ids are tolerated silently."""
        session = self._sessions.get(session_id)
        if session is None:
            return
        if PermissionQueue(session.permission_requests).resolve(tool_use_id):
            self._publish()

    def set_global_error(self, message: str | None) -> None:
        if message == self._global_error:
            return
        self._global_error = message
        self._publish()

    def set_prompt(self, prompt: str) -> None:
        if prompt == self._prompt:
            return
        self._prompt = prompt
        self._publish()

    def set_cwd(self, cwd: str) -> None:
        if cwd == self._cwd:
            return
        self._cwd = cwd
        self._publish()

    def set_pending_start(self, pending: bool) -> None:
        if pending == self._pending_start:
            return
        self._pending_start = pending
        self._known_at_start = frozenset(self._sessions) if pending else frozenset()
        self._publish()

    def set_show_start_modal(self, show: bool) -> None:
        if show == self._show_start_modal:
            return
        self._show_start_modal = show
        self._publish()
