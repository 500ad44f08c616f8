"""Command dispatcher: user intent -> outbound commands.

Checks sequencing rules against the store before anything reaches the
channel. Validation failures and sequencing violations never send;
they set the store's global error instead.
"""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from cowork.adapters.channel import EventChannel
from cowork.adapters.events import (
    ClientCommand,
    ContinueSession,
    DeleteSession,
    ListSessions,
    PermissionResponse,
    RequestHistory,
    StartSession,
    StopSession,
)
from cowork.client.config import DEFAULT_ALLOWED_TOOLS
from cowork.client.errors import ChannelClosedError
from cowork.client.permissions import PermissionResult
from cowork.client.store import SessionStore

logger = logging.getLogger(__name__)

# Signature: async def generate(prompt) -> title; raises on failure
TitleGenerator = Callable[[str], Awaitable[str]]

EMPTY_PROMPT_ERROR = "Prompt is empty."
TITLE_FAILED_ERROR = "Failed to get session title."
STILL_RUNNING_ERROR = "Session is still running. Please wait for it to finish."
CWD_REQUIRED_ERROR = "Working Directory is required to start a session."
NOT_CONNECTED_ERROR = "Not connected to the agent backend."


class CommandDispatcher:
    """Translates user intent into commands on *channel*."""

    def __init__(
        self,
        store: SessionStore,
        channel: EventChannel,
        title_generator: TitleGenerator,
        allowed_tools: str = DEFAULT_ALLOWED_TOOLS,
    ) -> None:
        self._store = store
        self._channel = channel
        self._generate_title = title_generator
        self._allowed_tools = allowed_tools

    async def _send(self, command: ClientCommand) -> bool:
        """Hand a command to the channel. False when it could not be sent."""
        try:
            await self._channel.send(command)
        except ChannelClosedError:
            logger.warning("Dropped %s: channel not connected", command.command_type)
            self._store.set_global_error(NOT_CONNECTED_ERROR)
            return False
        logger.debug("Sent %s", command.command_type)
        # A successful operation supersedes any unacknowledged error
        self._store.set_global_error(None)
        return True

    # ── prompt ──────────────────────────────────────────────────────

    async def send(self) -> bool:
        """Send the prompt buffer: start a new session or continue the active one.

        Returns True when a command was handed to the channel.
        """
        store = self._store
        prompt = store.prompt
        if not prompt.strip():
            store.set_global_error(EMPTY_PROMPT_ERROR)
            return False

        session_id = store.active_session_id
        if session_id is None:
            sent = await self._start(prompt)
        else:
            session = store.get_session(session_id)
            if session is not None and session.is_running:
                store.set_global_error(STILL_RUNNING_ERROR)
                return False
            sent = await self._send(ContinueSession(session_id=session_id, prompt=prompt))

        if sent:
            store.set_prompt("")
        return sent

    async def _start(self, prompt: str) -> bool:
        store = self._store
        if store.pending_start:
            logger.debug("Session start already pending; ignoring send")
            return False

        store.set_pending_start(True)
        try:
            title = await self._generate_title(prompt)
        except Exception:
            # Injected generators are not limited to TitleGenerationError
            logger.exception("Title generation failed")
            store.set_pending_start(False)
            store.set_global_error(TITLE_FAILED_ERROR)
            return False

        cwd = store.cwd.strip() or None
        sent = await self._send(StartSession(
            title=title,
            prompt=prompt,
            cwd=cwd,
            allowed_tools=self._allowed_tools,
        ))
        if not sent:
            store.set_pending_start(False)
        return sent

    async def start_from_modal(self) -> bool:
        """Start from the new-session dialog, which also needs a directory."""
        if not self._store.cwd.strip():
            self._store.set_global_error(CWD_REQUIRED_ERROR)
            return False
        return await self.send()

    async def stop(self) -> bool:
        session_id = self._store.active_session_id
        if session_id is None:
            return False
        return await self._send(StopSession(session_id=session_id))

    # ── sessions ────────────────────────────────────────────────────

    def new_session(self) -> None:
        self._store.set_active_session(None)
        self._store.set_show_start_modal(True)

    async def delete_session(self, session_id: str) -> bool:
        # Local state changes only when the backend confirms the delete
        return await self._send(DeleteSession(session_id=session_id))

    async def request_session_list(self) -> bool:
        return await self._send(ListSessions())

    async def ensure_history(self, session_id: str | None = None) -> bool:
        """Fetch history for a session at most once per session lifetime."""
        store = self._store
        session_id = session_id or store.active_session_id
        if session_id is None:
            return False
        session = store.get_session(session_id)
        if session is None or session.hydrated or store.is_history_requested(session_id):
            return False
        store.mark_history_requested(session_id)
        return await self._send(RequestHistory(session_id=session_id))

    # ── permissions ─────────────────────────────────────────────────

    async def respond_permission(self, tool_use_id: str, result: PermissionResult) -> bool:
        """Answer a queued request for the active session, then drop it locally.

        The request stays queued when the channel is down so it can be
        answered again.
        """
        session_id = self._store.active_session_id
        if session_id is None:
            return False
        sent = await self._send(PermissionResponse(
            session_id=session_id,
            tool_use_id=tool_use_id,
            result=result.to_dict(),
        ))
        if sent:
            self._store.resolve_permission_request(session_id, tool_use_id)
        return sent
