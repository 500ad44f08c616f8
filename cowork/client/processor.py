"""Event processor: the ingestion entry point for inbound channel payloads.

Parses each raw payload into a typed event, applies it to the store,
and feeds partial-output stream events for the active session to the
accumulator. It also drives the two connection-dependent fetches:
the session list on connect and one-time history hydration for the
active session.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from cowork.adapters.channel import EventChannel
from cowork.adapters.events import StreamMessage, dict_to_event
from cowork.client.dispatcher import CommandDispatcher
from cowork.client.errors import InvalidEventError
from cowork.client.partial_output import PartialOutputAccumulator
from cowork.client.store import SessionStore, StoreSnapshot
from cowork.shared.models.message import is_stream_event

logger = logging.getLogger(__name__)


class EventProcessor:
    """Connects a channel to the store, accumulator, and dispatcher."""

    def __init__(
        self,
        store: SessionStore,
        channel: EventChannel,
        dispatcher: CommandDispatcher,
        accumulator: PartialOutputAccumulator,
    ) -> None:
        self._store = store
        self._channel = channel
        self._dispatcher = dispatcher
        self._accumulator = accumulator
        self._unsubscribers: list[Callable[[], None]] = []
        self._tasks: set[asyncio.Task] = set()
        self._last_active_id: str | None = store.active_session_id

    # ── lifecycle ───────────────────────────────────────────────────

    def start(self) -> None:
        """Subscribe to the channel and store. Call once, on the event loop."""
        if self._unsubscribers:
            return
        self._unsubscribers = [
            self._channel.on_event(self.handle_raw),
            self._channel.on_connection_change(self._on_connection_change),
            self._store.subscribe(self._on_store_change),
        ]
        if self._channel.connected:
            self._on_connection_change(True)

    async def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background command failed", exc_info=task.exception())

    # ── inbound ─────────────────────────────────────────────────────

    def handle_raw(self, raw: Any) -> None:
        """Apply one raw inbound payload. Never raises."""
        try:
            event = dict_to_event(raw)
        except InvalidEventError as exc:
            logger.warning("Dropping inbound payload: %s", exc)
            return

        try:
            self._store.apply_event(event)
            if (
                isinstance(event, StreamMessage)
                and is_stream_event(event.message)
                and event.session_id == self._store.active_session_id
            ):
                self._accumulator.handle_stream_event(event.message.get("event"))
        except Exception:
            logger.exception("Error processing event: %s", event.event_type)

    # ── reactions ───────────────────────────────────────────────────

    def _on_connection_change(self, connected: bool) -> None:
        if not connected:
            return
        self._spawn(self._dispatcher.request_session_list())
        self._maybe_hydrate(self._store.snapshot())

    def _on_store_change(self, snap: StoreSnapshot) -> None:
        if snap.active_session_id != self._last_active_id:
            self._last_active_id = snap.active_session_id
            # Partial output belongs to the previously active session
            self._accumulator.reset()
        self._maybe_hydrate(snap)

    def _maybe_hydrate(self, snap: StoreSnapshot) -> None:
        if not self._channel.connected:
            return
        session = snap.active_session
        if session is None or session.hydrated:
            return
        if session.id in snap.history_requested:
            return
        self._spawn(self._dispatcher.ensure_history(session.id))
