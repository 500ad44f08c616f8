"""Partial output accumulator for the active session's streaming message.

Three states:

- idle: buffer empty, not visible
- accumulating: entered on ``content_block_start`` (buffer reset,
  visible); each ``content_block_delta`` appends its extracted text
- settling: entered on ``content_block_stop``; visible drops at once but
  the text stays on screen until the settle delay clears it

The settle delay keeps the finished text up while the final message is
appended to the session, so the swap does not flash.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_DELAY = 0.5


class PartialPhase(Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    SETTLING = "settling"


@dataclass(frozen=True)
class PartialOutputState:
    buffer: str = ""
    visible: bool = False
    phase: PartialPhase = PartialPhase.IDLE


def extract_delta_text(event: Any) -> str:
    """Pull the text out of a ``content_block_delta`` event.

    The delta's ``type`` tag names the field holding the text
    (``text_delta`` -> ``text``). Anything malformed yields "".
    """
    try:
        delta = event["delta"]
        field_name = delta["type"].split("_")[0]
        value = delta[field_name]
    except (KeyError, TypeError, AttributeError, IndexError):
        logger.debug("Malformed stream delta, treating as empty: %r", event)
        return ""
    if not isinstance(value, str):
        logger.debug("Non-text stream delta %r, treating as empty", field_name)
        return ""
    return value


class PartialOutputAccumulator:
    """Assembles streamed deltas into one growing buffer."""

    def __init__(
        self,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._settle_delay = settle_delay
        self._loop = loop
        self._buffer = ""
        self._visible = False
        self._phase = PartialPhase.IDLE
        self._settle_handle: asyncio.TimerHandle | None = None
        self._listeners: list[Callable[[PartialOutputState], None]] = []

    # ── state ───────────────────────────────────────────────────────

    @property
    def buffer(self) -> str:
        return self._buffer

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def phase(self) -> PartialPhase:
        return self._phase

    @property
    def state(self) -> PartialOutputState:
        return PartialOutputState(self._buffer, self._visible, self._phase)

    def subscribe(self, listener: Callable[[PartialOutputState], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        state = self.state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Partial output listener failed")

    # ── signals ─────────────────────────────────────────────────────

    def handle_stream_event(self, event: Any) -> None:
        """Route one raw ``stream_event`` payload to the matching signal."""
        kind = event.get("type") if isinstance(event, dict) else None
        if kind == "content_block_start":
            self.block_start()
        elif kind == "content_block_delta":
            self.block_delta(extract_delta_text(event))
        elif kind == "content_block_stop":
            self.block_stop()

    def block_start(self) -> None:
        self._cancel_settle()
        self._buffer = ""
        self._visible = True
        self._phase = PartialPhase.ACCUMULATING
        self._publish()

    def block_delta(self, text: str) -> None:
        if not text:
            return
        self._buffer += text
        self._publish()

    def block_stop(self) -> None:
        self._visible = False
        self._phase = PartialPhase.SETTLING
        self._cancel_settle()
        loop = self._loop or asyncio.get_running_loop()
        self._settle_handle = loop.call_later(self._settle_delay, self._settle)
        self._publish()

    def reset(self) -> None:
        """Drop any partial output immediately (e.g. active session switch)."""
        self._cancel_settle()
        self._buffer = ""
        self._visible = False
        self._phase = PartialPhase.IDLE
        self._publish()

    def _settle(self) -> None:
        self._settle_handle = None
        self._buffer = ""
        self._phase = PartialPhase.IDLE
        self._publish()

    def _cancel_settle(self) -> None:
        if self._settle_handle is not None:
            self._settle_handle.cancel()
            self._settle_handle = None
