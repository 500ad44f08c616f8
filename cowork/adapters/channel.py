"""Event channels connecting the client to the backend agent process.

A channel sends typed commands and fans inbound raw payloads out to
subscribed handlers. Delivery is assumed ordered per session; the
channel does not reorder or retry.

A send while disconnected raises ``ChannelClosedError`` instead of
buffering the command.
"""
from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import aiohttp

from cowork.adapters.events import ClientCommand, command_to_dict
from cowork.client.errors import ChannelClosedError

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], None]
ConnectionHandler = Callable[[bool], None]


class EventChannel(ABC):
    """Base channel: handler registry plus connection state."""

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []
        self._connection_handlers: list[ConnectionHandler] = []
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    def on_event(self, handler: EventHandler) -> Callable[[], None]:
        """Subscribe to inbound payloads. Returns an unsubscribe callable."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def on_connection_change(self, handler: ConnectionHandler) -> Callable[[], None]:
        self._connection_handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._connection_handlers:
                self._connection_handlers.remove(handler)

        return unsubscribe

    def _set_connected(self, connected: bool) -> None:
        if connected == self._connected:
            return
        self._connected = connected
        logger.info("Channel %s", "connected" if connected else "disconnected")
        for handler in list(self._connection_handlers):
            try:
                handler(connected)
            except Exception:
                logger.exception("Connection handler failed")

    def _dispatch(self, raw: Any) -> None:
        for handler in list(self._handlers):
            try:
                handler(raw)
            except Exception:
                logger.exception("Event handler failed for %r", _kind(raw))

    @abstractmethod
    async def connect(self) -> None:
        """Open the channel and report the connected state."""

    @abstractmethod
    async def close(self) -> None:
        """Close the channel. Safe to call when already closed."""

    @abstractmethod
    async def send(self, command: ClientCommand) -> None:
        """Send one command. Raises ``ChannelClosedError`` when disconnected."""


def _kind(raw: Any) -> str:
    return raw.get("type", "?") if isinstance(raw, dict) else type(raw).__name__


class LocalChannel(EventChannel):
    """In-process channel backed by an asyncio queue.

    Sent commands are serialized to their wire dicts and queued for a
    co-located backend (or a test) to read with ``next_command``.
    Inbound payloads are pushed with ``deliver``.
    """

    def __init__(self, maxsize: int = 5000) -> None:
        super().__init__()
        self._outbound: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self.sent: list[dict[str, Any]] = []

    async def connect(self) -> None:
        self._set_connected(True)

    async def close(self) -> None:
        self._set_connected(False)

    async def send(self, command: ClientCommand) -> None:
        if not self._connected:
            raise ChannelClosedError(command.command_type)
        wire = command_to_dict(command)
        self.sent.append(wire)
        await self._outbound.put(wire)

    async def next_command(self, timeout: float | None = None) -> dict[str, Any]:
        """Wait for the next sent command (backend side)."""
        return await asyncio.wait_for(self._outbound.get(), timeout=timeout)

    def deliver(self, raw: Any) -> None:
        """Push one inbound payload to subscribers (backend side)."""
        self._dispatch(raw)


class WebSocketChannel(EventChannel):
    """Channel over an aiohttp WebSocket, one JSON object per text frame."""

    def __init__(self, url: str, heartbeat: float = 30.0) -> None:
        super().__init__()
        self._url = url
        self._heartbeat = heartbeat
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task | None = None

    @property
    def url(self) -> str:
        return self._url

    async def connect(self) -> None:
        if self._connected:
            return
        self._session = aiohttp.ClientSession()
        try:
            self._ws = await self._session.ws_connect(
                self._url, heartbeat=self._heartbeat,
            )
        except (aiohttp.ClientError, OSError):
            await self._session.close()
            self._session = None
            raise
        logger.info("WebSocket channel open: %s", self._url)
        self._set_connected(True)
        self._reader = asyncio.create_task(self._read_loop())

    async def _read_loop(self) -> None:
        assert self._ws is not None
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        raw = json.loads(msg.data)
                    except json.JSONDecodeError:
                        logger.warning("Dropping non-JSON frame: %.120s", msg.data)
                        continue
                    self._dispatch(raw)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.error("WebSocket error: %s", self._ws.exception())
                    break
        except asyncio.CancelledError:
            pass
        finally:
            self._set_connected(False)

    async def send(self, command: ClientCommand) -> None:
        if not self._connected or self._ws is None or self._ws.closed:
            raise ChannelClosedError(command.command_type)
        await self._ws.send_json(command_to_dict(command))

    async def close(self) -> None:
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        if self._session is not None:
            await self._session.close()
            self._session = None
        self._set_connected(False)
