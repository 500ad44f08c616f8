"""Client runtime: builds and owns one set of client components.

Created once at process start and closed on exit. The store instance
is passed explicitly to the dispatcher and the event processor; there
is no global lookup.
"""
from __future__ import annotations

import logging

from cowork.adapters.channel import EventChannel, WebSocketChannel
from cowork.client.config import ClientConfig
from cowork.client.dispatcher import CommandDispatcher, TitleGenerator
from cowork.client.partial_output import PartialOutputAccumulator
from cowork.client.processor import EventProcessor
from cowork.client.store import SessionStore
from cowork.shared.services.session_naming import make_title_generator

logger = logging.getLogger(__name__)


class ClientRuntime:
    """Wires store, channel, accumulator, dispatcher, and processor."""

    def __init__(
        self,
        config: ClientConfig,
        channel: EventChannel | None = None,
        title_generator: TitleGenerator | None = None,
    ) -> None:
        self.config = config
        self.store = SessionStore(cwd=config.default_cwd)
        self.channel = channel or WebSocketChannel(config.backend_url)
        self.accumulator = PartialOutputAccumulator(
            settle_delay=config.settle_delay_seconds,
        )
        self.dispatcher = CommandDispatcher(
            self.store,
            self.channel,
            title_generator or make_title_generator(
                config.title_model, config.title_timeout_seconds,
            ),
            allowed_tools=config.allowed_tools,
        )
        self.processor = EventProcessor(
            self.store, self.channel, self.dispatcher, self.accumulator,
        )

    async def start(self) -> None:
        """Subscribe the processor, then open the channel."""
        self.processor.start()
        await self.channel.connect()

    async def close(self) -> None:
        await self.processor.stop()
        await self.channel.close()
        self.accumulator.reset()
        logger.info("Client runtime closed")
