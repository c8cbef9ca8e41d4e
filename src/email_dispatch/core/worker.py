"""Worker supervisor: run a consumer until shutdown is requested."""

from __future__ import annotations

import asyncio
import logging

from email_dispatch.types.protocols import MessageConsumer
from email_dispatch.utils.logging import get_logger

__all__ = ["Worker"]


class Worker:
    """Start a consumer, wait for a shutdown request, then stop it.

    ``request_shutdown`` is safe to call from a signal handler and may be
    called more than once.
    """

    def __init__(self, consumer: MessageConsumer, *, logger_obj: logging.Logger | None = None) -> None:
        self._consumer: MessageConsumer = consumer
        self._logger: logging.Logger = logger_obj or get_logger(__name__)
        self._shutdown_event: asyncio.Event = asyncio.Event()

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_event.is_set()

    def request_shutdown(self) -> None:
        if not self._shutdown_event.is_set():
            self._logger.info("Shutdown requested")
            self._shutdown_event.set()

    async def run(self) -> None:
        """Block until request_shutdown() is called; the consumer is always stopped."""
        await self._consumer.start()
        self._logger.info("Worker running")
        try:
            _ = await self._shutdown_event.wait()
        finally:
            self._logger.info("Stopping consumer")
            await self._consumer.stop()
            self._logger.info("Worker stopped")
