"""In-process queue consumer backed by asyncio.Queue.

Useful for local development and tests: producers call ``publish`` and a
fixed pool of worker tasks drains the queue through a DeliveryDispatcher.
Requeued deliveries go back on the queue with an incremented attempt count
until ``max_deliveries`` is reached, after which they are parked in
``dead_letters``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from uuid import uuid4

from email_dispatch.messaging.consumer import DeliveryDispatcher
from email_dispatch.types.models import DeliveryOutcome
from email_dispatch.utils.logging import get_logger

__all__ = ["InMemoryConsumer", "QueuedDelivery"]


@dataclass(slots=True, frozen=True)
class QueuedDelivery:
    """Payload waiting in the in-memory queue."""

    payload: bytes | str
    attempt: int = 1
    delivery_id: str = field(default_factory=lambda: uuid4().hex)


class InMemoryConsumer:
    """Pool of worker tasks consuming an in-process queue."""

    def __init__(
        self,
        dispatcher: DeliveryDispatcher,
        *,
        workers: int = 4,
        max_deliveries: int = 5,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        if workers <= 0:
            msg = "workers must be greater than zero"
            raise ValueError(msg)
        if max_deliveries <= 0:
            msg = "max_deliveries must be greater than zero"
            raise ValueError(msg)

        self._dispatcher: DeliveryDispatcher = dispatcher
        self._worker_count: int = workers
        self._max_deliveries: int = max_deliveries
        self._logger: logging.Logger = logger_obj or get_logger(__name__)
        self._queue: asyncio.Queue[QueuedDelivery] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []
        self.dead_letters: list[QueuedDelivery] = []

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    def pending(self) -> int:
        return self._queue.qsize()

    async def publish(self, payload: bytes | str) -> str:
        """Enqueue a payload and return its delivery id."""
        delivery = QueuedDelivery(payload=payload)
        await self._queue.put(delivery)
        self._logger.debug("Enqueued delivery %s", delivery.delivery_id)
        return delivery.delivery_id

    async def join(self) -> None:
        """Wait until every enqueued delivery has been settled."""
        await self._queue.join()

    async def start(self) -> None:
        if self._workers:
            return

        for i in range(self._worker_count):
            self._workers.append(asyncio.create_task(self._worker_loop(f"worker-{i}")))
        self._logger.info("Started %d in-memory consumer workers", self._worker_count)

    async def stop(self) -> None:
        if not self._workers:
            return

        for worker in self._workers:
            _ = worker.cancel()
        _ = await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        self._logger.info("Stopped in-memory consumer workers")

    async def _worker_loop(self, worker_name: str) -> None:
        self._logger.debug("Worker %s started", worker_name)
        try:
            while True:
                delivery = await self._queue.get()
                try:
                    outcome = await self._dispatcher.dispatch(delivery.payload, delivery_id=delivery.delivery_id)
                except asyncio.CancelledError:
                    # Interrupted mid-delivery: keep it for the next start()
                    self._queue.put_nowait(delivery)
                    raise
                else:
                    if outcome is DeliveryOutcome.REQUEUE:
                        self._requeue(delivery)
                finally:
                    self._queue.task_done()
        finally:
            self._logger.debug("Worker %s stopped", worker_name)

    def _requeue(self, delivery: QueuedDelivery) -> None:
        if delivery.attempt >= self._max_deliveries:
            self._logger.error(
                "Delivery %s exceeded %d attempts, moved to dead letters",
                delivery.delivery_id,
                self._max_deliveries,
            )
            self.dead_letters.append(delivery)
            return
        self._queue.put_nowait(replace(delivery, attempt=delivery.attempt + 1))
