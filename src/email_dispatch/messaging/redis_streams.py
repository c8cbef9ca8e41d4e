"""Redis Streams adapters: consumer-group reader and status publisher.

Stream entries carry two fields: ``payload`` (the JSON document) and
``attempt`` (delivery count, starting at 1). Acknowledging an entry is an
XACK. Requeueing re-adds the payload with ``attempt + 1`` and acknowledges
the original in one transaction; once ``max_deliveries`` is reached the
payload is moved to the dead-letter stream instead.

Entries left pending by this consumer are re-read from the group's pending
list on start and after any failed batch. Entries another consumer left
pending for longer than ``claim_idle_ms`` are taken over with XAUTOCLAIM.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Final
from uuid import UUID

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, ResponseError

from email_dispatch.domain.notification import NotificationStatus
from email_dispatch.messaging.consumer import DeliveryDispatcher
from email_dispatch.messaging.payloads import SendEmailMessage, StatusUpdate
from email_dispatch.messaging.reporters import StatusReportError
from email_dispatch.types.models import DeliveryOutcome
from email_dispatch.utils.logging import get_logger, log_with_context
from email_dispatch.utils.sanitization import sanitize_exception

__all__ = ["RedisStatusReporter", "RedisStreamConsumer", "publish_send_request"]

PAYLOAD_FIELD: Final[str] = "payload"
ATTEMPT_FIELD: Final[str] = "attempt"

type RedisFactory = Callable[[], Redis]
type StreamEntry = tuple[bytes | str, Mapping[bytes | str, bytes | str] | None]


def _field(fields: Mapping[bytes | str, bytes | str], name: str) -> bytes | str | None:
    """Read a stream field whether the client decodes responses or not."""
    value = fields.get(name.encode())
    if value is None:
        value = fields.get(name)
    return value


def _as_text(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else value


async def publish_send_request(client: Redis, stream: str, message: SendEmailMessage) -> str:
    """Append a send request to the inbound stream and return its entry id."""
    entry_id = await client.xadd(stream, {PAYLOAD_FIELD: message.encode(), ATTEMPT_FIELD: 1})
    return _as_text(entry_id)


class RedisStreamConsumer:
    """Consume send requests from a Redis stream through a consumer group.

    Up to ``prefetch`` entries are read per XREADGROUP call and handled
    concurrently; the next read starts once the whole batch has settled.
    A failing entry never cancels its siblings: it stays pending and is
    picked up again by the next pending read.
    """

    def __init__(
        self,
        dispatcher: DeliveryDispatcher,
        client: Redis,
        *,
        stream: str,
        group: str,
        consumer_name: str,
        dead_letter_stream: str,
        prefetch: int = 10,
        block_ms: int = 5000,
        max_deliveries: int = 5,
        claim_idle_ms: int = 300_000,
        reconnect_delay_seconds: float = 2.0,
        shutdown_timeout_seconds: float = 30.0,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        if prefetch <= 0:
            msg = "prefetch must be greater than zero"
            raise ValueError(msg)
        if max_deliveries <= 0:
            msg = "max_deliveries must be greater than zero"
            raise ValueError(msg)
        if claim_idle_ms < 0:
            msg = "claim_idle_ms must not be negative"
            raise ValueError(msg)

        self._dispatcher: DeliveryDispatcher = dispatcher
        self._client: Redis = client
        self._stream: str = stream
        self._group: str = group
        self._consumer_name: str = consumer_name
        self._dead_letter_stream: str = dead_letter_stream
        self._prefetch: int = prefetch
        self._block_ms: int = block_ms
        self._max_deliveries: int = max_deliveries
        self._claim_idle_ms: int = claim_idle_ms
        self._reconnect_delay_seconds: float = reconnect_delay_seconds
        self._shutdown_timeout_seconds: float = shutdown_timeout_seconds
        self._logger: logging.Logger = logger_obj or get_logger(__name__)
        self._stopping: asyncio.Event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self._task is not None:
            return
        await self.ensure_group()
        self._stopping.clear()
        self._task = asyncio.create_task(self._consume_loop(), name=f"redis-consumer-{self._consumer_name}")
        log_with_context(
            self._logger,
            logging.INFO,
            "Redis stream consumer started",
            extra={"stream": self._stream, "group": self._group, "consumer": self._consumer_name},
        )

    async def stop(self) -> None:
        """Stop reading and let the current batch settle.

        Entries still in flight after the shutdown timeout are cancelled and
        stay pending in the group for the next start.
        """
        if self._task is None:
            return
        self._stopping.set()
        done, _ = await asyncio.wait({self._task}, timeout=self._shutdown_timeout_seconds)
        if not done:
            self._logger.warning(
                "Consumer did not settle within %.1fs, cancelling in-flight entries",
                self._shutdown_timeout_seconds,
            )
            _ = self._task.cancel()
            _ = await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        self._logger.info("Redis stream consumer stopped")

    async def ensure_group(self) -> None:
        """Create the consumer group (and the stream) if missing."""
        try:
            _ = await self._client.xgroup_create(self._stream, self._group, id="0", mkstream=True)
            self._logger.info("Created consumer group '%s' for %s", self._group, self._stream)
        except ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise
            self._logger.debug("Consumer group '%s' already exists for %s", self._group, self._stream)

    async def poll_once(self, read_id: str = ">") -> int:
        """Read and handle one batch; return the number of entries read."""
        response = await self._client.xreadgroup(
            groupname=self._group,
            consumername=self._consumer_name,
            streams={self._stream: read_id},
            count=self._prefetch,
            block=None if read_id != ">" else self._block_ms,
        )
        if not response:
            return 0

        entries: list[StreamEntry] = []
        for _stream_name, stream_entries in response:
            entries.extend(stream_entries)
        return await self._handle_batch(entries)

    async def reclaim_idle(self) -> int:
        """Take over entries idle in other consumers' pending lists.

        Returns:
            Number of entries claimed and handled; 0 when reclaiming is
            disabled with ``claim_idle_ms=0``
        """
        if self._claim_idle_ms == 0:
            return 0
        response = await self._client.xautoclaim(
            self._stream,
            self._group,
            self._consumer_name,
            min_idle_time=self._claim_idle_ms,
            start_id="0-0",
            count=self._prefetch,
        )
        claimed: list[StreamEntry] = list(response[1]) if response else []
        if not claimed:
            return 0
        self._logger.info(
            "Claimed %d entries idle for more than %dms on %s",
            len(claimed),
            self._claim_idle_ms,
            self._stream,
        )
        return await self._handle_batch(claimed)

    async def _handle_batch(self, entries: Sequence[StreamEntry]) -> int:
        """Handle entries concurrently and wait for all of them to settle.

        Raises:
            ExceptionGroup: If any entry failed; the others are still settled
        """
        entry_ids = [_as_text(entry_id) for entry_id, _ in entries]
        results = await asyncio.gather(
            *(self._handle_entry(entry_id, fields) for entry_id, (_, fields) in zip(entry_ids, entries, strict=True)),
            return_exceptions=True,
        )

        errors: list[Exception] = []
        for entry_id, result in zip(entry_ids, results, strict=True):
            if isinstance(result, Exception):
                self._logger.warning("Entry %s left pending: %s", entry_id, sanitize_exception(result))
                errors.append(result)
            elif isinstance(result, BaseException):
                raise result
        if errors:
            msg = f"{len(errors)} of {len(entries)} entries failed"
            raise ExceptionGroup(msg, errors)
        return len(entries)

    async def _consume_loop(self) -> None:
        # Drain our own pending entries first, then switch to new ones
        read_id = "0"
        loop = asyncio.get_running_loop()
        next_claim_at = loop.time()
        while not self._stopping.is_set():
            count = 0
            failed = False
            try:
                if read_id == ">" and self._claim_idle_ms and loop.time() >= next_claim_at:
                    next_claim_at = loop.time() + self._claim_idle_ms / 1000
                    _ = await self.reclaim_idle()
                count = await self.poll_once(read_id)
            except* RedisConnectionError as eg:
                failed = True
                self._logger.warning(
                    "Redis connection lost: %s; retrying in %.1fs",
                    sanitize_exception(eg.exceptions[0]),
                    self._reconnect_delay_seconds,
                )
            except* RedisError as eg:
                failed = True
                for exc in eg.exceptions:
                    self._logger.error("Redis command failed: %s", sanitize_exception(exc))
            except* Exception as eg:
                failed = True
                for exc in eg.exceptions:
                    self._logger.error(
                        "Unexpected error while consuming %s: %s",
                        self._stream,
                        sanitize_exception(exc),
                        exc_info=exc,
                    )

            if failed:
                # Whatever the failed batch left unsettled is in our pending list
                read_id = "0"
                await asyncio.sleep(self._reconnect_delay_seconds)
            elif read_id == "0" and count == 0:
                read_id = ">"

    async def _handle_entry(self, entry_id: str, fields: Mapping[bytes | str, bytes | str] | None) -> None:
        if not fields:
            # Pending entry whose body was trimmed from the stream
            _ = await self._client.xack(self._stream, self._group, entry_id)
            return

        payload = _field(fields, PAYLOAD_FIELD) or b""
        raw_attempt = _field(fields, ATTEMPT_FIELD)
        try:
            attempt = int(_as_text(raw_attempt)) if raw_attempt is not None else 1
        except ValueError:
            attempt = 1

        outcome = await self._dispatcher.dispatch(payload, delivery_id=entry_id)

        if outcome is DeliveryOutcome.ACK:
            _ = await self._client.xack(self._stream, self._group, entry_id)
            return

        async with self._client.pipeline(transaction=True) as pipe:
            if attempt >= self._max_deliveries:
                self._logger.error(
                    "Entry %s exceeded %d deliveries, moving to %s",
                    entry_id,
                    self._max_deliveries,
                    self._dead_letter_stream,
                )
                _ = pipe.xadd(
                    self._dead_letter_stream,
                    {PAYLOAD_FIELD: payload, ATTEMPT_FIELD: attempt, "source_id": entry_id},
                )
            else:
                _ = pipe.xadd(self._stream, {PAYLOAD_FIELD: payload, ATTEMPT_FIELD: attempt + 1})
            _ = pipe.xack(self._stream, self._group, entry_id)
            _ = await pipe.execute()


class RedisStatusReporter:
    """Publish status updates to a Redis stream.

    The client is created on first use. Creation is guarded by a lock with a
    double check, so concurrent first calls establish a single connection.
    """

    def __init__(
        self,
        client_factory: RedisFactory,
        *,
        stream: str,
        maxlen: int | None = 100_000,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._client_factory: RedisFactory = client_factory
        self._stream: str = stream
        self._maxlen: int | None = maxlen
        self._logger: logging.Logger = logger_obj or get_logger(__name__)
        self._client: Redis | None = None
        self._lock: asyncio.Lock = asyncio.Lock()

    async def publish_status(
        self,
        correlation_id: UUID,
        status: NotificationStatus,
        error_message: str | None = None,
    ) -> None:
        update = StatusUpdate(notification_id=correlation_id, status=status, error_message=error_message)
        try:
            client = await self._get_client()
            _ = await client.xadd(
                self._stream,
                {PAYLOAD_FIELD: update.encode()},
                maxlen=self._maxlen,
                approximate=True,
            )
        except RedisError as exc:
            msg = f"Failed to publish {status.label} status to {self._stream}: {sanitize_exception(exc)}"
            raise StatusReportError(msg) from exc
        self._logger.debug("Published %s status to %s", status.label, self._stream)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get_client(self) -> Redis:
        if self._client is not None:
            return self._client
        async with self._lock:
            if self._client is None:
                client = self._client_factory()
                _ = await client.ping()
                self._client = client
                self._logger.info("Status reporter connected to Redis")
            return self._client
