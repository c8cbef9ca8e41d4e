"""Status reporters: structured log output and HTTP webhook delivery.

WebhookStatusReporter POSTs each status update as camelCase JSON. Timeouts,
connection errors, 429 and 5xx responses are retried with exponential
backoff and jitter; other 4xx responses fail immediately. When retries are
exhausted StatusReportError is raised to the caller.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from collections.abc import Mapping
from typing import Final
from uuid import UUID

import aiohttp

from email_dispatch.domain.notification import NotificationStatus
from email_dispatch.messaging.payloads import StatusUpdate
from email_dispatch.utils.logging import get_logger, log_with_context
from email_dispatch.utils.sanitization import sanitize_exception, sanitize_url

__all__ = ["LoggingStatusReporter", "StatusReportError", "WebhookStatusReporter"]

_RETRYABLE_STATUSES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})


class StatusReportError(Exception):
    """Raised when a status update could not be published."""


class LoggingStatusReporter:
    """Write status updates to the log instead of an external channel."""

    def __init__(self, *, logger_obj: logging.Logger | None = None) -> None:
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    async def publish_status(
        self,
        correlation_id: UUID,
        status: NotificationStatus,
        error_message: str | None = None,
    ) -> None:
        update = StatusUpdate(notification_id=correlation_id, status=status, error_message=error_message)
        log_with_context(
            self._logger,
            logging.WARNING if status is NotificationStatus.FAILED else logging.INFO,
            f"Notification status: {status.label}",
            extra={"status_update": update.to_wire()},
        )


class WebhookStatusReporter:
    """POST status updates to an HTTP endpoint.

    The aiohttp session is opened lazily on the first update. Opening is
    guarded by a lock with a double check so concurrent first calls share a
    single session.
    """

    def __init__(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout_seconds: float = 10.0,
        max_retries: int = 3,
        max_backoff_seconds: float = 30.0,
        jitter_percent: float = 20.0,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        if timeout_seconds <= 0:
            msg = "timeout_seconds must be greater than zero"
            raise ValueError(msg)
        if max_retries < 0:
            msg = "max_retries must not be negative"
            raise ValueError(msg)

        self._url: str = url
        self._headers: dict[str, str] = dict(headers or {})
        self._timeout_seconds: float = timeout_seconds
        self._max_retries: int = max_retries
        self._max_backoff_seconds: float = max_backoff_seconds
        self._jitter_percent: float = jitter_percent
        self._logger: logging.Logger = logger_obj or get_logger(__name__)
        self._session: aiohttp.ClientSession | None = None
        self._lock: asyncio.Lock = asyncio.Lock()

    async def publish_status(
        self,
        correlation_id: UUID,
        status: NotificationStatus,
        error_message: str | None = None,
    ) -> None:
        update = StatusUpdate(notification_id=correlation_id, status=status, error_message=error_message)
        session = await self._get_session()
        payload = update.to_wire()

        for attempt in range(self._max_retries + 1):
            is_last = attempt == self._max_retries
            try:
                async with asyncio.timeout(self._timeout_seconds):
                    async with session.post(self._url, json=payload) as response:
                        if 200 <= response.status < 300:
                            self._logger.debug("Status %s delivered (attempt %d)", status.label, attempt + 1)
                            return
                        if response.status not in _RETRYABLE_STATUSES or is_last:
                            msg = f"Status webhook {sanitize_url(self._url)} answered HTTP {response.status}"
                            raise StatusReportError(msg)
                        reason = f"HTTP {response.status}"
            except (TimeoutError, aiohttp.ClientError) as exc:
                if is_last:
                    msg = f"Status webhook {sanitize_url(self._url)} unreachable: {sanitize_exception(exc)}"
                    raise StatusReportError(msg) from exc
                reason = sanitize_exception(exc)

            delay = self._backoff_delay(attempt)
            log_with_context(
                self._logger,
                logging.WARNING,
                "Status webhook attempt failed, retrying",
                extra={"reason": reason, "attempt": attempt + 1, "delay_seconds": round(delay, 2)},
            )
            await asyncio.sleep(delay)

    async def aclose(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is not None:
            return self._session
        async with self._lock:
            if self._session is None:
                self._session = aiohttp.ClientSession(headers=self._headers, json_serialize=json.dumps)
            return self._session

    def _backoff_delay(self, attempt: int) -> float:
        """Exponential backoff (1s, 2s, 4s, ...) capped, with +/- jitter."""
        base_delay = min(pow(2.0, attempt), self._max_backoff_seconds)
        jitter = 1.0 + random.uniform(-self._jitter_percent / 100.0, self._jitter_percent / 100.0)
        return min(base_delay * jitter, self._max_backoff_seconds)
