"""Short-lived registry of correlation IDs that already reached SENT.

Brokers deliver at least once, so the same notification id can arrive again
after a crash, a requeue, or a network hiccup. The registry lets the handler
recognise such redeliveries within a time window:

- an id sent within the window is reported as already processed;
- an id currently being handled by this process is rejected with
  DuplicateDeliveryInFlight so the consumer requeues it for later;
- anything else is claimed and released once handling finishes.

The registry is per-process and in-memory. All methods are synchronous, so
check-and-claim is atomic with respect to other tasks on the event loop.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from enum import Enum, auto
from uuid import UUID

__all__ = ["ClaimOutcome", "DuplicateDeliveryInFlight", "SentRegistry"]


class ClaimOutcome(Enum):
    """Result of claiming a correlation ID for processing."""

    CLAIMED = auto()
    ALREADY_SENT = auto()


class DuplicateDeliveryInFlight(Exception):
    """Raised when the same correlation ID is already being handled."""

    def __init__(self, correlation_id: UUID) -> None:
        super().__init__(f"Notification {correlation_id} is already being processed")
        self.correlation_id: UUID = correlation_id


class SentRegistry:
    """Bounded, time-windowed record of sent and in-flight correlation IDs."""

    def __init__(
        self,
        window_seconds: float = 600.0,
        *,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window_seconds <= 0:
            msg = "window_seconds must be greater than zero"
            raise ValueError(msg)
        if max_entries <= 0:
            msg = "max_entries must be greater than zero"
            raise ValueError(msg)

        self._window_seconds: float = window_seconds
        self._max_entries: int = max_entries
        self._clock: Callable[[], float] = clock
        # correlation id -> expiry, oldest first
        self._sent: OrderedDict[UUID, float] = OrderedDict()
        self._in_flight: set[UUID] = set()

    def claim(self, correlation_id: UUID) -> ClaimOutcome:
        """Claim a correlation ID before processing it.

        Raises:
            DuplicateDeliveryInFlight: If the ID is being processed right now
        """
        self._purge_expired()
        if correlation_id in self._sent:
            return ClaimOutcome.ALREADY_SENT
        if correlation_id in self._in_flight:
            raise DuplicateDeliveryInFlight(correlation_id)
        self._in_flight.add(correlation_id)
        return ClaimOutcome.CLAIMED

    def release(self, correlation_id: UUID, *, sent: bool) -> None:
        """Release a claim, remembering the ID when the email was sent."""
        self._in_flight.discard(correlation_id)
        if not sent:
            return
        self._sent[correlation_id] = self._clock() + self._window_seconds
        self._sent.move_to_end(correlation_id)
        while len(self._sent) > self._max_entries:
            _ = self._sent.popitem(last=False)

    def is_sent(self, correlation_id: UUID) -> bool:
        self._purge_expired()
        return correlation_id in self._sent

    def __len__(self) -> int:
        return len(self._sent)

    def _purge_expired(self) -> None:
        now = self._clock()
        while self._sent:
            oldest_id, expires_at = next(iter(self._sent.items()))
            if expires_at > now:
                break
            del self._sent[oldest_id]
