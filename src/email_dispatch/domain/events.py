"""Domain events raised by Notification lifecycle transitions.

Events are plain immutable records returned by the transition that produced
them. They are informational: nothing in the processing pipeline branches on
them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

__all__ = [
    "DomainEvent",
    "NotificationDelivered",
    "NotificationEvent",
    "NotificationFailed",
    "NotificationProcessing",
    "NotificationReceived",
    "NotificationSent",
]


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(slots=True, frozen=True, kw_only=True)
class NotificationEvent:
    """Fields shared by every lifecycle event."""

    entity_id: UUID
    correlation_id: UUID
    occurred_at: datetime = field(default_factory=_utcnow)


@dataclass(slots=True, frozen=True, kw_only=True)
class NotificationReceived(NotificationEvent):
    """A notification entity was created from an inbound command."""


@dataclass(slots=True, frozen=True, kw_only=True)
class NotificationProcessing(NotificationEvent):
    """Processing started; the transport is about to be called."""


@dataclass(slots=True, frozen=True, kw_only=True)
class NotificationSent(NotificationEvent):
    """The transport accepted the email."""

    external_message_id: str | None = None


@dataclass(slots=True, frozen=True, kw_only=True)
class NotificationDelivered(NotificationEvent):
    """Delivery to the recipient was confirmed."""


@dataclass(slots=True, frozen=True, kw_only=True)
class NotificationFailed(NotificationEvent):
    """Processing failed; carries the reason and the updated retry count."""

    error_message: str
    retry_count: int


type DomainEvent = (
    NotificationReceived | NotificationProcessing | NotificationSent | NotificationDelivered | NotificationFailed
)
