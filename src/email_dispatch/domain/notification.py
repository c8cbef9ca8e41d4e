"""Notification aggregate and its lifecycle state machine.

States and transitions::

    PENDING -> PROCESSING -> SENT -> DELIVERED
    any state -> FAILED            (mark_failed)
    FAILED -> PROCESSING           (mark_processing)
    FAILED -> PENDING              (prepare_for_retry, while retries remain)

Each transition method validates its guard before touching any field, so a
rejected transition leaves the entity exactly as it was. Transition methods
return the domain event they raise instead of accumulating events on the
entity.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum
from typing import Final
from uuid import UUID, uuid4

from email_dispatch.domain.events import (
    NotificationDelivered,
    NotificationFailed,
    NotificationProcessing,
    NotificationReceived,
    NotificationSent,
)
from email_dispatch.domain.values import EmailContent, Priority, Recipient

__all__ = [
    "DEFAULT_MAX_RETRIES",
    "InvalidStateTransition",
    "Notification",
    "NotificationStatus",
    "RetryExhausted",
]

DEFAULT_MAX_RETRIES: Final[int] = 3


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class NotificationStatus(IntEnum):
    """Lifecycle states; the integer values are the status wire format."""

    PENDING = 0
    PROCESSING = 1
    SENT = 2
    DELIVERED = 3
    FAILED = 4

    @property
    def label(self) -> str:
        """Human-readable state name (e.g. ``"Pending"``)."""
        return self.name.title()


class InvalidStateTransition(Exception):
    """Raised when a transition is attempted from a state that does not allow it."""

    def __init__(
        self,
        from_status: NotificationStatus,
        to_status: NotificationStatus,
        allowed_from: frozenset[NotificationStatus],
    ) -> None:
        """Initialize the transition error.

        Args:
            from_status: State the entity was in
            to_status: State the caller tried to move to
            allowed_from: States from which the transition would have been valid
        """
        message = f"Cannot transition notification from {from_status.label} to {to_status.label}"
        super().__init__(message)
        self.from_status: NotificationStatus = from_status
        self.to_status: NotificationStatus = to_status
        self.allowed_from: frozenset[NotificationStatus] = allowed_from


class RetryExhausted(Exception):
    """Raised by prepare_for_retry when no retries remain."""

    def __init__(self, retry_count: int, max_retries: int) -> None:
        super().__init__(f"Retries exhausted ({retry_count}/{max_retries} attempts used)")
        self.retry_count: int = retry_count
        self.max_retries: int = max_retries


_PROCESSABLE: Final[frozenset[NotificationStatus]] = frozenset(
    {NotificationStatus.PENDING, NotificationStatus.FAILED}
)


@dataclass(slots=True)
class Notification:
    """One outbound email tracked from receipt to delivery or failure.

    ``id`` is generated per entity; ``correlation_id`` is the externally
    supplied notification id that links a request to its status updates.
    """

    id: UUID
    correlation_id: UUID
    recipient: Recipient
    content: EmailContent
    priority: Priority = Priority.NORMAL
    status: NotificationStatus = NotificationStatus.PENDING
    error_message: str | None = None
    retry_count: int = 0
    created_at: datetime = field(default_factory=_utcnow)
    processed_at: datetime | None = None
    sent_at: datetime | None = None
    external_message_id: str | None = None
    metadata: Mapping[str, str] | None = None

    @classmethod
    def create(
        cls,
        correlation_id: UUID,
        recipient_address: str | None,
        body: str | None,
        *,
        recipient_name: str | None = None,
        subject: str | None = None,
        is_html: bool = False,
        priority: int = Priority.NORMAL,
        metadata: Mapping[str, str] | None = None,
    ) -> tuple[Notification, NotificationReceived]:
        """Create a PENDING notification from raw request fields.

        Args:
            correlation_id: Externally supplied notification id
            recipient_address: Raw recipient address
            body: Email body (must not be blank)
            recipient_name: Optional display name
            subject: Optional subject line
            is_html: Whether the body is HTML
            priority: Priority ordinal 0..3
            metadata: Opaque key/value pairs carried through unchanged

        Returns:
            The new entity and its NotificationReceived event

        Raises:
            DomainValidationError: If the address, body, or priority is invalid
        """
        recipient = Recipient.create(recipient_address, recipient_name)
        content = EmailContent.create(subject, body, is_html)
        notification = cls(
            id=uuid4(),
            correlation_id=correlation_id,
            recipient=recipient,
            content=content,
            priority=Priority.parse(priority),
            metadata=dict(metadata) if metadata else None,
        )
        event = NotificationReceived(
            entity_id=notification.id,
            correlation_id=correlation_id,
            occurred_at=notification.created_at,
        )
        return notification, event

    def mark_processing(self) -> NotificationProcessing:
        """Move from PENDING or FAILED to PROCESSING."""
        self._require(_PROCESSABLE, NotificationStatus.PROCESSING)
        now = _utcnow()
        self.status = NotificationStatus.PROCESSING
        self.processed_at = now
        return NotificationProcessing(entity_id=self.id, correlation_id=self.correlation_id, occurred_at=now)

    def mark_sent(self, external_message_id: str | None = None) -> NotificationSent:
        """Move from PROCESSING to SENT, recording the transport's message id."""
        self._require(frozenset({NotificationStatus.PROCESSING}), NotificationStatus.SENT)
        now = _utcnow()
        self.status = NotificationStatus.SENT
        self.sent_at = now
        self.external_message_id = external_message_id
        self.error_message = None
        return NotificationSent(
            entity_id=self.id,
            correlation_id=self.correlation_id,
            occurred_at=now,
            external_message_id=external_message_id,
        )

    def mark_delivered(self) -> NotificationDelivered:
        """Move from SENT to DELIVERED."""
        self._require(frozenset({NotificationStatus.SENT}), NotificationStatus.DELIVERED)
        self.status = NotificationStatus.DELIVERED
        return NotificationDelivered(entity_id=self.id, correlation_id=self.correlation_id)

    def mark_failed(self, reason: str) -> NotificationFailed:
        """Move to FAILED from any state, counting the attempt."""
        self.status = NotificationStatus.FAILED
        self.error_message = reason
        self.retry_count += 1
        return NotificationFailed(
            entity_id=self.id,
            correlation_id=self.correlation_id,
            error_message=reason,
            retry_count=self.retry_count,
        )

    def can_retry(self, max_retries: int = DEFAULT_MAX_RETRIES) -> bool:
        return self.status is NotificationStatus.FAILED and self.retry_count < max_retries

    def prepare_for_retry(self, max_retries: int = DEFAULT_MAX_RETRIES) -> None:
        """Reset a FAILED notification to PENDING for another attempt.

        Raises:
            InvalidStateTransition: If the notification is not FAILED
            RetryExhausted: If retry_count has reached max_retries
        """
        self._require(frozenset({NotificationStatus.FAILED}), NotificationStatus.PENDING)
        if not self.can_retry(max_retries):
            raise RetryExhausted(self.retry_count, max_retries)
        self.status = NotificationStatus.PENDING
        self.error_message = None

    def _require(self, allowed_from: frozenset[NotificationStatus], target: NotificationStatus) -> None:
        if self.status not in allowed_from:
            raise InvalidStateTransition(self.status, target, allowed_from)
