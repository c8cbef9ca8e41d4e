"""Domain model: value types, the Notification aggregate, and its events."""

from email_dispatch.domain.events import (
    DomainEvent,
    NotificationDelivered,
    NotificationEvent,
    NotificationFailed,
    NotificationProcessing,
    NotificationReceived,
    NotificationSent,
)
from email_dispatch.domain.notification import (
    DEFAULT_MAX_RETRIES,
    InvalidStateTransition,
    Notification,
    NotificationStatus,
    RetryExhausted,
)
from email_dispatch.domain.values import (
    DomainValidationError,
    EmailAddress,
    EmailContent,
    Priority,
    Recipient,
)

__all__ = [
    "DEFAULT_MAX_RETRIES",
    "DomainEvent",
    "DomainValidationError",
    "EmailAddress",
    "EmailContent",
    "InvalidStateTransition",
    "Notification",
    "NotificationDelivered",
    "NotificationEvent",
    "NotificationFailed",
    "NotificationProcessing",
    "NotificationReceived",
    "NotificationSent",
    "NotificationStatus",
    "Priority",
    "Recipient",
    "RetryExhausted",
]
