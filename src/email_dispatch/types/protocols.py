"""Protocol definitions for pipeline collaborators.

This module defines structural subtyping protocols for the components the
command handler and the worker depend on, so adapters never need to inherit
from a shared base class.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable
from uuid import UUID

from email_dispatch.core.result import Result
from email_dispatch.domain.notification import Notification, NotificationStatus
from email_dispatch.types.models import SendResult, ValidationFailure


@runtime_checkable
class OutboundTransport(Protocol):
    """Protocol for adapters that actually transmit an email."""

    async def send(self, notification: Notification) -> SendResult:
        """Transmit the notification's email.

        Implementations must bound their own I/O time and let
        asyncio.CancelledError propagate.

        Args:
            notification: Entity in PROCESSING state

        Returns:
            Success with the transport's message id, or a failure with a reason
        """
        ...


@runtime_checkable
class StatusReporter(Protocol):
    """Protocol for adapters that publish lifecycle status to observers."""

    async def publish_status(
        self,
        correlation_id: UUID,
        status: NotificationStatus,
        error_message: str | None = None,
    ) -> None:
        """Publish a status update for one notification.

        Must be safe to call concurrently. Failures are raised, not swallowed.

        Args:
            correlation_id: Externally supplied notification id
            status: New lifecycle status
            error_message: Failure reason, for FAILED updates
        """
        ...


class CommandHandler[C, R](Protocol):
    """Protocol for handlers that turn a command into a Result."""

    async def handle(self, command: C) -> Result[R]:
        ...


class CommandValidator[C](Protocol):
    """Protocol for structural validators run before a handler."""

    async def validate(self, command: C) -> Sequence[ValidationFailure]:
        """Return every rule the command violates (empty when valid)."""
        ...


@runtime_checkable
class MessageConsumer(Protocol):
    """Protocol for queue subscriptions driving the pipeline."""

    async def start(self) -> None:
        """Begin consuming deliveries in background tasks."""
        ...

    async def stop(self) -> None:
        """Stop consuming and wait for in-flight deliveries to settle."""
        ...
