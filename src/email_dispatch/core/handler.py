"""Command handler that drives one email through its lifecycle.

ProcessEmailHandler builds a Notification from a validated command, moves it
through PROCESSING to SENT or FAILED around the transport call, and reports
each status change before returning. Every entity mutation happens before the
matching status report, and every report is awaited.

Business failures (invalid address, transport refusal, transport crash) come
back as failure results. Status reporter errors are not caught here: they
propagate so the consumer requeues the delivery.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from email_dispatch.core.commands import ProcessEmailCommand
from email_dispatch.core.idempotency import ClaimOutcome, SentRegistry
from email_dispatch.core.result import EmailErrors, Result, ValidationErrors
from email_dispatch.domain.events import DomainEvent
from email_dispatch.domain.notification import InvalidStateTransition, Notification, NotificationStatus
from email_dispatch.domain.values import DomainValidationError
from email_dispatch.types.protocols import OutboundTransport, StatusReporter
from email_dispatch.utils.logging import get_logger, log_with_context
from email_dispatch.utils.sanitization import sanitize_exception

__all__ = ["CANCELLED_REASON", "UNKNOWN_ERROR_REASON", "ProcessEmailHandler"]

type EventSink = Callable[[DomainEvent], None]

UNKNOWN_ERROR_REASON = "Unknown error"
CANCELLED_REASON = "Send cancelled"


class ProcessEmailHandler:
    """Handle ProcessEmailCommand: create, transition, send, report."""

    def __init__(
        self,
        transport: OutboundTransport,
        reporter: StatusReporter,
        *,
        sent_registry: SentRegistry | None = None,
        on_event: EventSink | None = None,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        """Initialize the handler.

        Args:
            transport: Adapter that transmits the email
            reporter: Adapter that publishes status updates
            sent_registry: Optional redelivery guard; None disables it
            on_event: Optional callback receiving every domain event raised
            logger_obj: Logger override for tests
        """
        self._transport: OutboundTransport = transport
        self._reporter: StatusReporter = reporter
        self._sent_registry: SentRegistry | None = sent_registry
        self._on_event: EventSink | None = on_event
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    async def handle(self, command: ProcessEmailCommand) -> Result[None]:
        if self._sent_registry is None:
            return await self._process(command)

        # DuplicateDeliveryInFlight propagates: the consumer requeues it
        if self._sent_registry.claim(command.notification_id) is ClaimOutcome.ALREADY_SENT:
            log_with_context(
                self._logger,
                logging.INFO,
                "Skipping redelivery of already sent notification",
                extra={"notification_id": str(command.notification_id)},
            )
            return Result[None].failure(EmailErrors.already_processed(command.notification_id))

        sent = False
        try:
            result = await self._process(command)
            sent = result.is_success
            return result
        finally:
            self._sent_registry.release(command.notification_id, sent=sent)

    async def _process(self, command: ProcessEmailCommand) -> Result[None]:
        correlation_id = command.notification_id
        log_with_context(
            self._logger,
            logging.INFO,
            "Processing email notification",
            extra={"notification_id": str(correlation_id), "priority": command.priority},
        )

        try:
            notification, received = Notification.create(
                correlation_id,
                command.recipient_address,
                command.body,
                recipient_name=command.recipient_name,
                subject=command.subject,
                is_html=command.is_html,
                priority=command.priority,
                metadata=command.metadata,
            )
        except DomainValidationError as exc:
            reason = str(exc)
            self._logger.warning("Rejected email notification: %s", reason)
            await self._reporter.publish_status(correlation_id, NotificationStatus.FAILED, reason)
            return Result[None].failure(ValidationErrors.invalid("Email", reason))

        self._emit(received)

        try:
            self._emit(notification.mark_processing())
            try:
                await self._reporter.publish_status(correlation_id, NotificationStatus.PROCESSING)
            except asyncio.CancelledError:
                await self._report_cancelled(notification)
                raise
            return await self._send(notification)
        except InvalidStateTransition as exc:
            self._logger.error("Unexpected lifecycle transition: %s", exc)
            expected = " or ".join(sorted(status.label for status in exc.allowed_from))
            return Result[None].failure(EmailErrors.invalid_status(exc.from_status.label, expected))

    async def _send(self, notification: Notification) -> Result[None]:
        try:
            send_result = await self._transport.send(notification)
        except asyncio.CancelledError:
            await self._report_cancelled(notification)
            raise
        except Exception as exc:
            self._logger.exception("Transport raised while sending: %s", sanitize_exception(exc))
            return await self._fail(notification, str(exc) or type(exc).__name__)

        if not send_result.success:
            return await self._fail(notification, send_result.error_message or UNKNOWN_ERROR_REASON)

        self._emit(notification.mark_sent(send_result.message_id))
        await self._reporter.publish_status(notification.correlation_id, NotificationStatus.SENT)
        log_with_context(
            self._logger,
            logging.INFO,
            "Email sent",
            extra={"message_id": send_result.message_id, "recipient": str(notification.recipient.address)},
        )
        return Result[None].success()

    async def _report_cancelled(self, notification: Notification) -> None:
        # Leave a terminal status behind before honouring the cancellation
        self._logger.warning("Email send cancelled for %s", notification.correlation_id)
        self._emit(notification.mark_failed(CANCELLED_REASON))
        await self._reporter.publish_status(notification.correlation_id, NotificationStatus.FAILED, CANCELLED_REASON)

    async def _fail(self, notification: Notification, reason: str) -> Result[None]:
        self._emit(notification.mark_failed(reason))
        await self._reporter.publish_status(notification.correlation_id, NotificationStatus.FAILED, reason)
        log_with_context(
            self._logger,
            logging.WARNING,
            "Email send failed",
            extra={"reason": reason, "retry_count": notification.retry_count},
        )
        return Result[None].failure(EmailErrors.send_failed(reason))

    def _emit(self, event: DomainEvent) -> None:
        if self._on_event is not None:
            self._on_event(event)
