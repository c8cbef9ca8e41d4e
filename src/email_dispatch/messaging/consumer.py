"""Bridge between raw queue deliveries and the command bus.

Every consumer adapter hands each delivery's payload to DeliveryDispatcher
and applies the DeliveryOutcome it returns:

- any Result, success or business failure: ACK;
- undecodable payload or an exception escaping the handling path: REQUEUE.
"""

from __future__ import annotations

import asyncio
import logging

from email_dispatch.core.pipeline import CommandBus
from email_dispatch.messaging.payloads import PayloadDecodeError, SendEmailMessage
from email_dispatch.types.models import DeliveryOutcome
from email_dispatch.utils.logging import correlation_scope, get_logger, log_with_context
from email_dispatch.utils.sanitization import sanitize_exception

__all__ = ["DeliveryDispatcher"]


class DeliveryDispatcher:
    """Decode a delivery, send it through the bus, and decide ack or requeue."""

    def __init__(self, bus: CommandBus, *, logger_obj: logging.Logger | None = None) -> None:
        self._bus: CommandBus = bus
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    async def dispatch(self, payload: bytes | str, *, delivery_id: str | None = None) -> DeliveryOutcome:
        """Handle one delivery.

        Args:
            payload: Raw message body
            delivery_id: Broker-side id, used for logging only

        Returns:
            ACK when handling reached a result, REQUEUE otherwise
        """
        try:
            message = SendEmailMessage.decode(payload)
        except PayloadDecodeError as exc:
            log_with_context(
                self._logger,
                logging.WARNING,
                "Undecodable delivery, requeueing",
                extra={"delivery_id": delivery_id, "error": str(exc)},
            )
            return DeliveryOutcome.REQUEUE

        with correlation_scope(str(message.notification_id)):
            try:
                result = await self._bus.send(message.to_command())
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._logger.exception(
                    "Handling failed, delivery will be requeued: %s",
                    sanitize_exception(exc),
                    extra={"delivery_id": delivery_id},
                )
                return DeliveryOutcome.REQUEUE

            if result.is_success:
                log_with_context(
                    self._logger,
                    logging.INFO,
                    "Delivery handled",
                    extra={"delivery_id": delivery_id},
                )
            else:
                log_with_context(
                    self._logger,
                    logging.WARNING,
                    "Delivery handled with failure result",
                    extra={
                        "delivery_id": delivery_id,
                        "error_code": result.error.code if result.error else None,
                        "error_detail": result.error.message if result.error else None,
                    },
                )
            return DeliveryOutcome.ACK
