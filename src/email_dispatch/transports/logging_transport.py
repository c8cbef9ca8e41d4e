"""Transport that logs emails instead of sending them (development, dry-run)."""

from __future__ import annotations

import logging
from uuid import uuid4

from email_dispatch.domain.notification import Notification
from email_dispatch.types.models import SendResult
from email_dispatch.utils.logging import get_logger, log_with_context

__all__ = ["LoggingTransport"]


class LoggingTransport:
    """Log the rendered email and report it as sent with a random message id."""

    def __init__(self, *, log_body: bool = False, logger_obj: logging.Logger | None = None) -> None:
        self._log_body: bool = log_body
        self._logger: logging.Logger = logger_obj or get_logger(__name__)
        self.sent_count: int = 0

    async def send(self, notification: Notification) -> SendResult:
        message_id = str(uuid4())
        context: dict[str, object] = {
            "message_id": message_id,
            "recipient": notification.recipient.formatted(),
            "subject": notification.content.subject,
            "priority": notification.priority.name,
            "is_html": notification.content.is_html,
            "body_length": len(notification.content.body),
        }
        if self._log_body:
            context["body"] = notification.content.body

        log_with_context(self._logger, logging.INFO, "Email recorded (not sent)", extra=context)
        self.sent_count += 1
        return SendResult.ok(message_id)
