"""SMTP transport built on aiosmtplib.

Builds one MIME message per notification and submits it over a fresh SMTP
connection. Expected failures (refused recipients, authentication errors,
unreachable server, timeouts) are returned as failed SendResults; only
cancellation propagates.

Headers set on every message:
    From, To, Subject, Date, Message-ID
    X-Priority and Importance, derived from the notification priority
    X-Notification-Id, the correlation id of the originating request
"""

from __future__ import annotations

import logging
from email.message import EmailMessage
from email.utils import formataddr, formatdate, make_msgid
from typing import Final, Literal

import aiosmtplib

from email_dispatch.domain.notification import Notification
from email_dispatch.domain.values import Priority
from email_dispatch.types.models import SendResult
from email_dispatch.utils.logging import get_logger, log_with_context
from email_dispatch.utils.sanitization import sanitize_exception

__all__ = ["SmtpSecurity", "SmtpTransport", "build_message"]

type SmtpSecurity = Literal["none", "starttls", "tls"]

_PRIORITY_HEADERS: Final[dict[Priority, tuple[str, str]]] = {
    Priority.LOW: ("5 (Lowest)", "low"),
    Priority.NORMAL: ("3 (Normal)", "normal"),
    Priority.HIGH: ("2 (High)", "high"),
    Priority.CRITICAL: ("1 (Highest)", "high"),
}


def build_message(notification: Notification, *, from_address: str, from_name: str | None) -> EmailMessage:
    """Render a notification as a MIME message.

    Args:
        notification: Entity to render
        from_address: Envelope and header sender address
        from_name: Optional sender display name

    Returns:
        Message ready for submission, with a generated Message-ID
    """
    recipient = notification.recipient
    content = notification.content
    x_priority, importance = _PRIORITY_HEADERS[notification.priority]

    msg = EmailMessage()
    msg["From"] = formataddr((from_name or "", from_address))
    msg["To"] = formataddr((recipient.name or "", str(recipient.address)))
    msg["Subject"] = content.subject or ""
    msg["Date"] = formatdate(localtime=False, usegmt=True)
    msg["Message-ID"] = make_msgid(domain=from_address.rpartition("@")[2] or None)
    msg["X-Priority"] = x_priority
    msg["Importance"] = importance
    msg["X-Notification-Id"] = str(notification.correlation_id)
    msg.set_content(content.body, subtype="html" if content.is_html else "plain")
    return msg


class SmtpTransport:
    """Send notifications through an SMTP server."""

    def __init__(
        self,
        *,
        host: str = "localhost",
        port: int = 1025,
        security: SmtpSecurity = "none",
        username: str | None = None,
        password: str | None = None,
        from_address: str = "noreply@notification.local",
        from_name: str | None = "Notification System",
        timeout_seconds: float = 30.0,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        if timeout_seconds <= 0:
            msg = "timeout_seconds must be greater than zero"
            raise ValueError(msg)

        self._host: str = host
        self._port: int = port
        self._security: SmtpSecurity = security
        self._username: str | None = username
        self._password: str | None = password
        self._from_address: str = from_address
        self._from_name: str | None = from_name
        self._timeout_seconds: float = timeout_seconds
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    async def send(self, notification: Notification) -> SendResult:
        message = build_message(notification, from_address=self._from_address, from_name=self._from_name)
        message_id = message["Message-ID"]

        try:
            _ = await aiosmtplib.send(
                message,
                hostname=self._host,
                port=self._port,
                username=self._username or None,
                password=self._password if self._username else None,
                use_tls=self._security == "tls",
                start_tls=self._security == "starttls",
                timeout=self._timeout_seconds,
            )
        except (aiosmtplib.SMTPException, OSError, TimeoutError) as exc:
            reason = sanitize_exception(exc)
            log_with_context(
                self._logger,
                logging.WARNING,
                "SMTP submission failed",
                extra={"smtp_host": self._host, "smtp_port": self._port, "error": reason},
            )
            return SendResult.failed(reason)

        log_with_context(
            self._logger,
            logging.DEBUG,
            "SMTP submission accepted",
            extra={"smtp_host": self._host, "message_id": message_id},
        )
        return SendResult.ok(message_id)
