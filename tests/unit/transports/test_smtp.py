"""Unit tests for the SMTP transport and MIME rendering."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import aiosmtplib
import pytest

from email_dispatch.domain.notification import Notification
from email_dispatch.domain.values import Priority
from email_dispatch.transports.smtp import SmtpTransport, build_message
from email_dispatch.types.protocols import OutboundTransport


def _notification(**overrides: object) -> Notification:
    kwargs: dict[str, object] = {"recipient_name": "Jane Doe", "subject": "Disk alert"}
    kwargs.update(overrides)
    notification, _ = Notification.create(
        uuid4(),
        "jane@example.com",
        "Array degraded",
        **kwargs,  # pyright: ignore[reportArgumentType]
    )
    _ = notification.mark_processing()
    return notification


@pytest.mark.unit
class TestBuildMessage:
    """Test header and body rendering."""

    def test_headers(self) -> None:
        notification = _notification(priority=Priority.CRITICAL)

        message = build_message(notification, from_address="alerts@example.com", from_name="Alerts")

        assert message["From"] == "Alerts <alerts@example.com>"
        assert message["To"] == "Jane Doe <jane@example.com>"
        assert message["Subject"] == "Disk alert"
        assert message["X-Priority"] == "1 (Highest)"
        assert message["Importance"] == "high"
        assert message["X-Notification-Id"] == str(notification.correlation_id)
        assert message["Message-ID"].endswith("@example.com>")
        assert message["Date"]

    def test_plain_body(self) -> None:
        message = build_message(_notification(), from_address="a@example.com", from_name=None)

        assert message.get_content_type() == "text/plain"
        assert message.get_content().strip() == "Array degraded"
        assert message["From"] == "a@example.com"

    def test_html_body(self) -> None:
        message = build_message(_notification(is_html=True), from_address="a@example.com", from_name=None)
        assert message.get_content_type() == "text/html"

    def test_missing_subject_and_name(self) -> None:
        message = build_message(
            _notification(subject=None, recipient_name=None), from_address="a@example.com", from_name=None
        )
        assert message["Subject"] == ""
        assert message["To"] == "jane@example.com"

    @pytest.mark.parametrize(
        ("priority", "x_priority", "importance"),
        [
            (Priority.LOW, "5 (Lowest)", "low"),
            (Priority.NORMAL, "3 (Normal)", "normal"),
            (Priority.HIGH, "2 (High)", "high"),
        ],
    )
    def test_priority_headers(self, priority: Priority, x_priority: str, importance: str) -> None:
        message = build_message(_notification(priority=priority), from_address="a@example.com", from_name=None)
        assert message["X-Priority"] == x_priority
        assert message["Importance"] == importance


@pytest.mark.unit
class TestSmtpTransport:
    """Test submission through aiosmtplib."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(SmtpTransport(), OutboundTransport)

    def test_invalid_timeout(self) -> None:
        with pytest.raises(ValueError, match="timeout_seconds"):
            _ = SmtpTransport(timeout_seconds=0)

    @pytest.mark.asyncio
    async def test_success_returns_message_id(self) -> None:
        transport = SmtpTransport(
            host="mail.example.com",
            port=587,
            security="starttls",
            username="mailer",
            password="hunter2",
            from_address="alerts@example.com",
            timeout_seconds=5,
        )

        with patch("email_dispatch.transports.smtp.aiosmtplib.send", new_callable=AsyncMock) as send:
            result = await transport.send(_notification())

        assert result.success
        sent_message = send.await_args.args[0]
        assert result.message_id == sent_message["Message-ID"]
        kwargs = send.await_args.kwargs
        assert kwargs["hostname"] == "mail.example.com"
        assert kwargs["port"] == 587
        assert kwargs["start_tls"] is True
        assert kwargs["use_tls"] is False
        assert kwargs["username"] == "mailer"
        assert kwargs["password"] == "hunter2"
        assert kwargs["timeout"] == 5

    @pytest.mark.asyncio
    async def test_implicit_tls_without_login(self) -> None:
        transport = SmtpTransport(security="tls", password="ignored-without-user")

        with patch("email_dispatch.transports.smtp.aiosmtplib.send", new_callable=AsyncMock) as send:
            _ = await transport.send(_notification())

        kwargs = send.await_args.kwargs
        assert kwargs["use_tls"] is True
        assert kwargs["start_tls"] is False
        assert kwargs["username"] is None
        assert kwargs["password"] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            aiosmtplib.SMTPRecipientsRefused([]),
            aiosmtplib.SMTPAuthenticationError(535, "bad credentials"),
            ConnectionRefusedError("Connection refused"),
            TimeoutError("timed out"),
        ],
    )
    async def test_expected_errors_become_failed_results(self, error: Exception) -> None:
        with patch("email_dispatch.transports.smtp.aiosmtplib.send", new_callable=AsyncMock) as send:
            send.side_effect = error
            result = await SmtpTransport().send(_notification())

        assert not result.success
        assert result.error_message is not None
        assert result.error_message.startswith(type(error).__name__)

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self) -> None:
        with patch("email_dispatch.transports.smtp.aiosmtplib.send", new_callable=AsyncMock) as send:
            send.side_effect = RuntimeError("bug")
            with pytest.raises(RuntimeError):
                _ = await SmtpTransport().send(_notification())
