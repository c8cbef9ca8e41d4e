"""Unit tests for the logging (dry-run) transport."""

from __future__ import annotations

import logging
from uuid import UUID, uuid4

import pytest

from email_dispatch.domain.notification import Notification
from email_dispatch.transports.logging_transport import LoggingTransport


def _notification() -> Notification:
    notification, _ = Notification.create(uuid4(), "user@example.com", "secret body", subject="Hi")
    return notification


@pytest.mark.unit
class TestLoggingTransport:
    """Test that emails are recorded, not sent."""

    @pytest.mark.asyncio
    async def test_returns_generated_message_id(self) -> None:
        transport = LoggingTransport()

        first = await transport.send(_notification())
        second = await transport.send(_notification())

        assert first.success
        assert first.message_id is not None
        assert UUID(first.message_id)
        assert first.message_id != second.message_id
        assert transport.sent_count == 2

    @pytest.mark.asyncio
    async def test_body_omitted_by_default(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO):
            _ = await LoggingTransport().send(_notification())

        record = caplog.records[-1]
        assert record.getMessage() == "Email recorded (not sent)"
        assert getattr(record, "recipient") == "user@example.com"
        assert getattr(record, "body_length") == len("secret body")
        assert not hasattr(record, "body")

    @pytest.mark.asyncio
    async def test_body_logged_when_enabled(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO):
            _ = await LoggingTransport(log_body=True).send(_notification())

        assert getattr(caplog.records[-1], "body") == "secret body"
