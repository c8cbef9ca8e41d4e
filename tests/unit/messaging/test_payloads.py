"""Unit tests for the inbound and outbound wire payloads."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest

from email_dispatch.domain.notification import NotificationStatus
from email_dispatch.domain.values import Priority
from email_dispatch.messaging.payloads import PayloadDecodeError, SendEmailMessage, StatusUpdate
from tests.fixtures.doubles import make_command

NOTIFICATION_ID = UUID("0f8fad5b-d9cb-469f-a165-70867728950e")


@pytest.mark.unit
class TestSendEmailMessageDecode:
    """Test decoding of inbound send requests."""

    def test_camel_case_payload(self) -> None:
        payload = json.dumps(
            {
                "notificationId": str(NOTIFICATION_ID),
                "recipientAddress": "jane@example.com",
                "recipientName": "Jane",
                "subject": "Hi",
                "body": "<p>Hello</p>",
                "isHtml": True,
                "priority": 2,
                "metadata": {"tenant": "acme"},
            }
        )

        message = SendEmailMessage.decode(payload)

        assert message.notification_id == NOTIFICATION_ID
        assert message.recipient_address == "jane@example.com"
        assert message.recipient_name == "Jane"
        assert message.is_html is True
        assert message.priority == Priority.HIGH
        assert message.metadata == {"tenant": "acme"}

    def test_keys_are_case_insensitive(self) -> None:
        payload = json.dumps(
            {"NotificationId": str(NOTIFICATION_ID), "RECIPIENTADDRESS": "a@b.co", "Body": "x"}
        ).encode()

        message = SendEmailMessage.decode(payload)

        assert message.notification_id == NOTIFICATION_ID
        assert message.recipient_address == "a@b.co"
        assert message.body == "x"

    def test_missing_fields_take_defaults(self) -> None:
        """Test absent fields decode to values the validator will reject."""
        message = SendEmailMessage.decode("{}")

        assert message.notification_id == UUID(int=0)
        assert message.recipient_address == ""
        assert message.body == ""
        assert message.priority == Priority.NORMAL
        assert message.is_html is False

    def test_nulls_become_defaults(self) -> None:
        message = SendEmailMessage.decode('{"notificationId": null, "recipientAddress": null, "body": null}')
        assert message.notification_id == UUID(int=0)
        assert message.recipient_address == ""
        assert message.body == ""

    def test_unknown_fields_ignored(self) -> None:
        message = SendEmailMessage.decode('{"body": "x", "attachments": []}')
        assert message.body == "x"

    def test_out_of_range_priority_survives_decoding(self) -> None:
        """Test range checking is left to the validator."""
        assert SendEmailMessage.decode('{"priority": 9}').priority == 9

    @pytest.mark.parametrize("payload", ["not json", b"\x80not json", "{"])
    def test_invalid_json(self, payload: str | bytes) -> None:
        with pytest.raises(PayloadDecodeError, match="not valid JSON"):
            _ = SendEmailMessage.decode(payload)

    @pytest.mark.parametrize("payload", ["[]", '"text"', "42"])
    def test_non_object(self, payload: str) -> None:
        with pytest.raises(PayloadDecodeError, match="must be a JSON object"):
            _ = SendEmailMessage.decode(payload)

    def test_wrongly_typed_field(self) -> None:
        with pytest.raises(PayloadDecodeError, match="notificationId"):
            _ = SendEmailMessage.decode('{"notificationId": "not-a-uuid"}')

    @pytest.mark.parametrize(
        ("document", "field"),
        [
            ('{"priority": "2"}', "priority"),
            ('{"priority": 2.0}', "priority"),
            ('{"priority": true}', "priority"),
            ('{"isHtml": "yes"}', "isHtml"),
            ('{"isHtml": "false"}', "isHtml"),
            ('{"isHtml": 1}', "isHtml"),
            ('{"recipientAddress": 42}', "recipientAddress"),
            ('{"metadata": {"k": 1}}', "metadata"),
        ],
    )
    def test_loosely_typed_values_rejected(self, document: str, field: str) -> None:
        with pytest.raises(PayloadDecodeError, match=field):
            _ = SendEmailMessage.decode(document)

    def test_case_insensitive_keys_still_strictly_typed(self) -> None:
        with pytest.raises(PayloadDecodeError, match="isHtml"):
            _ = SendEmailMessage.decode('{"ISHTML": "true"}')


@pytest.mark.unit
class TestSendEmailMessageConversion:
    """Test conversion to and from commands."""

    def test_to_command(self) -> None:
        message = SendEmailMessage(
            notification_id=NOTIFICATION_ID,
            recipient_address="a@b.co",
            body="x",
            priority=3,
            metadata={"k": "v"},
        )

        command = message.to_command()

        assert command.notification_id == NOTIFICATION_ID
        assert command.recipient_address == "a@b.co"
        assert command.priority == 3
        assert command.metadata == {"k": "v"}

    def test_encode_uses_camel_case(self) -> None:
        message = SendEmailMessage.from_command(make_command(notification_id=NOTIFICATION_ID, is_html=True))

        wire = json.loads(message.encode())

        assert wire["notificationId"] == str(NOTIFICATION_ID)
        assert wire["isHtml"] is True
        assert "recipient_address" not in wire

    def test_encoded_command_decodes_to_same_command(self) -> None:
        command = make_command(notification_id=uuid4(), recipient_name="Jane", priority=0)
        assert SendEmailMessage.decode(SendEmailMessage.from_command(command).encode()).to_command() == command


@pytest.mark.unit
class TestStatusUpdate:
    """Test the outbound status payload."""

    def test_wire_form(self) -> None:
        processed_at = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)
        update = StatusUpdate(
            notification_id=NOTIFICATION_ID,
            status=NotificationStatus.FAILED,
            error_message="smtp down",
            processed_at=processed_at,
        )

        wire = update.to_wire()

        assert wire == {
            "notificationId": str(NOTIFICATION_ID),
            "status": 4,
            "errorMessage": "smtp down",
            "processedAt": "2026-01-02T03:04:05Z",
        }
        assert json.loads(update.encode()) == wire

    def test_processed_at_defaults_to_now_utc(self) -> None:
        update = StatusUpdate(notification_id=NOTIFICATION_ID, status=NotificationStatus.SENT)
        assert update.processed_at.tzinfo is not None
        assert update.error_message is None
