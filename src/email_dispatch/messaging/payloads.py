"""Wire payloads exchanged with the queue and the status channel.

Inbound send requests and outbound status updates are camelCase JSON
objects. Inbound field names are matched case-insensitively; anything that is
not a JSON object with correctly typed fields is a decode failure.

Missing ``notificationId``, ``recipientAddress`` or ``body`` decode to the
nil UUID and empty strings so that the validator, not the decoder, reports
them as business failures.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Annotated, Final, Self
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, Strict, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from email_dispatch.core.commands import ProcessEmailCommand
from email_dispatch.domain.notification import NotificationStatus
from email_dispatch.domain.values import Priority

__all__ = ["PayloadDecodeError", "SendEmailMessage", "StatusUpdate"]

NIL_UUID: Final[UUID] = UUID(int=0)


class PayloadDecodeError(Exception):
    """Raised when an inbound payload cannot be decoded into a send request."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class SendEmailMessage(BaseModel):
    """Inbound send request as published by upstream services."""

    model_config = ConfigDict(  # pyright: ignore[reportUnannotatedClassAttribute]
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    notification_id: Annotated[UUID, Field(description="Correlation id of the originating request")] = NIL_UUID
    recipient_address: Annotated[str, Field(description="Recipient email address")] = ""
    recipient_name: Annotated[str | None, Field(description="Recipient display name")] = None
    subject: Annotated[str | None, Field(description="Subject line")] = None
    body: Annotated[str, Field(description="Email body")] = ""
    is_html: Annotated[bool, Strict(), Field(description="Whether the body is HTML")] = False
    priority: Annotated[
        int,
        Strict(),
        Field(description="Priority ordinal, 0 (Low) to 3 (Critical)"),
    ] = int(Priority.NORMAL)
    metadata: Annotated[dict[str, str] | None, Field(description="Opaque key/value pairs")] = None

    @field_validator("notification_id", mode="before")
    @classmethod
    def null_id_to_nil(cls, v: object) -> object:
        return NIL_UUID if v is None else v

    @field_validator("recipient_address", "body", mode="before")
    @classmethod
    def null_text_to_empty(cls, v: object) -> object:
        return "" if v is None else v

    @classmethod
    def decode(cls, payload: bytes | str) -> Self:
        """Decode a raw queue payload.

        Args:
            payload: UTF-8 JSON bytes or text

        Returns:
            Decoded message

        Raises:
            PayloadDecodeError: If the payload is not a well-typed JSON object
        """
        try:
            raw: object = json.loads(payload)  # pyright: ignore[reportAny]  # JSON boundary
        except (UnicodeDecodeError, ValueError) as exc:
            msg = f"Payload is not valid JSON: {exc}"
            raise PayloadDecodeError(msg) from exc

        if not isinstance(raw, dict):
            msg = f"Payload must be a JSON object, got: {type(raw).__name__}"
            raise PayloadDecodeError(msg)

        try:
            return cls.model_validate(_canonical_keys(raw))  # pyright: ignore[reportUnknownArgumentType]  # JSON boundary
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(loc) for loc in error['loc'])}: {error['msg']}" for error in exc.errors()
            )
            msg = f"Payload has invalid fields: {problems}"
            raise PayloadDecodeError(msg) from exc

    def encode(self) -> str:
        """Serialize to the camelCase wire form."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_command(cls, command: ProcessEmailCommand) -> Self:
        return cls(
            notification_id=command.notification_id,
            recipient_address=command.recipient_address,
            recipient_name=command.recipient_name,
            subject=command.subject,
            body=command.body,
            is_html=command.is_html,
            priority=int(command.priority),
            metadata=dict(command.metadata) if command.metadata is not None else None,
        )

    def to_command(self) -> ProcessEmailCommand:
        return ProcessEmailCommand(
            notification_id=self.notification_id,
            recipient_address=self.recipient_address,
            recipient_name=self.recipient_name,
            subject=self.subject,
            body=self.body,
            is_html=self.is_html,
            priority=self.priority,
            metadata=dict(self.metadata) if self.metadata is not None else None,
        )


# lower-cased alias -> alias, for case-insensitive decoding
_ALIASES_BY_LOWER: Final[dict[str, str]] = {
    (info.alias or name).lower(): info.alias or name for name, info in SendEmailMessage.model_fields.items()
}


def _canonical_keys(raw: dict[str, object]) -> dict[str, object]:
    canonical: dict[str, object] = {}
    for key, value in raw.items():
        canonical[_ALIASES_BY_LOWER.get(str(key).lower(), key)] = value
    return canonical


class StatusUpdate(BaseModel):
    """Outbound status update published after every lifecycle change."""

    model_config = ConfigDict(  # pyright: ignore[reportUnannotatedClassAttribute]
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    notification_id: Annotated[UUID, Field(description="Correlation id of the originating request")]
    status: Annotated[NotificationStatus, Field(description="Lifecycle status as an integer 0..4")]
    error_message: Annotated[str | None, Field(description="Failure reason, when failed")] = None
    processed_at: Annotated[datetime, Field(default_factory=_utcnow, description="UTC time of the update")]

    def encode(self) -> str:
        return self.model_dump_json(by_alias=True)

    def to_wire(self) -> dict[str, object]:
        """JSON-compatible dict in the camelCase wire form."""
        return self.model_dump(mode="json", by_alias=True)
