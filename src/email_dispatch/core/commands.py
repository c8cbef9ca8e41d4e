"""Command shape for processing one email, and its structural validator."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Final
from uuid import UUID

from email_dispatch.domain.values import Priority
from email_dispatch.types.models import ValidationFailure

__all__ = ["ProcessEmailCommand", "ProcessEmailValidator"]

# Structural check only; EmailAddress.create stays authoritative
_LOOSE_EMAIL_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[^@\s]+@[^@\s]+$")

_NIL_UUID: Final[UUID] = UUID(int=0)


@dataclass(slots=True, frozen=True, kw_only=True)
class ProcessEmailCommand:
    """Request to send one email, decoded from an inbound queue message."""

    notification_id: UUID
    recipient_address: str
    body: str
    recipient_name: str | None = None
    subject: str | None = None
    is_html: bool = False
    priority: int = Priority.NORMAL
    metadata: Mapping[str, str] | None = None


class ProcessEmailValidator:
    """Structural rules checked before a ProcessEmailCommand reaches its handler.

    All rules are evaluated so the caller sees every problem at once.
    """

    async def validate(self, command: ProcessEmailCommand) -> Sequence[ValidationFailure]:
        failures: list[ValidationFailure] = []

        if command.notification_id == _NIL_UUID:
            failures.append(ValidationFailure("notification_id", "NotificationId is required"))

        address = command.recipient_address
        if not address or not address.strip():
            failures.append(ValidationFailure("recipient_address", "RecipientAddress is required"))
        elif not _LOOSE_EMAIL_PATTERN.match(address.strip()):
            failures.append(
                ValidationFailure("recipient_address", "RecipientAddress must be a valid email address")
            )

        if not command.body or not command.body.strip():
            failures.append(ValidationFailure("body", "Body is required"))

        if not Priority.LOW <= command.priority <= Priority.CRITICAL:
            failures.append(
                ValidationFailure("priority", "Priority must be between 0 (Low) and 3 (Critical)")
            )

        return failures
