"""Self-validating value types for outbound email notifications.

Every value type in this module normalizes its input on construction and
refuses to exist in an invalid state. Construction goes through the ``create``
classmethods, which raise DomainValidationError with a human-readable reason.

Examples:
    >>> EmailAddress.create("  Jane.Doe@Example.COM ")
    EmailAddress(value='jane.doe@example.com')
    >>> Recipient.create("jane@example.com", "Jane Doe").formatted()
    'Jane Doe <jane@example.com>'
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Final, override

__all__ = [
    "DomainValidationError",
    "EmailAddress",
    "EmailContent",
    "Priority",
    "Recipient",
]

# local@domain.tld: one "@", no whitespace, non-empty dot-separated domain labels
_EMAIL_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[^@\s]+@(?:[^@\s.]+\.)+[^@\s.]+$")


class DomainValidationError(ValueError):
    """Raised when a value type or entity would be created in an invalid state."""


class Priority(IntEnum):
    """Delivery priority; the integer values are the wire representation."""

    LOW = 0
    NORMAL = 1
    HIGH = 2
    CRITICAL = 3

    @classmethod
    def parse(cls, value: int) -> Priority:
        """Convert an inbound integer into a Priority.

        Raises:
            DomainValidationError: If the value is outside 0..3
        """
        try:
            return cls(value)
        except ValueError as exc:
            msg = "Priority must be between 0 (Low) and 3 (Critical)"
            raise DomainValidationError(msg) from exc


@dataclass(slots=True, frozen=True)
class EmailAddress:
    """Normalized (trimmed, lower-cased) email address."""

    value: str

    def __post_init__(self) -> None:
        if self.value != self.value.strip().lower() or not _EMAIL_PATTERN.match(self.value):
            msg = "Invalid email address format"
            raise DomainValidationError(msg)

    @classmethod
    def create(cls, raw: str | None) -> EmailAddress:
        """Normalize and validate a raw address string.

        Args:
            raw: Address as supplied by the caller

        Returns:
            Validated EmailAddress

        Raises:
            DomainValidationError: If the address is empty or malformed
        """
        if raw is None or not raw.strip():
            msg = "Email address cannot be empty"
            raise DomainValidationError(msg)
        return cls(raw.strip().lower())

    @classmethod
    def try_create(cls, raw: str | None) -> EmailAddress | None:
        """Like create(), but return None instead of raising."""
        try:
            return cls.create(raw)
        except DomainValidationError:
            return None

    @override
    def __str__(self) -> str:
        return self.value


@dataclass(slots=True, frozen=True)
class Recipient:
    """Email recipient: a validated address plus an optional display name."""

    address: EmailAddress
    name: str | None = None

    @classmethod
    def create(cls, email: str | None, name: str | None = None) -> Recipient:
        """Build a recipient from raw strings.

        A blank display name is treated as no name at all.

        Raises:
            DomainValidationError: If the address is empty or malformed
        """
        address = EmailAddress.create(email)
        display_name = name.strip() if name is not None else None
        return cls(address=address, name=display_name or None)

    def formatted(self) -> str:
        """Return ``"Name <address>"`` or the bare address when there is no name."""
        if self.name:
            return f"{self.name} <{self.address}>"
        return str(self.address)

    @override
    def __str__(self) -> str:
        return self.formatted()


@dataclass(slots=True, frozen=True)
class EmailContent:
    """Subject and body of an email."""

    subject: str | None
    body: str
    is_html: bool = False

    @classmethod
    def create(cls, subject: str | None, body: str | None, is_html: bool = False) -> EmailContent:
        """Validate the body and trim the subject.

        Raises:
            DomainValidationError: If the body is empty or whitespace-only
        """
        if body is None or not body.strip():
            msg = "Email body cannot be empty"
            raise DomainValidationError(msg)
        return cls(
            subject=subject.strip() if subject is not None else None,
            body=body,
            is_html=is_html,
        )
