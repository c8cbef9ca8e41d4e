"""Tagged result type and the error catalogue of the processing pipeline.

Every outward-facing outcome of a command is a Result: either a success with
an optional value, or a failure carrying exactly one Error. Errors are values
identified by a dotted ``code``; they are not exceptions.

Examples:
    >>> Result[None].success().is_success
    True
    >>> EmailErrors.send_failed("smtp down").message
    'Failed to send email: smtp down'
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import override
from uuid import UUID

__all__ = ["EmailErrors", "Error", "Result", "ValidationErrors"]


@dataclass(slots=True, frozen=True)
class Error:
    """Error kind plus a human-readable message."""

    code: str
    message: str

    @override
    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


@dataclass(slots=True, frozen=True)
class Result[T]:
    """Success (with optional value) or failure (with exactly one error)."""

    is_success: bool
    value: T | None = None
    error: Error | None = None

    def __post_init__(self) -> None:
        if self.is_success and self.error is not None:
            msg = "A successful result cannot carry an error"
            raise ValueError(msg)
        if not self.is_success and self.error is None:
            msg = "A failed result must carry an error"
            raise ValueError(msg)

    @property
    def is_failure(self) -> bool:
        return not self.is_success

    @classmethod
    def success(cls, value: T | None = None) -> Result[T]:
        return cls(is_success=True, value=value)

    @classmethod
    def failure(cls, error: Error) -> Result[T]:
        return cls(is_success=False, error=error)


class ValidationErrors:
    """Factories for structural validation errors."""

    REQUIRED = "Validation.Required"
    INVALID = "Validation.Invalid"
    FAILED = "Validation.Failed"

    @staticmethod
    def required(field_name: str) -> Error:
        return Error(ValidationErrors.REQUIRED, f"'{field_name}' is required")

    @staticmethod
    def invalid(field_name: str, reason: str) -> Error:
        return Error(ValidationErrors.INVALID, f"'{field_name}' is invalid: {reason}")

    @staticmethod
    def failed(messages: Iterable[str]) -> Error:
        """Aggregate validator messages into one error, joined with ``"; "``."""
        return Error(ValidationErrors.FAILED, "; ".join(messages))


class EmailErrors:
    """Factories for email processing errors."""

    NOT_FOUND = "Email.NotFound"
    INVALID_RECIPIENT = "Email.InvalidRecipient"
    SEND_FAILED = "Email.SendFailed"
    ALREADY_PROCESSED = "Email.AlreadyProcessed"
    INVALID_STATUS = "Email.InvalidStatus"

    @staticmethod
    def not_found(email_id: UUID) -> Error:
        return Error(EmailErrors.NOT_FOUND, f"Email with ID '{email_id}' was not found")

    @staticmethod
    def invalid_recipient(email: str) -> Error:
        return Error(EmailErrors.INVALID_RECIPIENT, f"Invalid email address: '{email}'")

    @staticmethod
    def send_failed(reason: str) -> Error:
        return Error(EmailErrors.SEND_FAILED, f"Failed to send email: {reason}")

    @staticmethod
    def already_processed(email_id: UUID) -> Error:
        return Error(EmailErrors.ALREADY_PROCESSED, f"Email with ID '{email_id}' has already been processed")

    @staticmethod
    def invalid_status(current: str, expected: str) -> Error:
        return Error(EmailErrors.INVALID_STATUS, f"Email is in '{current}' status, expected '{expected}'")
