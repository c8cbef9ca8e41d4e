"""Data models exchanged between the pipeline and its adapters.

This module defines small immutable dataclasses used at the seams between
the command handler, transports, and consumers.
"""

from dataclasses import dataclass
from enum import Enum, auto


@dataclass(slots=True, frozen=True)
class SendResult:
    """Outcome of handing one email to an outbound transport.

    A transport reports expected failures (rejected recipient, server down)
    through this value rather than by raising.
    """

    success: bool
    message_id: str | None = None
    error_message: str | None = None

    @classmethod
    def ok(cls, message_id: str | None) -> "SendResult":
        return cls(success=True, message_id=message_id)

    @classmethod
    def failed(cls, error_message: str) -> "SendResult":
        return cls(success=False, error_message=error_message)


@dataclass(slots=True, frozen=True)
class ValidationFailure:
    """A single structural rule violated by a command."""

    field: str
    message: str


class DeliveryOutcome(Enum):
    """What a consumer does with a delivery once handling finishes."""

    ACK = auto()  # terminal outcome, success or business failure
    REQUEUE = auto()  # decode failure or infrastructure error, deliver again
