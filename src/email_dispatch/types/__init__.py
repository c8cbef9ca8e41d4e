"""Type definitions and protocols for the email-dispatch worker.

This package provides:
- Data models (immutable dataclasses)
- Protocol definitions (structural subtyping interfaces)
"""

from email_dispatch.types.models import (
    DeliveryOutcome,
    SendResult,
    ValidationFailure,
)
from email_dispatch.types.protocols import (
    CommandHandler,
    CommandValidator,
    MessageConsumer,
    OutboundTransport,
    StatusReporter,
)

__all__ = [
    # Data models
    "DeliveryOutcome",
    "SendResult",
    "ValidationFailure",
    # Protocols
    "CommandHandler",
    "CommandValidator",
    "MessageConsumer",
    "OutboundTransport",
    "StatusReporter",
]
