"""Outbound email transports."""

from __future__ import annotations

from .logging_transport import LoggingTransport
from .smtp import SmtpTransport, build_message

__all__ = [
    "LoggingTransport",
    "SmtpTransport",
    "build_message",
]
