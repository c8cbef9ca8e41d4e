"""Shared utility modules: logging setup and secret sanitization.

All sanitization helpers are pure and stateless.
"""

from email_dispatch.utils.logging import (
    configure_logging,
    correlation_scope,
    get_correlation_id,
    get_logger,
    log_with_context,
)
from email_dispatch.utils.sanitization import (
    REDACTED,
    sanitize_exception,
    sanitize_url,
    sanitize_value,
)

__all__ = [
    "REDACTED",
    "configure_logging",
    "correlation_scope",
    "get_correlation_id",
    "get_logger",
    "log_with_context",
    "sanitize_exception",
    "sanitize_url",
    "sanitize_value",
]
