"""Structured logging with syslog integration and correlation ID tracking.

This module configures the standard library logging tree for the worker:
console and optional syslog output, a correlation ID stamped on every record
from a ContextVar (the notification id of the delivery being handled), and a
filter that redacts secrets from messages, arguments, and ``extra`` fields.
"""

import contextvars
import logging
import logging.handlers
import sys
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from typing import Final, override

from email_dispatch.utils.sanitization import (
    sanitize_args,
    sanitize_value,
)

# Correlation ID of the notification being handled; inherited by child tasks
correlation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id",
    default=None,
)

DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] - %(message)s"

SYSLOG_LOG_FORMAT: Final[str] = (
    "email-dispatch[%(process)d]: %(levelname)s - [%(correlation_id)s] - %(name)s - %(message)s"
)

DEFAULT_SYSLOG_ADDRESS: Final[str] = "/dev/log"

# LogRecord attributes that are never treated as extra context
_STANDARD_RECORD_ATTRS: Final[frozenset[str]] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "message",
        "asctime",
        "correlation_id",
    }
)


class CorrelationIDFilter(logging.Filter):
    """Logging filter that adds the current correlation ID to log records.

    Records logged outside a delivery get ``"N/A"``.
    """

    @override
    def filter(self, record: logging.LogRecord) -> bool:
        correlation_id = correlation_id_var.get()
        record.correlation_id = correlation_id if correlation_id is not None else "N/A"
        return True


class SecretRedactingFilter(logging.Filter):
    """Logging filter that redacts credentials from log records.

    Sanitizes the message text, the ``%`` formatting arguments, and every
    non-standard attribute added through ``extra={}``, so a broker URL or
    SMTP password never reaches a handler regardless of how it was passed.

    Examples:
        >>> logger.info("Connecting to %s", "redis://:pw@cache:6379/0")
        # Logged as: "Connecting to redis://:<REDACTED>@cache:6379/0"
    """

    @override
    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            sanitized_msg = sanitize_value(record.msg)
            if isinstance(sanitized_msg, str):
                record.msg = sanitized_msg

        if record.args and isinstance(record.args, tuple):
            record.args = sanitize_args(record.args)

        for attr_name in list(record.__dict__.keys()):
            if attr_name not in _STANDARD_RECORD_ATTRS and not attr_name.startswith("_"):
                attr_value: object = getattr(record, attr_name)  # pyright: ignore[reportAny]
                setattr(record, attr_name, sanitize_value(attr_value, field_name=attr_name))

        return True


def configure_logging(
    *,
    log_level: str = "INFO",
    enable_syslog: bool = True,
    syslog_address: str = DEFAULT_SYSLOG_ADDRESS,
    enable_console: bool = True,
) -> None:
    """Configure root logging with correlation IDs and secret redaction.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_syslog: Attach a syslog handler
        syslog_address: Syslog socket address
        enable_console: Attach a stdout handler

    Example:
        >>> configure_logging(log_level="DEBUG", enable_syslog=False)
        >>> set_correlation_id("5f0c...")
        >>> get_logger(__name__).info("Email sent", extra={"message_id": "m1"})
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    # Shared by all handlers
    correlation_filter = CorrelationIDFilter()
    secret_filter = SecretRedactingFilter()

    if enable_syslog:
        try:
            syslog_handler = logging.handlers.SysLogHandler(
                address=syslog_address,
                facility=logging.handlers.SysLogHandler.LOG_DAEMON,
            )
            syslog_handler.setFormatter(logging.Formatter(SYSLOG_LOG_FORMAT))
            syslog_handler.addFilter(correlation_filter)
            syslog_handler.addFilter(secret_filter)
            root_logger.addHandler(syslog_handler)
        except OSError as exc:
            # No syslog socket (containers, development); console only
            print(
                f"Warning: Could not connect to syslog at {syslog_address}: {exc}",
                file=sys.stderr,
            )

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
        console_handler.addFilter(correlation_filter)
        console_handler.addFilter(secret_filter)
        root_logger.addHandler(console_handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the specified module."""
    return logging.getLogger(name)


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current context.

    The value is inherited by every asyncio task created afterwards from
    this context, so concurrent deliveries never see each other's id.
    """
    _ = correlation_id_var.set(correlation_id)


def get_correlation_id() -> str | None:
    """Get the current correlation ID, or None outside a delivery."""
    return correlation_id_var.get()


def clear_correlation_id() -> None:
    """Clear the correlation ID from the current context."""
    _ = correlation_id_var.set(None)


@contextmanager
def correlation_scope(correlation_id: str | None) -> Generator[None]:
    """Set the correlation ID for the duration of a block, then restore it.

    Example:
        >>> with correlation_scope(str(command.notification_id)):
        ...     await bus.send(command)
    """
    token = correlation_id_var.set(correlation_id)
    try:
        yield
    finally:
        correlation_id_var.reset(token)


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    *,
    extra: Mapping[str, object] | None = None,
) -> None:
    """Log a message with additional structured context fields.

    The current correlation ID is added to the context automatically.

    Example:
        >>> log_with_context(
        ...     logger,
        ...     logging.INFO,
        ...     "Email sent",
        ...     extra={"message_id": "<abc@mail.local>", "priority": "HIGH"},
        ... )
    """
    context = dict(extra) if extra else {}

    correlation_id = get_correlation_id()
    if correlation_id:
        context["correlation_id"] = correlation_id

    logger.log(level, message, extra=context)
