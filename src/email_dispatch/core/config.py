"""Configuration system for the email-dispatch worker.

This module implements the configuration schema using Pydantic for
validation, with support for ``${ENV_VAR}`` resolution and fail-fast
validation with actionable error messages.
"""

import os
import re
import socket
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Final, Literal, Self

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from email_dispatch.domain.values import EmailAddress

# Matches ${VARIABLE_NAME} where VARIABLE_NAME is upper-case letters, digits, underscores
ENV_VAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$\{([A-Z0-9_]+)\}")


class ApplicationConfig(BaseModel):
    """Process-level settings: logging and dry-run."""

    log_level: Annotated[
        str,
        Field(
            description="Logging level",
            pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        ),
    ] = "INFO"
    dry_run: Annotated[
        bool,
        Field(description="Dry-run mode: log emails instead of sending them"),
    ] = False
    syslog_enabled: Annotated[
        bool,
        Field(description="Enable syslog integration"),
    ] = False
    syslog_address: Annotated[
        str,
        Field(description="Syslog socket address"),
    ] = "/dev/log"


class ConsumerConfig(BaseModel):
    """Inbound queue consumption settings."""

    kind: Annotated[
        Literal["memory", "redis"],
        Field(description="Queue backend to consume from"),
    ] = "redis"
    prefetch: Annotated[
        int,
        Field(gt=0, description="Maximum deliveries handled concurrently per read"),
    ] = 10
    workers: Annotated[
        int,
        Field(gt=0, description="Worker tasks for the in-memory queue"),
    ] = 4
    max_deliveries: Annotated[
        int,
        Field(gt=0, description="Deliveries of one message before it is dead-lettered"),
    ] = 5
    shutdown_timeout_seconds: Annotated[
        float,
        Field(gt=0, description="Grace period for in-flight deliveries on shutdown"),
    ] = 30.0


class RedisConfig(BaseModel):
    """Redis connection and stream names."""

    url: Annotated[
        str,
        Field(description="Redis connection URL (redis:// or rediss://)"),
    ] = "redis://localhost:6379/0"
    stream: Annotated[
        str,
        Field(min_length=1, description="Inbound send-request stream"),
    ] = "notifications.email"
    group: Annotated[
        str,
        Field(min_length=1, description="Consumer group name"),
    ] = "email-dispatch"
    consumer_name: Annotated[
        str,
        Field(min_length=1, description="Stable consumer name; pending entries are recovered under it"),
    ] = socket.gethostname() or "email-dispatch"
    dead_letter_stream: Annotated[
        str,
        Field(min_length=1, description="Stream receiving payloads that exhausted their deliveries"),
    ] = "notifications.email.dead"
    status_stream: Annotated[
        str,
        Field(min_length=1, description="Stream receiving status updates"),
    ] = "notifications.status"
    block_ms: Annotated[
        int,
        Field(ge=0, description="XREADGROUP block time in milliseconds"),
    ] = 5000
    claim_idle_ms: Annotated[
        int,
        Field(ge=0, description="Idle time before another consumer's pending entry is claimed; 0 disables"),
    ] = 300_000

    @field_validator("url", mode="after")
    @classmethod
    def validate_scheme(cls, v: str) -> str:
        """Validate that the URL uses a Redis scheme.

        Raises:
            ValueError: If the scheme is not redis, rediss or unix
        """
        if not v.startswith(("redis://", "rediss://", "unix://")):
            msg = "Redis URL must start with redis://, rediss:// or unix://"
            raise ValueError(msg)
        return v


class TransportConfig(BaseModel):
    """Outbound transport selection."""

    kind: Annotated[
        Literal["logging", "smtp"],
        Field(description="Transport used to send emails"),
    ] = "logging"
    log_body: Annotated[
        bool,
        Field(description="Include the email body when the logging transport records an email"),
    ] = False


class SmtpConfig(BaseModel):
    """SMTP server and sender identity."""

    host: Annotated[str, Field(min_length=1, description="SMTP server host")] = "localhost"
    port: Annotated[int, Field(gt=0, lt=65536, description="SMTP server port")] = 1025
    security: Annotated[
        Literal["none", "starttls", "tls"],
        Field(description="Connection security: plain, STARTTLS upgrade, or implicit TLS"),
    ] = "none"
    username: Annotated[str | None, Field(description="Login user; no login when unset")] = None
    password: Annotated[str | None, Field(description="Login password")] = None
    from_address: Annotated[str, Field(description="Sender address")] = "noreply@notification.local"
    from_name: Annotated[str | None, Field(description="Sender display name")] = "Notification System"
    timeout_seconds: Annotated[float, Field(gt=0, description="Per-operation SMTP timeout")] = 30.0

    @field_validator("from_address", mode="after")
    @classmethod
    def validate_from_address(cls, v: str) -> str:
        """Validate and normalize the sender address.

        Raises:
            ValueError: If the address is malformed
        """
        address = EmailAddress.try_create(v)
        if address is None:
            msg = f"Invalid sender address: {v!r}"
            raise ValueError(msg)
        return address.value


class StatusConfig(BaseModel):
    """Status reporting channel."""

    kind: Annotated[
        Literal["logging", "redis", "webhook"],
        Field(description="Where status updates are published"),
    ] = "logging"
    webhook_url: Annotated[str | None, Field(description="Endpoint receiving status POSTs")] = None
    webhook_timeout_seconds: Annotated[float, Field(gt=0, description="Per-request timeout")] = 10.0
    webhook_max_retries: Annotated[int, Field(ge=0, description="Retries for transient failures")] = 3

    @model_validator(mode="after")
    def validate_webhook_url(self) -> Self:
        """Require an http(s) webhook URL when the webhook channel is selected."""
        if self.kind == "webhook":
            if not self.webhook_url:
                msg = "webhook_url is required when status kind is 'webhook'"
                raise ValueError(msg)
            if not self.webhook_url.startswith(("http://", "https://")):
                msg = "webhook_url must start with http:// or https://"
                raise ValueError(msg)
        return self


class IdempotencyConfig(BaseModel):
    """Redelivery guard for already sent notifications."""

    window_seconds: Annotated[
        float,
        Field(ge=0, description="How long a sent notification id is remembered; 0 disables the guard"),
    ] = 600.0
    max_entries: Annotated[
        int,
        Field(gt=0, description="Upper bound on remembered ids"),
    ] = 10_000


class MainConfig(BaseModel):
    """Top-level configuration for the worker.

    Every section has working defaults, so an empty file yields a worker
    that consumes from a local Redis and logs emails instead of sending them.
    """

    application: Annotated[
        ApplicationConfig,
        Field(default_factory=ApplicationConfig, description="Process-level settings"),
    ]
    consumer: Annotated[
        ConsumerConfig,
        Field(default_factory=ConsumerConfig, description="Inbound queue settings"),
    ]
    redis: Annotated[
        RedisConfig,
        Field(default_factory=RedisConfig, description="Redis connection settings"),
    ]
    transport: Annotated[
        TransportConfig,
        Field(default_factory=TransportConfig, description="Outbound transport"),
    ]
    smtp: Annotated[
        SmtpConfig,
        Field(default_factory=SmtpConfig, description="SMTP settings"),
    ]
    status: Annotated[
        StatusConfig,
        Field(default_factory=StatusConfig, description="Status channel"),
    ]
    idempotency: Annotated[
        IdempotencyConfig,
        Field(default_factory=IdempotencyConfig, description="Redelivery guard"),
    ]


class EnvironmentVariableError(Exception):
    """Raised when a referenced environment variable is not set.

    The message names the variable but never includes any value.
    """


def resolve_env_var(value: str) -> str:
    """Replace every ``${VARIABLE_NAME}`` in a string with its value.

    Raises:
        EnvironmentVariableError: If a referenced variable is not set

    Examples:
        >>> os.environ["SMTP_PASSWORD"] = "hunter2"
        >>> resolve_env_var("${SMTP_PASSWORD}")
        'hunter2'
        >>> resolve_env_var("redis://:${SMTP_PASSWORD}@cache:6379/0")
        'redis://:hunter2@cache:6379/0'
    """

    def replace_match(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)

        if env_value is None:
            msg = (
                f"Required environment variable '{var_name}' is not set. "
                f"Please set this variable before starting the worker."
            )
            raise EnvironmentVariableError(msg)

        return env_value

    return ENV_VAR_PATTERN.sub(replace_match, value)


def _resolve_item(value: object) -> object:
    if isinstance(value, str):
        return resolve_env_var(value)
    if isinstance(value, dict):
        # YAML data is untyped at load time; validated by Pydantic after resolution
        return resolve_env_vars_in_dict(value)  # pyright: ignore[reportUnknownArgumentType]  # YAML boundary
    if isinstance(value, list):
        return [_resolve_item(item) for item in value]  # pyright: ignore[reportUnknownVariableType]  # YAML list items
    return value


def resolve_env_vars_in_dict(data: Mapping[str, object]) -> dict[str, object]:
    """Recursively resolve environment variables in nested dicts and lists.

    Non-string leaves (int, float, bool, None) are preserved as-is.

    Raises:
        EnvironmentVariableError: If a referenced variable is not set

    Examples:
        >>> os.environ["REDIS_HOST"] = "cache"
        >>> resolve_env_vars_in_dict({"redis": {"url": "redis://${REDIS_HOST}:6379"}})
        {'redis': {'url': 'redis://cache:6379'}}
    """
    return {key: _resolve_item(value) for key, value in data.items()}


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails.

    Messages are multi-line and actionable: they name the file, the failing
    field, and what to fix.
    """


def load_main_config(config_path: Path) -> MainConfig:
    """Load and validate the worker configuration from a YAML file.

    An empty file is valid and yields the defaults.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Validated MainConfig instance

    Raises:
        ConfigurationError: If the file cannot be loaded, a variable is
            missing, or validation fails
    """
    if not config_path.exists():
        msg = (
            f"Configuration file not found: {config_path}\n"
            f"Please create a configuration file at this location.\n"
            f"See config/email-dispatch.example.yaml for the format."
        )
        raise ConfigurationError(msg)

    try:
        with config_path.open("r") as f:
            raw_data: object = yaml.safe_load(f)  # pyright: ignore[reportAny]  # YAML boundary
    except yaml.YAMLError as e:
        msg = (
            f"Failed to parse YAML configuration file: {config_path}\n"
            f"YAML parsing error: {e}\n"
            f"Please check the file for syntax errors."
        )
        raise ConfigurationError(msg) from e
    except OSError as e:
        msg = f"Failed to read configuration file: {config_path}\nError: {e}\nPlease check file permissions."
        raise ConfigurationError(msg) from e

    if raw_data is None:
        raw_data = {}

    if not isinstance(raw_data, dict):
        msg = (
            f"Invalid configuration file format: {config_path}\n"
            f"Expected YAML dictionary at root level, got: {type(raw_data).__name__}\n"
            f"Configuration file must contain key-value pairs."
        )
        raise ConfigurationError(msg)

    try:
        resolved_data = resolve_env_vars_in_dict(raw_data)  # pyright: ignore[reportUnknownArgumentType]  # YAML boundary
    except EnvironmentVariableError as e:
        msg = (
            f"Environment variable resolution failed in: {config_path}\n"
            f"{e}\n"
            f"Set the required environment variable before starting the worker."
        )
        raise ConfigurationError(msg) from e

    try:
        config = MainConfig.model_validate(resolved_data)
    except ValidationError as e:
        error_lines = ["Configuration validation failed:", ""]
        for error in e.errors():
            field_path = " → ".join(str(loc) for loc in error["loc"])
            error_lines.append(f"  Field: {field_path}")
            error_lines.append(f"  Error: {error['msg']}")
            error_lines.append(f"  Type: {error['type']}")
            error_lines.append("")

        error_lines.append(f"Configuration file: {config_path}")
        error_lines.append("Please fix the above errors and try again.")

        msg = "\n".join(error_lines)
        raise ConfigurationError(msg) from e

    return config
