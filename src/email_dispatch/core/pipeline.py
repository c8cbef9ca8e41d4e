"""Command bus with a validation stage in front of every handler.

Each command type is registered once, together with its handler and any
number of structural validators. ``CommandBus.send`` routes a command through
ValidationMiddleware, which runs the validators concurrently and only calls
the handler when none of them reports a failure.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from email_dispatch.core.result import Result, ValidationErrors
from email_dispatch.types.models import ValidationFailure
from email_dispatch.types.protocols import CommandHandler, CommandValidator
from email_dispatch.utils.logging import get_logger, log_with_context

__all__ = ["CommandBus", "UnregisteredCommandError", "ValidationMiddleware"]


class UnregisteredCommandError(LookupError):
    """Raised when a command is sent that no handler was registered for."""

    def __init__(self, command_type: type) -> None:
        super().__init__(f"No handler registered for command type {command_type.__name__}")
        self.command_type: type = command_type


class ValidationMiddleware[C, R]:
    """Run every registered validator before delegating to the wrapped handler.

    With no validators the handler runs unconditionally. When any validator
    reports a failure the handler is skipped and a ``Validation.Failed``
    result is returned with all messages joined by ``"; "``.
    """

    def __init__(
        self,
        handler: CommandHandler[C, R],
        validators: Sequence[CommandValidator[C]] = (),
        *,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._handler: CommandHandler[C, R] = handler
        self._validators: tuple[CommandValidator[C], ...] = tuple(validators)
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    async def handle(self, command: C) -> Result[R]:
        if not self._validators:
            return await self._handler.handle(command)

        outcomes = await asyncio.gather(*(validator.validate(command) for validator in self._validators))
        failures: list[ValidationFailure] = [failure for outcome in outcomes for failure in outcome]

        if failures:
            log_with_context(
                self._logger,
                logging.WARNING,
                "Command rejected by validation",
                extra={
                    "command_type": type(command).__name__,
                    "failed_fields": [failure.field for failure in failures],
                },
            )
            return Result[R].failure(ValidationErrors.failed(failure.message for failure in failures))

        return await self._handler.handle(command)


class CommandBus:
    """Route commands to their validated handler pipelines by exact type."""

    def __init__(self, *, logger_obj: logging.Logger | None = None) -> None:
        self._logger: logging.Logger = logger_obj or get_logger(__name__)
        self._pipelines: dict[type, ValidationMiddleware[Any, Any]] = {}  # pyright: ignore[reportExplicitAny]

    def register[C, R](
        self,
        command_type: type[C],
        handler: CommandHandler[C, R],
        validators: Sequence[CommandValidator[C]] = (),
    ) -> None:
        """Register the handler and validators for a command type.

        Raises:
            ValueError: If the command type is already registered
        """
        if command_type in self._pipelines:
            msg = f"Command type {command_type.__name__} is already registered"
            raise ValueError(msg)
        self._pipelines[command_type] = ValidationMiddleware(handler, validators, logger_obj=self._logger)
        self._logger.debug(
            "Registered %s with %d validator(s)",
            command_type.__name__,
            len(validators),
        )

    def is_registered(self, command_type: type) -> bool:
        return command_type in self._pipelines

    async def send(self, command: object) -> Result[Any]:  # pyright: ignore[reportExplicitAny]
        """Dispatch a command through its validation pipeline.

        Raises:
            UnregisteredCommandError: If nothing handles this command type
        """
        pipeline = self._pipelines.get(type(command))
        if pipeline is None:
            raise UnregisteredCommandError(type(command))
        return await pipeline.handle(command)
