"""Wire adapters, the command bus, and the worker from configuration."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass

from redis.asyncio import Redis

from email_dispatch.core.commands import ProcessEmailCommand, ProcessEmailValidator
from email_dispatch.core.config import MainConfig
from email_dispatch.core.handler import EventSink, ProcessEmailHandler
from email_dispatch.core.idempotency import SentRegistry
from email_dispatch.core.pipeline import CommandBus
from email_dispatch.core.worker import Worker
from email_dispatch.messaging.consumer import DeliveryDispatcher
from email_dispatch.messaging.memory import InMemoryConsumer
from email_dispatch.messaging.redis_streams import RedisStatusReporter, RedisStreamConsumer
from email_dispatch.messaging.reporters import LoggingStatusReporter, WebhookStatusReporter
from email_dispatch.transports.logging_transport import LoggingTransport
from email_dispatch.transports.smtp import SmtpTransport
from email_dispatch.types.protocols import MessageConsumer, OutboundTransport, StatusReporter
from email_dispatch.utils.logging import get_logger

__all__ = [
    "Application",
    "build_bus",
    "build_status_reporter",
    "build_transport",
    "open_application",
]

logger = get_logger(__name__)


@dataclass(slots=True)
class Application:
    """Fully wired worker and the pieces tests and tools may need."""

    worker: Worker
    bus: CommandBus
    consumer: MessageConsumer
    transport: OutboundTransport
    reporter: StatusReporter


def build_transport(config: MainConfig) -> OutboundTransport:
    """Select the outbound transport; dry-run always logs instead of sending."""
    if config.application.dry_run or config.transport.kind == "logging":
        if config.transport.kind == "smtp":
            logger.info("Dry-run: SMTP transport replaced by logging transport")
        return LoggingTransport(log_body=config.transport.log_body)

    smtp = config.smtp
    return SmtpTransport(
        host=smtp.host,
        port=smtp.port,
        security=smtp.security,
        username=smtp.username,
        password=smtp.password,
        from_address=smtp.from_address,
        from_name=smtp.from_name,
        timeout_seconds=smtp.timeout_seconds,
    )


def build_status_reporter(config: MainConfig, stack: AsyncExitStack) -> StatusReporter:
    """Select the status channel and register its cleanup on the stack."""
    status = config.status
    if status.kind == "redis":
        redis_url = config.redis.url
        redis_reporter = RedisStatusReporter(
            lambda: Redis.from_url(redis_url),
            stream=config.redis.status_stream,
        )
        stack.push_async_callback(redis_reporter.aclose)
        return redis_reporter

    if status.kind == "webhook" and status.webhook_url:
        webhook_reporter = WebhookStatusReporter(
            status.webhook_url,
            timeout_seconds=status.webhook_timeout_seconds,
            max_retries=status.webhook_max_retries,
        )
        stack.push_async_callback(webhook_reporter.aclose)
        return webhook_reporter

    return LoggingStatusReporter()


def build_bus(
    config: MainConfig,
    transport: OutboundTransport,
    reporter: StatusReporter,
    *,
    on_event: EventSink | None = None,
) -> CommandBus:
    """Register ProcessEmailCommand with its handler and validator."""
    idempotency = config.idempotency
    sent_registry = (
        SentRegistry(idempotency.window_seconds, max_entries=idempotency.max_entries)
        if idempotency.window_seconds > 0
        else None
    )
    handler = ProcessEmailHandler(transport, reporter, sent_registry=sent_registry, on_event=on_event)

    bus = CommandBus()
    bus.register(ProcessEmailCommand, handler, [ProcessEmailValidator()])
    return bus


def _build_consumer(config: MainConfig, dispatcher: DeliveryDispatcher, stack: AsyncExitStack) -> MessageConsumer:
    consumer_config = config.consumer
    if consumer_config.kind == "memory":
        return InMemoryConsumer(
            dispatcher,
            workers=consumer_config.workers,
            max_deliveries=consumer_config.max_deliveries,
        )

    redis_config = config.redis
    client = Redis.from_url(redis_config.url)
    stack.push_async_callback(client.aclose)
    return RedisStreamConsumer(
        dispatcher,
        client,
        stream=redis_config.stream,
        group=redis_config.group,
        consumer_name=redis_config.consumer_name,
        dead_letter_stream=redis_config.dead_letter_stream,
        prefetch=consumer_config.prefetch,
        block_ms=redis_config.block_ms,
        max_deliveries=consumer_config.max_deliveries,
        claim_idle_ms=redis_config.claim_idle_ms,
        shutdown_timeout_seconds=consumer_config.shutdown_timeout_seconds,
    )


@asynccontextmanager
async def open_application(
    config: MainConfig,
    *,
    transport: OutboundTransport | None = None,
    reporter: StatusReporter | None = None,
    on_event: EventSink | None = None,
) -> AsyncIterator[Application]:
    """Build the application and close every adapter on exit.

    Args:
        config: Validated configuration
        transport: Optional transport override (tests, tools)
        reporter: Optional status reporter override
        on_event: Optional domain event callback

    Yields:
        Wired Application
    """
    async with AsyncExitStack() as stack:
        resolved_transport = transport or build_transport(config)
        resolved_reporter = reporter or build_status_reporter(config, stack)
        bus = build_bus(config, resolved_transport, resolved_reporter, on_event=on_event)
        consumer = _build_consumer(config, DeliveryDispatcher(bus), stack)

        logger.info(
            "Application wired: consumer=%s transport=%s status=%s",
            config.consumer.kind,
            type(resolved_transport).__name__,
            type(resolved_reporter).__name__,
        )
        yield Application(
            worker=Worker(consumer),
            bus=bus,
            consumer=consumer,
            transport=resolved_transport,
            reporter=resolved_reporter,
        )
