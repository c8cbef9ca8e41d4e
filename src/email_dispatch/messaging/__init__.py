"""Queue adapters: payload codecs, consumers, and status reporters."""

from __future__ import annotations

from .consumer import DeliveryDispatcher
from .memory import InMemoryConsumer, QueuedDelivery
from .payloads import PayloadDecodeError, SendEmailMessage, StatusUpdate
from .redis_streams import RedisStatusReporter, RedisStreamConsumer, publish_send_request
from .reporters import LoggingStatusReporter, StatusReportError, WebhookStatusReporter

__all__ = [
    "DeliveryDispatcher",
    "InMemoryConsumer",
    "LoggingStatusReporter",
    "PayloadDecodeError",
    "QueuedDelivery",
    "RedisStatusReporter",
    "RedisStreamConsumer",
    "SendEmailMessage",
    "StatusReportError",
    "StatusUpdate",
    "WebhookStatusReporter",
    "publish_send_request",
]
