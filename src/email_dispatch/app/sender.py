"""Publish a single send request onto the inbound Redis stream.

Operator tool for smoke-testing a running worker:

    email-dispatch-send --to ops@example.com --subject "Disk alert" --body "Array degraded"
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import NoReturn
from uuid import uuid4

from redis.asyncio import Redis
from redis.exceptions import RedisError

from email_dispatch.core.config import ConfigurationError, MainConfig, load_main_config
from email_dispatch.domain.values import Priority
from email_dispatch.messaging.payloads import SendEmailMessage
from email_dispatch.messaging.redis_streams import publish_send_request
from email_dispatch.utils.sanitization import sanitize_exception, sanitize_url

__all__ = ["build_message_from_args", "main", "parse_arguments"]

EXIT_SUCCESS = 0
EXIT_USAGE_ERROR = 2
EXIT_PUBLISH_ERROR = 1


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="email-dispatch-send",
        description="Publish one email send request for the email-dispatch worker",
    )
    _ = parser.add_argument("--to", required=True, help="Recipient email address", metavar="ADDRESS")
    _ = parser.add_argument("--name", help="Recipient display name")
    _ = parser.add_argument("--subject", help="Subject line")
    _ = parser.add_argument("--body", required=True, help="Email body")
    _ = parser.add_argument("--html", action="store_true", help="Treat the body as HTML")
    _ = parser.add_argument(
        "--priority",
        type=int,
        choices=[int(p) for p in Priority],
        default=int(Priority.NORMAL),
        help="Priority, 0 (Low) to 3 (Critical)",
    )
    _ = parser.add_argument(
        "--config",
        "-c",
        type=Path,
        help="Worker configuration file to read Redis settings from",
        metavar="PATH",
    )
    _ = parser.add_argument("--redis-url", help="Redis URL (overrides config)")
    _ = parser.add_argument("--stream", help="Inbound stream name (overrides config)")
    return parser.parse_args(argv)


def build_message_from_args(args: argparse.Namespace) -> SendEmailMessage:
    """Turn parsed arguments into a send request with a fresh notification id."""
    return SendEmailMessage(
        notification_id=uuid4(),
        recipient_address=args.to,  # pyright: ignore[reportAny]  # argparse boundary
        recipient_name=args.name,  # pyright: ignore[reportAny]  # argparse boundary
        subject=args.subject,  # pyright: ignore[reportAny]  # argparse boundary
        body=args.body,  # pyright: ignore[reportAny]  # argparse boundary
        is_html=args.html,  # pyright: ignore[reportAny]  # argparse boundary
        priority=args.priority,  # pyright: ignore[reportAny]  # argparse boundary
    )


async def publish(redis_url: str, stream: str, message: SendEmailMessage) -> str:
    client = Redis.from_url(redis_url)
    try:
        return await publish_send_request(client, stream, message)
    finally:
        await client.aclose()


def main() -> NoReturn:
    args = parse_arguments()

    config_path: Path | None = args.config  # pyright: ignore[reportAny]  # argparse boundary
    try:
        config = load_main_config(config_path) if config_path is not None else MainConfig()
    except ConfigurationError as exc:
        print(f"Configuration error:\n{exc}", file=sys.stderr)
        sys.exit(EXIT_USAGE_ERROR)

    redis_url: str = args.redis_url or config.redis.url  # pyright: ignore[reportAny]  # argparse boundary
    stream: str = args.stream or config.redis.stream  # pyright: ignore[reportAny]  # argparse boundary
    message = build_message_from_args(args)

    try:
        entry_id = asyncio.run(publish(redis_url, stream, message))
    except (RedisError, OSError) as exc:
        print(
            f"Failed to publish to {sanitize_url(redis_url)}: {sanitize_exception(exc)}",
            file=sys.stderr,
        )
        sys.exit(EXIT_PUBLISH_ERROR)

    print(f"Published notification {message.notification_id} as {stream} entry {entry_id}")
    sys.exit(EXIT_SUCCESS)


if __name__ == "__main__":
    main()
