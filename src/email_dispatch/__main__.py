"""Application entry point and CLI for the email-dispatch worker.

Parses command-line arguments, loads configuration, sets up logging, and
runs the worker until SIGINT or SIGTERM requests a graceful shutdown.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import NoReturn

from email_dispatch.app.factory import open_application
from email_dispatch.core.config import (
    ConfigurationError,
    EnvironmentVariableError,
    load_main_config,
)
from email_dispatch.utils.logging import configure_logging

__all__ = ["main"]

DEFAULT_CONFIG_PATH: Path = Path("config/email-dispatch.yaml")

# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_RUNTIME_ERROR = 1


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    CLI Arguments:
        --config, -c: Path to the YAML configuration file
        --dry-run: Log emails instead of sending them
        --log-level: Override log level from config
        --no-syslog: Disable syslog integration
    """
    parser = argparse.ArgumentParser(
        prog="email-dispatch",
        description="Consume email send requests from a queue and dispatch them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  email-dispatch
  email-dispatch --config /etc/email-dispatch/config.yaml
  email-dispatch --dry-run --log-level DEBUG
        """,
    )

    _ = parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {DEFAULT_CONFIG_PATH})",
        metavar="PATH",
    )
    _ = parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Dry-run mode: log emails without sending (overrides config)",
    )
    _ = parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override log level from configuration",
        metavar="LEVEL",
    )
    _ = parser.add_argument(
        "--no-syslog",
        action="store_true",
        help="Disable syslog integration",
    )

    return parser.parse_args(argv)


async def async_main(
    *,
    config_path: Path,
    dry_run: bool = False,
    log_level: str | None = None,
    enable_syslog: bool = True,
) -> None:
    """Load configuration and run the worker until a shutdown signal.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    config = load_main_config(config_path)

    if dry_run:
        config.application.dry_run = True
    if log_level is not None:
        config.application.log_level = log_level

    configure_logging(
        log_level=config.application.log_level,
        enable_syslog=enable_syslog and config.application.syslog_enabled,
        syslog_address=config.application.syslog_address,
        enable_console=True,
    )

    logger = logging.getLogger(__name__)
    logger.info("email-dispatch starting", extra={"config_path": str(config_path)})
    if config.application.dry_run:
        logger.info("Dry-run mode enabled: emails are logged, not sent")

    async with open_application(config) as app:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, app.worker.request_shutdown)

        try:
            await app.worker.run()
        except Exception as exc:
            logger.exception("Worker failed during execution", extra={"error": str(exc)})
            raise
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                _ = loop.remove_signal_handler(sig)

    logger.info("email-dispatch shutdown complete")


def main() -> NoReturn:
    """Console entry point.

    Exit Codes:
        0: Clean shutdown
        1: Configuration error or runtime error
    """
    args = parse_arguments()

    config_path_arg: Path = args.config  # pyright: ignore[reportAny]  # argparse boundary
    dry_run_arg: bool = args.dry_run  # pyright: ignore[reportAny]  # argparse boundary
    log_level_arg: str | None = args.log_level  # pyright: ignore[reportAny]  # argparse boundary
    no_syslog_arg: bool = args.no_syslog  # pyright: ignore[reportAny]  # argparse boundary

    try:
        asyncio.run(
            async_main(
                config_path=config_path_arg,
                dry_run=dry_run_arg,
                log_level=log_level_arg,
                enable_syslog=not no_syslog_arg,
            )
        )
    except ConfigurationError as exc:
        print(f"Configuration error:\n{exc}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)
    except EnvironmentVariableError as exc:
        print(f"Environment variable error:\n{exc}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)
    except KeyboardInterrupt:
        print("\nShutdown complete", file=sys.stderr)
        sys.exit(EXIT_SUCCESS)
    except Exception as exc:
        print(f"Unexpected error: {exc}", file=sys.stderr)
        logging.exception("Unexpected error during worker execution")
        sys.exit(EXIT_RUNTIME_ERROR)

    sys.exit(EXIT_SUCCESS)


if __name__ == "__main__":
    main()
