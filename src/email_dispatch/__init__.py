"""Email Dispatch - Queue-driven email notification worker.

This package consumes email send requests from a message queue, validates
them, drives each notification through its lifecycle, hands it to an
outbound transport, and publishes status updates for every transition.
"""

from email_dispatch.__main__ import main

__all__ = ["main"]
