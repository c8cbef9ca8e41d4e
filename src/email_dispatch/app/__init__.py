"""Application wiring for the email-dispatch worker."""

from __future__ import annotations

from email_dispatch.app.factory import Application, open_application

__all__ = [
    "Application",
    "open_application",
]
