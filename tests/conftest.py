"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Generator

import pytest

from email_dispatch.utils.logging import clear_correlation_id
from tests.fixtures.doubles import EventRecorder, RecordingReporter, StubTransport


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def transport() -> StubTransport:
    return StubTransport()


@pytest.fixture
def event_recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture(autouse=True)
def reset_correlation_id() -> Generator[None]:
    """Keep correlation IDs from leaking between tests."""
    yield
    clear_correlation_id()
