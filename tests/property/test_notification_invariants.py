"""Property-based tests for the notification lifecycle and value types.

Random sequences of lifecycle operations are replayed against the entity and
against a small reference model of the state table; both must agree after
every step.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import uuid4

import pytest
from hypothesis import given, strategies as st

from email_dispatch.domain.notification import (
    DEFAULT_MAX_RETRIES,
    InvalidStateTransition,
    Notification,
    NotificationStatus,
    RetryExhausted,
)
from email_dispatch.domain.values import DomainValidationError, EmailAddress, Priority

OPERATIONS = ("processing", "sent", "delivered", "failed", "retry")

_ALLOWED_FROM: dict[str, frozenset[NotificationStatus]] = {
    "processing": frozenset({NotificationStatus.PENDING, NotificationStatus.FAILED}),
    "sent": frozenset({NotificationStatus.PROCESSING}),
    "delivered": frozenset({NotificationStatus.SENT}),
    "failed": frozenset(NotificationStatus),
    "retry": frozenset({NotificationStatus.FAILED}),
}

_TARGET: dict[str, NotificationStatus] = {
    "processing": NotificationStatus.PROCESSING,
    "sent": NotificationStatus.SENT,
    "delivered": NotificationStatus.DELIVERED,
    "failed": NotificationStatus.FAILED,
    "retry": NotificationStatus.PENDING,
}


def _apply(notification: Notification, operation: str) -> None:
    match operation:
        case "processing":
            _ = notification.mark_processing()
        case "sent":
            _ = notification.mark_sent("msg-1")
        case "delivered":
            _ = notification.mark_delivered()
        case "failed":
            _ = notification.mark_failed("boom")
        case "retry":
            notification.prepare_for_retry()
        case _:
            pytest.fail(f"unknown operation {operation}")


@st.composite
def valid_addresses(draw: st.DrawFn) -> str:
    """Generate addresses with random case and surrounding whitespace."""
    address = draw(st.emails())
    padding = draw(st.sampled_from(["", " ", "\t", "  "]))
    return f"{padding}{address.upper() if draw(st.booleans()) else address}{padding}"


def _new_notification() -> Notification:
    notification, _ = Notification.create(uuid4(), "user@example.com", "body")
    return notification


class TestLifecycleInvariants:
    """Property-based tests for the state machine."""

    @given(st.lists(st.sampled_from(OPERATIONS), max_size=30))
    def test_entity_matches_reference_model(self, operations: list[str]) -> None:
        """Property: allowed transitions land on the table's target; others change nothing."""
        notification = _new_notification()
        expected_status = NotificationStatus.PENDING
        expected_failures = 0

        for operation in operations:
            before = replace(notification)
            allowed = expected_status in _ALLOWED_FROM[operation]
            exhausted = operation == "retry" and expected_failures >= DEFAULT_MAX_RETRIES

            if not allowed:
                with pytest.raises(InvalidStateTransition):
                    _apply(notification, operation)
                assert notification == before
                continue

            if exhausted:
                with pytest.raises(RetryExhausted):
                    _apply(notification, operation)
                assert notification == before
                continue

            _apply(notification, operation)
            expected_status = _TARGET[operation]
            if operation == "failed":
                expected_failures += 1

            assert notification.status is expected_status
            assert notification.retry_count == expected_failures

    @given(st.lists(st.sampled_from(OPERATIONS), max_size=30))
    def test_error_message_only_while_failed(self, operations: list[str]) -> None:
        """Property: FAILED always carries the reason; PENDING and SENT never do."""
        notification = _new_notification()

        for operation in operations:
            try:
                _apply(notification, operation)
            except (InvalidStateTransition, RetryExhausted):
                continue

            if notification.status is NotificationStatus.FAILED:
                assert notification.error_message == "boom"
            elif notification.status in (NotificationStatus.PENDING, NotificationStatus.SENT):
                assert notification.error_message is None

    @given(st.lists(st.sampled_from(OPERATIONS), max_size=30))
    def test_retry_count_never_decreases(self, operations: list[str]) -> None:
        """Property: retry_count is monotonic over any operation sequence."""
        notification = _new_notification()
        previous = 0

        for operation in operations:
            try:
                _apply(notification, operation)
            except (InvalidStateTransition, RetryExhausted):
                pass
            assert notification.retry_count >= previous
            previous = notification.retry_count


class TestValueInvariants:
    """Property-based tests for value type normalization."""

    @given(valid_addresses())
    def test_address_normalized(self, raw: str) -> None:
        """Property: created addresses are trimmed and lower-cased."""
        address = EmailAddress.create(raw)
        assert address.value == raw.strip().lower()

    @given(valid_addresses())
    def test_address_normalization_idempotent(self, raw: str) -> None:
        """Property: re-creating from a normalized address is a no-op."""
        address = EmailAddress.create(raw)
        assert EmailAddress.create(address.value) == address

    @given(st.text(alphabet=" \t\n", max_size=5))
    def test_blank_address_rejected(self, raw: str) -> None:
        """Property: whitespace-only addresses never validate."""
        assert EmailAddress.try_create(raw) is None

    @given(st.integers())
    def test_priority_parse_range(self, value: int) -> None:
        """Property: only 0..3 parse as a Priority."""
        if 0 <= value <= 3:
            assert int(Priority.parse(value)) == value
        else:
            with pytest.raises(DomainValidationError):
                _ = Priority.parse(value)
