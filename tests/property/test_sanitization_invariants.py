"""Property-based tests for sanitization invariants using Hypothesis.

These tests verify properties that must hold for every input: broker and
mail server passwords, webhook tokens, and bearer tokens never survive
sanitization, and non-secret data passes through with its shape intact.
"""

from __future__ import annotations

from hypothesis import given, strategies as st

from email_dispatch.utils.sanitization import (
    REDACTED,
    sanitize_args,
    sanitize_exception,
    sanitize_mapping,
    sanitize_url,
    sanitize_value,
)

_SECRET_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"


def _secrets() -> st.SearchStrategy[str]:
    return st.text(alphabet=_SECRET_ALPHABET, min_size=12, max_size=40)


@st.composite
def redis_url_with_password(draw: st.DrawFn) -> tuple[str, str]:
    """Generate redis:// or rediss:// URLs carrying a password."""
    password = draw(_secrets())
    scheme = draw(st.sampled_from(["redis", "rediss"]))
    user = draw(st.sampled_from(["", "default", "worker"]))
    host = draw(st.sampled_from(["localhost", "cache", "redis.internal"]))
    port = draw(st.integers(min_value=1, max_value=65535))
    db = draw(st.integers(min_value=0, max_value=15))
    return f"{scheme}://{user}:{password}@{host}:{port}/{db}", password


@st.composite
def webhook_url_with_token(draw: st.DrawFn) -> tuple[str, str]:
    """Generate status webhook URLs with a token in the query string."""
    token = draw(_secrets())
    param = draw(st.sampled_from(["token", "api_key", "api-key", "secret", "auth"]))
    path = draw(st.sampled_from(["hook", "v1/status", "notify"]))
    return f"https://status.example.com/{path}?{param}={token}", token


class TestSanitizeUrlInvariants:
    """Property-based tests for URL sanitization invariants."""

    @given(redis_url_with_password())
    def test_redis_password_always_redacted(self, case: tuple[str, str]) -> None:
        """Property: Redis passwords are always redacted."""
        url, password = case
        sanitized = sanitize_url(url)
        assert password not in sanitized
        assert REDACTED in sanitized

    @given(webhook_url_with_token())
    def test_webhook_token_always_redacted(self, case: tuple[str, str]) -> None:
        """Property: webhook query tokens are always redacted."""
        url, token = case
        sanitized = sanitize_url(url)
        assert token not in sanitized
        assert sanitized.startswith("https://status.example.com/")

    @given(_secrets())
    def test_bearer_token_always_redacted(self, token: str) -> None:
        """Property: bearer tokens embedded in free text are redacted."""
        sanitized = sanitize_url(f"request failed (Authorization: Bearer {token})")
        assert token not in sanitized

    @given(st.text())
    def test_sanitize_url_returns_string(self, url: str) -> None:
        """Property: sanitize_url never raises and always returns a string."""
        assert isinstance(sanitize_url(url), str)

    @given(redis_url_with_password())
    def test_sanitize_url_idempotent(self, case: tuple[str, str]) -> None:
        """Property: sanitizing twice gives the same result as once."""
        url, _ = case
        first = sanitize_url(url)
        assert sanitize_url(first) == first

    @given(st.text(alphabet=st.characters(whitelist_categories=("Lu", "Ll", "Nd")), max_size=200))
    def test_safe_text_unchanged(self, text: str) -> None:
        """Property: plain alphanumeric text is never altered."""
        assert sanitize_url(text) == text


class TestSanitizeValueInvariants:
    """Property-based tests for value sanitization invariants."""

    @given(st.one_of(st.integers(), st.floats(allow_nan=False), st.booleans(), st.none()))
    def test_primitives_pass_through(self, value: int | float | bool | None) -> None:
        """Property: non-string primitives pass through unchanged."""
        assert sanitize_value(value) == value

    @given(st.lists(st.integers()))
    def test_list_length_preserved(self, values: list[int]) -> None:
        """Property: list length is preserved after sanitization."""
        sanitized = sanitize_value(values)
        assert isinstance(sanitized, list)
        assert len(sanitized) == len(values)

    @given(st.dictionaries(st.text(min_size=1), st.integers()))
    def test_dict_keys_preserved(self, data: dict[str, int]) -> None:
        """Property: dictionary keys are preserved after sanitization."""
        sanitized = sanitize_value(data)
        assert isinstance(sanitized, dict)
        assert set(sanitized.keys()) == set(data.keys())

    @given(_secrets(), st.sampled_from(["password", "smtp_password", "webhook_url", "api_key", "auth_token"]))
    def test_sensitive_fields_never_leak(self, secret: str, field_name: str) -> None:
        """Property: values under sensitive field names are replaced wholesale."""
        sanitized = sanitize_mapping({field_name: secret, "recipient": "user@example.com"})
        assert sanitized[field_name] == REDACTED
        assert sanitized["recipient"] == "user@example.com"


class TestHelperInvariants:
    """Property-based tests for exception and args helpers."""

    @given(redis_url_with_password())
    def test_exception_messages_sanitized(self, case: tuple[str, str]) -> None:
        """Property: exception renderings never contain the password."""
        url, password = case
        rendered = sanitize_exception(ConnectionError(f"Error connecting to {url}"))
        assert password not in rendered
        assert rendered.startswith("ConnectionError: ")

    @given(st.lists(st.one_of(st.integers(), st.text(alphabet="abc ", max_size=10)), max_size=10))
    def test_args_length_preserved(self, args: list[int | str]) -> None:
        """Property: sanitize_args preserves the argument count."""
        assert len(sanitize_args(tuple(args))) == len(args)
