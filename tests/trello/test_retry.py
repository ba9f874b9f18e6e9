"""Tests for the retry policy."""

from datetime import UTC, datetime

import httpx
import pytest

from src.trello.retry import RetryPolicy, is_retryable_status, parse_retry_after


class TestRetryPolicy:
    """Tests for RetryPolicy.delay_for()."""

    def test_doubles_from_base_delay(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=30.0)
        assert [policy.delay_for(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 8.0, 16.0]

    def test_delay_is_capped(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=30.0)
        assert policy.delay_for(10) == 30.0

    def test_retry_after_wins(self):
        policy = RetryPolicy()
        assert policy.delay_for(1, retry_after=7.0) == 7.0

    def test_retry_after_is_capped(self):
        policy = RetryPolicy(max_delay=30.0)
        assert policy.delay_for(1, retry_after=3600.0) == 30.0

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_rejects_negative_delay(self):
        with pytest.raises(ValueError):
            RetryPolicy(base_delay=-1.0)


class TestRetryableStatus:
    """Tests for is_retryable_status()."""

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504, 599])
    def test_transient(self, status):
        assert is_retryable_status(status)

    @pytest.mark.parametrize("status", [400, 401, 404, 409])
    def test_permanent(self, status):
        assert not is_retryable_status(status)


class TestParseRetryAfter:
    """Tests for parse_retry_after()."""

    def test_absent(self):
        assert parse_retry_after(httpx.Response(429)) is None

    def test_seconds(self):
        response = httpx.Response(429, headers={"Retry-After": "3"})
        assert parse_retry_after(response) == 3.0

    def test_http_date(self):
        now = datetime(2026, 10, 18, 12, 0, 0, tzinfo=UTC)
        response = httpx.Response(429, headers={"Retry-After": "Sun, 18 Oct 2026 12:00:10 GMT"})
        assert parse_retry_after(response, now=now) == 10.0

    def test_date_in_the_past_means_no_wait(self):
        now = datetime(2026, 10, 18, 12, 0, 0, tzinfo=UTC)
        response = httpx.Response(429, headers={"Retry-After": "Sun, 18 Oct 2026 11:00:00 GMT"})
        assert parse_retry_after(response, now=now) == 0.0

    def test_garbage_is_ignored(self):
        response = httpx.Response(429, headers={"Retry-After": "soon"})
        assert parse_retry_after(response) is None
