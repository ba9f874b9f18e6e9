"""Retry/backoff policy for Trello API calls.

Transient failures (HTTP 429, HTTP 5xx, transport errors such as a reset
connection) are retried with exponential backoff. A ``Retry-After`` hint
from the server wins over the computed delay; every delay is capped.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

import httpx

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff.

    Attributes:
        max_attempts: Total attempts including the first one
        base_delay: Delay in seconds before the first retry
        max_delay: Upper bound for any single delay, including server hints
    """

    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")

    def delay_for(self, retry: int, retry_after: float | None = None) -> float:
        """Seconds to wait before retry number ``retry`` (1-based).

        Args:
            retry: Which retry is about to happen (1 for the first retry)
            retry_after: Server-provided hint in seconds, if any

        Returns:
            Delay in seconds, never above max_delay
        """
        if retry_after is not None:
            return min(self.max_delay, max(0.0, retry_after))
        return min(self.max_delay, self.base_delay * 2 ** (retry - 1))


def is_retryable_status(status_code: int) -> bool:
    """True if a response status is worth retrying."""
    return status_code in RETRYABLE_STATUS or 500 <= status_code < 600


def parse_retry_after(response: httpx.Response, now: datetime | None = None) -> float | None:
    """Parse a Retry-After header as delta-seconds or an HTTP date.

    Returns None when the header is absent or unparseable.
    """
    value = response.headers.get("Retry-After")
    if not value:
        return None

    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    current = now or datetime.now(tz=UTC)
    return max(0.0, (when - current).total_seconds())
