"""Rate-limit aware retry policy for GitHub API calls."""

import logging
import time
from typing import Callable, Mapping, Optional, TypeVar

from github import RateLimitExceededException

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRIES = 3
DEFAULT_RETRY_AFTER_SECONDS = 60.0


def _header(headers: Optional[Mapping[str, str]], name: str) -> Optional[str]:
    if not headers:
        return None
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def retry_after_seconds(error: RateLimitExceededException, now: Optional[float] = None) -> float:
    """Return how long GitHub asked us to wait before retrying.

    Prefers ``retry-after`` (secondary limits), then the primary limit's
    ``x-ratelimit-reset`` epoch, then a fixed fallback.
    """
    retry_after = _header(error.headers, "retry-after")
    if retry_after is not None:
        try:
            return max(0.0, float(retry_after))
        except ValueError:
            logger.warning(f"Ignoring unparseable retry-after header: {retry_after!r}")

    reset = _header(error.headers, "x-ratelimit-reset")
    if reset is not None:
        try:
            now = time.time() if now is None else now
            return max(0.0, float(reset) - now)
        except ValueError:
            logger.warning(f"Ignoring unparseable x-ratelimit-reset header: {reset!r}")

    return DEFAULT_RETRY_AFTER_SECONDS


class RateLimitPolicy:
    """Retry a call when GitHub reports the rate limit was exceeded.

    ``retries`` is the budget of additional attempts per logical call. Each
    retry sleeps for exactly the server-specified duration. Any other error,
    or a rate-limit error once the budget is spent, propagates unchanged.
    """

    def __init__(self, retries: int = DEFAULT_RETRIES, sleep: Callable[[float], None] = time.sleep):
        self.retries = retries
        self._sleep = sleep

    def call(self, operation: Callable[[], T], description: str = "GitHub call",
             retries: Optional[int] = None) -> T:
        remaining = self.retries if retries is None else retries
        while True:
            try:
                return operation()
            except RateLimitExceededException as e:
                if remaining <= 0:
                    raise
                wait = retry_after_seconds(e)
                remaining -= 1
                logger.warning(
                    f"Rate limit exceeded during {description} - waiting for {wait} seconds. "
                    f"{remaining} retries remaining."
                )
                self._sleep(wait)
