# codelens/infrastructure/adapters/ai/functionality/rate_limiter.py

"""Token Bucket Rate Limiter"""

import threading
import time
from typing import Callable
import structlog

from codelens.core.exceptions import RateLimitExceeded

logger = structlog.get_logger()


class RateLimiter:
    """
    Token bucket: capacity tokens_per_interval, fully replenished every
    interval seconds. Exhaustion is a hard rejection, never a wait.
    """

    def __init__(
            self,
            name: str,
            tokens_per_interval: int = 100,
            interval: float = 60.0,
            enabled: bool = True,
            clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            name: Limiter name (usually the endpoint it guards)
            tokens_per_interval: Bucket capacity
            interval: Refill period in seconds
            enabled: Enable/disable limiting
            clock: Monotonic time source in seconds
        """
        if tokens_per_interval < 1:
            raise ValueError(f"tokens_per_interval must be >= 1, got {tokens_per_interval}")
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")

        self.name = name
        self.tokens_per_interval = tokens_per_interval
        self.interval = interval
        self.enabled = enabled

        self._clock = clock
        self._lock = threading.Lock()
        self._tokens = tokens_per_interval
        self._last_refill = clock()
        self.total_consumed = 0
        self.total_rejected = 0

        logger.debug(
            "rate_limiter_initialized",
            name=name,
            tokens_per_interval=tokens_per_interval,
            interval=interval
        )

    def consume(self, tokens: int = 1) -> None:
        """
        Take tokens from the bucket.

        Raises:
            RateLimitExceeded: If the bucket holds fewer than tokens
        """
        if not self.enabled:
            return

        with self._lock:
            self._refill()
            if self._tokens < tokens:
                self.total_rejected += 1
                retry_after = self._seconds_until_refill()
                logger.info(
                    "rate_limit_exceeded",
                    name=self.name,
                    available=self._tokens,
                    requested=tokens,
                    retry_after=round(retry_after, 3)
                )
                raise RateLimitExceeded(
                    f"Rate limit exceeded for {self.name}, retry in {retry_after:.1f}s",
                    retry_after=retry_after
                )
            self._tokens -= tokens
            self.total_consumed += tokens

    def _refill(self) -> None:
        """Refill by whole elapsed intervals. Caller holds the lock."""
        now = self._clock()
        elapsed = now - self._last_refill
        if elapsed >= self.interval:
            intervals = int(elapsed // self.interval)
            self._last_refill += intervals * self.interval
            self._tokens = self.tokens_per_interval

    def _seconds_until_refill(self) -> float:
        return max(0.0, self._last_refill + self.interval - self._clock())

    def available_tokens(self) -> int:
        """Tokens currently in the bucket"""
        with self._lock:
            self._refill()
            return self._tokens

    def reset(self) -> None:
        """Fill the bucket and restart the interval"""
        with self._lock:
            self._tokens = self.tokens_per_interval
            self._last_refill = self._clock()
        logger.debug("rate_limiter_reset", name=self.name)

    def to_dict(self) -> dict:
        """Export as dict"""
        return {
            'name': self.name,
            'enabled': self.enabled,
            'available_tokens': self.available_tokens(),
            'tokens_per_interval': self.tokens_per_interval,
            'interval': self.interval,
            'total_consumed': self.total_consumed,
            'total_rejected': self.total_rejected
        }
