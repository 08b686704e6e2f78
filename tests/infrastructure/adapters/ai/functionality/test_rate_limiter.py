# tests/infrastructure/adapters/ai/functionality/test_rate_limiter.py

import pytest

from codelens.core.exceptions import RateLimitExceeded
from codelens.infrastructure.adapters.ai.functionality import RateLimiter


class TestRateLimiter:

    @pytest.fixture
    def limiter(self, clock):
        return RateLimiter(name="test", tokens_per_interval=3, interval=60.0, clock=clock)

    def test_consume_until_empty(self, limiter):
        for _ in range(3):
            limiter.consume()

        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.consume()

        assert exc_info.value.retry_after == pytest.approx(60.0)
        assert limiter.total_consumed == 3
        assert limiter.total_rejected == 1

    def test_replenished_after_interval(self, limiter, clock):
        for _ in range(3):
            limiter.consume()

        clock.advance(60.0)
        limiter.consume()

        assert limiter.available_tokens() == 2

    def test_no_partial_refill(self, limiter, clock):
        for _ in range(3):
            limiter.consume()

        clock.advance(30.0)
        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.consume()

        assert exc_info.value.retry_after == pytest.approx(30.0)

    def test_refill_aligned_to_interval_boundaries(self, limiter, clock):
        """Idle for 2.5 intervals: next refill comes at the 3rd boundary."""
        for _ in range(3):
            limiter.consume()

        clock.advance(150.0)
        for _ in range(3):
            limiter.consume()

        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.consume()
        assert exc_info.value.retry_after == pytest.approx(30.0)

    def test_bucket_never_exceeds_capacity(self, limiter, clock):
        clock.advance(600.0)
        assert limiter.available_tokens() == 3

    def test_multi_token_consume(self, limiter):
        limiter.consume(2)
        with pytest.raises(RateLimitExceeded):
            limiter.consume(2)
        assert limiter.available_tokens() == 1

    def test_disabled_never_rejects(self, clock):
        limiter = RateLimiter(name="off", tokens_per_interval=1, enabled=False, clock=clock)
        for _ in range(10):
            limiter.consume()

    def test_reset_fills_bucket(self, limiter):
        for _ in range(3):
            limiter.consume()

        limiter.reset()
        assert limiter.available_tokens() == 3

    @pytest.mark.parametrize("kwargs", [
        {'tokens_per_interval': 0},
        {'interval': 0},
    ])
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            RateLimiter(name="bad", **kwargs)

    def test_to_dict(self, limiter):
        limiter.consume()
        stats = limiter.to_dict()

        assert stats['available_tokens'] == 2
        assert stats['tokens_per_interval'] == 3
        assert stats['total_consumed'] == 1
