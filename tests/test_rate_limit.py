import pytest

from inventory_ai.errors import RateLimitExceeded
from inventory_ai.rate_limit import RateLimiter


def test_eleventh_request_in_window_is_rejected(clock):
    limiter = RateLimiter(points=10, window_seconds=60, clock=clock)
    for expected_left in range(9, -1, -1):
        assert limiter.consume("1.2.3.4").remaining_tokens == expected_left

    clock.advance(15)
    with pytest.raises(RateLimitExceeded) as exc:
        limiter.consume("1.2.3.4")
    assert 0 < exc.value.retry_after <= 60
    assert exc.value.retry_after == 45
    assert exc.value.to_dict() == {"error": "Too many requests", "retryAfter": 45}


def test_fresh_window_after_reset_time(clock):
    limiter = RateLimiter(points=2, window_seconds=60, clock=clock)
    limiter.consume("c")
    limiter.consume("c")
    with pytest.raises(RateLimitExceeded):
        limiter.consume("c")

    clock.advance(60)
    bucket = limiter.consume("c")
    assert bucket.remaining_tokens == 1
    assert bucket.window_reset_at == clock() + 60


def test_retry_after_is_at_least_one_second(clock):
    limiter = RateLimiter(points=1, window_seconds=60, clock=clock)
    limiter.consume("c")
    clock.advance(59.9)
    with pytest.raises(RateLimitExceeded) as exc:
        limiter.consume("c")
    assert exc.value.retry_after == 1


def test_clients_are_independent(clock):
    limiter = RateLimiter(points=1, window_seconds=60, clock=clock)
    limiter.consume("a")
    assert limiter.consume("b").remaining_tokens == 0
    assert limiter.peek("a").remaining_tokens == 0
    assert limiter.peek("nobody") is None


def test_reset_clears_buckets(clock):
    limiter = RateLimiter(points=1, window_seconds=60, clock=clock)
    limiter.consume("a")
    limiter.reset()
    assert limiter.consume("a").remaining_tokens == 0


def test_rejects_nonsense_configuration():
    with pytest.raises(ValueError):
        RateLimiter(points=0)


def test_default_limiter_twelfth_request_after_window_succeeds(clock):
    limiter = RateLimiter(clock=clock)
    for _ in range(10):
        limiter.consume("1.2.3.4")

    with pytest.raises(RateLimitExceeded) as exc:
        limiter.consume("1.2.3.4")
    assert exc.value.retry_after == 60

    clock.advance(60)
    assert limiter.consume("1.2.3.4").remaining_tokens == 9


def test_expired_buckets_are_dropped(clock):
    limiter = RateLimiter(points=5, window_seconds=60, clock=clock)
    for ip in ("10.0.0.1", "10.0.0.2", "10.0.0.3"):
        limiter.consume(ip)
    assert len(limiter) == 3

    clock.advance(30)
    limiter.consume("10.0.0.4")
    assert len(limiter) == 4

    clock.advance(31)
    limiter.consume("10.0.0.5")
    # the first three windows have closed; 10.0.0.4 is still open
    assert len(limiter) == 2
    assert limiter.peek("10.0.0.4").remaining_tokens == 4
