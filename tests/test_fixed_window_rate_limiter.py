"""Unit tests for the fixed-window rate limiter."""

import logging
from datetime import timedelta
from unittest.mock import Mock

import pytest

from quotaguard.adapters.rate_limit.fixed_window import RedisFixedWindowRateLimiter
from quotaguard.adapters.rate_limit.in_memory import InMemoryCounterStore
from quotaguard.core.errors import RateLimiterBackendError, ValidationAppError
from quotaguard.domain.decision import REMAINING_TIME_UNKNOWN
from quotaguard.domain.policy import RateLimitPolicy

WINDOW = timedelta(seconds=60)


def _policy(limit: int = 3, window: timedelta = WINDOW) -> RateLimitPolicy:
    return RateLimitPolicy(limit=limit, window=window)


def test_allows_up_to_limit_then_denies(limiter) -> None:
    policy = _policy(limit=3)

    for _ in range(3):
        decision = limiter.evaluate("k", policy)
        assert decision.allowed is True
        assert decision.remaining_time_ms == 0
        assert decision.retry_after is None
        assert decision.reset_after is not None

    denied = limiter.evaluate("k", policy)
    assert denied.allowed is False
    assert denied.retry_after is not None
    assert timedelta(0) < denied.retry_after <= WINDOW
    assert timedelta(0) < denied.reset_after <= WINDOW
    assert denied.remaining_time_ms == denied.retry_after // timedelta(milliseconds=1)


def test_window_boundary_arithmetic(limiter, clock) -> None:
    # 1_000_000 ms is 40_000 ms into a 60_000 ms window
    decision = limiter.evaluate("k", _policy())

    assert decision.reset_after == timedelta(milliseconds=20_000)


def test_reset_after_is_floored_at_one_millisecond(store) -> None:
    # 59.9999s into the window rounds down to 59_999 ms, leaving 1 ms
    limiter = RedisFixedWindowRateLimiter(store, clock=lambda: 959.9999)

    decision = limiter.evaluate("k", _policy())

    assert decision.reset_after == timedelta(milliseconds=1)


def test_same_window_shares_bucket_key(limiter, store, clock) -> None:
    limiter.evaluate("k", _policy())
    clock.advance(10)
    limiter.evaluate("k", _policy())

    assert store.get("test:k:960000") == 2


def test_new_window_uses_new_bucket_and_resets_count(limiter, store, clock) -> None:
    policy = _policy(limit=1)

    assert limiter.evaluate("k", policy).allowed is True
    assert limiter.evaluate("k", policy).allowed is False

    clock.advance(20)  # 1_020_000 ms is the start of the next window
    assert limiter.evaluate("k", policy).allowed is True
    assert store.get("test:k:1020000") == 1
    assert store.get("test:k:960000") == 2


def test_isolated_by_key(limiter) -> None:
    policy = _policy(limit=1)

    assert limiter.evaluate("k1", policy).allowed is True
    assert limiter.evaluate("k1", policy).allowed is False
    assert limiter.evaluate("k2", policy).allowed is True


def test_ttl_is_window_plus_safety_buffer(limiter, store) -> None:
    limiter.evaluate("k", _policy())

    assert store.pttl("test:k:960000") == 61_000


def test_ttl_is_set_exactly_once_per_bucket() -> None:
    store = Mock()
    store.incr.side_effect = [1, 2, 3, 4, 5]
    store.pexpire.return_value = True
    limiter = RedisFixedWindowRateLimiter(store, key_prefix="p", clock=lambda: 1_000.0)

    for _ in range(5):
        limiter.evaluate("k", _policy(limit=2))

    store.pexpire.assert_called_once_with("p:k:960000", 61_000)
    assert store.incr.call_count == 5


def test_ttl_not_extended_by_later_requests(limiter, store, clock) -> None:
    limiter.evaluate("k", _policy())
    clock.advance(5)
    limiter.evaluate("k", _policy())

    assert store.pttl("test:k:960000") == 56_000


def test_fail_closed_raises_backend_error() -> None:
    store = Mock()
    store.incr.side_effect = ConnectionError("connection refused")
    limiter = RedisFixedWindowRateLimiter(store, clock=lambda: 1_000.0)

    with pytest.raises(RateLimiterBackendError) as exc_info:
        limiter.evaluate("k", _policy())

    assert isinstance(exc_info.value.__cause__, ConnectionError)


def test_fail_open_allows_with_unknown_remaining_time(caplog) -> None:
    store = Mock()
    store.incr.side_effect = ConnectionError("connection refused")
    limiter = RedisFixedWindowRateLimiter(store, fail_open=True, clock=lambda: 1_000.0)

    with caplog.at_level(logging.WARNING):
        decision = limiter.evaluate("k", _policy())

    assert decision.allowed is True
    assert decision.remaining_time_ms == REMAINING_TIME_UNKNOWN
    assert decision.reset_after == timedelta(milliseconds=20_000)
    assert any(r.getMessage() == "rate_limit.backend_fail_open" for r in caplog.records)


@pytest.mark.parametrize("fail_open", [False, True])
def test_ttl_failure_is_treated_as_backend_failure(fail_open: bool) -> None:
    store = Mock()
    store.incr.return_value = 1
    store.pexpire.return_value = False
    limiter = RedisFixedWindowRateLimiter(store, fail_open=fail_open, clock=lambda: 1_000.0)

    if fail_open:
        assert limiter.evaluate("k", _policy()).remaining_time_ms == REMAINING_TIME_UNKNOWN
    else:
        with pytest.raises(RateLimiterBackendError):
            limiter.evaluate("k", _policy())


def test_missing_incr_reply_is_a_backend_failure() -> None:
    store = Mock()
    store.incr.return_value = None
    limiter = RedisFixedWindowRateLimiter(store, clock=lambda: 1_000.0)

    with pytest.raises(RateLimiterBackendError):
        limiter.evaluate("k", _policy())


def test_sub_millisecond_window_is_rejected(limiter) -> None:
    with pytest.raises(ValidationAppError):
        limiter.evaluate("k", _policy(window=timedelta(microseconds=500)))


@pytest.mark.parametrize("key", ["", "   "])
def test_blank_key_is_rejected(limiter, key: str) -> None:
    with pytest.raises(ValidationAppError):
        limiter.evaluate(key, _policy())


def test_blank_prefix_is_rejected() -> None:
    with pytest.raises(ValidationAppError):
        RedisFixedWindowRateLimiter(InMemoryCounterStore(), key_prefix=" ")
