"""Redis-backed fixed-window rate limiter.

Algorithm:
- Derive a deterministic window bucket from the current time and the
  policy window (aligned to absolute time, shared by every caller).
- Increment the bucket counter with INCR.
- Set a TTL (window + safety buffer) when the counter is created, i.e. on
  the increment that returns 1, so the window never slides.

The store's atomic increment is the single source of truth: counts are never
cached locally and no lock is taken here.
"""

from __future__ import annotations

import logging
import time
from datetime import timedelta
from typing import Callable

from quotaguard.adapters.rate_limit.base import AbstractRateLimiter, CounterStore
from quotaguard.core.errors import RateLimiterBackendError, ValidationAppError
from quotaguard.core.logging import hash_identifier
from quotaguard.domain.decision import RateLimitDecision
from quotaguard.domain.policy import RateLimitPolicy

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "ratelimiter"
TTL_SAFETY_BUFFER = timedelta(seconds=1)


def _to_millis(value: timedelta) -> int:
    return value // timedelta(milliseconds=1)


def _require_non_blank(value: str | None, message: str) -> str:
    if value is None or not value.strip():
        raise ValidationAppError(code="blank_value", message=message)
    return value


class RedisFixedWindowRateLimiter(AbstractRateLimiter):
    """Fixed-window limiter over a shared ``CounterStore``.

    Works with any store exposing ``incr``/``pexpire`` (``redis.Redis`` or
    ``InMemoryCounterStore``).
    """

    def __init__(
        self,
        store: CounterStore,
        *,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        fail_open: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Counter store providing atomic increment and TTL primitives.
            key_prefix: Namespace for bucket keys.
            fail_open: Allow requests (True) or raise (False) when the store fails.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValidationAppError: If the store is missing or the prefix is blank.
        """
        if store is None:
            raise ValidationAppError(code="missing_store", message="store must not be None")
        self._store = store
        self._key_prefix = _require_non_blank(key_prefix, "key_prefix must not be blank")
        self._fail_open = fail_open
        self._clock = clock

    @property
    def key_prefix(self) -> str:
        return self._key_prefix

    @property
    def fail_open(self) -> bool:
        return self._fail_open

    def bucket_key(self, key: str, window_start_ms: int) -> str:
        return f"{self._key_prefix}:{key}:{window_start_ms}"

    def evaluate(self, key: str, policy: RateLimitPolicy) -> RateLimitDecision:
        """Count one request against the current window of ``key``.

        Args:
            key: Resolved bucket key.
            policy: Policy to evaluate against.

        Returns:
            RateLimitDecision for this request. Under fail-open, a backend
            failure yields an allowed decision with unknown remaining time.

        Raises:
            ValidationAppError: If the key is blank or the window is below 1ms.
            RateLimiterBackendError: On backend failure when failing closed.
        """
        resolved_key = _require_non_blank(key, "key must not be blank")
        if policy is None:
            raise ValidationAppError(code="missing_policy", message="policy must not be None")

        window_ms = _to_millis(policy.window)
        if window_ms <= 0:
            raise ValidationAppError(
                code="invalid_window",
                message="policy window must be positive",
            )

        now_ms = int(self._clock() * 1000)
        window_start_ms = now_ms - (now_ms % window_ms)
        reset_after_ms = max(1, window_ms - (now_ms - window_start_ms))
        reset_after = timedelta(milliseconds=reset_after_ms)
        bucket = self.bucket_key(resolved_key, window_start_ms)

        try:
            count = self._increment(bucket, policy.window + TTL_SAFETY_BUFFER)
        except Exception as exc:
            return self._handle_backend_failure(bucket, reset_after, exc)

        if count <= policy.limit:
            return RateLimitDecision.allow(reset_after=reset_after)
        return RateLimitDecision.deny(reset_after=reset_after)

    def _increment(self, bucket: str, ttl: timedelta) -> int:
        count = self._store.incr(bucket)
        if count is None:
            raise RuntimeError(f"INCR returned no value for key: {bucket}")

        if count == 1:
            if not self._store.pexpire(bucket, _to_millis(ttl)):
                raise RuntimeError(f"Failed to set TTL for key: {bucket}")

        return int(count)

    def _handle_backend_failure(
        self, bucket: str, reset_after: timedelta, exc: Exception
    ) -> RateLimitDecision:
        bucket_hash = hash_identifier(bucket)
        if self._fail_open:
            logger.warning(
                "rate_limit.backend_fail_open",
                exc_info=exc,
                extra={
                    "bucket_hash": bucket_hash,
                    "error_type": type(exc).__name__,
                    "reset_after_ms": _to_millis(reset_after),
                },
            )
            return RateLimitDecision.unknown(reset_after=reset_after)

        logger.error(
            "rate_limit.backend_unavailable",
            extra={
                "bucket_hash": bucket_hash,
                "error_type": type(exc).__name__,
            },
        )
        raise RateLimiterBackendError(
            code="rate_limiter_backend_unavailable",
            message=f"Rate limiter backend failure for key: {bucket}",
        ) from exc
