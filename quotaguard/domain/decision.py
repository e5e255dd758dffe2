"""Result of a single rate limit evaluation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from quotaguard.core.errors import ValidationAppError

# Marker for "the backend could not determine the remaining time".
REMAINING_TIME_UNKNOWN = -1


@dataclass(frozen=True)
class RateLimitDecision:
    """Immutable outcome of evaluating a policy against a key.

    Attributes:
        allowed: Whether the request may proceed.
        remaining_time_ms: Milliseconds the caller should wait before retrying.
            0 when allowed, REMAINING_TIME_UNKNOWN when unavailable.
        retry_after: Wait before the next allowed request (denials only).
        reset_after: Time until the current window resets.
    """

    allowed: bool
    remaining_time_ms: int
    retry_after: timedelta | None = None
    reset_after: timedelta | None = None

    def __post_init__(self) -> None:
        if self.remaining_time_ms < REMAINING_TIME_UNKNOWN:
            raise ValidationAppError(
                code="invalid_remaining_time",
                message=f"Remaining time cannot be less than {REMAINING_TIME_UNKNOWN}",
            )
        if self.retry_after is not None and self.retry_after < timedelta(0):
            raise ValidationAppError(
                code="invalid_retry_after",
                message="Retry after duration cannot be negative",
            )
        if self.reset_after is not None and self.reset_after < timedelta(0):
            raise ValidationAppError(
                code="invalid_reset_after",
                message="Reset after duration cannot be negative",
            )
        if not self.allowed and self.retry_after is None:
            raise ValidationAppError(
                code="denied_without_retry_after",
                message="A denied decision must carry retry_after",
            )

    @property
    def retry_after_ms(self) -> int:
        """Alias of remaining_time_ms for HTTP/retry semantics."""
        return self.remaining_time_ms

    @classmethod
    def allow(cls, reset_after: timedelta | None = None) -> "RateLimitDecision":
        return cls(allowed=True, remaining_time_ms=0, reset_after=reset_after)

    @classmethod
    def deny(cls, reset_after: timedelta) -> "RateLimitDecision":
        """Build a denial whose retry timing equals the window reset time."""
        return cls(
            allowed=False,
            remaining_time_ms=_to_millis(reset_after),
            retry_after=reset_after,
            reset_after=reset_after,
        )

    @classmethod
    def unknown(cls, reset_after: timedelta | None = None) -> "RateLimitDecision":
        """Allowed decision used when the backend could not be consulted."""
        return cls(
            allowed=True,
            remaining_time_ms=REMAINING_TIME_UNKNOWN,
            reset_after=reset_after,
        )


def _to_millis(value: timedelta) -> int:
    return value // timedelta(milliseconds=1)
