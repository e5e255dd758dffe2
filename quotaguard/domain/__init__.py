"""Value types of the rate limiting core: policies, decisions and contexts."""

from quotaguard.domain.context import (
    UNSET_KEY_RESOLVER,
    RateLimitConfig,
    RateLimitContext,
    TimeUnit,
)
from quotaguard.domain.decision import REMAINING_TIME_UNKNOWN, RateLimitDecision
from quotaguard.domain.policy import RateLimitPolicy, RateLimitScope

__all__ = [
    "REMAINING_TIME_UNKNOWN",
    "UNSET_KEY_RESOLVER",
    "RateLimitConfig",
    "RateLimitContext",
    "RateLimitDecision",
    "RateLimitPolicy",
    "RateLimitScope",
    "TimeUnit",
]
