"""Rate limiter interfaces.

Callers should depend on this abstraction (not the concrete implementation)
so storage backends can be swapped with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

from quotaguard.domain.decision import RateLimitDecision
from quotaguard.domain.policy import RateLimitPolicy


@runtime_checkable
class CounterStore(Protocol):
    """Backend primitives the fixed-window limiter relies on.

    ``redis.Redis`` satisfies this protocol as-is.
    """

    def incr(self, name: str) -> int | None:
        """Atomically increment the counter and return the new value."""
        ...

    def pexpire(self, name: str, time: int) -> bool:
        """Set a time-to-live in milliseconds; return whether it took effect."""
        ...


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def evaluate(self, key: str, policy: RateLimitPolicy) -> RateLimitDecision:
        """Count one request for ``key`` and decide whether it is allowed.

        Args:
            key: Resolved bucket key (e.g., ``user:billing.Invoices#create``).
            policy: Policy to evaluate against.

        Returns:
            RateLimitDecision describing whether the request was allowed.
        """
        raise NotImplementedError
