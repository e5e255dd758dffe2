"""Rate limiting adapters.

This package holds the rate evaluation contract and its fixed-window
implementation over a shared counter store. Redis is the production store;
the in-memory store keeps the same atomic semantics inside one process for
local development and tests.
"""

from quotaguard.adapters.rate_limit.base import AbstractRateLimiter, CounterStore
from quotaguard.adapters.rate_limit.fixed_window import RedisFixedWindowRateLimiter
from quotaguard.adapters.rate_limit.in_memory import InMemoryCounterStore

__all__ = [
    "AbstractRateLimiter",
    "CounterStore",
    "InMemoryCounterStore",
    "RedisFixedWindowRateLimiter",
]
