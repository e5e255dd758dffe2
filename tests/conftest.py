"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets the environment before any import loads the global settings, so
tests never need a running Redis.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("RATELIMITER_BACKEND", "memory")
os.environ.setdefault("RATELIMITER_METRICS_ENABLED", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402

from quotaguard.adapters.rate_limit.fixed_window import RedisFixedWindowRateLimiter  # noqa: E402
from quotaguard.adapters.rate_limit.in_memory import InMemoryCounterStore  # noqa: E402
from quotaguard.domain.context import RateLimitConfig, RateLimitContext  # noqa: E402
from quotaguard.services.enforcer import RateLimitEnforcer  # noqa: E402
from quotaguard.services.key_resolvers import (  # noqa: E402
    ClientKeyResolver,
    DefaultKeyResolver,
    KeyResolverRegistry,
)
from quotaguard.services.policy_provider import DeclaredPolicyProvider  # noqa: E402


class FakeClock:
    """Deterministic clock returning UNIX seconds."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, delta: timedelta | float) -> None:
        if isinstance(delta, timedelta):
            delta = delta.total_seconds()
        self.current += delta


class RecordingMetricsRecorder:
    """Collects every observation the enforcer reports."""

    def __init__(self) -> None:
        self.decisions: list[tuple] = []
        self.errors: list[tuple] = []

    def record_decision(self, name, policy, decision, latency) -> None:
        self.decisions.append((name, policy, decision, latency))

    def record_error(self, name, policy, latency, error) -> None:
        self.errors.append((name, policy, latency, error))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryCounterStore:
    return InMemoryCounterStore(clock=clock)


@pytest.fixture
def limiter(store: InMemoryCounterStore, clock: FakeClock) -> RedisFixedWindowRateLimiter:
    return RedisFixedWindowRateLimiter(store, key_prefix="test", clock=clock)


@pytest.fixture
def metrics() -> RecordingMetricsRecorder:
    return RecordingMetricsRecorder()


@pytest.fixture
def enforcer(limiter, metrics) -> RateLimitEnforcer:
    registry = KeyResolverRegistry(DefaultKeyResolver(), [ClientKeyResolver()])
    return RateLimitEnforcer(limiter, DeclaredPolicyProvider(), registry, metrics)


def _make_context(config: RateLimitConfig | None = None, **overrides) -> RateLimitContext:
    """Context for a fictional ``billing.api.InvoiceService.create`` call."""
    fields = {
        "config": config or RateLimitConfig(limit=2, duration=60),
        "target": "billing.api.InvoiceService",
        "method": "create",
    }
    fields.update(overrides)
    return RateLimitContext(**fields)


@pytest.fixture
def make_context():
    return _make_context
