"""Tests for the rate_limited decorator."""

import asyncio
import time

import pytest

from quotaguard.adapters.rate_limit.fixed_window import RedisFixedWindowRateLimiter
from quotaguard.adapters.rate_limit.in_memory import InMemoryCounterStore
from quotaguard.api.decorators import build_context, rate_limited
from quotaguard.core.errors import RateLimitExceededError
from quotaguard.domain.context import RateLimitConfig, TimeUnit
from quotaguard.services.enforcer import RateLimitEnforcer
from quotaguard.services.key_resolvers import DefaultKeyResolver, KeyResolverRegistry
from quotaguard.services.policy_provider import DeclaredPolicyProvider


def send_report(recipient: str) -> str:
    return f"sent to {recipient}"


class ReportService:
    def render(self, report_id: int) -> str:
        return f"report {report_id}"


class ScheduledReportService(ReportService):
    pass


def test_sync_function_is_limited(enforcer) -> None:
    limited = rate_limited(enforcer, limit=1, duration=1, time_unit=TimeUnit.MINUTES)(send_report)

    assert limited("ops") == "sent to ops"
    with pytest.raises(RateLimitExceededError):
        limited("ops")


def test_async_function_is_limited(enforcer) -> None:
    calls = []

    @rate_limited(enforcer, limit=1, duration=60)
    async def refresh(token: str) -> str:
        calls.append(token)
        return token

    assert asyncio.run(refresh("a")) == "a"
    with pytest.raises(RateLimitExceededError):
        asyncio.run(refresh("b"))
    assert calls == ["a"]


def test_denied_call_does_not_run_the_function(enforcer) -> None:
    calls = []

    @rate_limited(enforcer, RateLimitConfig(limit=1, duration=60))
    def tick() -> None:
        calls.append(1)

    tick()
    with pytest.raises(RateLimitExceededError):
        tick()
    assert calls == [1]


def test_disabled_config_skips_enforcement(enforcer, metrics) -> None:
    limited = rate_limited(enforcer, limit=1, duration=60, enabled=False)(send_report)

    for _ in range(3):
        limited("ops")

    assert metrics.decisions == []


def test_wrapper_exposes_declared_config(enforcer) -> None:
    config = RateLimitConfig(limit=5, duration=10, name="reports")

    limited = rate_limited(enforcer, config)(send_report)

    assert limited.rate_limit_config is config
    assert limited.__name__ == "send_report"


@pytest.mark.parametrize("kwargs", [{}, {"config": RateLimitConfig(limit=1, duration=1), "limit": 2}])
def test_config_and_fields_are_mutually_exclusive(enforcer, kwargs) -> None:
    with pytest.raises(TypeError):
        rate_limited(enforcer, **kwargs)


def test_function_context_uses_module_target() -> None:
    ctx = build_context(send_report, RateLimitConfig(limit=1, duration=1), ("ops",), {})

    assert ctx.target == __name__
    assert ctx.method == "send_report"
    assert ctx.instance is None
    assert ctx.args == ("ops",)


def test_method_context_uses_runtime_class() -> None:
    service = ScheduledReportService()

    ctx = build_context(ReportService.render, RateLimitConfig(limit=1, duration=1), (service, 7), {})

    assert ctx.target == f"{__name__}.ScheduledReportService"
    assert ctx.method == "render"
    assert ctx.instance is service


def test_methods_of_different_classes_use_separate_buckets(enforcer) -> None:
    limited = rate_limited(enforcer, limit=1, duration=60)

    class Invoices:
        @limited
        def export(self) -> str:
            return "invoices"

    class Receipts:
        @limited
        def export(self) -> str:
            return "receipts"

    assert Invoices().export() == "invoices"
    assert Receipts().export() == "receipts"
    with pytest.raises(RateLimitExceededError):
        Invoices().export()


class SlowCounterStore(InMemoryCounterStore):
    """Store whose INCR takes as long as a slow network round trip."""

    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay

    def incr(self, name: str) -> int:
        time.sleep(self.delay)
        return super().incr(name)


def test_async_calls_evaluate_concurrently(metrics) -> None:
    limiter = RedisFixedWindowRateLimiter(SlowCounterStore(delay=0.3))
    registry = KeyResolverRegistry(DefaultKeyResolver())
    enforcer = RateLimitEnforcer(limiter, DeclaredPolicyProvider(), registry, metrics)

    @rate_limited(enforcer, limit=10, duration=1, time_unit=TimeUnit.HOURS)
    async def fetch(item: int) -> int:
        return item

    async def run_all() -> list[int]:
        return await asyncio.gather(*(fetch(i) for i in range(4)))

    start = time.perf_counter()
    results = asyncio.run(run_all())
    elapsed = time.perf_counter() - start

    assert results == [0, 1, 2, 3]
    assert len(metrics.decisions) == 4
    # Sequential evaluation would take at least 1.2s
    assert elapsed < 0.9
