"""Tests for settings-driven wiring of the rate limiting engine."""

from __future__ import annotations

import pytest
import redis
from pydantic import ValidationError

from quotaguard.adapters.metrics.base import NoOpMetricsRecorder
from quotaguard.adapters.metrics.prometheus import PrometheusMetricsRecorder
from quotaguard.adapters.rate_limit.fixed_window import RedisFixedWindowRateLimiter
from quotaguard.adapters.rate_limit.in_memory import InMemoryCounterStore
from quotaguard.core.bootstrap import (
    create_counter_store,
    create_enforcer,
    create_metrics_recorder,
    create_rate_limiter,
)
from quotaguard.core.config import RateLimiterSettings
from quotaguard.core.errors import ConfigurationAppError
from quotaguard.domain.context import RateLimitConfig
from quotaguard.services.key_resolvers import AbstractKeyResolver


class TenantKeyResolver(AbstractKeyResolver):
    name = "tenant"

    def resolve_key(self, context) -> str:
        return f"tenant:{context.kwargs['tenant_id']}"


def test_memory_backend_builds_in_memory_store() -> None:
    store = create_counter_store(RateLimiterSettings(backend="memory"))

    assert isinstance(store, InMemoryCounterStore)


def test_redis_backend_builds_lazy_client() -> None:
    store = create_counter_store(
        RateLimiterSettings(backend="redis", redis_url="redis://cache.internal:6380/2")
    )

    assert isinstance(store, redis.Redis)
    assert store.connection_pool.connection_kwargs["host"] == "cache.internal"
    assert store.connection_pool.connection_kwargs["db"] == 2


def test_unknown_backend_is_rejected() -> None:
    with pytest.raises(ValidationError):
        RateLimiterSettings(backend="etcd")

    with pytest.raises(ConfigurationAppError):
        create_counter_store(RateLimiterSettings.model_construct(backend="etcd"))


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RATELIMITER_FAIL_OPEN", "true")
    monkeypatch.setenv("RATELIMITER_KEY_PREFIX", "edge")

    cfg = RateLimiterSettings()

    assert cfg.fail_open is True
    assert cfg.key_prefix == "edge"


def test_rate_limiter_uses_configured_prefix_and_failure_mode() -> None:
    store = InMemoryCounterStore()
    limiter = create_rate_limiter(
        RateLimiterSettings(backend="memory", key_prefix="edge", fail_open=True), store
    )

    assert isinstance(limiter, RedisFixedWindowRateLimiter)
    assert limiter.key_prefix == "edge"
    assert limiter.fail_open is True


def test_metrics_recorder_follows_switch() -> None:
    assert isinstance(
        create_metrics_recorder(RateLimiterSettings(metrics_enabled=False)), NoOpMetricsRecorder
    )
    assert isinstance(
        create_metrics_recorder(RateLimiterSettings(metrics_enabled=True)), PrometheusMetricsRecorder
    )


def test_enforcer_registers_builtin_and_extra_resolvers() -> None:
    enforcer = create_enforcer(
        RateLimiterSettings(backend="memory", metrics_enabled=False),
        key_resolvers=[TenantKeyResolver()],
    )

    assert enforcer.key_resolvers.names() == ["client", "default", "tenant"]


def test_enforcer_uses_extra_resolver_by_name(make_context) -> None:
    enforcer = create_enforcer(
        RateLimiterSettings(backend="memory", metrics_enabled=False),
        store=InMemoryCounterStore(),
        key_resolvers=[TenantKeyResolver()],
    )
    config = RateLimitConfig(limit=1, duration=1, time_unit="hours", key_resolver="tenant")

    assert enforcer.evaluate(make_context(config, kwargs={"tenant_id": "a"})).allowed is True
    assert enforcer.evaluate(make_context(config, kwargs={"tenant_id": "b"})).allowed is True
    assert enforcer.evaluate(make_context(config, kwargs={"tenant_id": "a"})).allowed is False
