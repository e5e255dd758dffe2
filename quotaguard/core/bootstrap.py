"""Factory functions assembling the rate limiting engine from settings.

Reads configuration from ``quotaguard.core.config.settings`` (or an explicit
``RateLimiterSettings``) and routes to the concrete store, recorder and
limiter implementations. Everything built here is constructed once at
startup and shared for the process lifetime.
"""

from __future__ import annotations

import logging
from typing import Iterable

import redis
from prometheus_client import CollectorRegistry

from quotaguard.adapters.metrics.base import AbstractMetricsRecorder, NoOpMetricsRecorder
from quotaguard.adapters.metrics.prometheus import PrometheusMetricsRecorder
from quotaguard.adapters.rate_limit.base import AbstractRateLimiter, CounterStore
from quotaguard.adapters.rate_limit.fixed_window import RedisFixedWindowRateLimiter
from quotaguard.adapters.rate_limit.in_memory import InMemoryCounterStore
from quotaguard.core.config import RateLimiterSettings, settings
from quotaguard.core.errors import ConfigurationAppError
from quotaguard.services.enforcer import RateLimitEnforcer
from quotaguard.services.key_resolvers import (
    AbstractKeyResolver,
    ClientKeyResolver,
    DefaultKeyResolver,
    KeyResolverRegistry,
)
from quotaguard.services.policy_provider import AbstractPolicyProvider, DeclaredPolicyProvider

logger = logging.getLogger(__name__)


def create_counter_store(config: RateLimiterSettings | None = None) -> CounterStore:
    """Instantiate the counter store selected by ``backend``.

    Raises:
        ConfigurationAppError: If the backend name is unknown.
    """
    cfg = config or settings.ratelimiter

    if cfg.backend == "redis":
        logger.info("rate_limit.store_selected", extra={"backend": "redis"})
        return redis.Redis.from_url(
            cfg.redis_url,
            socket_timeout=cfg.redis_socket_timeout_seconds,
            socket_connect_timeout=cfg.redis_socket_timeout_seconds,
        )

    if cfg.backend == "memory":
        logger.warning(
            "rate_limit.store_selected",
            extra={"backend": "memory", "note": "per-process counters"},
        )
        return InMemoryCounterStore()

    raise ConfigurationAppError(
        code="unknown_rate_limit_backend",
        message=f"Unknown rate limiter backend: '{cfg.backend}'. Supported: redis, memory",
    )


def create_metrics_recorder(
    config: RateLimiterSettings | None = None,
    registry: CollectorRegistry | None = None,
) -> AbstractMetricsRecorder:
    """Prometheus recorder when metrics are enabled, no-op otherwise."""
    cfg = config or settings.ratelimiter
    if not cfg.metrics_enabled:
        return NoOpMetricsRecorder()
    return PrometheusMetricsRecorder(registry=registry or CollectorRegistry())


def create_rate_limiter(
    config: RateLimiterSettings | None = None,
    store: CounterStore | None = None,
) -> AbstractRateLimiter:
    cfg = config or settings.ratelimiter
    return RedisFixedWindowRateLimiter(
        store if store is not None else create_counter_store(cfg),
        key_prefix=cfg.key_prefix,
        fail_open=cfg.fail_open,
    )


def create_enforcer(
    config: RateLimiterSettings | None = None,
    *,
    store: CounterStore | None = None,
    rate_limiter: AbstractRateLimiter | None = None,
    key_resolvers: Iterable[AbstractKeyResolver] = (),
    default_key_resolver: AbstractKeyResolver | None = None,
    policy_provider: AbstractPolicyProvider | None = None,
    metrics_recorder: AbstractMetricsRecorder | None = None,
) -> RateLimitEnforcer:
    """Assemble a ready-to-use enforcer.

    The key resolver registry always contains the default and client
    resolvers, plus any extra ``key_resolvers``.

    Args:
        config: Rate limiter settings (defaults to global settings).
        store: Counter store to use instead of the configured backend.
        rate_limiter: Limiter to use instead of the fixed-window one.
        key_resolvers: Additional resolvers, registered under their names.
        default_key_resolver: Resolver used when a config names none.
        policy_provider: Provider to use instead of DeclaredPolicyProvider.
        metrics_recorder: Recorder to use instead of the configured one.

    Returns:
        RateLimitEnforcer wired with the selected components.
    """
    cfg = config or settings.ratelimiter

    default = default_key_resolver or DefaultKeyResolver()
    registry = KeyResolverRegistry(default, [ClientKeyResolver(), *key_resolvers])

    enforcer = RateLimitEnforcer(
        rate_limiter=rate_limiter or create_rate_limiter(cfg, store),
        policy_provider=policy_provider or DeclaredPolicyProvider(),
        key_resolvers=registry,
        metrics_recorder=metrics_recorder or create_metrics_recorder(cfg),
    )
    logger.info(
        "rate_limit.enforcer_ready",
        extra={
            "fail_open": cfg.fail_open,
            "key_resolvers": registry.names(),
            "metrics_enabled": cfg.metrics_enabled,
        },
    )
    return enforcer
