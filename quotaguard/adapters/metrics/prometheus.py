"""Prometheus-backed metrics recorder for rate limiter outcomes."""

from __future__ import annotations

import logging
from datetime import timedelta

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

from quotaguard.adapters.metrics.base import AbstractMetricsRecorder
from quotaguard.domain.decision import RateLimitDecision
from quotaguard.domain.policy import RateLimitPolicy

logger = logging.getLogger(__name__)


def _sanitize(value: str | None) -> str:
    if value is None or not str(value).strip():
        return "unknown"
    return str(value)


class PrometheusMetricsRecorder(AbstractMetricsRecorder):
    """Record decisions, errors and evaluation latency as Prometheus metrics.

    Metrics:
        ratelimiter_requests_total{name, scope, outcome}
        ratelimiter_errors_total{name, scope, exception}
        ratelimiter_evaluate_latency_seconds{name, scope}
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or REGISTRY
        self._requests = Counter(
            "ratelimiter_requests_total",
            "Rate limit evaluations by outcome",
            labelnames=("name", "scope", "outcome"),
            registry=self.registry,
        )
        self._errors = Counter(
            "ratelimiter_errors_total",
            "Rate limit evaluations that failed in the backend",
            labelnames=("name", "scope", "exception"),
            registry=self.registry,
        )
        self._latency = Histogram(
            "ratelimiter_evaluate_latency_seconds",
            "Latency of rate limiter backend evaluations",
            labelnames=("name", "scope"),
            buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1),
            registry=self.registry,
        )

    def record_decision(
        self,
        name: str,
        policy: RateLimitPolicy,
        decision: RateLimitDecision,
        latency: timedelta,
    ) -> None:
        try:
            outcome = "allowed" if decision.allowed else "blocked"
            self._requests.labels(
                name=_sanitize(name), scope=_sanitize(policy.scope), outcome=outcome
            ).inc()
            self._latency.labels(name=_sanitize(name), scope=_sanitize(policy.scope)).observe(
                latency.total_seconds()
            )
        except Exception:
            logger.exception("metrics.record_decision_failed", extra={"metric_name": name})

    def record_error(
        self,
        name: str,
        policy: RateLimitPolicy,
        latency: timedelta,
        error: BaseException | None,
    ) -> None:
        try:
            exception = "unknown" if error is None else _sanitize(type(error).__name__)
            self._errors.labels(
                name=_sanitize(name), scope=_sanitize(policy.scope), exception=exception
            ).inc()
            self._latency.labels(name=_sanitize(name), scope=_sanitize(policy.scope)).observe(
                latency.total_seconds()
            )
        except Exception:
            logger.exception("metrics.record_error_failed", extra={"metric_name": name})
