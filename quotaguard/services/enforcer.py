"""Rate limit orchestration.

The enforcer runs a linear pipeline for every invocation:

1. resolve the policy (policy provider)
2. pick the key resolver named by the context (registry)
3. resolve the bucket key
4. evaluate the policy with the rate limiter, timing the call and recording
   the outcome (decision or backend error) with the metrics recorder

``enforce`` additionally converts a denied decision into
``RateLimitExceededError``. There is no retry and no backtracking: any stage
failure aborts the evaluation and propagates to the caller.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import timedelta

from quotaguard.adapters.metrics.base import AbstractMetricsRecorder, NoOpMetricsRecorder
from quotaguard.adapters.rate_limit.base import AbstractRateLimiter
from quotaguard.core.errors import (
    ConfigurationAppError,
    RateLimitExceededError,
    ValidationAppError,
)
from quotaguard.core.logging import hash_identifier
from quotaguard.domain.context import RateLimitContext
from quotaguard.domain.decision import RateLimitDecision
from quotaguard.domain.policy import RateLimitPolicy
from quotaguard.services.key_resolvers import KeyResolverRegistry
from quotaguard.services.policy_provider import AbstractPolicyProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Evaluation:
    """Everything resolved while evaluating one context."""

    name: str | None
    metric_name: str
    policy: RateLimitPolicy
    key: str
    decision: RateLimitDecision


def _empty_to_none(value: str | None) -> str | None:
    return None if value is None or not value.strip() else value


class RateLimitEnforcer:
    """Default orchestration for rate limit evaluation and enforcement."""

    def __init__(
        self,
        rate_limiter: AbstractRateLimiter,
        policy_provider: AbstractPolicyProvider,
        key_resolvers: KeyResolverRegistry,
        metrics_recorder: AbstractMetricsRecorder | None = None,
    ) -> None:
        if rate_limiter is None or policy_provider is None or key_resolvers is None:
            raise ConfigurationAppError(
                code="incomplete_enforcer",
                message="rate_limiter, policy_provider and key_resolvers are required",
            )
        self._rate_limiter = rate_limiter
        self._policy_provider = policy_provider
        self._key_resolvers = key_resolvers
        self._metrics_recorder = metrics_recorder or NoOpMetricsRecorder()

    @property
    def key_resolvers(self) -> KeyResolverRegistry:
        return self._key_resolvers

    def evaluate(self, context: RateLimitContext) -> RateLimitDecision:
        """Evaluate the context and return the decision without raising on denial."""
        return self.execute(context).decision

    def enforce(self, context: RateLimitContext) -> None:
        """Evaluate the context and raise when the request is denied.

        Raises:
            RateLimitExceededError: If the decision is a denial.
        """
        self.raise_if_denied(self.execute(context))

    def raise_if_denied(self, evaluation: Evaluation) -> None:
        """Raise RateLimitExceededError when the evaluation is a denial."""
        if evaluation.decision.allowed:
            return

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "limit_name": evaluation.metric_name,
                "key_hash": hash_identifier(evaluation.key),
                "limit": evaluation.policy.limit,
                "window_s": evaluation.policy.window.total_seconds(),
                "scope": evaluation.policy.scope,
                "retry_after_ms": evaluation.decision.remaining_time_ms,
            },
        )
        raise RateLimitExceededError(
            evaluation.name,
            evaluation.key,
            evaluation.policy,
            evaluation.decision,
        )

    def execute(self, context: RateLimitContext) -> Evaluation:
        """Run the full pipeline and return every resolved piece."""
        if context is None or context.config is None:
            raise ValidationAppError(
                code="missing_config",
                message="context must carry a rate limit configuration",
            )
        config = context.config

        policy = self._policy_provider.resolve_policy(context)
        if policy is None:
            raise ConfigurationAppError(
                code="missing_policy",
                message="policy provider must return a policy",
            )

        key_resolver = self._key_resolvers.resolve(config.key_resolver)
        key = key_resolver.resolve_key(context)
        if key is None or not key.strip():
            raise ValidationAppError(code="blank_key", message="resolved key must not be blank")

        metric_name = self._metric_name(context)
        start = time.perf_counter()
        try:
            decision = self._rate_limiter.evaluate(key, policy)
            if decision is None:
                raise ConfigurationAppError(
                    code="missing_decision",
                    message="rate limiter must return a decision",
                )
        except Exception as exc:
            latency = timedelta(seconds=time.perf_counter() - start)
            self._metrics_recorder.record_error(metric_name, policy, latency, exc)
            raise
        latency = timedelta(seconds=time.perf_counter() - start)
        self._metrics_recorder.record_decision(metric_name, policy, decision, latency)

        logger.debug(
            "rate_limit.evaluated",
            extra={
                "limit_name": metric_name,
                "key_hash": hash_identifier(key),
                "allowed": decision.allowed,
                "latency_ms": round(latency.total_seconds() * 1000, 3),
            },
        )
        return Evaluation(
            name=_empty_to_none(config.name),
            metric_name=metric_name,
            policy=policy,
            key=key,
            decision=decision,
        )

    @staticmethod
    def _metric_name(context: RateLimitContext) -> str:
        name = _empty_to_none(context.config.name)
        if name is not None:
            return name
        return f"{context.target_simple_name}#{context.method}"
