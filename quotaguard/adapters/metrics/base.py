"""Metrics recorder interface.

Recorders are a side channel: implementations must never raise, so that
observability can not change the outcome of an evaluation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta

from quotaguard.domain.decision import RateLimitDecision
from quotaguard.domain.policy import RateLimitPolicy


class AbstractMetricsRecorder(ABC):
    """Interface for recording rate limiter observations."""

    @abstractmethod
    def record_decision(
        self,
        name: str,
        policy: RateLimitPolicy,
        decision: RateLimitDecision,
        latency: timedelta,
    ) -> None:
        """Record an evaluation that produced a decision (allowed or blocked)."""
        raise NotImplementedError

    @abstractmethod
    def record_error(
        self,
        name: str,
        policy: RateLimitPolicy,
        latency: timedelta,
        error: BaseException | None,
    ) -> None:
        """Record an evaluation that failed in the rate limiter backend."""
        raise NotImplementedError


class NoOpMetricsRecorder(AbstractMetricsRecorder):
    """Default recorder that discards every observation."""

    def record_decision(self, name, policy, decision, latency) -> None:
        return None

    def record_error(self, name, policy, latency, error) -> None:
        return None
