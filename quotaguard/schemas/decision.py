"""Pydantic schemas for the decision endpoints."""

from __future__ import annotations

from datetime import timedelta

from pydantic import BaseModel, Field

from quotaguard.domain.context import UNSET_KEY_RESOLVER, RateLimitConfig, TimeUnit
from quotaguard.domain.decision import RateLimitDecision


class DecisionRequest(BaseModel):
    """Declared limit to evaluate for one caller."""

    name: str = Field("", description="Logical name of the limit (metrics, error payloads).")
    scope: str = Field("", description="Scope hint: global, user or ip. Blank means global.")
    limit: int = Field(..., description="Maximum requests allowed per window.")
    duration: int = Field(..., description="Window size in time_unit units.")
    time_unit: TimeUnit = Field(TimeUnit.SECONDS, description="Unit of duration.")
    key: str = Field(
        "",
        description="Static key identifying the bucket (e.g. a tenant id). Blank keys the limit by name.",
    )
    key_resolver: str = Field(
        UNSET_KEY_RESOLVER,
        description="Registered key resolver to use; blank selects the default resolver.",
    )

    def to_config(self) -> RateLimitConfig:
        return RateLimitConfig(
            limit=self.limit,
            duration=self.duration,
            time_unit=self.time_unit,
            name=self.name,
            scope=self.scope,
            key=self.key,
            key_resolver=self.key_resolver,
        )


class DecisionResponse(BaseModel):
    """Outcome of evaluating a declared limit."""

    allowed: bool = Field(..., description="Whether the request may proceed.")
    remaining_time_ms: int = Field(
        ...,
        description="0 when allowed, ms until the window resets when denied, -1 when unknown.",
    )
    retry_after_ms: int | None = Field(None, description="Wait before retrying (denials only).")
    reset_after_ms: int | None = Field(None, description="Time until the current window resets.")

    @classmethod
    def from_decision(cls, decision: RateLimitDecision) -> "DecisionResponse":
        def millis(value: timedelta | None) -> int | None:
            return None if value is None else value // timedelta(milliseconds=1)

        return cls(
            allowed=decision.allowed,
            remaining_time_ms=decision.remaining_time_ms,
            retry_after_ms=millis(decision.retry_after),
            reset_after_ms=millis(decision.reset_after),
        )
