"""Application-level exception types.

This module defines the error taxonomy used across the rate limiting core,
adapters and HTTP layer, enabling consistent error handling, logging, and
API responses:

- ValidationAppError: malformed policies/decisions, blank keys, bad scopes
- ConfigurationAppError: wiring mistakes (e.g., unregistered key resolver)
- RateLimiterBackendError: counter store unavailable (fail-closed)
- RateLimitExceededError: denial signal carrying the full evaluation context
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NotRequired, TypedDict

if TYPE_CHECKING:
    from quotaguard.domain.decision import RateLimitDecision
    from quotaguard.domain.policy import RateLimitPolicy


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    name: str
    key: str
    limit: int
    window_seconds: int
    retry_after_seconds: int
    resolver: str
    scope: str
    http_status: int
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError, ValueError):
    """Raised when input/config validation fails."""


class ConfigurationAppError(AppError):
    """Raised when the rate limiter is wired incorrectly."""


class RateLimiterBackendError(AppError):
    """Raised when the backing counter store cannot be reached or used reliably."""


class RateLimitExceededError(AppError):
    """Raised when an invocation is not allowed by the current policy.

    The decision must represent a denied request; constructing this error
    around an allowed decision is a programming error.
    """

    def __init__(
        self,
        name: str | None,
        key: str,
        policy: RateLimitPolicy,
        decision: RateLimitDecision,
    ) -> None:
        if not key or not key.strip():
            raise ValidationAppError(code="blank_key", message="key must not be blank")
        if decision.allowed:
            raise ValidationAppError(
                code="decision_not_denied",
                message="decision must represent a denied request (allowed=False)",
            )

        self.name = name if name and name.strip() else None
        self.key = key
        self.policy = policy
        self.decision = decision

        label = self.name or key
        super().__init__(
            code="rate_limit_exceeded",
            message=(
                f"Rate limit exceeded: {label} (limit={policy.limit}, "
                f"window={policy.window}, remaining={decision.remaining_time_ms})"
            ),
        )
