"""Policy providers.

The default provider builds the policy straight from the declared
configuration; it never consults external state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from quotaguard.core.errors import ValidationAppError
from quotaguard.domain.context import RateLimitContext, TimeUnit
from quotaguard.domain.policy import RateLimitPolicy, RateLimitScope


class AbstractPolicyProvider(ABC):
    """Interface for policy providers."""

    @abstractmethod
    def resolve_policy(self, context: RateLimitContext) -> RateLimitPolicy:
        """Return the effective policy for the invocation (never None)."""
        raise NotImplementedError


class DeclaredPolicyProvider(AbstractPolicyProvider):
    """Build a policy from ``RateLimitConfig`` values."""

    def resolve_policy(self, context: RateLimitContext) -> RateLimitPolicy:
        if context is None or context.config is None:
            raise ValidationAppError(
                code="missing_config",
                message="context must carry a rate limit configuration",
            )
        config = context.config

        window = TimeUnit(config.time_unit).to_timedelta(config.duration)
        scope = config.scope
        if scope is None or not scope.strip():
            scope = RateLimitScope.GLOBAL.value

        return RateLimitPolicy(limit=config.limit, window=window, scope=scope)
