"""Quota policy value type.

A policy is an immutable "N requests per T window" descriptor with a scope
hint. It is constructed once per resolution and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

from quotaguard.core.errors import ValidationAppError


class RateLimitScope(str, Enum):
    """Coarse classification of what a rate limit key represents."""

    GLOBAL = "GLOBAL"
    USER = "USER"
    IP = "IP"

    @classmethod
    def from_value(cls, raw: str | None) -> "RateLimitScope":
        """Case-insensitive lookup of a scope.

        Args:
            raw: Scope string such as "user" or "IP".

        Returns:
            The matching scope member.

        Raises:
            ValidationAppError: If the value is blank or unknown.
        """
        if isinstance(raw, RateLimitScope):
            return raw
        if raw is None or not raw.strip():
            raise ValidationAppError(
                code="blank_scope",
                message="Scope cannot be None or blank",
            )
        try:
            return cls[raw.strip().upper()]
        except KeyError:
            raise ValidationAppError(
                code="invalid_scope",
                message=f"Invalid scope: {raw}",
                details={"scope": raw},
            ) from None


@dataclass(frozen=True)
class RateLimitPolicy:
    """Immutable rate limit policy.

    Attributes:
        limit: Max requests allowed per window.
        window: Size of the fixed window.
        scope: Canonical scope string (GLOBAL, USER or IP).
    """

    limit: int
    window: timedelta
    scope: str = RateLimitScope.GLOBAL.value

    def __post_init__(self) -> None:
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit <= 0:
            raise ValidationAppError(
                code="invalid_limit",
                message="Limit must be greater than 0",
            )
        if not isinstance(self.window, timedelta) or self.window <= timedelta(0):
            raise ValidationAppError(
                code="invalid_window",
                message="Window must be a positive duration",
            )
        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "scope", RateLimitScope.from_value(self.scope).value)

    @property
    def scope_enum(self) -> RateLimitScope:
        return RateLimitScope(self.scope)
