"""Declarative limit configuration and per-invocation context.

A ``RateLimitConfig`` is attached to an operation once (by the decorator or
the FastAPI dependency). Every call then builds a ``RateLimitContext`` that
carries the config together with the call-site metadata the key resolvers
and policy providers need.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from quotaguard.core.errors import ValidationAppError

# Reserved resolver identity meaning "use the configured default resolver".
UNSET_KEY_RESOLVER = ""


class TimeUnit(str, Enum):
    """Unit of a declared duration."""

    MICROSECONDS = "microseconds"
    MILLISECONDS = "milliseconds"
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"

    def to_timedelta(self, amount: int) -> timedelta:
        """Convert ``amount`` of this unit to a timedelta.

        Raises:
            ValidationAppError: If the duration is beyond what timedelta can hold.
        """
        try:
            return timedelta(**{self.value: amount})
        except OverflowError as exc:
            raise ValidationAppError(
                code="invalid_window",
                message=f"Window of {amount} {self.value} is too large",
                details={"context": {"duration": amount, "time_unit": self.value}},
            ) from exc


@dataclass(frozen=True)
class RateLimitConfig:
    """Declared rate limit for one operation.

    Attributes:
        limit: Maximum number of allowed requests within the window.
        duration: Window size in ``time_unit`` units.
        time_unit: Unit of ``duration``.
        name: Optional logical name (metrics tags, error payloads).
        scope: Optional scope hint ("global", "user", "ip").
        key: Optional static key suffix to alias or disambiguate limits.
        key_resolver: Registry identity of the key resolver to use.
        enabled: Feature flag to disable enforcement without removing it.
    """

    limit: int
    duration: int
    time_unit: TimeUnit = TimeUnit.SECONDS
    name: str = ""
    scope: str = ""
    key: str = ""
    key_resolver: str = UNSET_KEY_RESOLVER
    enabled: bool = True

    @property
    def window(self) -> timedelta:
        return TimeUnit(self.time_unit).to_timedelta(self.duration)


@dataclass(frozen=True)
class RateLimitContext:
    """Read-only view of a single invocation.

    Attributes:
        config: Effective limit declaration for the invocation.
        target: Dotted path of the owner (class or module) of the operation.
        method: Name of the invoked operation.
        args: Positional call arguments.
        kwargs: Keyword call arguments.
        instance: Receiver instance, None for plain functions.
    """

    config: RateLimitConfig
    target: str
    method: str
    args: tuple[Any, ...] = ()
    kwargs: Mapping[str, Any] = field(default_factory=dict)
    instance: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "kwargs", MappingProxyType(dict(self.kwargs)))

    @property
    def target_simple_name(self) -> str:
        return self.target.rsplit(".", 1)[-1]

    def iter_arguments(self):
        """Yield positional then keyword argument values."""
        yield from self.args
        yield from self.kwargs.values()
