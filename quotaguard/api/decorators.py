"""Decorator enforcing a declared rate limit around a callable.

The decorator is the call-boundary counterpart of the FastAPI dependency:
it builds a ``RateLimitContext`` from the call and asks the enforcer to
enforce it before delegating to the wrapped function. Both plain and
``async`` callables are supported; for coroutines the enforcer runs in the
default executor. Methods are keyed by the runtime class of their receiver.

Usage:
    limited = rate_limited(enforcer, limit=5, duration=1, time_unit=TimeUnit.MINUTES)

    class InvoiceService:
        @limited
        def create(self, payload): ...
"""

from __future__ import annotations

import asyncio
import functools
import inspect
from typing import Any, Callable, TypeVar

from quotaguard.domain.context import RateLimitConfig, RateLimitContext
from quotaguard.services.enforcer import RateLimitEnforcer

F = TypeVar("F", bound=Callable[..., Any])


def _owner_qualname(func: Callable[..., Any]) -> str | None:
    owner, _, _ = func.__qualname__.rpartition(".")
    if not owner or owner.endswith("<locals>"):
        return None
    return owner


def build_context(
    func: Callable[..., Any],
    config: RateLimitConfig,
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
) -> RateLimitContext:
    """Describe one call of ``func`` for the enforcer."""

    instance = None
    owner = _owner_qualname(func)
    if owner is not None and args and hasattr(type(args[0]), func.__name__):
        instance = args[0]
        receiver_type = type(instance)
        target = f"{receiver_type.__module__}.{receiver_type.__qualname__}"
    elif owner is not None:
        target = f"{func.__module__}.{owner}"
    else:
        target = func.__module__

    return RateLimitContext(
        config=config,
        target=target,
        method=func.__name__,
        args=args,
        kwargs=kwargs,
        instance=instance,
    )


def rate_limited(
    enforcer: RateLimitEnforcer,
    config: RateLimitConfig | None = None,
    **config_kwargs: Any,
) -> Callable[[F], F]:
    """Return a decorator enforcing ``config`` before each call.

    Args:
        enforcer: Enforcer to consult.
        config: Declared limit; alternatively pass RateLimitConfig fields as
            keyword arguments.

    Raises:
        TypeError: If both or neither of ``config`` and keyword fields are given.
    """

    if config is None and not config_kwargs:
        raise TypeError("rate_limited requires a RateLimitConfig or its fields")
    if config is not None and config_kwargs:
        raise TypeError("pass either a RateLimitConfig or keyword fields, not both")
    declared = config or RateLimitConfig(**config_kwargs)

    def decorator(func: F) -> F:
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                if declared.enabled:
                    # Store round trip blocks; run it in the default executor
                    loop = asyncio.get_running_loop()
                    await loop.run_in_executor(
                        None, enforcer.enforce, build_context(func, declared, args, kwargs)
                    )
                return await func(*args, **kwargs)

            async_wrapper.rate_limit_config = declared  # type: ignore[attr-defined]
            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if declared.enabled:
                enforcer.enforce(build_context(func, declared, args, kwargs))
            return func(*args, **kwargs)

        wrapper.rate_limit_config = declared  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator
