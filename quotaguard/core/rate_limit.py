"""Rate limiting dependency for FastAPI routes.

This module wires the enforcer into the HTTP layer.

Design goals:
- Minimal coupling: routes declare a ``RateLimitConfig`` and depend on the
  function returned by ``rate_limit`` only.
- Swap-friendly: the enforcer lives on ``app.state`` so tests and
  deployments can inject their own wiring.
- Kill switch: ``RATELIMITER_ENABLED=false`` or ``enabled=False`` on the
  config skips enforcement entirely.

Usage:
    @router.post(
        "/invoices",
        dependencies=[Depends(rate_limit(RateLimitConfig(limit=10, duration=1,
                                                         time_unit=TimeUnit.MINUTES,
                                                         key_resolver="client")))],
    )
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Request

from quotaguard.core.config import Settings, settings
from quotaguard.core.errors import ConfigurationAppError
from quotaguard.domain.context import RateLimitConfig, RateLimitContext
from quotaguard.services.enforcer import RateLimitEnforcer

logger = logging.getLogger(__name__)

ENFORCER_STATE_ATTR = "rate_limit_enforcer"
SETTINGS_STATE_ATTR = "settings"


def get_app_settings(request: Request) -> Settings:
    """Settings the running application was built with.

    Apps assembled without ``create_app`` fall back to the global settings.
    """

    return getattr(request.app.state, SETTINGS_STATE_ATTR, None) or settings


def get_enforcer(request: Request) -> RateLimitEnforcer:
    """Return the enforcer attached to the running application.

    Raises:
        ConfigurationAppError: If the application was built without one.
    """

    enforcer = getattr(request.app.state, ENFORCER_STATE_ATTR, None)
    if enforcer is None:
        raise ConfigurationAppError(
            code="enforcer_not_configured",
            message="No rate limit enforcer is attached to the application state",
        )
    return enforcer


def _route_identity(request: Request) -> tuple[str, str]:
    """Owner path and operation name of the endpoint serving the request."""

    endpoint = request.scope.get("endpoint")
    if endpoint is None:
        return "http", f"{request.method} {request.url.path}"
    qualname = getattr(endpoint, "__qualname__", endpoint.__name__)
    owner, _, method = qualname.rpartition(".")
    if not owner or owner.endswith("<locals>"):
        return endpoint.__module__, method
    return f"{endpoint.__module__}.{owner}", method


def rate_limit(config: RateLimitConfig) -> Callable[[Request], None]:
    """Build a FastAPI dependency enforcing ``config`` on every request.

    The dependency is synchronous so FastAPI runs the (blocking) counter
    store round trip in its threadpool.

    Args:
        config: Declared limit for the route.

    Returns:
        Dependency callable raising RateLimitExceededError on denial.
    """

    def enforce_rate_limit(request: Request) -> None:
        if not get_app_settings(request).ratelimiter.enabled or not config.enabled:
            logger.debug(
                "rate_limit.skipped",
                extra={"limit_name": config.name or None, "path": request.url.path},
            )
            return

        target, method = _route_identity(request)
        context = RateLimitContext(
            config=config,
            target=target,
            method=method,
            args=(request,),
        )
        get_enforcer(request).enforce(context)

    return enforce_rate_limit
