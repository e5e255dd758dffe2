"""Application factory for the decision service.

Centralizes app construction (wiring, middleware, handlers, routers) so
tests can build isolated apps with their own enforcer and settings.
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import CollectorRegistry

from quotaguard.api.routes import decisions_router, health_router, metrics_router
from quotaguard.core.bootstrap import create_enforcer, create_metrics_recorder
from quotaguard.core.config import Settings, settings as default_settings
from quotaguard.core.exception_handlers import setup_exception_handlers
from quotaguard.core.logging import configure_logging
from quotaguard.core.middleware import request_id_middleware
from quotaguard.core.rate_limit import ENFORCER_STATE_ATTR, SETTINGS_STATE_ATTR
from quotaguard.services.enforcer import RateLimitEnforcer


def create_app(
    settings: Settings | None = None,
    enforcer: RateLimitEnforcer | None = None,
    *,
    configure_logs: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        settings: Settings to wire from (defaults to the global settings).
        enforcer: Pre-built enforcer; built from settings when omitted.
        configure_logs: Install the JSON logging handlers on the root logger.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    cfg = settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    if configure_logs:
        configure_logging(cfg.log)

    app = FastAPI(
        title="quotaguard",
        description=(
            "Admission control service: evaluates declared quotas against "
            "shared fixed-window counters and answers allow/deny decisions "
            "with retry timing."
        ),
        version="0.1.0",
    )

    metrics_registry = CollectorRegistry()
    if enforcer is None:
        enforcer = create_enforcer(
            cfg.ratelimiter,
            metrics_recorder=create_metrics_recorder(cfg.ratelimiter, metrics_registry),
        )
    setattr(app.state, ENFORCER_STATE_ATTR, enforcer)
    setattr(app.state, SETTINGS_STATE_ATTR, cfg)
    app.state.metrics_registry = metrics_registry

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(decisions_router, prefix="/v1")
    app.include_router(health_router)
    if cfg.ratelimiter.metrics_enabled:
        app.include_router(metrics_router)

    return app
