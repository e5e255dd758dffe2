from __future__ import annotations

from quotaguard.api.routes.decisions import router as decisions_router
from quotaguard.api.routes.health import router as health_router
from quotaguard.api.routes.metrics import router as metrics_router

__all__ = ["decisions_router", "health_router", "metrics_router"]
