from __future__ import annotations

from fastapi import APIRouter, Request

from quotaguard.core.rate_limit import get_app_settings

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness check.

    Reports the service as up together with the configured rate limiting
    mode; it does not contact the counter store.
    """

    cfg = get_app_settings(request).ratelimiter
    return {
        "status": "ok",
        "rate_limiting": "enabled" if cfg.enabled else "disabled",
        "backend": cfg.backend,
        "failure_mode": "fail_open" if cfg.fail_open else "fail_closed",
    }
