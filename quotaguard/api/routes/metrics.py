from __future__ import annotations

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

router = APIRouter(tags=["Health"])


@router.get("/metrics", include_in_schema=False)
def prometheus_metrics(request: Request) -> Response:
    """Prometheus exposition of the rate limiter metrics."""

    registry = getattr(request.app.state, "metrics_registry", None) or REGISTRY
    return Response(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)
