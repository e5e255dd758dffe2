"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- RateLimitExceededError → 429 with Retry-After / RateLimit-* headers
- RateLimiterBackendError → 503 (fail-closed backend outage)
- ConfigurationAppError → 500 (wiring mistake)
- Other AppError subclasses → 400
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing
"""

import logging
from datetime import datetime, timezone

from fastapi import Request
from fastapi.responses import JSONResponse

from quotaguard.core.errors import (
    AppError,
    ConfigurationAppError,
    RateLimiterBackendError,
    RateLimitExceededError,
)
from quotaguard.core.logging import get_request_id, hash_identifier
from quotaguard.core.rate_limit import get_app_settings

logger = logging.getLogger(__name__)


def resolve_retry_after_seconds(exc: RateLimitExceededError) -> int:
    """Whole seconds a client should wait, never below 1.

    Falls back to the policy window when the decision carries no retry time.
    """
    retry_after = exc.decision.retry_after or exc.policy.window
    return max(1, int(retry_after.total_seconds()))


def build_rate_limit_headers(exc: RateLimitExceededError) -> dict[str, str]:
    retry_after_seconds = resolve_retry_after_seconds(exc)
    return {
        "Retry-After": str(retry_after_seconds),
        "RateLimit-Limit": str(exc.policy.limit),
        "RateLimit-Remaining": "0",
        "RateLimit-Reset": str(retry_after_seconds),
    }


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    """Translate a denial into HTTP 429 Too Many Requests.

    The body follows the common error envelope; ``details`` carries the
    limit name, policy and retry timing. Headers are included unless
    RATELIMITER_INCLUDE_HTTP_HEADERS is false.

    Args:
        request: FastAPI request object.
        exc: Denial raised by the enforcer.

    Returns:
        JSONResponse with status 429.
    """
    retry_after_seconds = resolve_retry_after_seconds(exc)

    logger.info(
        "rate_limit_exceeded_handled",
        extra={
            "limit_name": exc.name,
            "key_hash": hash_identifier(exc.key),
            "retry_after_s": retry_after_seconds,
            "request_path": request.url.path,
            "request_id": get_request_id(),
        },
    )

    details = {
        "limit": exc.policy.limit,
        "window_seconds": int(exc.policy.window.total_seconds()),
        "scope": exc.policy.scope,
        "retry_after_seconds": retry_after_seconds,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if exc.name is not None:
        details["name"] = exc.name

    include_headers = get_app_settings(request).ratelimiter.include_http_headers
    headers = build_rate_limit_headers(exc) if include_headers else None

    return JSONResponse(
        status_code=429,
        content={
            "error": {
                "code": exc.code,
                "message": "Rate limit exceeded. Try again later.",
                "request_id": get_request_id(),
                "details": details,
            }
        },
        headers=headers,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Routes domain errors to appropriate HTTP status codes:
    - RateLimiterBackendError → 503 Service Unavailable
    - ConfigurationAppError → 500 Internal Server Error
    - ValidationAppError and others → 400 Bad Request

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = 400
    if isinstance(exc, RateLimiterBackendError):
        status_code = 503
    elif isinstance(exc, ConfigurationAppError):
        status_code = 500

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    # Backend messages name the bucket key; keep them server-side
    if isinstance(exc, RateLimiterBackendError):
        error_content["message"] = "Rate limiting is temporarily unavailable."

    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic
    message; no stack traces or exception text reach the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Handlers are looked up by exception class hierarchy, so the denial
    handler wins over the generic AppError handler.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(RateLimitExceededError)(rate_limit_exceeded_handler)
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
