"""HTTP middleware for request correlation.

Every request gets a correlation id (taken from the incoming request id
header or freshly generated) that is stored in contextvars for the logging
filters and echoed back on the response together with the handling time.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from quotaguard.core.logging import clear_request_id, set_request_id
from quotaguard.core.rate_limit import get_app_settings


async def request_id_middleware(request: Request, call_next) -> Response:
    """Propagate a request id through logs and response headers.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with the request id header and
            an ``X-Request-Duration-ms`` header added.
    """

    header_name = get_app_settings(request).log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault(
        "X-Request-Duration-ms", f"{(time.perf_counter() - start) * 1000:.2f}"
    )
    return response
