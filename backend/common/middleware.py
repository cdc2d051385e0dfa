"""HTTP middleware: request-ID propagation, access logging, HTTP metrics.

Registered in backend/main.py. The request ID lives in a ContextVar so the
structured logger can tag every line emitted while the request is served,
including lines from the forecasting services.

Usage:
    from backend.common.middleware import request_id_var

    rid = request_id_var.get("")
"""

from __future__ import annotations

import re
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from backend.common.logging import get_logger
from backend.common.metrics import HTTP_REQUEST_DURATION_SECONDS, HTTP_REQUESTS_TOTAL

logger = get_logger("API")

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Probe and scrape traffic is neither logged nor counted
_QUIET_PATHS = frozenset({"/health", "/metrics"})

# Accept caller-supplied IDs only if they are short and header-safe
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _route_template(request: Request) -> str:
    """Route path with placeholders (``/api/forecasts/{user_id}``) for metric labels."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind an ``X-Request-ID`` to the request and echo it on the response.

    A valid incoming header is reused for cross-service tracing; anything
    else is replaced by a fresh UUID4 hex.
    """

    async def dispatch(self, request: Request, call_next) -> Response:  # noqa: ANN001
        incoming = request.headers.get("x-request-id", "")
        rid = incoming if _VALID_REQUEST_ID.match(incoming) else uuid.uuid4().hex
        request.state.request_id = rid
        token = request_id_var.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = rid
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log plus request count and latency per route template.

    Server errors are logged at WARNING so they stand out from normal traffic.
    """

    async def dispatch(self, request: Request, call_next) -> Response:  # noqa: ANN001
        if request.url.path in _QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        template = _route_template(request)
        HTTP_REQUESTS_TOTAL.labels(
            method=request.method, route=template, status_code=str(response.status_code)
        ).inc()
        HTTP_REQUEST_DURATION_SECONDS.labels(method=request.method, route=template).observe(
            elapsed
        )

        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={
                "data": {
                    "route": template,
                    "query": str(request.url.query) or None,
                    "status": response.status_code,
                    "duration_ms": round(elapsed * 1000, 1),
                }
            },
        )
        return response
