from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from orderhub.core.metrics import request_metrics
from orderhub.core.request_context import clear_request_context, set_request_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
CHANNEL_HEADER = "X-Channel"


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Request id propagation, per-route metrics and one access log line per request."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        set_request_context(request_id=request_id, channel=request.headers.get(CHANNEL_HEADER))

        response = None
        try:
            response = await call_next(request)
            return response
        finally:
            status_code = response.status_code if response is not None else 500
            endpoint = _route_template(request)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            request_metrics.observe(endpoint=endpoint, method=request.method, status_code=status_code, duration_ms=elapsed_ms)
            logger.info(
                "request completed",
                extra={
                    "endpoint": endpoint,
                    "method": request.method,
                    "status_code": status_code,
                    "duration_ms": elapsed_ms,
                },
            )
            if response is not None:
                response.headers[REQUEST_ID_HEADER] = request_id
            clear_request_context()
