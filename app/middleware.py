"""
Custom HTTP middleware.

- **Request ID injection**: every request/response carries a trace ID
  (``X-Request-ID``). The ID is also published to the logging context so
  service-layer log lines for the same request can be correlated.
- **Request timing**: logs the wall-clock duration of every request and
  returns it in ``X-Process-Time``.

Authentication and role checks are NOT done here; they are FastAPI
dependencies (see ``app.core.auth``) so each route declares the roles it
accepts.
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging import request_id_ctx

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

SLOW_REQUEST_MS = 500


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Injects a unique request ID into every request/response cycle.

    An incoming ``X-Request-ID`` (from a gateway or load balancer) is reused;
    otherwise a UUID4 is generated. The ID is stored on
    ``request.state.request_id``, in the logging context variable, and
    echoed back in the response header.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Logs request duration and adds the ``X-Process-Time`` header."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Process-Time"] = f"{elapsed_ms:.2f}ms"

        extra = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "elapsed_ms": round(elapsed_ms, 2),
        }
        if elapsed_ms > SLOW_REQUEST_MS:
            logger.warning(
                "%s %s -> %d in %.2fms (SLOW)",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
                extra=extra,
            )
        else:
            logger.debug(
                "%s %s -> %d in %.2fms",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
                extra=extra,
            )

        return response
