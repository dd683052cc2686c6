"""
Natours API — Access Logging Middleware
=========================================

What:  One structured log line per HTTP request on the `natours.access` logger.
How:   Measures wall time around the downstream app and logs method, path,
       status, duration, request ID and client IP. The level follows the
       status class so alerting can key off severity:

           5xx → ERROR    4xx → WARNING    everything else → INFO

Privacy:
    Bodies, cookies and the Authorization header are never logged. Query
    strings are left out too: reset tokens travel in the path of a PATCH, and
    the path is logged, but that route only accepts the token once.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from natours.middleware.request_id import request_id_var

logger = logging.getLogger("natours.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request/response pair. `/health` probes are not logged."""

    QUIET_PATHS = {"/health"}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in self.QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
