"""
Natours API — Rate Limiting Middleware
========================================

What:  Per-IP fixed-window request budget on every `/api` path.
How:   Each IP owns a (window_start, count) pair. The first request after the
       window has elapsed starts a new window; the request that would exceed
       the budget is answered with 429 and a Retry-After header pointing at
       the end of the current window.

Defaults: 100 requests per hour (RATE_LIMIT_REQUESTS / RATE_LIMIT_WINDOW).

Deployment note:
    Counters live in process memory. Behind several uvicorn workers each
    worker enforces its own budget; a shared store is needed for a global one.
"""

import logging
import time
from typing import Dict, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from natours.config import settings
from natours.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory fixed-window limiter.

    Args:
        max_requests: Budget per window (default: settings.rate_limit_requests)
        window:       Window length in seconds (default: settings.rate_limit_window)
        path_prefix:  Only paths under this prefix are counted
    """

    def __init__(
        self,
        app,
        max_requests: Optional[int] = None,
        window: Optional[int] = None,
        path_prefix: str = "/api",
    ):
        super().__init__(app)
        self.max_requests = max_requests or settings.rate_limit_requests
        self.window = window or settings.rate_limit_window
        self.path_prefix = path_prefix
        # ip → (window_start, count)
        self._windows: Dict[str, Tuple[float, int]] = {}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.monotonic()

        window_start, count = self._windows.get(client_ip, (now, 0))
        if now - window_start >= self.window:
            window_start, count = now, 0

        if count >= self.max_requests:
            retry_after = int(window_start + self.window - now) + 1
            logger.warning(
                "Rate limit exceeded for IP %s: %d requests in %ds window",
                client_ip,
                count,
                self.window,
            )
            error = RateLimitExceededError(retry_after=retry_after)
            return JSONResponse(
                status_code=error.status_code,
                content={"status": error.status, "message": error.message},
                headers={"Retry-After": str(retry_after)},
            )

        self._windows[client_ip] = (window_start, count + 1)

        if len(self._windows) > 10000:
            self._evict_expired(now)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self.max_requests - count - 1))
        return response

    def _evict_expired(self, now: float) -> None:
        expired = [ip for ip, (start, _) in self._windows.items() if now - start >= self.window]
        for ip in expired:
            del self._windows[ip]
        if expired:
            logger.debug("Evicted %d expired rate-limit windows", len(expired))
