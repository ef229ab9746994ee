"""
AuthGate — Rate Limiting Middleware
====================================

What:  Per-IP sliding window rate limiter to prevent abuse.
Why:   Protects the API (especially the login route) from brute force and DoS.
How:   Tracks request timestamps per client IP in memory.
When:  Near the top of the middleware chain: rejects abuse before any body
       parsing, sanitization, or audit logging happens.

Algorithm: Sliding Window Counter
    1. Each IP gets a list of request timestamps
    2. On each request, remove timestamps older than the window
    3. If remaining count >= limit, reject with 429
    4. Otherwise, add current timestamp and allow through

Headers on every limited response:
    X-RateLimit-Limit:     configured maximum per window
    X-RateLimit-Remaining: requests left in the current window
    Retry-After:           (429 only) seconds until the oldest request expires

Production Upgrade Path:
    State is per process. Multi-worker deployments need a shared store
    (e.g. Redis INCR with TTL) to enforce one limit across workers.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from authgate.config import settings

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests, please try again later."


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory sliding window rate limiter.

    Configuration (arguments override settings):
        max_requests:   Max requests per window (default: 100)
        window_seconds: Window duration in seconds (default: 900 = 15 minutes)

    Thread Safety:
        Safe for single-process async (uvicorn); see module docstring for
        multi-process deployments.
    """

    def __init__(
        self,
        app: ASGIApp,
        max_requests: Optional[int] = None,
        window_seconds: Optional[int] = None,
    ):
        super().__init__(app)
        self.max_requests = max_requests or settings.rate_limit_requests
        self.window_seconds = window_seconds or settings.rate_limit_window
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._seen = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # Behind a trusted proxy this is already the forwarded client address
        client_ip = (
            getattr(request.client, "host", "unknown")
            if request.client
            else "unknown"
        )

        now = time.time()
        window_start = now - self.window_seconds

        # ── Sliding Window: Clean old entries ─────────────────────────────
        timestamps = [ts for ts in self._requests[client_ip] if ts > window_start]
        self._requests[client_ip] = timestamps

        # ── Check rate limit ──────────────────────────────────────────────
        if len(timestamps) >= self.max_requests:
            retry_after = int(timestamps[0] + self.window_seconds - now) + 1

            logger.warning(
                "Rate limit exceeded for IP %s: %d requests in %ds window",
                client_ip,
                len(timestamps),
                self.window_seconds,
            )

            return JSONResponse(
                status_code=429,
                content={"msg": RATE_LIMIT_MESSAGE},
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(self.max_requests),
                    "X-RateLimit-Remaining": "0",
                },
            )

        # ── Record this request ───────────────────────────────────────────
        timestamps.append(now)
        remaining = self.max_requests - len(timestamps)

        # Every 1000th request: drop IPs with no activity inside the window
        self._seen += 1
        if self._seen % 1000 == 0:
            self._cleanup_inactive_ips(window_start)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        """Remove IPs that have no requests within the current window."""
        inactive_ips = [
            ip for ip, timestamps in self._requests.items()
            if not timestamps or max(timestamps) < window_start
        ]
        for ip in inactive_ips:
            del self._requests[ip]

        if inactive_ips:
            logger.debug("Cleaned up %d inactive IP entries", len(inactive_ips))
