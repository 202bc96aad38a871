"""
Production Middleware
=====================

Rate limiting, request logging and CORS.

Usage:
    from app.middleware import setup_middleware
    setup_middleware(app)
"""

import logging
import time
import uuid
from collections import defaultdict
from typing import Callable, Dict, List, Tuple

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import settings

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> str:
    """Client IP, honouring proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    if request.client:
        return request.client.host
    return "unknown"


# =============================================================================
# REQUEST LOGGING
# =============================================================================

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every request with timing and a short request id.

    The id is echoed back in ``X-Request-ID``; ``X-Response-Time`` carries the
    handler duration.
    """

    EXCLUDE_PATHS = {"/health", "/ready", "/live", "/favicon.ico"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.EXCLUDE_PATHS:
            return await call_next(request)

        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        start_time = time.perf_counter()

        response = None
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            status_code = response.status_code if response else 500

            message = (
                f"{request.method} {request.url.path} {status_code} "
                f"{duration_ms:.1f}ms id={request_id} ip={client_ip(request)}"
            )
            if status_code >= 500:
                logger.error(message)
            elif status_code >= 400:
                logger.warning(message)
            else:
                logger.info(message)

            if response:
                response.headers["X-Request-ID"] = request_id
                response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"


# =============================================================================
# RATE LIMITING
# =============================================================================

class InMemoryRateLimiter:
    """
    Sliding-window limiter kept in process memory.

    Limits are per instance; several API replicas each allow the full rate.
    """

    def __init__(self, requests_per_minute: int = 60, burst_limit: int = 100, window_seconds: int = 60):
        self.requests_per_minute = requests_per_minute
        self.burst_limit = burst_limit
        self.window_seconds = window_seconds
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._last_cleanup = time.time()

    def is_allowed(self, client_key: str) -> Tuple[bool, int]:
        """Returns (is_allowed, requests_remaining)."""
        now = time.time()
        window_start = now - self.window_seconds
        if now - self._last_cleanup > self.window_seconds:
            self.cleanup()

        requests = self._requests[client_key]
        requests[:] = [r for r in requests if r > window_start]

        if len(requests) >= min(self.requests_per_minute, self.burst_limit):
            return False, 0

        requests.append(now)
        return True, max(0, self.requests_per_minute - len(requests))

    def cleanup(self):
        """Remove old entries to prevent memory growth."""
        now = time.time()
        window_start = now - self.window_seconds * 2
        for key in list(self._requests.keys()):
            self._requests[key] = [r for r in self._requests[key] if r > window_start]
            if not self._requests[key]:
                del self._requests[key]
        self._last_cleanup = now


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-client rate limiting (API key if present, otherwise IP)."""

    EXEMPT_PATHS = {"/health", "/ready", "/live", "/docs", "/openapi.json"}

    def __init__(self, app: FastAPI, requests_per_minute: int = 60, burst_limit: int = 100, window_seconds: int = 60):
        super().__init__(app)
        self.limiter = InMemoryRateLimiter(
            requests_per_minute=requests_per_minute,
            burst_limit=burst_limit,
            window_seconds=window_seconds,
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.EXEMPT_PATHS:
            return await call_next(request)

        client_key = self._client_key(request)
        is_allowed, remaining = self.limiter.is_allowed(client_key)

        if not is_allowed:
            logger.warning(f"Rate limit exceeded for {client_key}")
            retry_after = self.limiter.window_seconds
            return ORJSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": "Too many requests. Please slow down.",
                    "retry_after": retry_after,
                },
                headers={"Retry-After": str(retry_after)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.limiter.requests_per_minute)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response

    def _client_key(self, request: Request) -> str:
        api_key = request.headers.get("x-api-key")
        if api_key:
            return f"apikey:{hash(api_key) % 10**8}"
        return f"ip:{client_ip(request)}"


# =============================================================================
# SETUP FUNCTION
# =============================================================================

def setup_middleware(app: FastAPI) -> None:
    """Configure CORS, rate limiting (if enabled) and request logging."""
    cors_origins = settings.cors_origins_list

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Response-Time", "X-RateLimit-Limit", "X-RateLimit-Remaining"],
    )

    if settings.rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware,
            requests_per_minute=settings.rate_limit_requests,
            burst_limit=settings.rate_limit_burst,
            window_seconds=settings.rate_limit_window,
        )

    # Outermost, so it logs rate-limited requests too
    app.add_middleware(RequestLoggingMiddleware)

    logger.info(
        f"Middleware configured: "
        f"rate_limit={'enabled' if settings.rate_limit_enabled else 'disabled'} "
        f"({settings.rate_limit_requests}/{settings.rate_limit_window}s), "
        f"cors_origins={len(cors_origins)} origins"
    )
