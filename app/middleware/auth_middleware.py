"""
Authentication Middleware Module
================================

Starlette middleware for request processing.

Features:
- Request ID generation for tracing
- Org/user context peeked from the bearer token for logging
- Request timing
- Security headers
- In-memory rate limiting for login and travel-time lookups

Note:
    Token information read here is only used for log context.
    Full authentication is done in the dependency layer.
"""

import time
import uuid
from collections import deque
from typing import Callable, Deque, Dict, Optional, Tuple

from jose import jwt, JWTError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from app.core.config import settings
from app.core.envelope import error_response
from app.core.exceptions import ErrorCode
from app.core.logging import (
    get_logger,
    org_id_context,
    request_id_context,
    security_logger,
    user_id_context,
)

# Initialize logger
logger = get_logger(__name__)

QUIET_PATHS = {"/", "/health"}


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Request preprocessing.

    Responsibilities:
    - Generate (or accept) the request ID for tracing
    - Bind org_id/user_id log context from a valid bearer token
    - Log request timing by status class
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_context.set(request_id)
        user_id_context.set(None)
        org_id_context.set(None)

        request.state.request_id = request_id
        request.state.user_id = None
        request.state.org_id = None

        payload = self._peek_token(request.headers.get("Authorization"))
        if payload:
            request.state.user_id = payload.get("sub")
            request.state.org_id = payload.get("org_id")
            user_id_context.set(payload.get("sub"))
            org_id_context.set(payload.get("org_id"))

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request processing error",
                extra={"error": str(e), "path": request.url.path, "method": request.method},
            )
            raise

        process_time = time.perf_counter() - start_time
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.4f}"
        self._log_request(request, response, process_time)
        return response

    @staticmethod
    def _peek_token(auth_header: Optional[str]) -> Optional[dict]:
        if not auth_header or not auth_header.startswith("Bearer "):
            return None
        try:
            return jwt.decode(
                auth_header.split(" ", 1)[1],
                settings.SECRET_KEY,
                algorithms=[settings.ALGORITHM],
                options={"verify_aud": False, "verify_iss": False},
            )
        except JWTError as e:
            logger.debug("Token decode failed in middleware", extra={"error": str(e)})
            return None

    def _log_request(self, request: Request, response: Response, process_time: float) -> None:
        if request.url.path in QUIET_PATHS:
            return

        log_data = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "process_time_ms": round(process_time * 1000, 2),
            "ip_address": request.client.host if request.client else None,
        }
        if response.status_code >= 500:
            logger.error("Request completed with error", extra=log_data)
        elif response.status_code >= 400:
            logger.warning("Request completed with client error", extra=log_data)
        else:
            logger.info("Request completed", extra=log_data)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to all responses.

    Headers added:
    - X-Content-Type-Options: nosniff
    - X-Frame-Options: DENY
    - Referrer-Policy
    - Content-Security-Policy (relaxed for the docs UI in debug mode)
    - Strict-Transport-Security (in production)
    """

    _DOCS_PATHS = {"/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if settings.DEBUG and request.url.path in self._DOCS_PATHS:
            response.headers["Content-Security-Policy"] = (
                "default-src 'self'; "
                "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
                "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
                "img-src 'self' data: https://cdn.jsdelivr.net https://fastapi.tiangolo.com; "
                "frame-ancestors 'none';"
            )
        else:
            response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"

        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"

        return response


class SlidingWindowLimiter:
    """
    Per-key request counter over a trailing window.

    Single-process only; each worker keeps its own counters. Keys whose
    hits have all expired are dropped, at most once per window.
    """

    def __init__(self, limit: int, window_seconds: int, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._last_purge = clock()

    def _prune(self, hits: Deque[float], now: float) -> None:
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()

    def _purge_idle(self, now: float) -> None:
        for key in list(self._hits):
            hits = self._hits[key]
            self._prune(hits, now)
            if not hits:
                del self._hits[key]
        self._last_purge = now

    def hit(self, key: str) -> Tuple[bool, int]:
        """
        Record a request for ``key``.

        Returns:
            (allowed, retry_after_seconds)
        """
        now = self._clock()
        if now - self._last_purge >= self.window_seconds:
            self._purge_idle(now)

        hits = self._hits.setdefault(key, deque())
        self._prune(hits, now)
        if len(hits) >= self.limit:
            retry_after = int(self.window_seconds - (now - hits[0])) + 1
            return False, max(1, retry_after)
        hits.append(now)
        return True, 0

    def tracked_keys(self) -> int:
        return len(self._hits)

    def reset(self) -> None:
        self._hits.clear()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Throttles ``POST /auth/login`` and ``POST /api/travel-time`` per client IP.

    Throttled requests get a RATE_LIMITED envelope with ``Retry-After``.
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        window = settings.RATE_LIMIT_WINDOW_SECONDS
        self.limiters = {
            "/auth/login": SlidingWindowLimiter(settings.LOGIN_RATE_LIMIT, window),
            "/api/travel-time": SlidingWindowLimiter(settings.TRAVEL_TIME_RATE_LIMIT, window),
        }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not settings.RATE_LIMIT_ENABLED or request.method != "POST":
            return await call_next(request)

        limiter = self.limiters.get(request.url.path.rstrip("/"))
        if limiter is None:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        allowed, retry_after = limiter.hit(client_ip)
        if not allowed:
            security_logger.log_rate_limit_exceeded(key=client_ip, endpoint=request.url.path)
            return error_response(
                429,
                ErrorCode.RATE_LIMITED,
                "Too many requests. Please try again later.",
                details={"retry_after_seconds": retry_after},
                headers={"Retry-After": str(retry_after)},
            )

        return await call_next(request)
