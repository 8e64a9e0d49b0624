"""
Security middleware for the civic issues API.

Implements:
- Security headers (OWASP recommended)
- Request size limits
- Request logging (sanitized)
- Session context from the JWT cookie
"""

import time
import logging
from typing import Dict, Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.datastructures import Headers

from civic_issues.config import settings
from civic_issues.errors import AuthenticationRequiredError
from civic_issues.security import decode_access_token

logger = logging.getLogger(__name__)

UNLOGGED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

# Issue photos are served from the image host
CONTENT_SECURITY_POLICY = "; ".join([
    "default-src 'self'",
    "script-src 'self'",
    "style-src 'self' 'unsafe-inline'",
    "img-src 'self' data: https://res.cloudinary.com",
    "font-src 'self' data:",
    "connect-src 'self'",
    "frame-ancestors 'none'",
    "base-uri 'self'",
    "form-action 'self'",
])

# Reports capture the reporter's location and a photo
PERMISSIONS_POLICY = ", ".join([
    "geolocation=(self)",
    "camera=(self)",
    "microphone=()",
    "payment=()",
    "usb=()",
])

STATIC_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": PERMISSIONS_POLICY,
}

HSTS_HEADER = "max-age=31536000; includeSubDomains; preload"


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add the OWASP header set to every response.

    The CSP allows images from Cloudinary; HSTS is only sent in production,
    where the API sits behind TLS.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers.update(STATIC_SECURITY_HEADERS)
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = HSTS_HEADER

        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Reject request bodies larger than the configured limit with 413.

    Default limit: 10MB (configurable via MAX_REQUEST_SIZE)
    """

    def __init__(self, app, max_size: int = 10 * 1024 * 1024):
        """
        Args:
            app: ASGI application
            max_size: Maximum request size in bytes
        """
        super().__init__(app)
        self.max_size = max_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")

        if content_length and content_length.isdigit() and int(content_length) > self.max_size:
            logger.warning(
                f"Request size {content_length} exceeds limit {self.max_size} "
                f"from {client_ip(request)}"
            )
            return JSONResponse(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                content={
                    "detail": f"Request body too large. Maximum size: {self.max_size} bytes"
                }
            )

        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every request with its status and duration.

    Never logs passwords, cookies or tokens.
    """

    SENSITIVE_HEADERS = {
        "authorization",
        "cookie",
        "set-cookie",
        "x-api-key",
    }

    def _sanitize_headers(self, headers: Headers) -> Dict[str, str]:
        sanitized = {}
        for key, value in headers.items():
            if key.lower() in self.SENSITIVE_HEADERS:
                sanitized[key] = "***REDACTED***"
            else:
                sanitized[key] = value
        return sanitized

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        method = request.method
        path = request.url.path

        if path in UNLOGGED_PATHS:
            return await call_next(request)

        logger.info(f"Request: {method} {path} from {client_ip(request)}")
        logger.debug(f"Headers: {self._sanitize_headers(request.headers)}")

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Error: {method} {path} -> {type(e).__name__}: {str(e)} "
                f"({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Response: {method} {path} -> {response.status_code} "
            f"({duration_ms:.2f}ms)"
        )
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response


class SessionContextMiddleware(BaseHTTPMiddleware):
    """
    Decode the session cookie into ``request.state``.

    Sets ``user_id`` and ``role`` (None when there is no valid token).
    Never rejects a request; authorization happens in route dependencies.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.user_id = None
        request.state.role = None

        token = request.cookies.get(settings.AUTH_COOKIE_NAME)
        if token:
            try:
                claims = decode_access_token(token)
            except AuthenticationRequiredError as e:
                logger.debug(f"Ignoring session cookie from {client_ip(request)}: {e.message}")
            else:
                request.state.user_id = claims.get("sub")
                request.state.role = claims.get("role")

        return await call_next(request)


def get_request_size_limit() -> int:
    return settings.MAX_REQUEST_SIZE


def get_rate_limits() -> Dict[str, int]:
    """
    Rate limits from settings.

    Returns:
        Dictionary with auth_limit and general_limit (requests per minute)
    """
    return {
        "auth_limit": settings.AUTH_RATE_LIMIT,
        "general_limit": settings.GENERAL_RATE_LIMIT,
    }
