"""
DigiDiploma - HTTP Middleware
Request logging, security headers, body-size limits and the maintenance gate
"""

import time
from typing import Callable, Dict, Optional, Set
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp
from sqlalchemy import select

from app.core.config import settings
from app.core.database import AsyncSessionLocal
from app.core.exceptions import DigiDiplomaError
from app.core.logging_config import (
    logger,
    set_request_id,
    set_user_id,
    set_client_ip,
    generate_request_id,
)
from app.core.security import decode_token
from app.services.maintenance_service import maintenance_state


# Paths that should skip detailed logging (health checks, static files)
SKIP_LOGGING_PATHS: Set[str] = {
    "/",
    "/api/health",
    "/favicon.ico",
    "/docs",
    "/redoc",
    "/openapi.json",
}

CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "style-src 'self' 'unsafe-inline'; "
    "script-src 'self'; "
    "img-src 'self' data: https:; "
    "connect-src 'self' ws: wss:"
)

# Reachable while maintenance mode is on
MAINTENANCE_ALLOWED_PATHS: Set[str] = {
    "/api/system/maintenance",
    "/api/health",
    "/api/users/login",
    "/api/users/register",
    "/api/users/refresh",
    "/api/notices/public",
    "/api/dashboard/public-stats",
}
MAINTENANCE_ALLOWED_PREFIXES = ("/uploads/",)
MAINTENANCE_MESSAGE = "The website is under maintenance. Please try again later."


def should_skip_logging(path: str) -> bool:
    """Check if path should skip detailed logging"""
    if path in SKIP_LOGGING_PATHS:
        return True
    if path.startswith("/uploads/") or path.endswith((".js", ".css", ".png", ".ico")):
        return True
    return False


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
        return token or None
    return None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging HTTP requests and responses.

    - Generates or propagates X-Request-ID for correlation
    - Sets request_id / client_ip context variables for downstream logging
    - Logs method, path, status and duration, and warns on slow requests
    """

    def __init__(self, app: ASGIApp, slow_request_ms: float = 1000):
        super().__init__(app)
        self.slow_request_ms = slow_request_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)
        client_ip = get_client_ip(request)
        set_client_ip(client_ip)

        path = request.url.path
        skip_logging = should_skip_logging(path)
        start_time = time.perf_counter()

        if not skip_logging:
            logger.debug(
                f"→ {request.method} {path}",
                extra={
                    "event_type": "http_request_start",
                    "http_method": request.method,
                    "http_path": path,
                    "user_agent": request.headers.get("user-agent", ""),
                    "content_length": request.headers.get("content-length", 0),
                }
            )

        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start_time) * 1000

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

            if not skip_logging:
                logger.log_request(request.method, path, response.status_code, duration_ms)
                if duration_ms > self.slow_request_ms:
                    logger.log_performance(f"{request.method} {path}", duration_ms, self.slow_request_ms)

            return response

        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"✗ {request.method} {path} - Exception ({duration_ms:.2f}ms): {type(exc).__name__}",
                exc_info=True,
                extra={
                    "event_type": "http_request_error",
                    "http_method": request.method,
                    "http_path": path,
                    "duration_ms": duration_ms,
                    "error_type": type(exc).__name__,
                }
            )
            raise

        finally:
            set_request_id("")
            set_user_id("")
            set_client_ip("")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds hardening headers and the Content-Security-Policy to every response
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers.setdefault("Content-Security-Policy", CONTENT_SECURITY_POLICY)

        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Rejects bodies above max_size; upload routes get their own larger limit
    """

    def __init__(
        self,
        app: ASGIApp,
        max_size: int = 10 * 1024 * 1024,
        path_limits: Optional[Dict[str, int]] = None,
    ):
        super().__init__(app)
        self.max_size = max_size
        self.path_limits = path_limits or {}

    def limit_for(self, path: str) -> int:
        return self.path_limits.get(path.rstrip("/"), self.max_size)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit():
            max_size = self.limit_for(request.url.path)
            if int(content_length) > max_size:
                logger.warning(
                    f"Request body too large: {content_length} bytes (max: {max_size})",
                    extra={
                        "event_type": "request_too_large",
                        "content_length": int(content_length),
                        "max_size": max_size,
                        "http_path": request.url.path,
                    }
                )
                return JSONResponse(
                    status_code=413,
                    content={"error": f"Request body too large. Maximum size is {max_size // 1024 // 1024}MB"}
                )

        return await call_next(request)


class MaintenanceModeMiddleware(BaseHTTPMiddleware):
    """
    While maintenance mode is on, answers 503 for everything except the
    allowlisted paths, CORS preflights and requests from admins.
    """

    @staticmethod
    def is_allowed_path(path: str) -> bool:
        if path.rstrip("/") in MAINTENANCE_ALLOWED_PATHS:
            return True
        return path.startswith(MAINTENANCE_ALLOWED_PREFIXES)

    @staticmethod
    async def is_admin_request(request: Request) -> bool:
        token = get_bearer_token(request)
        if not token:
            return False
        try:
            payload = decode_token(token)
        except DigiDiplomaError:
            return False
        user_id = payload.get("sub")
        if not user_id:
            return False

        # Imported here: app.models pulls in the whole model registry
        from app.models.user import User, UserType

        async with AsyncSessionLocal() as session:
            result = await session.execute(select(User.user_type).where(User.id == user_id))
            user_type = result.scalar_one_or_none()
        return user_type == UserType.ADMIN

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not maintenance_state.enabled:
            return await call_next(request)

        path = request.url.path
        if request.method == "OPTIONS" or self.is_allowed_path(path):
            return await call_next(request)

        if await self.is_admin_request(request):
            return await call_next(request)

        logger.info(f"[Maintenance] Blocked {request.method} {path}")
        return JSONResponse(
            status_code=503,
            content={"maintenance": True, "message": MAINTENANCE_MESSAGE},
        )


def upload_path_limits() -> Dict[str, int]:
    """Routes that accept base64 file payloads"""
    return {
        "/api/materials/upload-base64": settings.MAX_UPLOAD_REQUEST_SIZE,
        "/api/internships/apply": settings.MAX_UPLOAD_REQUEST_SIZE,
    }


__all__ = [
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",
    "RequestSizeLimitMiddleware",
    "MaintenanceModeMiddleware",
    "should_skip_logging",
    "get_client_ip",
    "get_bearer_token",
    "upload_path_limits",
    "CONTENT_SECURITY_POLICY",
    "MAINTENANCE_ALLOWED_PATHS",
    "MAINTENANCE_MESSAGE",
]
