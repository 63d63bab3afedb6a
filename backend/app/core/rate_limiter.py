"""
Rate Limiting for the DigiDiploma API
=====================================
slowapi limiter keyed by client IP, in-memory by default or shared through
Redis when RATE_LIMIT_STORAGE_URI points at one.

Limits (production / development):
- every /api route: 100 / 1000 requests per 15 minutes (default limit)
- /users/login, /users/register, /users/forgot-password: 5 / 100 per 15 minutes
- /users/send-email-otp, /users/verify-email-otp: 20 / 1000 per 15 minutes
- unauthenticated form endpoints (contact, project requests, internships): 50 / 200 per minute
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging_config import logger


RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."
AUTH_RATE_LIMIT_MESSAGE = "Too many authentication attempts, please try again later."
OTP_RATE_LIMIT_MESSAGE = "Too many OTP requests. Please wait a few minutes before trying again."


def get_client_identifier(request: Request) -> str:
    """
    Rate limit key: first X-Forwarded-For hop when behind a proxy, else the peer address
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_client_identifier,
    default_limits=[settings.GENERAL_RATE_LIMIT],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI or "memory://",
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """
    429 with the same {"error": ...} body as every other failure, plus Retry-After
    """
    retry_after = exc.limit.limit.get_expiry() if getattr(exc, "limit", None) else 60
    message = exc.limit.error_message if getattr(exc, "limit", None) and exc.limit.error_message else RATE_LIMIT_MESSAGE

    logger.warning(
        f"[RateLimit] Exceeded for {get_client_identifier(request)} on {request.url.path}: {exc.detail}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": message,
            "retryAfter": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )


def auth_rate_limit():
    """Login / register / password-reset brute force protection"""
    return limiter.limit(settings.AUTH_RATE_LIMIT, error_message=AUTH_RATE_LIMIT_MESSAGE)


def otp_rate_limit():
    return limiter.limit(settings.OTP_RATE_LIMIT, error_message=OTP_RATE_LIMIT_MESSAGE)


def public_form_rate_limit():
    """Unauthenticated write endpoints (contact form, project requests, internship applications)"""
    return limiter.limit(settings.PUBLIC_RATE_LIMIT)
