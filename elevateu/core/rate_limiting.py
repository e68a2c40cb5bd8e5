"""
Rate limiting (slowapi)
Fixed-window counters keyed by client IP, tiered by endpoint sensitivity.

Usage on a route handler (the handler must accept `request: Request`):

    @router.post("/login")
    @limit("strict")
    async def login(request: Request, ...):
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from elevateu.core.config import RATE_LIMITS, RATE_LIMIT_STORAGE_URI, RATE_LIMIT_ENABLED
from elevateu.core.logger import api_logger

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=RATE_LIMIT_ENABLED,
)

TIER_MESSAGES = {
    "strict": "Too many attempts. Please try again after 15 minutes.",
    "auth": "Too many authentication attempts. Please try again later.",
    "standard": "Too many requests. Please slow down.",
    "read": "Too many requests. Please slow down.",
    "public": "Too many requests from this IP. Please try again later.",
}


def limit(tier: str):
    """Decorator applying one of the configured tiers"""
    return limiter.limit(RATE_LIMITS[tier], error_message=TIER_MESSAGES[tier])


def role_scoped(role: str):
    """
    Give a handler built inside a per-role factory a unique name.
    slowapi registers limits by module + function name, so handlers sharing
    a name would register the same tier twice.
    """
    def decorator(func):
        func.__name__ = f"{role}_{func.__name__}"
        func.__qualname__ = f"{role}.{func.__qualname__}"
        return func
    return decorator


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    retry_after = exc.limit.limit.get_expiry()
    api_logger.warning(
        "Rate limit exceeded: %s ip=%s path=%s method=%s",
        exc.detail, get_remote_address(request), request.url.path, request.method,
    )
    return JSONResponse(
        status_code=429,
        content={"success": False, "message": exc.detail, "retryAfter": retry_after},
        headers={"Retry-After": str(retry_after)},
    )
