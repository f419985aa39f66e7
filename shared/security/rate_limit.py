"""
Rate limiting for the admin HTTP surface using slowapi.

Protects the admin login endpoint from password guessing.
Chat message rate limiting is a separate concern handled per display name
by chat_gateway.components.connection.rate_limiter.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from shared.config.logging import get_logger

logger = get_logger(__name__)

# Create limiter instance using client IP as key (in-memory storage)
limiter = Limiter(key_func=get_remote_address)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Custom handler for rate limit exceeded errors.
    Returns a JSON response with the violated limit.
    """
    logger.warning(
        "Admin rate limit exceeded",
        path=request.url.path,
        ip_address=get_remote_address(request),
        limit=str(exc.detail),
    )
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Too many requests. Try again later.",
            "limit": str(exc.detail),
        },
    )
