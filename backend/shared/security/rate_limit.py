"""
Rate limiting for public endpoints using slowapi.

The join endpoint accepts a 6-digit code from anonymous callers, so it is
limited per client IP to keep the code space expensive to walk.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from shared.config.logging import get_logger, security_audit_logger
from shared.config.settings import settings

logger = get_logger(__name__)

# Client IP as key
limiter = Limiter(key_func=get_remote_address)


def join_rate_limit() -> str:
    """Limit string for the join endpoint, read at request time."""
    return settings.join_rate_limit


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Handler for rate limit exceeded errors.
    Renders the same {"detail", "kind"} body as other errors.
    """
    security_audit_logger.warning(
        "RATE_LIMIT_AUDIT: exceeded",
        path=request.url.path,
        ip_address=get_remote_address(request),
        limit=str(exc.detail),
    )
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Rate limit exceeded, try again later",
            "kind": "rate_limited",
        },
    )
