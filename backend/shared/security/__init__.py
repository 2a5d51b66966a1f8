"""
Security module: identity boundary tokens and rate limiting.
"""

from shared.security.auth import (
    sign_jwt,
    verify_jwt,
    get_bearer_token,
    optional_token_claims,
)
from shared.security.rate_limit import (
    limiter,
    join_rate_limit,
    rate_limit_exceeded_handler,
)

__all__ = [
    # auth
    "sign_jwt",
    "verify_jwt",
    "get_bearer_token",
    "optional_token_claims",
    # rate limiting
    "limiter",
    "join_rate_limit",
    "rate_limit_exceeded_handler",
]
