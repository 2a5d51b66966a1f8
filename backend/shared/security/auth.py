"""
Token handling at the identity boundary.

Staff and signed-in customers present a JWT bearer token carrying
`sub`, `tenant_id` and `role`. Credential verification (login) happens
elsewhere; this module only signs tokens for tooling/tests and verifies
the ones it receives.
"""

from __future__ import annotations

import time
import uuid
from typing import Any

import jwt
from fastapi import HTTPException, Header, status

from shared.config.constants import Roles
from shared.config.logging import audit_auth_event, get_logger
from shared.config.settings import JWT_SECRET, JWT_ISSUER, JWT_AUDIENCE

logger = get_logger(__name__)

DEFAULT_TOKEN_TTL_SECONDS = 60 * 60


def sign_jwt(payload: dict[str, Any], ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS) -> str:
    """
    Sign a JWT with the given claims.

    Args:
        payload: Claims to include (sub, tenant_id, role).
        ttl_seconds: Token lifetime in seconds.

    Returns:
        Signed JWT token string.
    """
    now = int(time.time())
    data = {
        **payload,
        "iss": JWT_ISSUER,
        "aud": JWT_AUDIENCE,
        "iat": now,
        "exp": now + ttl_seconds,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(data, JWT_SECRET, algorithm="HS256")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def verify_jwt(token: str) -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Raises:
        HTTPException: 401 if the token is invalid, expired, or missing claims.
    """
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=["HS256"],
            audience=JWT_AUDIENCE,
            issuer=JWT_ISSUER,
        )
    except jwt.ExpiredSignatureError:
        audit_auth_event("TOKEN_EXPIRED", success=False, reason="expired")
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError as e:
        # Generic message to the client, actual error in the log
        audit_auth_event("TOKEN_INVALID", success=False, reason=str(e))
        raise _unauthorized("Invalid token")

    for claim in ("sub", "tenant_id", "role"):
        if claim not in payload:
            audit_auth_event("TOKEN_INVALID", success=False, reason=f"missing {claim}")
            raise _unauthorized(f"Invalid token: missing {claim} claim")

    if not isinstance(payload["tenant_id"], int):
        raise _unauthorized("Invalid token: malformed tenant_id claim")

    # The public role is synthetic and never minted into a token
    if payload["role"] not in Roles.ALL or payload["role"] == Roles.PUBLIC:
        audit_auth_event(
            "TOKEN_INVALID",
            user_id=payload.get("sub"),
            success=False,
            reason="unknown role",
        )
        raise _unauthorized("Invalid token: unknown role")

    return payload


def get_bearer_token(authorization: str | None) -> str | None:
    """
    Extract the bearer token from an Authorization header.

    Returns None when the header is absent. A present but malformed header
    is rejected rather than silently treated as anonymous.
    """
    if not authorization:
        return None
    if not authorization.startswith("Bearer "):
        raise _unauthorized("Invalid Authorization header format. Expected: Bearer <token>")
    return authorization.split(" ", 1)[1].strip()


def optional_token_claims(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any] | None:
    """
    FastAPI dependency returning verified claims, or None for anonymous callers.

    Usage:
        @router.get("/sessions/{session_id}")
        def read(claims = Depends(optional_token_claims)):
            ...
    """
    token = get_bearer_token(authorization)
    if token is None:
        return None
    return verify_jwt(token)
