"""
Admin authentication utilities.
Issues and verifies short-lived JWT bearer tokens for the admin HTTP surface.
"""

from __future__ import annotations

import hashlib
import hmac
import time
import uuid
from typing import Any

import jwt
from fastapi import Header

from shared.config.settings import settings
from shared.config.logging import get_logger, audit_auth_event
from shared.utils.exceptions import ServiceUnavailableError, UnauthorizedError

logger = get_logger(__name__)

ADMIN_SUBJECT = "admin"
JWT_ALGORITHM = "HS256"


def _hash_jti(jti: str) -> str:
    """Hash JTI for logging to avoid exposing token identifiers."""
    return hashlib.sha256(jti.encode()).hexdigest()[:8]


def admin_enabled() -> bool:
    """The admin surface is disabled until a password is configured."""
    return bool(settings.admin_password)


def verify_admin_password(password: str) -> bool:
    """
    Compare a candidate password with the configured admin password.

    Uses a constant-time comparison. Always False when the admin
    surface is disabled.
    """
    if not admin_enabled():
        return False
    return hmac.compare_digest(
        password.encode("utf-8"),
        settings.admin_password.encode("utf-8"),
    )


def sign_admin_token(ttl_seconds: int | None = None) -> str:
    """
    Sign an admin JWT.

    Args:
        ttl_seconds: Token lifetime in seconds. Defaults to admin_token_expire_minutes.

    Returns:
        Signed JWT token string.
    """
    if ttl_seconds is None:
        ttl_seconds = settings.admin_token_expire_minutes * 60

    now = int(time.time())
    data = {
        "sub": ADMIN_SUBJECT,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + ttl_seconds,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(data, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def verify_admin_token(token: str) -> dict[str, Any]:
    """
    Verify and decode an admin JWT.

    Returns:
        Decoded token claims.

    Raises:
        UnauthorizedError: If token is invalid, expired, or not an admin token.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[JWT_ALGORITHM],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        audit_auth_event("TOKEN_REJECTED", success=False, reason="expired")
        raise UnauthorizedError("Token has expired")
    except jwt.InvalidTokenError as e:
        # Log the actual error for debugging, but return generic message to client
        logger.warning("JWT validation failed", error=str(e))
        audit_auth_event("TOKEN_REJECTED", success=False, reason="invalid")
        raise UnauthorizedError("Invalid token")

    if payload.get("sub") != ADMIN_SUBJECT:
        audit_auth_event(
            "TOKEN_REJECTED",
            success=False,
            reason="wrong_subject",
            jti_hash=_hash_jti(str(payload.get("jti", ""))),
        )
        raise UnauthorizedError("Invalid token: wrong subject")

    return payload


def get_bearer_token(authorization: str | None) -> str:
    """
    Extract bearer token from Authorization header.

    Raises:
        UnauthorizedError: If header is missing or malformed.
    """
    if not authorization:
        raise UnauthorizedError("Missing Authorization header")
    if not authorization.startswith("Bearer "):
        raise UnauthorizedError("Invalid Authorization header format. Expected: Bearer <token>")
    return authorization.split(" ", 1)[1].strip()


def current_admin_context(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """
    FastAPI dependency guarding admin routes.

    Usage:
        @router.get("/stats")
        async def stats(ctx: dict = Depends(current_admin_context)):
            ...
    """
    if not admin_enabled():
        raise ServiceUnavailableError("Admin API")
    token = get_bearer_token(authorization)
    return verify_admin_token(token)
