"""
HS256 JWT verification for identity-provider tokens.

The identity provider signs access tokens with a shared secret. ``sub`` is
the stable user id; the ``role`` claim marks the scheduler's service
identity. ``create_access_token`` mints compatible tokens for the scheduler
and for tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from afterhours.config import get_settings


def create_access_token(
    user_id: str,
    role: str = "authenticated",
    expires_in: timedelta = timedelta(hours=1),
) -> str:
    """
    Create an access token in the identity provider's format.

    Args:
        user_id: Stable user identifier (becomes ``sub``).
        role: ``authenticated`` for users, the scheduler role for cron callers.
        expires_in: Token lifetime.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": user_id,
        "role": role,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + expires_in,
    }
    if settings.jwt_issuer:
        payload["iss"] = settings.jwt_issuer
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify and decode an access token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or has no subject.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if not payload.get("sub"):
        msg = "Token has no subject"
        raise jwt.InvalidTokenError(msg)
    return payload
