"""Access tokens whose subject is a canonical account id."""

from __future__ import annotations

import time
from typing import Any

import jwt

from ..config import Settings, get_settings


def issue_access_token(subject: str, settings: Settings | None = None) -> tuple[str, int]:
    """Create a signed JWT for a canonical account id.

    Parameters
    ----------
    subject:
        Canonical account identifier placed in the ``sub`` claim.
    settings:
        Overrides the process settings, mainly for tests.

    Returns
    -------
    tuple[str, int]
        The encoded token and its TTL in seconds.
    """
    settings = settings or get_settings()
    now = int(time.time())
    expires_in = settings.jwt_ttl_seconds
    payload: dict[str, Any] = {
        "iss": settings.jwt_issuer,
        "sub": subject,
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256"), expires_in


def decode_access_token(token: str, settings: Settings | None = None) -> dict[str, Any]:
    """Verify a token issued by this service and return its claims.

    Raises
    ------
    jwt.PyJWTError
        When the signature, expiry or issuer check fails.
    """
    settings = settings or get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=["HS256"],
        issuer=settings.jwt_issuer,
        options={"require": ["sub", "exp"]},
    )
