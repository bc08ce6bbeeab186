# backend/bookdesk/auth.py
"""
Bearer token helpers.

Tokens are HS256 JWTs carrying ``sub`` (user id), ``org_id``, ``role`` and
``exp``. Issuing tokens for real users belongs to the identity provider;
``create_access_token`` exists for trusted callers and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from .core.config import settings

REQUIRED_CLAIMS = ("sub", "org_id", "role")


def _signing_key() -> str:
    return settings.secret_key.get_secret_value()


def create_access_token(claims: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign ``claims`` with an ``exp`` stamped from ``expires_delta``.

    The lifetime defaults to ``access_token_expire_minutes``. Claims are not
    checked here; a token missing ``org_id`` or ``role`` is rejected on decode.
    """
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    payload = {**claims, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(payload, _signing_key(), algorithm=settings.algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify signature and expiry and return the claims.

    Raises:
        jwt.PyJWTError: If the signature, expiry or required claims are invalid
    """
    claims: Dict[str, Any] = jwt.decode(
        token,
        _signing_key(),
        algorithms=[settings.algorithm],
        options={"require": ["exp", *REQUIRED_CLAIMS]},
    )
    return claims
