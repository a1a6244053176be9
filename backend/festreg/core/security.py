"""
Token helpers: identity JWTs and the shared webhook secret.
"""

import hmac
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt

from festreg.core.config import get_settings


def create_access_token(
    uid: str,
    email: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
    issued_at: Optional[datetime] = None,
) -> str:
    """Mint an identity token for ``uid`` (dev tooling and tests)."""
    settings = get_settings()
    now = issued_at or datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    claims: dict[str, Any] = {
        "sub": uid,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }
    if email:
        claims["email"] = email
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[dict[str, Any]]:
    """Return the verified claims, or None if the token is malformed, forged or expired."""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def webhook_token_matches(presented: Optional[str], configured: str) -> bool:
    """
    Constant-time comparison of the presented webhook secret.

    A length mismatch rejects before the byte comparison runs.
    """
    if presented is None:
        return False
    presented_bytes = presented.encode()
    configured_bytes = configured.encode()
    if len(presented_bytes) != len(configured_bytes):
        return False
    return hmac.compare_digest(presented_bytes, configured_bytes)
