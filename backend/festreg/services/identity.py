"""
Identity verification for bearer credentials.

A verified token yields an immutable ``Identity``. When revocation checking is
on (production by default) a token issued before the user's
"tokens valid after" mark in Redis is rejected; without Redis the check
fails open. The marks are written by the sign-out flow of the identity
provider, outside this service; we only read them.
"""

from dataclasses import dataclass
from typing import Optional

import redis.asyncio as redis

from festreg.core.errors import AuthError
from festreg.core.logging import get_logger
from festreg.core.metrics import record_auth_failure
from festreg.core.security import decode_access_token

logger = get_logger(__name__)

REVOCATION_KEY = "auth:tokens_valid_after:{uid}"


@dataclass(frozen=True)
class Identity:
    uid: str
    email: Optional[str] = None


class IdentityVerifier:
    def __init__(self, redis_client: Optional[redis.Redis] = None, check_revoked: bool = False):
        self.redis = redis_client
        self.check_revoked = check_revoked

    async def verify(self, token: Optional[str]) -> Identity:
        if not token:
            record_auth_failure("missing")
            raise AuthError()

        claims = decode_access_token(token)
        uid = claims.get("sub") if claims else None
        if not uid:
            record_auth_failure("invalid")
            raise AuthError()

        if self.check_revoked and await self._is_revoked(uid, claims.get("iat")):
            record_auth_failure("revoked")
            logger.warning("identity_token_revoked", uid=uid)
            raise AuthError()

        return Identity(uid=uid, email=claims.get("email"))

    async def _is_revoked(self, uid: str, issued_at: Optional[int]) -> bool:
        if self.redis is None:
            return False
        try:
            valid_after = await self.redis.get(REVOCATION_KEY.format(uid=uid))
        except redis.RedisError as e:
            logger.warning("identity_revocation_check_failed", uid=uid, error=str(e))
            return False
        if valid_after is None:
            return False
        return issued_at is None or int(issued_at) < int(valid_after)
