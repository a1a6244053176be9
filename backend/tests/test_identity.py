"""
Tests for bearer token verification and the Redis revocation list.
"""

import time
from datetime import datetime, timedelta, timezone

import pytest
import redis.asyncio as redis

from festreg.core.errors import AuthError
from festreg.core.security import create_access_token, webhook_token_matches
from festreg.services.identity import REVOCATION_KEY, IdentityVerifier


class FakeRedis:
    def __init__(self, fail: bool = False):
        self.values = {}
        self.fail = fail

    async def get(self, key):
        if self.fail:
            raise redis.ConnectionError("redis is down")
        return self.values.get(key)

    async def aclose(self):
        pass


def sign_out(fake: FakeRedis, uid: str = "user-1") -> None:
    fake.values[REVOCATION_KEY.format(uid=uid)] = str(int(time.time()))


def past_token(uid: str = "user-1", minutes_ago: int = 30) -> str:
    issued = datetime.now(timezone.utc) - timedelta(minutes=minutes_ago)
    return create_access_token(uid, email="user1@example.com", issued_at=issued)


@pytest.mark.asyncio
async def test_valid_token_yields_identity():
    identity = await IdentityVerifier().verify(create_access_token("user-1", email="user1@example.com"))
    assert identity.uid == "user-1"
    assert identity.email == "user1@example.com"


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [None, "", "garbage", past_token(minutes_ago=24 * 60)])
async def test_bad_tokens_are_rejected(token):
    with pytest.raises(AuthError):
        await IdentityVerifier().verify(token)


@pytest.mark.asyncio
async def test_revoked_tokens_are_rejected():
    fake = FakeRedis()
    verifier = IdentityVerifier(fake, check_revoked=True)
    token = past_token()

    assert (await verifier.verify(token)).uid == "user-1"
    sign_out(fake)
    with pytest.raises(AuthError):
        await verifier.verify(token)

    fresh = create_access_token("user-1", issued_at=datetime.now(timezone.utc) + timedelta(seconds=5))
    assert (await verifier.verify(fresh)).uid == "user-1"


@pytest.mark.asyncio
async def test_revocation_check_fails_open_without_redis():
    verifier = IdentityVerifier(FakeRedis(fail=True), check_revoked=True)
    assert (await verifier.verify(past_token())).uid == "user-1"


@pytest.mark.asyncio
async def test_revocation_check_skipped_when_disabled():
    fake = FakeRedis()
    verifier = IdentityVerifier(fake, check_revoked=False)
    sign_out(fake)
    assert (await verifier.verify(past_token())).uid == "user-1"


@pytest.mark.parametrize("presented, expected", [
    ("s3cret-token", True),
    ("s3cret-tokem", False),
    ("s3cret", False),
    ("", False),
    (None, False),
])
def test_webhook_token_comparison(presented, expected):
    assert webhook_token_matches(presented, "s3cret-token") is expected
