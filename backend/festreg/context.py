"""
Application context: every long-lived resource the request handlers need.

Built once at startup (or by a test) and stored on ``app.state.context``;
nothing in the service layer reaches for a module-level connection.
"""

from dataclasses import dataclass
from typing import Optional

import httpx
import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from festreg.core.config import Settings
from festreg.core.logging import get_logger
from festreg.db.session import make_engine, make_session_factory
from festreg.infrastructure import TiqrClient, close_redis, create_redis
from festreg.services.identity import IdentityVerifier
from festreg.services.reconciliation import ReconciliationEngine
from festreg.services.registration import RegistrationStateMachine
from festreg.services.rooms import DelegateRooms
from festreg.services.store import RegistrationStore

logger = get_logger(__name__)


@dataclass
class AppContext:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    store: RegistrationStore
    provider: TiqrClient
    redis: Optional[redis.Redis]
    identity: IdentityVerifier
    registrations: RegistrationStateMachine
    reconciliation: ReconciliationEngine
    rooms: DelegateRooms

    async def close(self) -> None:
        await self.provider.aclose()
        await close_redis(self.redis)
        await self.engine.dispose()
        logger.info("app_context_closed")


async def build_context(
    settings: Settings,
    *,
    engine: Optional[AsyncEngine] = None,
    provider_transport: Optional[httpx.AsyncBaseTransport] = None,
    redis_client: Optional[redis.Redis] = None,
) -> AppContext:
    """
    Wire the application together. Tests pass an engine, a fake provider
    transport and optionally a Redis stand-in; production passes nothing.
    """
    engine = engine or make_engine(settings.DATABASE_URL, settings)
    session_factory = make_session_factory(engine)
    store = RegistrationStore(session_factory, max_attempts=settings.TRANSACTION_MAX_ATTEMPTS)

    provider = TiqrClient(
        base_url=settings.TIQR_BASE_URL,
        api_token=settings.TIQR_API_TOKEN,
        timeout=settings.TIQR_TIMEOUT_SECONDS,
        transport=provider_transport,
    )

    if redis_client is None:
        redis_client = await create_redis(settings)

    reconciliation = ReconciliationEngine(store, provider)
    return AppContext(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        store=store,
        provider=provider,
        redis=redis_client,
        identity=IdentityVerifier(redis_client, check_revoked=settings.check_revoked_tokens),
        registrations=RegistrationStateMachine(store, provider, settings),
        reconciliation=reconciliation,
        rooms=DelegateRooms(store, provider, reconciliation, settings),
    )
