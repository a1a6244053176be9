"""
Registration store: repository queries plus the optimistic transaction runner.

CONCURRENCY STRATEGY: Optimistic Locking with Retry
====================================================

Every registration row carries a `version` column (SQLAlchemy
version_id_col). An UPDATE only succeeds if the row still has the version we
read; otherwise the flush raises StaleDataError. A concurrent insert of the
same (domain, owner, item) or booking_ref raises IntegrityError.

`run_in_transaction` re-runs the whole unit of work on either error, in a
fresh session, so preconditions (owner exclusivity, one room per user,
member-count parity) are re-read and re-validated on every attempt, not
just the final write. After TRANSACTION_MAX_ATTEMPTS the caller gets a
ConflictError.

No transaction is ever held open across a provider call: callers read and
decide in one transaction, call the provider, then persist in another.
"""

from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from festreg.core.errors import ConflictError
from festreg.core.logging import get_logger
from festreg.core.metrics import db_retries
from festreg.models.registration import Domain, Registration, RoomRole

logger = get_logger(__name__)

T = TypeVar("T")


class RegistrationRepository:
    """Queries against the registrations table inside one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, domain: Domain, owner_uid: str, item_id: str = "") -> Optional[Registration]:
        result = await self.session.execute(
            select(Registration).where(
                Registration.domain == domain.value,
                Registration.owner_uid == owner_uid,
                Registration.item_id == item_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_by_booking_ref(self, booking_ref: str, domain: Optional[Domain] = None) -> Optional[Registration]:
        query = select(Registration).where(Registration.booking_ref == booking_ref)
        if domain is not None:
            query = query.where(Registration.domain == domain.value)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_item(self, domain: Domain, item_id: str) -> Optional[Registration]:
        result = await self.session.execute(
            select(Registration).where(
                Registration.domain == domain.value,
                Registration.item_id == item_id,
            )
        )
        return result.scalars().first()

    async def get_by_id(self, registration_id: int) -> Optional[Registration]:
        return await self.session.get(Registration, registration_id)

    async def list_for_owner(self, domain: Domain, owner_uid: str) -> list[Registration]:
        result = await self.session.execute(
            select(Registration)
            .where(Registration.domain == domain.value, Registration.owner_uid == owner_uid)
            .order_by(Registration.created_at.asc(), Registration.id.asc())
        )
        return list(result.scalars().all())

    async def find_room_owner(self, room_id: str) -> Optional[Registration]:
        result = await self.session.execute(
            select(Registration).where(
                Registration.domain == Domain.DELEGATE.value,
                Registration.role == RoomRole.OWNER.value,
                Registration.room_id == room_id,
            )
        )
        return result.scalars().first()

    async def list_room_members(self, room_id: str) -> list[Registration]:
        result = await self.session.execute(
            select(Registration).where(
                Registration.domain == Domain.DELEGATE.value,
                Registration.role == RoomRole.MEMBER.value,
                Registration.room_id == room_id,
            ).order_by(Registration.id.asc())
        )
        return list(result.scalars().all())

    def add(self, registration: Registration) -> Registration:
        self.session.add(registration)
        return registration


class RegistrationStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], max_attempts: int = 3):
        self.session_factory = session_factory
        self.max_attempts = max_attempts

    async def read(self, work: Callable[[RegistrationRepository], Awaitable[T]]) -> T:
        """Run read-only work in its own session."""
        async with self.session_factory() as session:
            return await work(RegistrationRepository(session))

    async def run_in_transaction(
        self,
        work: Callable[[RegistrationRepository], Awaitable[T]],
        *,
        name: str,
    ) -> T:
        """
        Run `work` atomically, retrying the whole unit on concurrent modification.

        `work` must be safe to re-run: it receives a fresh repository each attempt.
        """
        for attempt in range(1, self.max_attempts + 1):
            async with self.session_factory() as session:
                try:
                    async with session.begin():
                        return await work(RegistrationRepository(session))
                except (StaleDataError, IntegrityError) as e:
                    db_retries.inc()
                    logger.info(
                        "transaction_retry",
                        transaction=name,
                        attempt=attempt,
                        reason=type(e).__name__,
                    )
                    if attempt == self.max_attempts:
                        logger.warning("transaction_conflict", transaction=name, attempts=attempt)
                        raise ConflictError(
                            "Registration was modified concurrently. Please try again."
                        ) from e

        # Should not reach here, but just in case
        raise ConflictError("Registration was modified concurrently. Please try again.")
