"""
Registration state machine shared by every domain.

    unregistered ──create──▶ pending ──provider──▶ confirmed | failed
         │                                          failed ──retry──▶ pending (new booking)
         └──free path──▶ confirmed

Each domain is described by a small ``DomainConfig`` (see
``festreg.services.domains``); the control flow below is the same for all of
them:

1. Load the record for (domain, uid, item).
2. Already-registered check: confirmed returns without a provider call; a
   pending/failed record with a cached payment URL returns that URL; one
   without a URL is checked against the provider and either resumed or
   discarded.
3. Free-path shortcuts (BIT student, confirmed delegate/alumni, free event).
4. Provider booking, made outside any transaction.
5. Persist booking ref, payment URL and mapped status in one transaction.

The record is only written after the provider call succeeds, so a provider
failure leaves the store untouched. The reverse gap (booking created
provider-side, persist never happens) is accepted; the booking carries the
owner uid in its metadata so it can be found later.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from festreg.core.config import Settings
from festreg.core.errors import UpstreamError, ValidationError
from festreg.core.logging import bind_booking_context, get_logger
from festreg.core.metrics import record_registration, record_status_transition
from festreg.infrastructure.tiqr_client import TiqrClient
from festreg.models.registration import Domain, PaymentStatus, Registration
from festreg.schemas.provider import BookingPayload
from festreg.services.contact import split_name
from festreg.services.identity import Identity
from festreg.services.store import RegistrationRepository, RegistrationStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class FreeClaims:
    is_bit_student: bool = False
    is_delegate: bool = False
    is_alumni: bool = False


@dataclass
class RegistrationRequest:
    """A validated registration attempt, already normalized for the provider."""

    identity: Identity
    name: str
    phone: str
    ticket: int
    email: Optional[str] = None
    college: Optional[str] = None
    item_id: str = ""
    quantity: Optional[int] = None
    details: dict[str, Any] = field(default_factory=dict)
    meta_data: dict[str, Any] = field(default_factory=dict)
    callback_url: Optional[str] = None
    claims: FreeClaims = field(default_factory=FreeClaims)

    @property
    def contact_email(self) -> Optional[str]:
        return self.email or self.identity.email


@dataclass
class RegistrationOutcome:
    status: PaymentStatus
    payment_url: Optional[str] = None
    message: Optional[str] = None
    order_id: Optional[str] = None


FreePathPredicate = Callable[[RegistrationRequest, RegistrationRepository, Settings], Awaitable[Optional[str]]]
RecordGuard = Callable[[Registration], None]


@dataclass(frozen=True)
class DomainConfig:
    domain: Domain
    free_path: Optional[FreePathPredicate] = None
    guard: Optional[RecordGuard] = None
    # Every attempt is a new order (merchandise); item_id becomes the booking uid
    multi_item: bool = False
    self_booking: bool = False


@dataclass
class _Plan:
    outcome: Optional[RegistrationOutcome] = None
    stale_booking_ref: Optional[str] = None


class RegistrationStateMachine:
    def __init__(self, store: RegistrationStore, provider: TiqrClient, settings: Settings):
        self.store = store
        self.provider = provider
        self.settings = settings

    async def register(self, config: DomainConfig, request: RegistrationRequest) -> RegistrationOutcome:
        if not request.contact_email:
            raise ValidationError(
                "An email address is required to register",
                details=[{"field": "email", "message": "missing from identity and request"}],
            )

        domain = config.domain.value
        uid = request.identity.uid
        bind_booking_context(domain=domain)

        # A stale booking is resolved at most once before creating a new one
        for _ in range(2):
            plan = await self.store.run_in_transaction(
                lambda repo: self._plan(config, request, repo),
                name=f"{domain}_register_plan",
            )
            if plan.outcome is not None:
                return plan.outcome

            if plan.stale_booking_ref is None:
                break

            resumed = await self._resolve_stale_booking(config, request, plan.stale_booking_ref)
            if resumed is not None:
                return resumed

        payload = self._booking_payload(request)
        response = await self.provider.create_booking(payload)

        status = PaymentStatus.from_provider(response.booking.status) or PaymentStatus.PENDING
        payment_url = response.payment.url_to_redirect or ""
        if not payment_url and status != PaymentStatus.CONFIRMED:
            record_registration(domain, "error")
            logger.error(
                "registration_missing_payment_url",
                domain=domain,
                uid=uid,
                booking_uid=response.booking.uid,
            )
            raise UpstreamError("Failed to obtain payment URL from the booking provider")

        booking_uid = response.booking.uid
        bind_booking_context(booking_uid=booking_uid)
        await self.store.run_in_transaction(
            lambda repo: self._persist_booking(config, request, repo, booking_uid, payment_url, status),
            name=f"{domain}_register_persist",
        )

        record_registration(domain, "created")
        record_status_transition(domain, "create", status.value)
        logger.info(
            "registration_created",
            domain=domain,
            uid=uid,
            item_id=request.item_id or None,
            booking_uid=booking_uid,
            status=status.value,
        )

        return RegistrationOutcome(
            status=status,
            payment_url=payment_url,
            message="Registration confirmed" if status == PaymentStatus.CONFIRMED else "Complete payment to confirm",
            order_id=booking_uid if config.multi_item else None,
        )

    async def _plan(self, config: DomainConfig, request: RegistrationRequest, repo: RegistrationRepository) -> _Plan:
        domain = config.domain.value
        record = None
        if not config.multi_item:
            record = await repo.get(config.domain, request.identity.uid, request.item_id)

        if record is not None:
            if config.guard is not None:
                config.guard(record)

            if record.is_confirmed:
                record_registration(domain, "confirmed")
                return _Plan(outcome=RegistrationOutcome(
                    status=PaymentStatus.CONFIRMED,
                    payment_url=record.payment_url,
                    message="Already registered successfully",
                ))

            if record.payment_status in (PaymentStatus.PENDING, PaymentStatus.FAILED):
                if record.payment_url:
                    _refresh_contact(record, request)
                    record_registration(domain, "resumed")
                    logger.info("registration_resumed", domain=domain, uid=record.owner_uid, booking_uid=record.booking_ref)
                    return _Plan(outcome=RegistrationOutcome(
                        status=record.status,
                        payment_url=record.payment_url,
                        message="Complete payment to confirm",
                    ))
                if record.booking_ref:
                    return _Plan(stale_booking_ref=record.booking_ref)
                record.clear_booking()

        if config.free_path is not None:
            reason = await config.free_path(request, repo, self.settings)
            if reason is not None:
                if record is None:
                    record = repo.add(_new_record(config, request))
                _refresh_contact(record, request)
                record.details = {**(record.details or {}), **request.details, "freePath": reason}
                record.record_booking(None, "", PaymentStatus.CONFIRMED)
                if config.self_booking:
                    record.self_booking = True
                record_registration(domain, "free")
                record_status_transition(domain, "create", PaymentStatus.CONFIRMED.value)
                logger.info("registration_free_path", domain=domain, uid=request.identity.uid, reason=reason)
                return _Plan(outcome=RegistrationOutcome(
                    status=PaymentStatus.CONFIRMED,
                    payment_url="",
                    message="Registration confirmed",
                ))

        return _Plan()

    async def _resolve_stale_booking(
        self,
        config: DomainConfig,
        request: RegistrationRequest,
        booking_ref: str,
    ) -> Optional[RegistrationOutcome]:
        """
        A pending/failed record without a cached URL: ask the provider about it.
        Returns an outcome if the booking can be resumed, None once it has been
        discarded and a new booking should be made.
        """
        booking = await self.provider.fetch_booking(booking_ref)
        status = PaymentStatus.from_provider(booking.effective_status)
        payment_id = booking.payment_id

        async def settle(repo: RegistrationRepository) -> Optional[RegistrationOutcome]:
            record = await repo.get(config.domain, request.identity.uid, request.item_id)
            if record is None or record.booking_ref != booking_ref:
                # Someone else moved the record on; re-plan from scratch
                return None
            if status == PaymentStatus.CONFIRMED:
                record.apply_status(status)
                return RegistrationOutcome(status=PaymentStatus.CONFIRMED, message="Already registered successfully")
            if payment_id:
                record.payment_url = self.settings.PAYMENT_BASE_URL + payment_id
                return RegistrationOutcome(
                    status=record.status,
                    payment_url=record.payment_url,
                    message="Complete payment to confirm",
                )
            logger.info("registration_stale_booking_discarded", domain=config.domain.value, uid=record.owner_uid, booking_uid=booking_ref)
            record.clear_booking()
            return None

        return await self.store.run_in_transaction(settle, name=f"{config.domain.value}_register_stale")

    async def _persist_booking(
        self,
        config: DomainConfig,
        request: RegistrationRequest,
        repo: RegistrationRepository,
        booking_uid: str,
        payment_url: str,
        status: PaymentStatus,
    ) -> Registration:
        item_id = booking_uid if config.multi_item else request.item_id
        record = await repo.get(config.domain, request.identity.uid, item_id)
        if record is None:
            record = repo.add(_new_record(config, request, item_id=item_id))
        elif record.is_confirmed:
            logger.warning(
                "registration_confirmed_concurrently",
                domain=config.domain.value,
                uid=record.owner_uid,
                orphan_booking_uid=booking_uid,
            )
            return record

        _refresh_contact(record, request)
        record.details = {**(record.details or {}), **request.details}
        record.record_booking(booking_uid, payment_url, status)
        if config.self_booking:
            record.self_booking = True
        return record

    def _booking_payload(self, request: RegistrationRequest) -> BookingPayload:
        first_name, last_name = split_name(request.name)
        return BookingPayload(
            first_name=first_name,
            last_name=last_name,
            email=request.contact_email,
            phone_number=request.phone,
            ticket=request.ticket,
            quantity=request.quantity,
            meta_data={"firebaseUid": request.identity.uid, **request.meta_data},
            callback_url=request.callback_url,
        )


def _new_record(config: DomainConfig, request: RegistrationRequest, item_id: Optional[str] = None) -> Registration:
    return Registration(
        domain=config.domain.value,
        owner_uid=request.identity.uid,
        item_id=request.item_id if item_id is None else item_id,
        name=request.name,
        email=request.contact_email,
        phone=request.phone,
        college=request.college,
        payment_status=PaymentStatus.UNREGISTERED.value,
        details=dict(request.details),
        members={},
    )


def _refresh_contact(record: Registration, request: RegistrationRequest) -> None:
    updates = {
        "name": request.name,
        "email": request.contact_email,
        "phone": request.phone,
        "college": request.college,
    }
    for attr, value in updates.items():
        if value is not None and getattr(record, attr) != value:
            setattr(record, attr, value)
