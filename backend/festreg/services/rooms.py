"""
Delegate rooms: a group booking owned by one user.

A user's delegate row is in exactly one of three roles:
- none: may self-register, create a room, or join one
- owner: holds room_id and the members map (uid -> contact)
- member: holds the room_id it joined

Both sides of a membership (owner's map, member's row) are written in the
same transaction, and every operation re-reads and re-validates its
preconditions when the store retries it after a concurrent modification.

Group registration is a two-phase operation around the bulk provider call:
plan (validate parity, snapshot members) → provider → persist (re-check the
room is unchanged, fan child bookings out to member rows).
"""

from dataclasses import dataclass
from typing import Optional

from festreg.core.config import Settings
from festreg.core.errors import ConflictError, ForbiddenError, NotFoundError, UpstreamError, ValidationError
from festreg.core.logging import bind_booking_context, get_logger
from festreg.core.metrics import record_registration, record_status_transition
from festreg.core.tickets import Ticket
from festreg.infrastructure.tiqr_client import TiqrClient
from festreg.models.registration import Domain, PaymentStatus, Registration, RoomRole
from festreg.schemas.provider import BookingPayload, BulkBookingPayload
from festreg.schemas.registration import DelegateRoomRequest, JoinRoomRequest
from festreg.services.contact import generate_room_id, normalize_phone, split_name
from festreg.services.identity import Identity
from festreg.services.reconciliation import ReconciliationEngine
from festreg.services.registration import RegistrationOutcome
from festreg.services.store import RegistrationRepository, RegistrationStore

logger = get_logger(__name__)

# Every sixth member (1-indexed) of a group rides free
COMPLIMENTARY_EVERY = 6
ROOM_ID_ATTEMPTS = 5


@dataclass
class RoomView:
    owner: Registration
    members: list[Registration]


@dataclass
class _GroupPlan:
    outcome: Optional[RegistrationOutcome] = None
    room_id: Optional[str] = None
    owner: Optional[dict] = None
    members: Optional[list[tuple[str, dict]]] = None


def complimentary_ticket(position: int) -> Ticket:
    """Ticket for the member at 0-indexed ``position`` (owner excluded)."""
    if (position + 1) % COMPLIMENTARY_EVERY == 0:
        return Ticket.DELEGATE_COMPLIMENTARY
    return Ticket.DELEGATE


class DelegateRooms:
    def __init__(
        self,
        store: RegistrationStore,
        provider: TiqrClient,
        reconciliation: ReconciliationEngine,
        settings: Settings,
    ):
        self.store = store
        self.provider = provider
        self.reconciliation = reconciliation
        self.settings = settings

    async def create_room(self, identity: Identity, payload: DelegateRoomRequest) -> str:
        _require_email(identity)

        async def work(repo: RegistrationRepository) -> str:
            record = await repo.get(Domain.DELEGATE, identity.uid)
            if record is not None:
                if record.is_owner:
                    return record.room_id
                if record.is_member:
                    raise ConflictError("You are already a member of a room")
                if record.self_booking and record.is_confirmed:
                    raise ConflictError("You are already registered as a delegate")

            room_id = await _unused_room_id(repo)
            record = _delegate_row(repo, record, identity, payload)
            record.role = RoomRole.OWNER.value
            record.room_id = room_id
            record.members = {}
            return room_id

        room_id = await self.store.run_in_transaction(work, name="delegate_create_room")
        logger.info("delegate_room_created", uid=identity.uid, room_id=room_id)
        return room_id

    async def join_room(self, identity: Identity, payload: JoinRoomRequest) -> str:
        _require_email(identity)
        room_id = payload.room_id

        async def work(repo: RegistrationRepository) -> None:
            record = await repo.get(Domain.DELEGATE, identity.uid)
            if record is not None:
                if record.is_owner:
                    raise ConflictError("Room owners cannot join another room")
                if record.is_member:
                    if record.room_id == room_id:
                        return
                    raise ConflictError("Leave your current room before joining another")
                if record.self_booking and record.is_confirmed:
                    raise ConflictError("You are already registered as a delegate")

            owner = await repo.find_room_owner(room_id)
            if owner is None:
                raise NotFoundError("Room not found")
            if owner.is_confirmed:
                raise ConflictError("This room has already been booked")

            record = _delegate_row(repo, record, identity, payload)
            record.role = RoomRole.MEMBER.value
            record.room_id = room_id
            # Reassign so the JSON column is flagged dirty
            owner.members = {**(owner.members or {}), identity.uid: record.contact()}

        await self.store.run_in_transaction(work, name="delegate_join_room")
        logger.info("delegate_room_joined", uid=identity.uid, room_id=room_id)
        return room_id

    async def leave_room(self, identity: Identity) -> bool:
        """Returns False when the user was not in a room (nothing to do)."""

        async def work(repo: RegistrationRepository) -> bool:
            record = await repo.get(Domain.DELEGATE, identity.uid)
            if record is not None and record.is_owner:
                raise ConflictError("Room owners must delete the room instead of leaving")
            if record is None or not record.is_member:
                return False
            if record.is_confirmed and not record.self_booking:
                raise ConflictError("Cannot leave a room that has already been booked")

            owner = await repo.find_room_owner(record.room_id)
            if owner is not None and owner.is_confirmed:
                # Member rows trail the group payment until their child bookings are reconciled
                raise ConflictError("Cannot leave a room that has already been booked")
            if owner is not None:
                members = dict(owner.members or {})
                members.pop(identity.uid, None)
                owner.members = members
            record.leave_room()
            if not record.is_confirmed:
                record.clear_booking()
            return True

        left = await self.store.run_in_transaction(work, name="delegate_leave_room")
        if left:
            logger.info("delegate_room_left", uid=identity.uid)
        return left

    async def delete_room(self, identity: Identity) -> None:
        async def work(repo: RegistrationRepository) -> str:
            record = await repo.get(Domain.DELEGATE, identity.uid)
            if record is None or not record.is_owner:
                raise ForbiddenError("Only the room owner can delete the room")
            if record.is_confirmed:
                raise ConflictError("Cannot delete a room that has already been booked")

            room_id = record.room_id
            for member in await repo.list_room_members(room_id):
                member.leave_room()
                if not member.is_confirmed:
                    member.clear_booking()
            record.leave_room()
            record.clear_booking()
            record.details = {k: v for k, v in (record.details or {}).items() if k != "bookedMembers"}
            return room_id

        room_id = await self.store.run_in_transaction(work, name="delegate_delete_room")
        logger.info("delegate_room_deleted", uid=identity.uid, room_id=room_id)

    async def reset_group(self, identity: Identity) -> bool:
        """
        Drop the owner's unpaid group booking and the members' child bookings,
        keeping the room. Returns False when there was no booking to drop.
        """

        async def work(repo: RegistrationRepository) -> bool:
            record = await repo.get(Domain.DELEGATE, identity.uid)
            if record is None:
                raise NotFoundError("User not registered as delegate")
            if not record.is_owner:
                raise ForbiddenError("Only the room owner can reset the group booking")
            if record.is_confirmed:
                raise ConflictError("Cannot reset a group booking that has already been paid")
            if not record.booking_ref:
                return False

            for member in await repo.list_room_members(record.room_id):
                if not member.is_confirmed:
                    member.clear_booking()
            record.clear_booking()
            record.details = {k: v for k, v in (record.details or {}).items() if k != "bookedMembers"}
            return True

        reset = await self.store.run_in_transaction(work, name="delegate_group_reset")
        if reset:
            logger.info("delegate_group_reset", uid=identity.uid)
        return reset

    async def register_group(self, identity: Identity) -> RegistrationOutcome:
        domain = Domain.DELEGATE.value

        plan = await self.store.run_in_transaction(
            lambda repo: self._plan_group(repo, identity),
            name="delegate_group_plan",
        )
        if plan.outcome is not None:
            return plan.outcome

        callback_url = f"{self.settings.FRONTEND_BASE_URL.rstrip('/')}/delegate"
        bookings = [_booking(plan.owner, identity.uid, Ticket.DELEGATE, plan.room_id, callback_url)]
        for position, (member_uid, contact) in enumerate(plan.members):
            bookings.append(
                _booking(contact, member_uid, complimentary_ticket(position), plan.room_id, callback_url)
            )

        response = await self.provider.create_bulk_booking(BulkBookingPayload(bookings=bookings))
        bind_booking_context(domain=domain, booking_uid=response.booking.uid)

        status = PaymentStatus.from_provider(response.booking.status) or PaymentStatus.PENDING
        payment_url = response.payment.url_to_redirect or ""
        if not payment_url and status != PaymentStatus.CONFIRMED:
            record_registration(domain, "error")
            raise UpstreamError("Failed to obtain payment URL from the booking provider")

        children = {}
        for child in response.booking.child_bookings:
            child_uid = (child.meta_data or {}).get("uid")
            if not child_uid:
                logger.error("delegate_group_child_missing_uid", parent_uid=response.booking.uid, child_uid=child.uid)
                raise UpstreamError("Booking provider returned a child booking without a member uid")
            children[child_uid] = child

        booked = [member_uid for member_uid, _ in plan.members]
        missing = [member_uid for member_uid in booked if member_uid not in children]
        if missing:
            logger.error("delegate_group_children_missing", parent_uid=response.booking.uid, missing=missing)
            raise UpstreamError("Booking provider did not return a booking for every member")

        async def persist(repo: RegistrationRepository) -> None:
            owner = await repo.get(Domain.DELEGATE, identity.uid)
            if owner is None or not owner.is_owner or owner.room_id != plan.room_id:
                raise ConflictError("The room changed while booking; please try again")
            members = await repo.list_room_members(plan.room_id)
            if sorted(m.owner_uid for m in members) != sorted(booked) or sorted(owner.members or {}) != sorted(booked):
                raise ConflictError("The room changed while booking; please try again")

            owner.record_booking(response.booking.uid, payment_url, status)
            owner.self_booking = False
            owner.details = {**(owner.details or {}), "bookedMembers": sorted(booked)}
            for member in members:
                child = children[member.owner_uid]
                member.record_booking(child.uid, payment_url, PaymentStatus.from_provider(child.status) or status)

        await self.store.run_in_transaction(persist, name="delegate_group_persist")

        record_registration(domain, "created")
        record_status_transition(domain, "create", status.value)
        logger.info(
            "delegate_group_booked",
            uid=identity.uid,
            room_id=plan.room_id,
            booking_uid=response.booking.uid,
            members=len(booked),
            status=status.value,
        )
        return RegistrationOutcome(
            status=status,
            payment_url=payment_url,
            message="Registration confirmed" if status == PaymentStatus.CONFIRMED else "Complete payment to confirm",
        )

    async def _plan_group(self, repo: RegistrationRepository, identity: Identity) -> _GroupPlan:
        owner = await repo.get(Domain.DELEGATE, identity.uid)
        if owner is None or not owner.is_owner:
            raise ForbiddenError("Only the room owner can register the group")

        if owner.is_confirmed:
            record_registration(Domain.DELEGATE.value, "confirmed")
            return _GroupPlan(outcome=RegistrationOutcome(
                status=PaymentStatus.CONFIRMED,
                payment_url=owner.payment_url,
                message="Already registered successfully",
            ))

        members = await repo.list_room_members(owner.room_id)
        mapped = set(owner.members or {})
        joined = {m.owner_uid for m in members}
        if len(owner.members or {}) != len(members) or mapped != joined:
            logger.warning(
                "delegate_room_parity_mismatch",
                room_id=owner.room_id,
                mapped=sorted(mapped),
                joined=sorted(joined),
            )
            raise ConflictError(
                "Room membership is inconsistent; members should leave and rejoin",
                details={"mapped": len(mapped), "joined": len(joined)},
            )

        booked = sorted(joined)
        if (
            owner.payment_status == PaymentStatus.PENDING
            and owner.payment_url
            and (owner.details or {}).get("bookedMembers") == booked
        ):
            record_registration(Domain.DELEGATE.value, "resumed")
            return _GroupPlan(outcome=RegistrationOutcome(
                status=PaymentStatus.PENDING,
                payment_url=owner.payment_url,
                message="Complete payment to confirm",
            ))

        return _GroupPlan(
            room_id=owner.room_id,
            owner=owner.contact(),
            members=[(m.owner_uid, m.contact()) for m in members],
        )

    async def user_status(self, identity: Identity) -> Optional[Registration]:
        record = await self.store.read(lambda repo: repo.get(Domain.DELEGATE, identity.uid))
        if record is None:
            return None
        return (await self.reconciliation.refresh_record(record)).record

    async def room_status(self, identity: Identity, room_id: str) -> RoomView:
        async def load(repo: RegistrationRepository) -> RoomView:
            owner = await repo.find_room_owner(room_id)
            if owner is None:
                raise NotFoundError("Room not found")
            return RoomView(owner=owner, members=await repo.list_room_members(room_id))

        view = await self.store.read(load)
        if identity.uid != view.owner.owner_uid and identity.uid not in (view.owner.members or {}):
            raise ForbiddenError("Only the room owner and its members can view this room")

        view.owner = (await self.reconciliation.refresh_record(view.owner)).record
        return view


def _require_email(identity: Identity) -> None:
    if not identity.email:
        raise ValidationError(
            "An email address is required to join delegate rooms",
            details=[{"field": "email", "message": "missing from identity"}],
        )


def _delegate_row(
    repo: RegistrationRepository,
    record: Optional[Registration],
    identity: Identity,
    payload: DelegateRoomRequest,
) -> Registration:
    """Create or refresh the caller's delegate row; an unpaid self booking is dropped."""
    if record is None:
        record = repo.add(Registration(
            domain=Domain.DELEGATE.value,
            owner_uid=identity.uid,
            item_id="",
            payment_status=PaymentStatus.UNREGISTERED.value,
            members={},
            details={},
        ))
    elif record.self_booking or record.booking_ref:
        record.clear_booking()
        record.self_booking = False

    record.name = payload.name
    record.email = identity.email
    record.phone = normalize_phone(payload.phone)
    record.college = payload.college
    return record


async def _unused_room_id(repo: RegistrationRepository) -> str:
    for _ in range(ROOM_ID_ATTEMPTS):
        room_id = generate_room_id()
        if await repo.find_room_owner(room_id) is None:
            return room_id
    raise ConflictError("Could not allocate a room id; please try again")


def _booking(contact: dict, uid: str, ticket: Ticket, room_id: str, callback_url: str) -> BookingPayload:
    first_name, last_name = split_name(contact.get("name") or "")
    return BookingPayload(
        first_name=first_name,
        last_name=last_name,
        email=contact.get("email") or "",
        phone_number=contact.get("phone") or "",
        ticket=ticket,
        meta_data={"uid": uid, "firebaseUid": uid, "roomId": room_id},
        callback_url=callback_url,
    )
