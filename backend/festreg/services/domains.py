"""
Per-domain registration descriptors.

Each domain differs from the others only in how its payload becomes a
``RegistrationRequest`` (ticket, item, metadata, callback) plus an optional
free-path predicate and record guard. The shared control flow lives in
``RegistrationStateMachine``.
"""

from typing import Optional

from festreg.core.config import Settings
from festreg.core.errors import ConflictError, ForbiddenError
from festreg.core.tickets import MERCH_TICKETS, Ticket
from festreg.models.registration import Domain, Registration
from festreg.schemas.registration import (
    AccommodationRegisterRequest,
    AlumniRegisterRequest,
    DelegateSelfRequest,
    EventRegisterRequest,
    MerchOrderRequest,
)
from festreg.services.contact import is_bit_email, normalize_phone
from festreg.services.identity import Identity
from festreg.services.registration import DomainConfig, FreeClaims, RegistrationRequest
from festreg.services.store import RegistrationRepository


# Free paths

async def event_free_path(
    request: RegistrationRequest,
    repo: RegistrationRepository,
    settings: Settings,
) -> Optional[str]:
    """
    Fixed precedence: BIT student, delegate, alumni, designated free event.
    A claimed status that cannot be verified is refused outright rather than
    falling through to a paid booking.
    """
    claims = request.claims
    uid = request.identity.uid

    if claims.is_bit_student:
        if not is_bit_email(request.identity.email, settings.BIT_EMAIL_PATTERN):
            raise ForbiddenError("Free entry for BIT students requires a BIT email address")
        return "bit_student"

    if claims.is_delegate:
        delegate = await repo.get(Domain.DELEGATE, uid)
        if delegate is None or not delegate.is_confirmed:
            raise ForbiddenError("Free entry for delegates requires a confirmed delegate registration")
        return "delegate"

    if claims.is_alumni:
        alumni = await repo.get(Domain.ALUMNI, uid)
        if alumni is None or not alumni.is_confirmed:
            raise ForbiddenError("Free entry for alumni requires a confirmed alumni registration")
        return "alumni"

    if request.details.get("type") == "solo" and request.item_id.isdigit():
        if int(request.item_id) in settings.FREE_EVENT_IDS:
            return "free_event"

    return None


def delegate_room_guard(record: Registration) -> None:
    if record.is_owner:
        raise ConflictError("You own a delegate room; delete it before registering individually")
    if record.is_member:
        raise ConflictError("You are in a delegate room; leave it before registering individually")


ALUMNI = DomainConfig(domain=Domain.ALUMNI)
ACCOMMODATION = DomainConfig(domain=Domain.ACCOMMODATION)
DELEGATE_SELF = DomainConfig(domain=Domain.DELEGATE, guard=delegate_room_guard, self_booking=True)
EVENT = DomainConfig(domain=Domain.EVENT, free_path=event_free_path)
MERCHANDISE = DomainConfig(domain=Domain.MERCHANDISE, multi_item=True)


# Payload → request

def alumni_request(identity: Identity, payload: AlumniRegisterRequest, settings: Settings) -> RegistrationRequest:
    return RegistrationRequest(
        identity=identity,
        name=payload.name,
        phone=normalize_phone(payload.phone),
        email=payload.email,
        ticket=Ticket.ALUMNI,
        details={
            "yearOfPassing": payload.year_of_passing,
            "size": payload.size,
            "merchName": payload.merch_name,
        },
        callback_url=f"{settings.FRONTEND_BASE_URL.rstrip('/')}/alumni",
    )


def accommodation_request(
    identity: Identity,
    payload: AccommodationRegisterRequest,
    settings: Settings,
) -> RegistrationRequest:
    return RegistrationRequest(
        identity=identity,
        name=payload.name,
        phone=normalize_phone(payload.phone),
        college=payload.college,
        ticket=Ticket.ACCOMMODATION,
        callback_url=f"{settings.FRONTEND_BASE_URL.rstrip('/')}/accommodation",
    )


def delegate_self_request(identity: Identity, payload: DelegateSelfRequest, settings: Settings) -> RegistrationRequest:
    details = {"address": payload.address} if payload.address else {}
    return RegistrationRequest(
        identity=identity,
        name=payload.name,
        phone=normalize_phone(payload.phone),
        college=payload.college,
        ticket=Ticket.DELEGATE,
        details=details,
        meta_data={"selfBooking": True},
        callback_url=payload.callback_url or f"{settings.FRONTEND_BASE_URL.rstrip('/')}/delegate",
    )


def event_request(identity: Identity, payload: EventRegisterRequest, settings: Settings) -> RegistrationRequest:
    members = [
        {"name": m.name, "email": m.email, "phone": normalize_phone(m.phone)}
        for m in payload.members
    ]
    return RegistrationRequest(
        identity=identity,
        name=payload.name,
        phone=normalize_phone(payload.phone),
        college=payload.college,
        ticket=Ticket.EVENT,
        item_id=str(payload.event_id),
        details={"type": payload.type, "members": members},
        meta_data={"eventId": payload.event_id},
        callback_url=payload.callback_url or f"{settings.FRONTEND_BASE_URL.rstrip('/')}/events",
        claims=FreeClaims(
            is_bit_student=payload.is_bit_student,
            is_delegate=payload.is_delegate,
            is_alumni=payload.is_alumni,
        ),
    )


def merch_request(identity: Identity, payload: MerchOrderRequest, settings: Settings) -> RegistrationRequest:
    item = payload.item.model_dump()
    return RegistrationRequest(
        identity=identity,
        name=payload.name,
        phone=normalize_phone(payload.phone),
        college=payload.college,
        ticket=MERCH_TICKETS[payload.item.type],
        quantity=payload.item.quantity,
        details={"item": item},
        meta_data={"merch": item},
        callback_url=f"{settings.FRONTEND_BASE_URL.rstrip('/')}/merch",
    )
