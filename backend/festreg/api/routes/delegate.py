"""
Delegate endpoints: rooms (group bookings), self registration and views.
"""

from fastapi import APIRouter, Depends

from festreg.api.deps import get_context, get_identity
from festreg.api.responses import registration_response, room_member
from festreg.context import AppContext
from festreg.models.registration import Domain
from festreg.schemas.registration import (
    ChecksumResponse,
    DelegateRoomRequest,
    DelegateRoomStatusResponse,
    DelegateSelfRequest,
    DelegateUserStatusResponse,
    JoinRoomRequest,
    MessageResponse,
    RegistrationResponse,
    RoomResponse,
)
from festreg.services import domains
from festreg.services.identity import Identity

router = APIRouter(prefix="/delegate", tags=["Delegates"])


@router.post("/create", response_model=RoomResponse)
async def create_room(
    payload: DelegateRoomRequest,
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    """Create a room, or return the caller's existing one."""
    room_id = await context.rooms.create_room(identity, payload)
    return RoomResponse(room_id=room_id, message="Room ready")


@router.post("/join", response_model=RoomResponse)
async def join_room(
    payload: JoinRoomRequest,
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    room_id = await context.rooms.join_room(identity, payload)
    return RoomResponse(room_id=room_id, message="Joined room")


@router.delete("/leave", response_model=MessageResponse)
async def leave_room(
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    left = await context.rooms.leave_room(identity)
    return MessageResponse(message="Left room" if left else "Not a member of any room")


@router.delete("/delete", response_model=MessageResponse)
async def delete_room(
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    await context.rooms.delete_room(identity)
    return MessageResponse(message="Room deleted")


@router.post("/register/self", response_model=RegistrationResponse)
async def register_self(
    payload: DelegateSelfRequest,
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    request = domains.delegate_self_request(identity, payload, context.settings)
    outcome = await context.registrations.register(domains.DELEGATE_SELF, request)
    return registration_response(outcome)


@router.post("/register/group", response_model=RegistrationResponse)
async def register_group(
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    """Book the owner and every member of the caller's room in one payment."""
    outcome = await context.rooms.register_group(identity)
    return registration_response(outcome)


@router.delete("/register/group", response_model=MessageResponse)
async def reset_group(
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    """Drop an unpaid group booking so the next registration books afresh."""
    reset = await context.rooms.reset_group(identity)
    return MessageResponse(message="Group booking reset" if reset else "No group booking to reset")


@router.get("/status/user", response_model=DelegateUserStatusResponse)
async def user_status(
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    record = await context.rooms.user_status(identity)
    if record is None:
        return DelegateUserStatusResponse(is_owner=False, is_member=False, self_booking=False)

    users = None
    if record.is_owner:
        users = [room_member(contact) for contact in (record.members or {}).values()]
    return DelegateUserStatusResponse(
        is_owner=record.is_owner,
        is_member=record.is_member,
        room_id=record.room_id,
        self_booking=record.self_booking,
        payment_status=record.status,
        payment_url=record.payment_url or None,
        users=users,
    )


@router.get("/status/room/{room_id}", response_model=DelegateRoomStatusResponse)
async def room_status(
    room_id: str,
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    view = await context.rooms.room_status(identity, room_id.strip().upper())
    return DelegateRoomStatusResponse(
        owner=room_member(view.owner.contact()),
        users=[room_member(m.contact()) for m in view.members],
        payment_status=view.owner.status,
        payment_url=view.owner.payment_url or None,
    )


@router.get("/qr", response_model=ChecksumResponse)
async def qr(
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    checksum = await context.reconciliation.confirmation_checksum(Domain.DELEGATE, identity.uid)
    return ChecksumResponse(checksum=checksum)
