"""
Tests for delegate rooms: exclusivity, membership bookkeeping on both sides,
group booking and self registration.
"""

import pytest
from httpx import AsyncClient

from conftest import insert_registration, load_registration
from festreg.core.tickets import Ticket
from festreg.models.registration import Domain, PaymentStatus, RoomRole
from festreg.services.rooms import complimentary_ticket


def room_body(name: str = "Owner Person") -> dict:
    return {"name": name, "phone": "9876543210", "college": "BIT Mesra"}


async def create_room(client: AsyncClient, headers: dict) -> str:
    response = await client.post("/delegate/create", json=room_body(), headers=headers)
    assert response.status_code == 200
    return response.json()["roomId"]


async def join_room(client: AsyncClient, headers: dict, room_id: str):
    return await client.post(
        "/delegate/join",
        json={**room_body("Member Person"), "roomId": room_id},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_create_room_is_idempotent_for_owner(client: AsyncClient, auth_for):
    owner = auth_for("owner")
    room_id = await create_room(client, owner)
    assert len(room_id) == 10 and room_id.isupper()
    assert await create_room(client, owner) == room_id


@pytest.mark.asyncio
async def test_join_writes_both_sides(client: AsyncClient, auth_for, context):
    room_id = await create_room(client, auth_for("owner"))

    response = await join_room(client, auth_for("member-1"), room_id.lower())
    assert response.status_code == 200

    owner = await load_registration(context, Domain.DELEGATE, "owner")
    member = await load_registration(context, Domain.DELEGATE, "member-1")
    assert set(owner.members) == {"member-1"}
    assert owner.members["member-1"]["email"] == "member-1@example.com"
    assert member.role == RoomRole.MEMBER
    assert member.room_id == room_id

    again = await join_room(client, auth_for("member-1"), room_id)
    assert again.status_code == 200


@pytest.mark.asyncio
async def test_room_exclusivity(client: AsyncClient, auth_for):
    room_a = await create_room(client, auth_for("owner-a"))
    room_b = await create_room(client, auth_for("owner-b"))
    await join_room(client, auth_for("member"), room_a)

    # Member cannot join a second room or create one
    assert (await join_room(client, auth_for("member"), room_b)).status_code == 400
    created = await client.post("/delegate/create", json=room_body(), headers=auth_for("member"))
    assert created.status_code == 400

    # Owner cannot join another room
    assert (await join_room(client, auth_for("owner-a"), room_b)).status_code == 400


@pytest.mark.asyncio
async def test_join_unknown_room(client: AsyncClient, auth_for):
    response = await join_room(client, auth_for("member"), "ABCDEFGHIJ")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_join_confirmed_room_is_refused(client: AsyncClient, auth_for, context):
    await insert_registration(
        context,
        domain=Domain.DELEGATE.value,
        owner_uid="owner",
        payment_status=PaymentStatus.CONFIRMED.value,
        booking_ref="grp_paid",
        role=RoomRole.OWNER.value,
        room_id="PAIDROOMXX",
    )
    response = await join_room(client, auth_for("late"), "PAIDROOMXX")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_confirmed_self_booking_blocks_rooms(client: AsyncClient, auth_for, context):
    room_id = await create_room(client, auth_for("owner"))
    await insert_registration(
        context,
        domain=Domain.DELEGATE.value,
        owner_uid="solo",
        payment_status=PaymentStatus.CONFIRMED.value,
        booking_ref="bk_solo",
        self_booking=True,
    )
    assert (await join_room(client, auth_for("solo"), room_id)).status_code == 400
    created = await client.post("/delegate/create", json=room_body(), headers=auth_for("solo"))
    assert created.status_code == 400


@pytest.mark.asyncio
async def test_leave_room(client: AsyncClient, auth_for, context):
    room_id = await create_room(client, auth_for("owner"))
    await join_room(client, auth_for("m1"), room_id)
    await join_room(client, auth_for("m2"), room_id)

    response = await client.delete("/delegate/leave", headers=auth_for("m1"))
    assert response.json()["message"] == "Left room"

    owner = await load_registration(context, Domain.DELEGATE, "owner")
    assert set(owner.members) == {"m2"}
    left = await load_registration(context, Domain.DELEGATE, "m1")
    assert left.role == RoomRole.NONE and left.room_id is None

    noop = await client.delete("/delegate/leave", headers=auth_for("m1"))
    assert noop.status_code == 200
    assert noop.json()["message"] == "Not a member of any room"

    owner_leave = await client.delete("/delegate/leave", headers=auth_for("owner"))
    assert owner_leave.status_code == 400


@pytest.mark.asyncio
async def test_delete_room_releases_members(client: AsyncClient, auth_for, context):
    room_id = await create_room(client, auth_for("owner"))
    await join_room(client, auth_for("m1"), room_id)

    forbidden = await client.delete("/delegate/delete", headers=auth_for("m1"))
    assert forbidden.status_code == 403

    response = await client.delete("/delegate/delete", headers=auth_for("owner"))
    assert response.status_code == 200

    owner = await load_registration(context, Domain.DELEGATE, "owner")
    member = await load_registration(context, Domain.DELEGATE, "m1")
    assert owner.role == RoomRole.NONE and owner.room_id is None and owner.members == {}
    assert member.role == RoomRole.NONE and member.room_id is None

    # Both are free to start over
    assert (await client.post("/delegate/create", json=room_body(), headers=auth_for("m1"))).status_code == 200


def test_every_sixth_member_is_complimentary():
    tickets = [complimentary_ticket(i) for i in range(12)]
    assert tickets[5] == Ticket.DELEGATE_COMPLIMENTARY
    assert tickets[11] == Ticket.DELEGATE_COMPLIMENTARY
    assert tickets.count(Ticket.DELEGATE_COMPLIMENTARY) == 2


@pytest.mark.asyncio
async def test_group_booking_fans_out_child_bookings(client: AsyncClient, auth_for, fake_tiqr, context):
    room_id = await create_room(client, auth_for("owner"))
    members = [f"m{i}" for i in range(1, 7)]
    for uid in members:
        assert (await join_room(client, auth_for(uid), room_id)).status_code == 200

    response = await client.post("/delegate/register/group", headers=auth_for("owner"))
    assert response.status_code == 200
    assert response.json()["status"] == "pending"

    [bulk] = fake_tiqr.bulk_creates
    bookings = bulk["bookings"]
    assert [b["meta_data"]["uid"] for b in bookings] == ["owner", *members]
    assert bookings[0]["ticket"] == Ticket.DELEGATE
    assert [b["ticket"] for b in bookings[1:]] == [Ticket.DELEGATE] * 5 + [Ticket.DELEGATE_COMPLIMENTARY]

    owner = await load_registration(context, Domain.DELEGATE, "owner")
    assert owner.booking_ref.startswith("grp_")
    assert owner.details["bookedMembers"] == sorted(members)

    child_refs = set()
    for uid in members:
        member = await load_registration(context, Domain.DELEGATE, uid)
        assert member.status == PaymentStatus.PENDING
        assert fake_tiqr.bookings[member.booking_ref]["meta_data"]["uid"] == uid
        child_refs.add(member.booking_ref)
    assert len(child_refs) == len(members)

    # Unchanged room: the cached URL comes back without a new booking
    again = await client.post("/delegate/register/group", headers=auth_for("owner"))
    assert again.json()["paymentUrl"] == response.json()["paymentUrl"]
    assert len(fake_tiqr.bulk_creates) == 1


@pytest.mark.asyncio
async def test_group_booking_rebooks_when_members_change(client: AsyncClient, auth_for, fake_tiqr):
    room_id = await create_room(client, auth_for("owner"))
    await join_room(client, auth_for("m1"), room_id)
    await client.post("/delegate/register/group", headers=auth_for("owner"))

    await join_room(client, auth_for("m2"), room_id)
    await client.post("/delegate/register/group", headers=auth_for("owner"))
    assert len(fake_tiqr.bulk_creates) == 2
    assert len(fake_tiqr.bulk_creates[1]["bookings"]) == 3


@pytest.mark.asyncio
async def test_group_parity_mismatch_is_refused(client: AsyncClient, auth_for, fake_tiqr, context):
    """Owner's map lists fewer members than joined the room: no provider call."""
    room_id = await create_room(client, auth_for("owner"))
    await join_room(client, auth_for("m1"), room_id)
    await join_room(client, auth_for("m2"), room_id)

    async def drop_from_map(repo):
        owner = await repo.get(Domain.DELEGATE, "owner")
        owner.members = {k: v for k, v in owner.members.items() if k != "m2"}

    await context.store.run_in_transaction(drop_from_map, name="test_corrupt_room")

    response = await client.post("/delegate/register/group", headers=auth_for("owner"))
    assert response.status_code == 400
    assert fake_tiqr.bulk_creates == []


@pytest.mark.asyncio
async def test_only_owner_registers_group(client: AsyncClient, auth_for):
    room_id = await create_room(client, auth_for("owner"))
    await join_room(client, auth_for("m1"), room_id)
    response = await client.post("/delegate/register/group", headers=auth_for("m1"))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_self_registration_blocked_while_in_room(client: AsyncClient, auth_for, fake_tiqr):
    room_id = await create_room(client, auth_for("owner"))
    await join_room(client, auth_for("m1"), room_id)
    body = {"name": "Solo Person", "phone": "9876543210"}

    assert (await client.post("/delegate/register/self", json=body, headers=auth_for("owner"))).status_code == 400
    assert (await client.post("/delegate/register/self", json=body, headers=auth_for("m1"))).status_code == 400
    assert fake_tiqr.creates == []


@pytest.mark.asyncio
async def test_self_registration(client: AsyncClient, auth_for, fake_tiqr, context):
    body = {"name": "Solo Person", "phone": "9876543210", "address": "Hostel 4"}
    response = await client.post("/delegate/register/self", json=body, headers=auth_for("solo"))
    assert response.status_code == 200
    assert fake_tiqr.creates[0]["ticket"] == Ticket.DELEGATE

    record = await load_registration(context, Domain.DELEGATE, "solo")
    assert record.self_booking is True
    assert record.details["address"] == "Hostel 4"

    status = await client.get("/delegate/status/user", headers=auth_for("solo"))
    data = status.json()
    assert data["isOwner"] is False and data["isMember"] is False
    assert data["selfBooking"] is True
    assert data["paymentStatus"] == "pending"


@pytest.mark.asyncio
async def test_status_views(client: AsyncClient, auth_for):
    room_id = await create_room(client, auth_for("owner"))
    await join_room(client, auth_for("m1"), room_id)

    owner_view = await client.get("/delegate/status/user", headers=auth_for("owner"))
    assert owner_view.json()["isOwner"] is True
    assert owner_view.json()["roomId"] == room_id
    assert [u["name"] for u in owner_view.json()["users"]] == ["Member Person"]

    room_view = await client.get(f"/delegate/status/room/{room_id}", headers=auth_for("m1"))
    assert room_view.status_code == 200
    assert room_view.json()["owner"]["name"] == "Owner Person"
    assert len(room_view.json()["users"]) == 1

    outsider = await client.get(f"/delegate/status/room/{room_id}", headers=auth_for("stranger"))
    assert outsider.status_code == 403

    nobody = await client.get("/delegate/status", headers=auth_for("stranger"))
    assert nobody.json()["isOwner"] is False and nobody.json()["roomId"] is None


async def book_room(client: AsyncClient, auth_for, members: list[str]) -> str:
    room_id = await create_room(client, auth_for("owner"))
    for uid in members:
        assert (await join_room(client, auth_for(uid), room_id)).status_code == 200
    response = await client.post("/delegate/register/group", headers=auth_for("owner"))
    assert response.status_code == 200
    return room_id


@pytest.mark.asyncio
async def test_group_webhook_confirms_members(client: AsyncClient, auth_for, fake_tiqr, context, webhook_headers):
    await book_room(client, auth_for, ["m1", "m2"])
    owner = await load_registration(context, Domain.DELEGATE, "owner")
    fake_tiqr.set_status(owner.booking_ref, "confirmed")

    response = await client.post("/webhook", json={"booking_uid": owner.booking_ref}, headers=webhook_headers)
    assert response.status_code == 204

    for uid in ("owner", "m1", "m2"):
        record = await load_registration(context, Domain.DELEGATE, uid)
        assert record.status == PaymentStatus.CONFIRMED

    leave = await client.delete("/delegate/leave", headers=auth_for("m1"))
    assert leave.status_code == 400
    owner = await load_registration(context, Domain.DELEGATE, "owner")
    assert set(owner.members) == {"m1", "m2"}


@pytest.mark.asyncio
async def test_group_pull_confirms_members(client: AsyncClient, auth_for, fake_tiqr, context):
    await book_room(client, auth_for, ["m1"])
    owner = await load_registration(context, Domain.DELEGATE, "owner")
    fake_tiqr.set_status(owner.booking_ref, "confirmed")

    status = await client.get("/delegate/status/user", headers=auth_for("owner"))
    assert status.json()["paymentStatus"] == "confirmed"

    member = await load_registration(context, Domain.DELEGATE, "m1")
    assert member.status == PaymentStatus.CONFIRMED


@pytest.mark.asyncio
async def test_member_cannot_leave_paid_room_before_own_row_confirms(client: AsyncClient, auth_for, context):
    await book_room(client, auth_for, ["m1"])

    async def confirm_owner_only(repo):
        owner = await repo.get(Domain.DELEGATE, "owner")
        owner.payment_status = PaymentStatus.CONFIRMED.value

    await context.store.run_in_transaction(confirm_owner_only, name="test_confirm_owner")
    member = await load_registration(context, Domain.DELEGATE, "m1")
    assert member.status == PaymentStatus.PENDING

    response = await client.delete("/delegate/leave", headers=auth_for("m1"))
    assert response.status_code == 400

    owner = await load_registration(context, Domain.DELEGATE, "owner")
    member = await load_registration(context, Domain.DELEGATE, "m1")
    assert set(owner.members) == {"m1"}
    assert member.role == RoomRole.MEMBER and member.booking_ref is not None


@pytest.mark.asyncio
async def test_reset_group_drops_unpaid_booking(client: AsyncClient, auth_for, fake_tiqr, context):
    room_id = await book_room(client, auth_for, ["m1"])

    assert (await client.delete("/delegate/register/group", headers=auth_for("m1"))).status_code == 403

    response = await client.delete("/delegate/register/group", headers=auth_for("owner"))
    assert response.status_code == 200
    assert response.json()["message"] == "Group booking reset"

    owner = await load_registration(context, Domain.DELEGATE, "owner")
    member = await load_registration(context, Domain.DELEGATE, "m1")
    assert owner.room_id == room_id and set(owner.members) == {"m1"}
    assert owner.booking_ref is None and "bookedMembers" not in owner.details
    assert owner.status == PaymentStatus.UNREGISTERED
    assert member.booking_ref is None and member.room_id == room_id

    noop = await client.delete("/delegate/register/group", headers=auth_for("owner"))
    assert noop.json()["message"] == "No group booking to reset"

    # Unchanged room still books afresh after a reset
    await client.post("/delegate/register/group", headers=auth_for("owner"))
    assert len(fake_tiqr.bulk_creates) == 2


@pytest.mark.asyncio
async def test_reset_group_refused_once_paid(client: AsyncClient, auth_for, fake_tiqr, context, webhook_headers):
    await book_room(client, auth_for, ["m1"])
    owner = await load_registration(context, Domain.DELEGATE, "owner")
    fake_tiqr.set_status(owner.booking_ref, "confirmed")
    await client.post("/webhook", json={"booking_uid": owner.booking_ref}, headers=webhook_headers)

    response = await client.delete("/delegate/register/group", headers=auth_for("owner"))
    assert response.status_code == 400

    unknown = await client.delete("/delegate/register/group", headers=auth_for("stranger"))
    assert unknown.status_code == 404


@pytest.mark.asyncio
async def test_legacy_group_routes(client: AsyncClient, auth_for, fake_tiqr):
    room_id = await create_room(client, auth_for("owner"))
    await join_room(client, auth_for("m1"), room_id)

    booked = await client.post("/delegate/book-group", headers=auth_for("owner"))
    assert booked.status_code == 200
    assert booked.json()["status"] == "pending"
    assert len(fake_tiqr.bulk_creates) == 1

    status = await client.get("/delegate/status-group", headers=auth_for("owner"))
    assert status.status_code == 200
    assert status.json()["paymentStatus"] == "pending"

    reset = await client.delete("/delegate/group-reset", headers=auth_for("owner"))
    assert reset.status_code == 200
    assert reset.json()["message"] == "Group booking reset"
