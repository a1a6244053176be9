"""
Competitive event registration endpoints.

One registration per (user, event). Solo and team entries share a record
shape; team members are stored with the entry but only the registrant books.
"""

from fastapi import APIRouter, Depends

from festreg.api.deps import get_context, get_identity
from festreg.api.responses import registration_response, status_response
from festreg.context import AppContext
from festreg.models.registration import Domain
from festreg.schemas.registration import (
    ChecksumResponse,
    EventRegisterRequest,
    EventRegistrationsResponse,
    RegistrationResponse,
    StatusResponse,
)
from festreg.services import domains
from festreg.services.identity import Identity

router = APIRouter(prefix="/event", tags=["Events"])


@router.post("/register", response_model=RegistrationResponse)
async def register(
    payload: EventRegisterRequest,
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    """
    Register for an event.

    BIT students, confirmed delegates, confirmed alumni and designated free
    solo events skip payment; claiming a status you do not hold is a 403.
    """
    request = domains.event_request(identity, payload, context.settings)
    outcome = await context.registrations.register(domains.EVENT, request)
    return registration_response(outcome)


@router.get("/registered", response_model=EventRegistrationsResponse)
async def registered(
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    """Every event the caller has a registration for, with its last known status."""
    records = await context.store.read(lambda repo: repo.list_for_owner(Domain.EVENT, identity.uid))
    return EventRegistrationsResponse(events={r.item_id: r.status for r in records})


@router.get("/status/{event_id}", response_model=StatusResponse)
async def status(
    event_id: int,
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    result = await context.reconciliation.refresh_status(Domain.EVENT, identity.uid, str(event_id))
    return status_response(result.record)


@router.get("/qr/{event_id}", response_model=ChecksumResponse)
async def qr(
    event_id: int,
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    checksum = await context.reconciliation.confirmation_checksum(Domain.EVENT, identity.uid, str(event_id))
    return ChecksumResponse(checksum=checksum)
