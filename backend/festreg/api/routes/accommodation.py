"""
Accommodation booking endpoints.
"""

from fastapi import APIRouter, Depends

from festreg.api.deps import get_context, get_identity
from festreg.api.responses import registration_response, status_response
from festreg.context import AppContext
from festreg.models.registration import Domain
from festreg.schemas.registration import (
    AccommodationRegisterRequest,
    ChecksumResponse,
    RegistrationResponse,
    StatusResponse,
)
from festreg.services import domains
from festreg.services.identity import Identity

router = APIRouter(prefix="/accommodation", tags=["Accommodation"])


@router.post("/register", response_model=RegistrationResponse)
async def register(
    payload: AccommodationRegisterRequest,
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    request = domains.accommodation_request(identity, payload, context.settings)
    outcome = await context.registrations.register(domains.ACCOMMODATION, request)
    return registration_response(outcome)


@router.get("/status", response_model=StatusResponse)
async def status(
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    result = await context.reconciliation.refresh_status(Domain.ACCOMMODATION, identity.uid)
    return status_response(result.record)


@router.get("/qr", response_model=ChecksumResponse)
async def qr(
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    checksum = await context.reconciliation.confirmation_checksum(Domain.ACCOMMODATION, identity.uid)
    return ChecksumResponse(checksum=checksum)
