"""
Alumni registration endpoints.
"""

from fastapi import APIRouter, Depends

from festreg.api.deps import get_context, get_identity
from festreg.api.responses import registration_response, status_response
from festreg.context import AppContext
from festreg.models.registration import Domain
from festreg.schemas.registration import AlumniRegisterRequest, ChecksumResponse, RegistrationResponse, StatusResponse
from festreg.services import domains
from festreg.services.identity import Identity

router = APIRouter(prefix="/alumni", tags=["Alumni"])


@router.post("/register", response_model=RegistrationResponse)
async def register(
    payload: AlumniRegisterRequest,
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    """Register as alumni; returns the payment URL or the existing confirmation."""
    request = domains.alumni_request(identity, payload, context.settings)
    outcome = await context.registrations.register(domains.ALUMNI, request)
    return registration_response(outcome)


@router.get("/status", response_model=StatusResponse)
async def status(
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    result = await context.reconciliation.refresh_status(Domain.ALUMNI, identity.uid)
    return status_response(result.record)


@router.get("/qr", response_model=ChecksumResponse)
async def qr(
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    checksum = await context.reconciliation.confirmation_checksum(Domain.ALUMNI, identity.uid)
    return ChecksumResponse(checksum=checksum)
