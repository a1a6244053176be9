"""
Conversions from service results to response schemas.
"""

from typing import Optional

from festreg.models.registration import Registration
from festreg.schemas.registration import RegistrationResponse, RoomMember, StatusResponse
from festreg.services.registration import RegistrationOutcome


def registration_response(outcome: RegistrationOutcome) -> RegistrationResponse:
    return RegistrationResponse(
        status=outcome.status,
        payment_url=outcome.payment_url,
        message=outcome.message,
        order_id=outcome.order_id,
    )


def status_response(record: Registration) -> StatusResponse:
    return StatusResponse(
        status=record.status,
        payment_url=record.payment_url or None,
        details=record.details or None,
    )


def room_member(contact: Optional[dict]) -> RoomMember:
    return RoomMember(**(contact or {}))
