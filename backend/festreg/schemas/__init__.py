from festreg.schemas.registration import (
    AccommodationRegisterRequest,
    AlumniRegisterRequest,
    DelegateRoomRequest,
    DelegateSelfRequest,
    EventRegisterRequest,
    JoinRoomRequest,
    MerchOrderRequest,
    RegistrationResponse,
    StatusResponse,
)
from festreg.schemas.webhook import WebhookPayload

__all__ = [
    "AlumniRegisterRequest", "AccommodationRegisterRequest", "EventRegisterRequest",
    "MerchOrderRequest", "DelegateRoomRequest", "JoinRoomRequest", "DelegateSelfRequest",
    "RegistrationResponse", "StatusResponse", "WebhookPayload",
]
