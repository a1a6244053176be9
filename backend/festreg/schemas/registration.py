"""
Pydantic schemas for registration request/response validation.

Request and response bodies use camelCase on the wire (``paymentUrl``,
``isBitStudent``); Python code uses snake_case field names.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from festreg.models.registration import PaymentStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# Requests

class ContactRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=10, max_length=20)


class AlumniRegisterRequest(ContactRequest):
    name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    year_of_passing: int = Field(..., ge=1950, le=2026)
    size: str = Field(..., min_length=1, max_length=10)
    merch_name: Optional[str] = Field(None, max_length=100)


class AccommodationRegisterRequest(ContactRequest):
    college: str = Field(..., min_length=1, max_length=255)


class EventMember(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(..., min_length=10, max_length=20)


class EventRegisterRequest(ContactRequest):
    event_id: int = Field(..., gt=0)
    college: Optional[str] = Field(None, max_length=255)
    type: Literal["solo", "team"] = "solo"
    members: list[EventMember] = Field(default_factory=list, max_length=10)
    is_bit_student: bool = False
    is_delegate: bool = False
    is_alumni: bool = False
    callback_url: Optional[str] = Field(None, max_length=1024)

    @model_validator(mode="after")
    def check_team_members(self) -> "EventRegisterRequest":
        if self.type == "solo" and self.members:
            raise ValueError("solo entries cannot list team members")
        if self.type == "team" and not self.members:
            raise ValueError("team entries need at least one member")
        return self


class MerchItem(CamelModel):
    type: Literal["tee", "jacket", "combo"]
    quantity: int = Field(1, ge=1, le=10)
    size: Optional[str] = Field(None, min_length=1, max_length=10)


class MerchOrderRequest(ContactRequest):
    college: str = Field(..., min_length=1, max_length=255)
    item: MerchItem


class DelegateRoomRequest(ContactRequest):
    college: str = Field(..., min_length=1, max_length=255)


class JoinRoomRequest(DelegateRoomRequest):
    room_id: str = Field(..., pattern=r"^[A-Z]{10}$")

    @field_validator("room_id", mode="before")
    @classmethod
    def upper_room_id(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value


class DelegateSelfRequest(ContactRequest):
    address: Optional[str] = Field(None, max_length=500)
    college: Optional[str] = Field(None, max_length=255)
    callback_url: Optional[str] = Field(None, max_length=1024)


# Responses

class RegistrationResponse(CamelModel):
    success: bool = True
    status: PaymentStatus
    payment_url: Optional[str] = None
    message: Optional[str] = None
    order_id: Optional[str] = None


class StatusResponse(CamelModel):
    success: bool = True
    status: PaymentStatus
    payment_url: Optional[str] = None
    details: Optional[dict[str, Any]] = None


class ChecksumResponse(CamelModel):
    success: bool = True
    checksum: Optional[str]


class EventRegistrationsResponse(CamelModel):
    success: bool = True
    events: dict[str, PaymentStatus]


class MerchOrderSummary(CamelModel):
    id: str
    item: dict[str, Any]
    payment_status: PaymentStatus
    payment_url: Optional[str] = None


class MerchOrdersResponse(CamelModel):
    success: bool = True
    orders: list[MerchOrderSummary]


class MerchOrderStatusResponse(CamelModel):
    success: bool = True
    order_id: str
    status: PaymentStatus
    payment_url: Optional[str] = None
    checksum: Optional[str] = None


class RoomResponse(CamelModel):
    success: bool = True
    room_id: Optional[str] = None
    message: Optional[str] = None


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class RoomMember(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    college: Optional[str] = None


class DelegateUserStatusResponse(CamelModel):
    success: bool = True
    is_owner: bool
    is_member: bool
    room_id: Optional[str] = None
    self_booking: bool
    payment_status: Optional[PaymentStatus] = None
    payment_url: Optional[str] = None
    users: Optional[list[RoomMember]] = None


class DelegateRoomStatusResponse(CamelModel):
    success: bool = True
    owner: RoomMember
    users: Optional[list[RoomMember]] = None
    payment_status: Optional[PaymentStatus] = None
    payment_url: Optional[str] = None
