"""
Typed payloads exchanged with the TiQR booking provider.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class BookingPayload(BaseModel):
    first_name: str
    last_name: str = ""
    email: str
    phone_number: str
    ticket: int
    quantity: Optional[int] = None
    meta_data: Optional[dict[str, Any]] = None
    callback_url: Optional[str] = None


class BulkBookingPayload(BaseModel):
    bookings: list[BookingPayload]


class BookingInfo(BaseModel):
    uid: str
    status: Optional[str] = None


class PaymentInfo(BaseModel):
    url_to_redirect: Optional[str] = None
    payment_id: Optional[str] = None


class TicketInfo(BaseModel):
    id: Optional[int] = None


class BookingResponse(BaseModel):
    booking: BookingInfo
    payment: PaymentInfo = Field(default_factory=PaymentInfo)
    ticket: Optional[TicketInfo] = None
    meta_data: Optional[dict[str, Any]] = None


class FetchBookingResponse(BaseModel):
    status: Optional[str] = None
    payment: Optional[PaymentInfo] = None
    checksum: Optional[str] = None
    meta_data: Optional[dict[str, Any]] = None
    ticket: Optional[TicketInfo] = None
    booking: Optional[BookingInfo] = None

    @property
    def effective_status(self) -> Optional[str]:
        # Some provider views nest the status under `booking`
        if self.status:
            return self.status
        if self.booking is not None:
            return self.booking.status
        return None

    @property
    def payment_id(self) -> Optional[str]:
        return self.payment.payment_id if self.payment else None

    @property
    def ticket_id(self) -> Optional[int]:
        return self.ticket.id if self.ticket else None


class ChildBooking(BaseModel):
    uid: str
    status: Optional[str] = None
    meta_data: Optional[dict[str, Any]] = None


class BulkBookingInfo(BaseModel):
    uid: str
    status: Optional[str] = None
    child_bookings: list[ChildBooking] = Field(default_factory=list)


class BulkBookingResponse(BaseModel):
    booking: BulkBookingInfo
    payment: PaymentInfo = Field(default_factory=PaymentInfo)
