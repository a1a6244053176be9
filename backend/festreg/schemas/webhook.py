"""
Inbound provider webhook payload.

The provider has delivered both a flat body and one nested under
``meta_data``; both shapes are accepted.
"""

from typing import Optional

from pydantic import BaseModel


class WebhookMeta(BaseModel):
    booking_uid: Optional[str] = None
    booking_status: Optional[str] = None
    booking_id: Optional[str] = None
    booking_quantity: Optional[int] = None


class WebhookPayload(BaseModel):
    message: Optional[str] = None
    booking_uid: Optional[str] = None
    booking_status: Optional[str] = None
    meta_data: Optional[WebhookMeta] = None

    model_config = {"extra": "allow"}

    @property
    def resolved_booking_uid(self) -> Optional[str]:
        if self.booking_uid:
            return self.booking_uid
        return self.meta_data.booking_uid if self.meta_data else None

    @property
    def resolved_booking_status(self) -> Optional[str]:
        if self.booking_status:
            return self.booking_status
        return self.meta_data.booking_status if self.meta_data else None
