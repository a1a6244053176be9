"""
Registration record: one row per (domain, owner, item).

Key design decisions:
- Single-record domains (alumni, accommodation, delegate) use item_id = "".
  Events use the event id, so an owner's per-event state is the set of their
  event rows. Merchandise uses the provider booking uid as the order id.
- booking_ref is unique system-wide; it is the join key for reconciliation.
- `version` is the optimistic-locking counter (SQLAlchemy version_id_col).
  A concurrent write to the same row makes the flush fail with StaleDataError
  and the surrounding transaction is retried.
- Delegate rooms live on the owner's row (room_id + members map); each member
  row mirrors membership with role=member and the same room_id.
"""

from enum import StrEnum
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB

from festreg.db.base import Base, TimestampMixin

JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class Domain(StrEnum):
    ALUMNI = "alumni"
    ACCOMMODATION = "accommodation"
    DELEGATE = "delegate"
    EVENT = "event"
    MERCHANDISE = "merchandise"


class PaymentStatus(StrEnum):
    UNREGISTERED = "unregistered"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @classmethod
    def from_provider(cls, raw: Optional[str]) -> Optional["PaymentStatus"]:
        """Map a provider status string; None means the provider gave no usable status."""
        if not raw:
            return None
        return _PROVIDER_STATUSES.get(raw.strip().lower())


_PROVIDER_STATUSES = {
    "confirmed": PaymentStatus.CONFIRMED,
    "success": PaymentStatus.CONFIRMED,
    "completed": PaymentStatus.CONFIRMED,
    "paid": PaymentStatus.CONFIRMED,
    "pending": PaymentStatus.PENDING,
    "pending_payment": PaymentStatus.PENDING,
    "initiated": PaymentStatus.PENDING,
    "created": PaymentStatus.PENDING,
    "booked": PaymentStatus.PENDING,
    "failed": PaymentStatus.FAILED,
    "cancelled": PaymentStatus.FAILED,
    "canceled": PaymentStatus.FAILED,
    "expired": PaymentStatus.FAILED,
}


class RoomRole(StrEnum):
    NONE = "none"
    OWNER = "owner"
    MEMBER = "member"


class Registration(Base, TimestampMixin):
    __tablename__ = "registrations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    domain = Column(String(20), nullable=False)
    owner_uid = Column(String(128), nullable=False, index=True)
    item_id = Column(String(64), nullable=False, default="")

    # Contact info
    name = Column(String(255), nullable=False, default="")
    email = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=False, default="")
    college = Column(String(255), nullable=True)

    # Payment state
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.UNREGISTERED.value)
    booking_ref = Column(String(64), nullable=True, unique=True)
    payment_url = Column(String(1024), nullable=True)

    # Delegate rooms
    role = Column(String(10), nullable=False, default=RoomRole.NONE.value)
    room_id = Column(String(16), nullable=True)
    members = Column(JSONDocument, nullable=False, default=dict)
    self_booking = Column(Boolean, nullable=False, default=False)

    details = Column(JSONDocument, nullable=False, default=dict)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("domain", "owner_uid", "item_id", name="uq_registration_owner_item"),
        CheckConstraint(
            "payment_status IN ('unregistered', 'pending', 'confirmed', 'failed')",
            name="check_registration_payment_status",
        ),
        CheckConstraint("role IN ('none', 'owner', 'member')", name="check_registration_role"),
        Index("ix_registrations_room", "domain", "room_id", "role"),
    )

    @property
    def status(self) -> PaymentStatus:
        return PaymentStatus(self.payment_status)

    @property
    def is_confirmed(self) -> bool:
        return self.payment_status == PaymentStatus.CONFIRMED

    @property
    def is_owner(self) -> bool:
        return self.role == RoomRole.OWNER

    @property
    def is_member(self) -> bool:
        return self.role == RoomRole.MEMBER

    def apply_status(self, new_status: PaymentStatus) -> bool:
        """
        Move to ``new_status`` unless that would be a no-op or a regression
        out of CONFIRMED. Returns True when the row changed.
        """
        if new_status == self.payment_status:
            return False
        if self.is_confirmed:
            return False
        self.payment_status = new_status.value
        return True

    def record_booking(self, booking_ref: str, payment_url: str, status: PaymentStatus) -> None:
        self.booking_ref = booking_ref
        self.payment_url = payment_url
        self.payment_status = status.value

    def clear_booking(self) -> None:
        self.booking_ref = None
        self.payment_url = None
        self.payment_status = PaymentStatus.UNREGISTERED.value

    def leave_room(self) -> None:
        self.role = RoomRole.NONE.value
        self.room_id = None
        self.members = {}

    def contact(self) -> dict:
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "college": self.college,
        }

    def __repr__(self) -> str:
        return (
            f"<Registration(id={self.id}, domain={self.domain}, owner={self.owner_uid}, "
            f"item={self.item_id!r}, status={self.payment_status})>"
        )
