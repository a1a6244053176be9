"""Initial schema: registrations table with uniqueness, status and room indexes.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_DOCUMENT = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "registrations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("domain", sa.String(20), nullable=False),
        sa.Column("owner_uid", sa.String(128), nullable=False),
        sa.Column("item_id", sa.String(64), nullable=False, server_default=""),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(32), nullable=False, server_default=""),
        sa.Column("college", sa.String(255), nullable=True),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="unregistered"),
        sa.Column("booking_ref", sa.String(64), nullable=True),
        sa.Column("payment_url", sa.String(1024), nullable=True),
        sa.Column("role", sa.String(10), nullable=False, server_default="none"),
        sa.Column("room_id", sa.String(16), nullable=True),
        sa.Column("members", JSON_DOCUMENT, nullable=False),
        sa.Column("self_booking", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("details", JSON_DOCUMENT, nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("domain", "owner_uid", "item_id", name="uq_registration_owner_item"),
        sa.UniqueConstraint("booking_ref", name="uq_registration_booking_ref"),
        sa.CheckConstraint(
            "payment_status IN ('unregistered', 'pending', 'confirmed', 'failed')",
            name="check_registration_payment_status",
        ),
        sa.CheckConstraint("role IN ('none', 'owner', 'member')", name="check_registration_role"),
    )
    op.create_index("ix_registrations_owner_uid", "registrations", ["owner_uid"])
    # Room lookups: find the owner of a room, list its members
    op.create_index("ix_registrations_room", "registrations", ["domain", "room_id", "role"])


def downgrade() -> None:
    op.drop_index("ix_registrations_room", table_name="registrations")
    op.drop_index("ix_registrations_owner_uid", table_name="registrations")
    op.drop_table("registrations")
