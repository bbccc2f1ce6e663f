"""Bookings, credit batches and notifications

Revision ID: 0001_initial
Revises:
Create Date: 2025-05-12
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    booking_status = postgresql.ENUM(
        "pending", "confirmed", "cancelled", name="bookingstatus", create_type=False
    )
    booking_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("resource_id", sa.String(length=128), nullable=False),
        sa.Column("owner_id", sa.String(length=128), nullable=False),
        sa.Column("provider_id", sa.String(length=128), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("status", booking_status, server_default="pending"),
        sa.Column("notes", sa.Text()),
        sa.Column("contact_info", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint("end_time > start_time", name="ck_booking_slot_order"),
    )
    op.create_index("ix_booking_slot", "bookings", ["resource_id", "date", "start_time"])
    op.create_index(
        "uq_booking_active_slot",
        "bookings",
        ["resource_id", "date", "start_time"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'confirmed')"),
    )
    op.create_index("ix_bookings_owner_id", "bookings", ["owner_id"])
    op.create_index("ix_bookings_provider_id", "bookings", ["provider_id"])

    batch_status = postgresql.ENUM(
        "active", "expired", name="creditbatchstatus", create_type=False
    )
    batch_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "credit_batches",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("account_id", sa.String(length=128), nullable=False),
        sa.Column("provider_id", sa.String(length=128), nullable=False),
        sa.Column("amount_total", sa.Integer(), nullable=False),
        sa.Column("amount_remaining", sa.Integer(), nullable=False),
        sa.Column("expired_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("granted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("source_id", sa.String(length=128)),
        sa.Column("status", batch_status, nullable=False, server_default="active"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint("amount_total > 0", name="ck_credit_batch_total_positive"),
        sa.CheckConstraint("amount_remaining >= 0", name="ck_credit_batch_remaining_non_negative"),
        sa.CheckConstraint(
            "amount_remaining <= amount_total", name="ck_credit_batch_remaining_within_total"
        ),
    )
    op.create_index(
        "ix_credit_batch_ledger", "credit_batches", ["account_id", "provider_id", "expires_at"]
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("provider_id", sa.String(length=128), nullable=False),
        sa.Column("booking_id", sa.Integer()),
        sa.Column("account_id", sa.String(length=128)),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_provider_id", "notifications", ["provider_id"])
    op.create_index("ix_notifications_booking_id", "notifications", ["booking_id"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("credit_batches")
    op.drop_table("bookings")
    postgresql.ENUM(name="creditbatchstatus").drop(op.get_bind(), checkfirst=True)
    postgresql.ENUM(name="bookingstatus").drop(op.get_bind(), checkfirst=True)
