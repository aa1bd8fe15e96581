# backend/alembic/versions/001_scheduling_engine.py
"""Scheduling engine - templates, bookings, slot claims, reschedules, quotas

Revision ID: 001_scheduling_engine
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates every table the scheduling engine needs. Slot exclusivity is
enforced at the storage level by booking_slot_claims: one row per held
(booking_type, booking_date, slot) with a unique constraint, deleted when
the owning booking is cancelled or moved.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_scheduling_engine"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Create scheduling tables."""
    print("Creating availability template tables...")

    op.create_table(
        "availability_templates",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("booking_type", sa.String(32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("booking_type"),
    )
    op.create_table(
        "availability_days",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("template_id", sa.String(26), nullable=False),
        sa.Column("day_of_week", sa.String(10), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["template_id"], ["availability_templates.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("template_id", "day_of_week", name="uq_template_day"),
    )
    op.create_index("ix_availability_days_template_id", "availability_days", ["template_id"])
    op.create_table(
        "availability_windows",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("day_id", sa.String(26), nullable=False),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("end_time", sa.String(5), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["day_id"], ["availability_days.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_availability_windows_day_id", "availability_windows", ["day_id"])

    print("Creating booking tables...")

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("user_id", sa.String(26), nullable=False),
        sa.Column("booking_type", sa.String(32), nullable=False),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("slots", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("funding_source", sa.String(20), nullable=False, server_default="subscription"),
        sa.Column("payment_reference", sa.String(255), nullable=True, comment="One-off charge id"),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("meeting_link", sa.String(1024), nullable=True),
        sa.Column("is_rescheduled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("reminder_sent_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_by_id", sa.String(26), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("amount >= 0", name="check_booking_amount_non_negative"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_payment_reference", "bookings", ["payment_reference"])
    op.create_index("ix_bookings_type_date", "bookings", ["booking_type", "booking_date"])

    op.create_table(
        "booking_slot_claims",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("booking_id", sa.String(26), nullable=False),
        sa.Column("booking_type", sa.String(32), nullable=False),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("slot_key", sa.String(11), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "booking_type", "booking_date", "slot_key", name="uq_booking_slot_claim"
        ),
    )
    op.create_index("ix_booking_slot_claims_booking_id", "booking_slot_claims", ["booking_id"])

    op.create_table(
        "reschedule_requests",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("booking_id", sa.String(26), nullable=False),
        sa.Column("user_id", sa.String(26), nullable=False),
        sa.Column("requested_date", sa.Date(), nullable=False),
        sa.Column("requested_slots", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("requested_by", sa.String(20), nullable=False),
        sa.Column("requested_by_id", sa.String(26), nullable=False),
        sa.Column("reviewed_by_id", sa.String(26), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_reschedule_requests_id", "reschedule_requests", ["id"])
    op.create_index("ix_reschedule_requests_booking_id", "reschedule_requests", ["booking_id"])
    op.create_index("ix_reschedule_requests_user_id", "reschedule_requests", ["user_id"])
    op.create_index("ix_reschedule_requests_status", "reschedule_requests", ["status"])
    op.create_index(
        "ix_reschedule_requests_booking_status", "reschedule_requests", ["booking_id", "status"]
    )
    op.create_index(
        "uq_reschedule_requests_pending_booking",
        "reschedule_requests",
        ["booking_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "booking_reviews",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("booking_id", sa.String(26), nullable=False),
        sa.Column("user_id", sa.String(26), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("review_text", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("booking_id", name="uq_booking_reviews_booking"),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_booking_reviews_rating_range"),
        sa.CheckConstraint(
            "(review_text IS NULL) OR (length(review_text) <= 500)",
            name="ck_booking_reviews_text_length",
        ),
    )
    op.create_index("ix_booking_reviews_user_id", "booking_reviews", ["user_id"])

    print("Creating subscription and notification tables...")

    op.create_table(
        "subscription_plans",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column(
            "session_allowance",
            sa.Integer(),
            nullable=False,
            server_default="0",
            comment="Sessions per billing period, 0 = unlimited",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "user_subscriptions",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("user_id", sa.String(26), nullable=False),
        sa.Column("plan_id", sa.String(26), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("current_period_start", sa.DateTime(), nullable=False),
        sa.Column("current_period_end", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["plan_id"], ["subscription_plans.id"]),
    )
    op.create_index("ix_user_subscriptions_user_id", "user_subscriptions", ["user_id"])
    op.create_index("ix_user_subscriptions_status", "user_subscriptions", ["status"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("recipient_id", sa.String(26), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("read_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])

    print("Scheduling engine tables created successfully!")


def downgrade() -> None:
    """Drop scheduling tables."""
    print("Dropping scheduling engine tables...")

    op.drop_index("ix_notifications_recipient_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_user_subscriptions_status", table_name="user_subscriptions")
    op.drop_index("ix_user_subscriptions_user_id", table_name="user_subscriptions")
    op.drop_table("user_subscriptions")
    op.drop_table("subscription_plans")
    op.drop_index("ix_booking_reviews_user_id", table_name="booking_reviews")
    op.drop_table("booking_reviews")
    for name in (
        "uq_reschedule_requests_pending_booking",
        "ix_reschedule_requests_booking_status",
        "ix_reschedule_requests_status",
        "ix_reschedule_requests_user_id",
        "ix_reschedule_requests_booking_id",
        "ix_reschedule_requests_id",
    ):
        op.drop_index(name, table_name="reschedule_requests")
    op.drop_table("reschedule_requests")
    op.drop_index("ix_booking_slot_claims_booking_id", table_name="booking_slot_claims")
    op.drop_table("booking_slot_claims")
    for name in (
        "ix_bookings_type_date",
        "ix_bookings_payment_reference",
        "ix_bookings_status",
        "ix_bookings_user_id",
        "ix_bookings_id",
    ):
        op.drop_index(name, table_name="bookings")
    op.drop_table("bookings")
    op.drop_index("ix_availability_windows_day_id", table_name="availability_windows")
    op.drop_table("availability_windows")
    op.drop_index("ix_availability_days_template_id", table_name="availability_days")
    op.drop_table("availability_days")
    op.drop_table("availability_templates")

    print("Scheduling engine tables dropped successfully!")
