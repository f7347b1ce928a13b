"""Initial schema: offerings, sessions, bookings, discount codes, redemptions.

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Offerings table
    op.create_table(
        "offerings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("price_per_person_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'eur'")),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("kind IN ('single', 'multi')", name="check_offering_kind"),
        sa.CheckConstraint("capacity > 0", name="check_offering_capacity_positive"),
        sa.CheckConstraint("price_per_person_cents >= 0", name="check_offering_price_non_negative"),
    )
    op.create_index("ix_offerings_id", "offerings", ["id"])

    # Sessions table
    # NO CHECK (available_spots >= 0): reservations decrement first and
    # verify afterwards, so the rollback has to be able to see a negative.
    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("offering_id", sa.Integer(), sa.ForeignKey("offerings.id"), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("available_spots", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'scheduled'")),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('scheduled', 'cancelled', 'completed')",
            name="check_session_status",
        ),
    )
    op.create_index("ix_sessions_id", "sessions", ["id"])
    op.create_index("ix_sessions_offering_id", "sessions", ["offering_id"])
    # Course enrollment loads every scheduled session of an offering in order
    op.create_index("ix_sessions_offering_starts_at", "sessions", ["offering_id", "starts_at"])

    # Bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("offering_id", sa.Integer(), sa.ForeignKey("offerings.id"), nullable=False),
        sa.Column("session_ids", sa.JSON(), nullable=False),
        sa.Column("party_size", sa.Integer(), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=False, server_default=sa.text("''")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'unpaid'")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_reference", sa.String(255), nullable=True),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("discount_code", sa.String(32), nullable=True),
        sa.Column("discount_amount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.CheckConstraint("party_size > 0", name="check_booking_party_size_positive"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled')",
            name="check_booking_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('unpaid', 'paid', 'refunded', 'failed')",
            name="check_booking_payment_status",
        ),
        sa.CheckConstraint("discount_amount_cents >= 0", name="check_booking_discount_non_negative"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_offering_id", "bookings", ["offering_id"])
    op.create_index("ix_bookings_payment_reference", "bookings", ["payment_reference"])
    # The expiry sweep filters on all three columns
    op.create_index("ix_bookings_expiry", "bookings", ["status", "payment_status", "expires_at"])

    # Discount codes table
    op.create_table(
        "discount_codes",
        sa.Column("code", sa.String(32), primary_key=True),
        sa.Column("kind", sa.String(10), nullable=False),
        sa.Column("balance_or_uses_remaining", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'eur'")),
        sa.Column("initial_value_cents", sa.Integer(), nullable=True),
        sa.Column("discount_type", sa.String(20), nullable=True),
        sa.Column("discount_value", sa.Integer(), nullable=True),
        sa.Column("max_uses", sa.Integer(), nullable=True),
        sa.Column("notes", sa.String(500), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("kind IN ('gift', 'promo')", name="check_discount_kind"),
        sa.CheckConstraint(
            "status IN ('active', 'partially-used', 'exhausted', 'expired')",
            name="check_discount_status",
        ),
    )

    # Redemptions table
    op.create_table(
        "redemptions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(32), sa.ForeignKey("discount_codes.code"), nullable=False),
        sa.Column("booking_id", sa.Integer(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        # One permanent apply per code and booking
        sa.UniqueConstraint("code", "booking_id", name="uq_redemption_code_booking"),
    )
    op.create_index("ix_redemptions_code", "redemptions", ["code"])
    op.create_index("ix_redemptions_booking_id", "redemptions", ["booking_id"])


def downgrade() -> None:
    op.drop_table("redemptions")
    op.drop_table("discount_codes")
    op.drop_table("bookings")
    op.drop_table("sessions")
    op.drop_table("offerings")
