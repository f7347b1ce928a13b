"""Cancellation progress flags on bookings, customer gift purchases on codes.

Revision ID: 002
Revises: 001
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        "bookings",
        sa.Column("discount_released", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.add_column(
        "bookings",
        sa.Column("capacity_released", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )

    # Purchased gift codes wait in 'pending' until the payment completes
    op.add_column("discount_codes", sa.Column("purchase_reference", sa.String(255), nullable=True))
    op.create_unique_constraint(
        "uq_discount_codes_purchase_reference", "discount_codes", ["purchase_reference"]
    )
    op.drop_constraint("check_discount_status", "discount_codes", type_="check")
    op.create_check_constraint(
        "check_discount_status",
        "discount_codes",
        "status IN ('pending', 'active', 'partially-used', 'exhausted', 'expired')",
    )


def downgrade() -> None:
    op.drop_constraint("check_discount_status", "discount_codes", type_="check")
    op.create_check_constraint(
        "check_discount_status",
        "discount_codes",
        "status IN ('active', 'partially-used', 'exhausted', 'expired')",
    )
    op.drop_constraint("uq_discount_codes_purchase_reference", "discount_codes", type_="unique")
    op.drop_column("discount_codes", "purchase_reference")
    op.drop_column("bookings", "capacity_released")
    op.drop_column("bookings", "discount_released")
