"""Initial schema: users, rides, bookings with seat-bound constraints.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("uid", sa.String(128), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, server_default=""),
        sa.Column("display_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("photo_url", sa.String(1024), nullable=False, server_default=""),
        sa.Column("role", sa.String(20), nullable=False, server_default="user"),
        sa.Column("status", sa.String(20), nullable=False, server_default="approved"),
        *_timestamps(),
        sa.CheckConstraint("role IN ('user', 'driver', 'admin')", name="check_user_role"),
        sa.CheckConstraint("status IN ('approved', 'blocked')", name="check_user_status"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_uid", "users", ["uid"], unique=True)
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_status", "users", ["status"])

    op.create_table(
        "rides",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("driver_id", sa.String(128), nullable=False),
        sa.Column("origin", sa.String(120), nullable=False),
        sa.Column("destination", sa.String(120), nullable=False),
        sa.Column("journey_date", sa.Date(), nullable=False),
        sa.Column("return_date", sa.Date(), nullable=True),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("vehicle_model", sa.String(255), nullable=False, server_default=""),
        sa.Column("total_seats", sa.Integer(), nullable=False, server_default=sa.text("4")),
        sa.Column("available_seats", sa.Integer(), nullable=False, server_default=sa.text("4")),
        sa.Column("status", sa.String(20), nullable=False, server_default="available"),
        sa.Column("image_url", sa.String(1024), nullable=False, server_default=""),
        sa.Column("image_file_id", sa.String(255), nullable=False, server_default=""),
        *_timestamps(),
        sa.CheckConstraint("price >= 1", name="check_ride_price_positive"),
        sa.CheckConstraint("total_seats >= 1", name="check_ride_total_seats_positive"),
        sa.CheckConstraint("available_seats >= 0", name="check_ride_available_non_negative"),
        # The last line of defence against oversell if a code path ever skips the conditional UPDATE
        sa.CheckConstraint("available_seats <= total_seats", name="check_ride_available_lte_total"),
        sa.CheckConstraint(
            "return_date IS NULL OR return_date >= journey_date",
            name="check_ride_return_after_journey",
        ),
        sa.CheckConstraint("category IN ('Ambulance', 'Car', 'Truck')", name="check_ride_category"),
        sa.CheckConstraint("status IN ('available', 'unavailable')", name="check_ride_status"),
    )
    for column in ("driver_id", "origin", "destination", "journey_date", "category", "status"):
        op.create_index(f"ix_rides_{column}", "rides", [column])
    # Catalog search filters on route and day together
    op.create_index("ix_rides_route_date", "rides", ["origin", "destination", "journey_date"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("code", sa.String(16), nullable=False),
        sa.Column("ride_id", sa.Uuid(), sa.ForeignKey("rides.id", ondelete="SET NULL"), nullable=True),
        sa.Column("rider_id", sa.String(128), nullable=False),
        sa.Column("driver_id", sa.String(128), nullable=False),
        sa.Column("seats", sa.Integer(), nullable=False),
        sa.Column("price_per_seat", sa.Integer(), nullable=False),
        sa.Column("total_price", sa.Integer(), nullable=False),
        sa.Column("contact_name", sa.String(120), nullable=False),
        sa.Column("contact_phone", sa.String(32), nullable=False),
        sa.Column("note", sa.String(500), nullable=False, server_default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default="booked"),
        sa.Column("seats_released", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint("code", name="uq_bookings_code"),
        sa.CheckConstraint("seats >= 1", name="check_booking_seats_positive"),
        sa.CheckConstraint("total_price = price_per_seat * seats", name="check_booking_total_price"),
        sa.CheckConstraint(
            "status IN ('booked', 'confirmed', 'rejected', 'cancelled', 'completed')",
            name="check_booking_status",
        ),
    )
    for column in ("ride_id", "rider_id", "driver_id", "status"):
        op.create_index(f"ix_bookings_{column}", "bookings", [column])
    # The reconciliation sweep looks for released statuses with seats_released still false
    op.create_index("ix_bookings_release_pending", "bookings", ["status", "seats_released"])


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("rides")
    op.drop_table("users")
