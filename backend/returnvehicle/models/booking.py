"""
Booking model: one rider's reservation of seats on a ride.

Key design decisions:
- driver_id, price_per_seat and total_price are copied from the ride when
  the booking is created and never re-derived afterwards
- Status field carries the ledger; rows are never deleted
- seats_released marks the second phase of cancel/reject compensation so a
  retried release cannot credit the ride twice
"""

import uuid

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Uuid, Index, CheckConstraint
from sqlalchemy.orm import relationship

from returnvehicle.db.base import Base, TimestampMixin
from returnvehicle.models.status import BookingStatus


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String(16), nullable=False, unique=True)
    # The ledger outlives the listing: deleting a ride leaves the snapshot rows behind
    ride_id = Column(Uuid, ForeignKey("rides.id", ondelete="SET NULL"), nullable=True, index=True)
    rider_id = Column(String(128), nullable=False, index=True)
    driver_id = Column(String(128), nullable=False, index=True)
    seats = Column(Integer, nullable=False)
    price_per_seat = Column(Integer, nullable=False)
    total_price = Column(Integer, nullable=False)
    contact_name = Column(String(120), nullable=False)
    contact_phone = Column(String(32), nullable=False)
    note = Column(String(500), nullable=False, default="")
    status = Column(String(20), nullable=False, default=BookingStatus.BOOKED.value, index=True)
    seats_released = Column(Boolean, nullable=False, default=False)

    ride = relationship("Ride", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("seats >= 1", name="check_booking_seats_positive"),
        CheckConstraint("total_price = price_per_seat * seats", name="check_booking_total_price"),
        CheckConstraint(
            "status IN ('booked', 'confirmed', 'rejected', 'cancelled', 'completed')",
            name="check_booking_status",
        ),
        Index("ix_bookings_release_pending", "status", "seats_released"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, code={self.code}, ride={self.ride_id}, seats={self.seats}, status={self.status})>"
