"""
Ride model with seat inventory tracking.

Key design decisions:
- `available_seats` is the source of truth for capacity; it is never
  recomputed from bookings, only moved by conditional UPDATEs
- CHECK constraints keep the counter within [0, total_seats] even if a
  buggy code path tried a plain write
- Composite index on (origin, destination, journey_date) backs the catalog search
"""

import uuid

from sqlalchemy import Column, Integer, String, Date, Uuid, Index, CheckConstraint
from sqlalchemy.orm import relationship

from returnvehicle.db.base import Base, TimestampMixin
from returnvehicle.models.status import RideStatus


class Ride(Base, TimestampMixin):
    __tablename__ = "rides"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    driver_id = Column(String(128), nullable=False, index=True)
    origin = Column(String(120), nullable=False, index=True)
    destination = Column(String(120), nullable=False, index=True)
    journey_date = Column(Date, nullable=False, index=True)
    return_date = Column(Date, nullable=True)
    category = Column(String(20), nullable=False, index=True)
    price = Column(Integer, nullable=False)
    vehicle_model = Column(String(255), nullable=False, default="")
    total_seats = Column(Integer, nullable=False, default=4)
    available_seats = Column(Integer, nullable=False, default=4)
    status = Column(String(20), nullable=False, default=RideStatus.AVAILABLE.value, index=True)
    image_url = Column(String(1024), nullable=False, default="")
    image_file_id = Column(String(255), nullable=False, default="")

    bookings = relationship("Booking", back_populates="ride", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("price >= 1", name="check_ride_price_positive"),
        CheckConstraint("total_seats >= 1", name="check_ride_total_seats_positive"),
        CheckConstraint("available_seats >= 0", name="check_ride_available_non_negative"),
        CheckConstraint("available_seats <= total_seats", name="check_ride_available_lte_total"),
        CheckConstraint(
            "return_date IS NULL OR return_date >= journey_date",
            name="check_ride_return_after_journey",
        ),
        CheckConstraint("category IN ('Ambulance', 'Car', 'Truck')", name="check_ride_category"),
        CheckConstraint("status IN ('available', 'unavailable')", name="check_ride_status"),
        Index("ix_rides_route_date", "origin", "destination", "journey_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Ride(id={self.id}, {self.origin}->{self.destination} on {self.journey_date}, "
            f"available={self.available_seats}/{self.total_seats})>"
        )
