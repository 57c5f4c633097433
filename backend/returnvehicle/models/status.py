"""
Closed status enums and their transition tables.

Every status change of a Ride or a Booking is validated here and nowhere
else. Services build their conditional UPDATEs from `sources_for()` so the
check in Python and the WHERE clause in SQL cannot disagree.
"""

from enum import Enum

from returnvehicle.core.exceptions import InvalidStateError


class RideCategory(str, Enum):
    AMBULANCE = "Ambulance"
    CAR = "Car"
    TRUCK = "Truck"


class UserRole(str, Enum):
    USER = "user"
    DRIVER = "driver"
    ADMIN = "admin"


class UserStatus(str, Enum):
    APPROVED = "approved"
    BLOCKED = "blocked"


class RideStatus(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"

    @classmethod
    def check_transition(cls, current: "RideStatus | str", target: "RideStatus | str") -> None:
        current, target = cls(current), cls(target)
        if current == target:
            return
        if target not in _RIDE_TRANSITIONS[current]:
            raise InvalidStateError(f"ride cannot move from {current.value} to {target.value}")


class BookingStatus(str, Enum):
    BOOKED = "booked"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return not _BOOKING_TRANSITIONS[self]

    @property
    def holds_seats(self) -> bool:
        """Statuses whose seats are counted as taken on the ride."""
        return self in ACTIVE_BOOKING_STATUSES

    @property
    def releases_seats(self) -> bool:
        """Terminal statuses reached by giving seats back to the ride."""
        return self in (BookingStatus.CANCELLED, BookingStatus.REJECTED)

    @classmethod
    def sources_for(cls, target: "BookingStatus") -> tuple["BookingStatus", ...]:
        return tuple(s for s, targets in _BOOKING_TRANSITIONS.items() if target in targets)

    @classmethod
    def check_transition(cls, current: "BookingStatus | str", target: "BookingStatus | str") -> None:
        current, target = cls(current), cls(target)
        if target not in _BOOKING_TRANSITIONS[current]:
            if current.is_terminal:
                raise InvalidStateError(f"booking is already {current.value}")
            raise InvalidStateError(f"booking cannot move from {current.value} to {target.value}")


_RIDE_TRANSITIONS = {
    RideStatus.AVAILABLE: {RideStatus.UNAVAILABLE},
    RideStatus.UNAVAILABLE: {RideStatus.AVAILABLE},
}

_BOOKING_TRANSITIONS = {
    BookingStatus.BOOKED: {
        BookingStatus.CONFIRMED,
        BookingStatus.REJECTED,
        BookingStatus.CANCELLED,
        BookingStatus.COMPLETED,
    },
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED, BookingStatus.COMPLETED},
    BookingStatus.REJECTED: set(),
    BookingStatus.CANCELLED: set(),
    BookingStatus.COMPLETED: set(),
}

ACTIVE_BOOKING_STATUSES = (BookingStatus.BOOKED, BookingStatus.CONFIRMED)
