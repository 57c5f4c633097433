from returnvehicle.models.user import User
from returnvehicle.models.ride import Ride
from returnvehicle.models.booking import Booking

__all__ = ["User", "Ride", "Booking"]
