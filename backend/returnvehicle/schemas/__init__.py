from returnvehicle.schemas.user import UserResponse, UserEnvelope, SetRoleRequest, AdminUserUpdate, UserListResponse
from returnvehicle.schemas.ride import RideCreate, RideUpdate, RideResponse, RideSummary, RideListResponse
from returnvehicle.schemas.booking import BookingCreate, BookingResponse, BookingListResponse

__all__ = [
    "UserResponse", "UserEnvelope", "SetRoleRequest", "AdminUserUpdate", "UserListResponse",
    "RideCreate", "RideUpdate", "RideResponse", "RideSummary", "RideListResponse",
    "BookingCreate", "BookingResponse", "BookingListResponse",
]
