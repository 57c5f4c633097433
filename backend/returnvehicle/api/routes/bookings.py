"""
Booking endpoints: rider/driver ledgers and the status transitions.
Seats are taken in POST /rides/{id}/book; everything here reads or moves
an existing booking.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from returnvehicle.api.deps import PageParams, pagination
from returnvehicle.core.security import get_current_user, require_role
from returnvehicle.db.session import get_db
from returnvehicle.models.status import UserRole
from returnvehicle.models.user import User
from returnvehicle.schemas.booking import BookingListResponse, BookingResponse
from returnvehicle.services import booking_service
from returnvehicle.services.cache_service import invalidate_ride_cache

router = APIRouter(prefix="/bookings", tags=["Bookings"])

require_driver = require_role(UserRole.DRIVER)
require_rider = require_role(UserRole.USER, UserRole.DRIVER)


def _page(bookings, total: int, params: PageParams) -> BookingListResponse:
    return BookingListResponse.build(
        [BookingResponse.model_validate(b) for b in bookings], total, params.page, params.limit
    )


@router.get("/mine", response_model=BookingListResponse)
async def my_bookings(
    params: PageParams = Depends(pagination(10)),
    user: User = Depends(require_rider),
    db: AsyncSession = Depends(get_db),
):
    """Bookings I made, newest first, with the ride summary attached."""
    bookings, total = await booking_service.list_rider_bookings(db, user.uid, params.page, params.limit)
    return _page(bookings, total, params)


@router.get("/driver", response_model=BookingListResponse)
async def driver_bookings(
    params: PageParams = Depends(pagination(10)),
    user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    """Bookings on my rides, including passenger contact details."""
    bookings, total = await booking_service.list_driver_bookings(db, user.uid, params.page, params.limit)
    return _page(bookings, total, params)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(
    booking_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.get_booking_for(db, booking_id, user)


@router.patch("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking_endpoint(
    booking_id: str,
    user: User = Depends(require_rider),
    db: AsyncSession = Depends(get_db),
):
    """Cancel my booking before the journey date and give the seats back."""
    rider_id = user.uid
    booking = await booking_service.cancel_booking(db, booking_id, rider_id)
    await invalidate_ride_cache()
    return booking


@router.patch("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking_endpoint(
    booking_id: str,
    user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.confirm_booking(db, booking_id, user.uid)


@router.patch("/{booking_id}/reject", response_model=BookingResponse)
async def reject_booking_endpoint(
    booking_id: str,
    user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    driver_id = user.uid
    booking = await booking_service.reject_booking(db, booking_id, driver_id)
    await invalidate_ride_cache()
    return booking


@router.patch("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking_endpoint(
    booking_id: str,
    user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.complete_booking(db, booking_id, user.uid)
