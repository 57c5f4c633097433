"""
Ride endpoints: public catalog (Redis cached), owner CRUD and booking.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from returnvehicle.api.deps import PageParams, pagination
from returnvehicle.core.security import require_role
from returnvehicle.db.session import get_db
from returnvehicle.models.status import UserRole
from returnvehicle.models.user import User
from returnvehicle.schemas.booking import BookingCreate, BookingResponse
from returnvehicle.schemas.ride import (
    RideCreate,
    RideDeleteResponse,
    RideListResponse,
    RideResponse,
    RideUpdate,
)
from returnvehicle.services import booking_service, ride_service
from returnvehicle.services.cache_service import get_cached_list, invalidate_ride_cache, set_cached_list
from returnvehicle.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/rides", tags=["Rides"])

require_driver = require_role(UserRole.DRIVER)
require_rider = require_role(UserRole.USER, UserRole.DRIVER)


def _page(rides, total: int, params: PageParams) -> RideListResponse:
    return RideListResponse.build(
        [RideResponse.model_validate(r) for r in rides], total, params.page, params.limit
    )


@router.get("", response_model=RideListResponse)
async def search_rides(
    origin: str = Query("", alias="from"),
    destination: str = Query("", alias="to"),
    journey_date: Optional[date] = Query(None, alias="date"),
    category: str = Query(""),
    price_min: Optional[int] = Query(None, alias="priceMin", ge=0),
    price_max: Optional[int] = Query(None, alias="priceMax", ge=0),
    only_available: bool = Query(False, alias="onlyAvailable"),
    params: PageParams = Depends(pagination(12)),
    db: AsyncSession = Depends(get_db),
):
    """
    Public search. Substring match on from/to, exact date/category/price filters.
    Pages are cached in Redis and dropped whenever rides or seat counts change.
    """
    cache_params = {
        "from": origin.strip().lower(),
        "to": destination.strip().lower(),
        "date": journey_date.isoformat() if journey_date else "",
        "category": category.strip().lower(),
        "priceMin": price_min,
        "priceMax": price_max,
        "onlyAvailable": only_available,
        "page": params.page,
        "limit": params.limit,
    }
    cached = await get_cached_list(cache_params)
    if cached:
        cached["cached"] = True
        return RideListResponse.model_validate(cached)

    rides, total = await ride_service.list_rides(
        db,
        origin=origin,
        destination=destination,
        journey_date=journey_date,
        category=category,
        price_min=price_min,
        price_max=price_max,
        only_available=only_available,
        page=params.page,
        limit=params.limit,
    )
    response = _page(rides, total, params)
    await set_cached_list(cache_params, response.model_dump(mode="json"))
    return response


@router.get("/mine", response_model=RideListResponse)
async def my_rides(
    params: PageParams = Depends(pagination(20)),
    user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    rides, total = await ride_service.list_driver_rides(db, user.uid, params.page, params.limit)
    return _page(rides, total, params)


@router.get("/{ride_id}", response_model=RideResponse)
async def get_ride_endpoint(ride_id: str, db: AsyncSession = Depends(get_db)):
    """Single ride, always from the database (live seat count)."""
    return await ride_service.get_ride(db, ride_id)


@router.post("", response_model=RideResponse, status_code=status.HTTP_201_CREATED)
async def create_ride_endpoint(
    payload: RideCreate,
    user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    ride = await ride_service.create_ride(db, user.uid, payload)
    await invalidate_ride_cache()
    return ride


@router.patch("/{ride_id}", response_model=RideResponse)
async def update_ride_endpoint(
    ride_id: str,
    payload: RideUpdate,
    user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    ride = await ride_service.update_ride(db, ride_id, user.uid, payload)
    await invalidate_ride_cache()
    return ride


@router.delete("/{ride_id}", response_model=RideDeleteResponse)
async def delete_ride_endpoint(
    ride_id: str,
    user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    ride = await ride_service.delete_ride(db, ride_id, user)
    await invalidate_ride_cache()
    return RideDeleteResponse(id=ride.id)


@router.post("/{ride_id}/book", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def book_ride(
    ride_id: str,
    payload: BookingCreate,
    user: User = Depends(require_rider),
    db: AsyncSession = Depends(get_db),
):
    """
    Reserve seats. Concurrent requests for the last seats race on a single
    guarded UPDATE; the loser gets 409 seat_unavailable, never an oversell.
    """
    rider_id = user.uid
    booking = await booking_service.book_seats(
        db,
        ride_id,
        rider_id,
        payload.seats,
        payload.contact_name,
        payload.contact_phone,
        payload.note,
    )
    await invalidate_ride_cache()
    return booking
