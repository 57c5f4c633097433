"""
Admin moderation: users, rides and the seat-release reconciliation sweep.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from returnvehicle.api.deps import PageParams, pagination
from returnvehicle.core.security import require_role
from returnvehicle.db.session import get_db
from returnvehicle.models.status import UserRole
from returnvehicle.models.user import User
from returnvehicle.schemas.ride import RideDeleteResponse, RideListResponse, RideResponse
from returnvehicle.schemas.user import AdminUserUpdate, UserEnvelope, UserListResponse, UserResponse
from returnvehicle.services import booking_service, ride_service, user_service
from returnvehicle.services.cache_service import invalidate_ride_cache

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_role(UserRole.ADMIN))])


@router.get("/users", response_model=UserListResponse)
async def list_users(
    query: str = Query(""),
    role: str = Query(""),
    status: str = Query(""),
    params: PageParams = Depends(pagination(10)),
    db: AsyncSession = Depends(get_db),
):
    users, total = await user_service.list_users(db, query, role, status, params.page, params.limit)
    return UserListResponse.build(
        [UserResponse.model_validate(u) for u in users], total, params.page, params.limit
    )


@router.patch("/users/{uid}", response_model=UserEnvelope)
async def update_user(uid: str, payload: AdminUserUpdate, db: AsyncSession = Depends(get_db)):
    user = await user_service.admin_update_user(db, uid, payload.role, payload.status)
    return UserEnvelope(user=UserResponse.model_validate(user))


@router.get("/rides", response_model=RideListResponse)
async def list_rides(
    query: str = Query(""),
    status: str = Query(""),
    category: str = Query(""),
    params: PageParams = Depends(pagination(10)),
    db: AsyncSession = Depends(get_db),
):
    rides, total = await ride_service.admin_list_rides(db, query, status, category, params.page, params.limit)
    return RideListResponse.build(
        [RideResponse.model_validate(r) for r in rides], total, params.page, params.limit
    )


@router.delete("/rides/{ride_id}", response_model=RideDeleteResponse)
async def delete_ride(
    ride_id: str,
    admin: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    ride = await ride_service.delete_ride(db, ride_id, admin)
    await invalidate_ride_cache()
    return RideDeleteResponse(id=ride.id)


@router.post("/reconcile")
async def reconcile(db: AsyncSession = Depends(get_db)):
    """Return seats for cancelled/rejected bookings whose release never landed."""
    compensated = await booking_service.reconcile_released_seats(db)
    if compensated:
        await invalidate_ride_cache()
    return {"compensated": compensated}
