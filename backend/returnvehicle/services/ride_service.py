"""
Ride inventory: creation, owner edits, deletion and the catalog read paths.

Capacity edits never read-modify-write the seat counter in Python. They are
expressed as one conditional UPDATE whose WHERE clause re-validates the
bounds against the row as it is at write time, exactly like the booking
path, so an edit racing a booking cannot push available_seats out of
[0, total_seats].
"""

from datetime import date
from typing import Optional

from sqlalchemy import delete, exists, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from returnvehicle.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from returnvehicle.core.logging import get_logger
from returnvehicle.models.booking import Booking
from returnvehicle.models.ride import Ride
from returnvehicle.models.status import ACTIVE_BOOKING_STATUSES, RideStatus, UserRole
from returnvehicle.models.user import User
from returnvehicle.schemas.ride import RideCreate, RideUpdate
from returnvehicle.services.common import like_pattern, local_today, paginate, parse_id

logger = get_logger(__name__)

# Columns an owner may set directly; capacity and status are handled separately
_PLAIN_FIELDS = ("price", "vehicle_model", "category", "journey_date", "return_date", "image_url", "image_file_id")
_NOT_NULL_FIELDS = (
    "price", "vehicle_model", "category", "journey_date",
    "total_seats", "available_seats", "status", "image_url", "image_file_id",
)


def _check_dates(journey_date: date, return_date: Optional[date]) -> None:
    if return_date is not None and return_date < journey_date:
        raise ValidationError("returnDate must be on or after journeyDate")


async def create_ride(db: AsyncSession, driver_id: str, data: RideCreate) -> Ride:
    """Create a ride; all seats are available unless a lower start is given."""
    if data.journey_date < local_today():
        raise ValidationError("journeyDate cannot be in the past")
    _check_dates(data.journey_date, data.return_date)

    available = data.total_seats if data.available_seats is None else data.available_seats
    if available > data.total_seats:
        raise ValidationError("availableSeats cannot exceed totalSeats")

    ride = Ride(
        driver_id=driver_id,
        origin=data.origin,
        destination=data.destination,
        journey_date=data.journey_date,
        return_date=data.return_date,
        category=data.category.value,
        price=data.price,
        vehicle_model=data.vehicle_model,
        total_seats=data.total_seats,
        available_seats=available,
        status=RideStatus.AVAILABLE.value,
        image_url=data.image_url,
        image_file_id=data.image_file_id,
    )
    db.add(ride)
    await db.flush()
    await db.refresh(ride)
    await db.commit()

    logger.info(
        "ride_created",
        ride_id=str(ride.id),
        driver_id=driver_id,
        route=f"{ride.origin}->{ride.destination}",
        seats=ride.total_seats,
    )
    return ride


async def get_ride(db: AsyncSession, ride_id) -> Ride:
    rid = parse_id(ride_id, "ride")
    result = await db.execute(select(Ride).where(Ride.id == rid).execution_options(populate_existing=True))
    ride = result.scalar_one_or_none()
    if not ride:
        raise NotFoundError("ride not found")
    return ride


async def update_ride(db: AsyncSession, ride_id, driver_id: str, data: RideUpdate) -> Ride:
    changes = data.model_dump(exclude_unset=True)
    ride = await get_ride(db, ride_id)
    if ride.driver_id != driver_id:
        raise ForbiddenError("only the owning driver can edit this ride")

    for field in _NOT_NULL_FIELDS:
        if field in changes and changes[field] is None:
            raise ValidationError(f"{field} cannot be null")

    _check_dates(changes.get("journey_date", ride.journey_date), changes.get("return_date", ride.return_date))

    values = {}
    for field in _PLAIN_FIELDS:
        if field in changes:
            value = changes[field]
            values[field] = value.value if field == "category" else value

    if "status" in changes:
        RideStatus.check_transition(ride.status, changes["status"])
        values["status"] = RideStatus(changes["status"]).value

    rid = ride.id
    conditions = [Ride.id == rid, Ride.driver_id == driver_id]
    new_total = changes.get("total_seats")
    if "available_seats" in changes:
        new_available = changes["available_seats"]
        if new_total is not None:
            if new_available > new_total:
                raise ValidationError("availableSeats cannot exceed totalSeats")
            values["total_seats"] = new_total
        else:
            conditions.append(Ride.total_seats >= new_available)
        values["available_seats"] = new_available
    elif new_total is not None:
        # Growing or shrinking capacity moves the free seats by the same delta
        shifted = Ride.available_seats + (new_total - Ride.total_seats)
        conditions.append(shifted >= 0)
        values["total_seats"] = new_total
        values["available_seats"] = shifted

    if not values:
        return ride

    result = await db.execute(
        update(Ride).where(*conditions).values(**values).execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        # Distinguish a concurrent delete from a bound violation
        await get_ride(db, rid)
        logger.warning("ride_capacity_edit_rejected", ride_id=str(rid), changes=list(changes))
        raise ValidationError("capacity change conflicts with seats already booked")

    await db.commit()
    ride = await get_ride(db, rid)

    logger.info("ride_updated", ride_id=str(rid), fields=sorted(changes))
    return ride


async def delete_ride(db: AsyncSession, ride_id, actor: User) -> Ride:
    """
    Owner or admin delete. Refused while seats are held by active bookings;
    the booking ledger itself is never deleted.
    """
    ride = await get_ride(db, ride_id)
    is_admin = actor.role == UserRole.ADMIN.value
    if not is_admin and ride.driver_id != actor.uid:
        raise ForbiddenError("only the owning driver or an admin can delete this ride")

    has_active = exists().where(
        Booking.ride_id == Ride.id,
        Booking.status.in_([s.value for s in ACTIVE_BOOKING_STATUSES]),
    ).correlate(Ride)
    result = await db.execute(
        delete(Ride).where(Ride.id == ride.id, ~has_active).execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise InvalidStateError("ride has active bookings; they must be cancelled or rejected first")
    await db.commit()

    logger.info("ride_deleted", ride_id=str(ride.id), actor=actor.uid, by_admin=is_admin)
    return ride


async def list_rides(
    db: AsyncSession,
    origin: str = "",
    destination: str = "",
    journey_date: Optional[date] = None,
    category: str = "",
    price_min: Optional[int] = None,
    price_max: Optional[int] = None,
    only_available: bool = False,
    page: int = 1,
    limit: int = 12,
) -> tuple[list[Ride], int]:
    """Public catalog search: substring route match plus exact filters."""
    stmt = select(Ride)
    if origin.strip():
        stmt = stmt.where(Ride.origin.ilike(like_pattern(origin.strip()), escape="\\"))
    if destination.strip():
        stmt = stmt.where(Ride.destination.ilike(like_pattern(destination.strip()), escape="\\"))
    if journey_date is not None:
        stmt = stmt.where(Ride.journey_date == journey_date)
    if category.strip():
        stmt = stmt.where(func.lower(Ride.category) == category.strip().lower())
    if price_min:
        stmt = stmt.where(Ride.price >= price_min)
    if price_max:
        stmt = stmt.where(Ride.price <= price_max)
    if only_available:
        stmt = stmt.where(Ride.status == RideStatus.AVAILABLE.value, Ride.available_seats > 0)

    return await paginate(db, stmt, Ride.created_at.desc(), page, limit)


async def list_driver_rides(db: AsyncSession, driver_id: str, page: int = 1, limit: int = 20) -> tuple[list[Ride], int]:
    stmt = select(Ride).where(Ride.driver_id == driver_id)
    return await paginate(db, stmt, Ride.created_at.desc(), page, limit)


async def admin_list_rides(
    db: AsyncSession,
    query: str = "",
    status: str = "",
    category: str = "",
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Ride], int]:
    stmt = select(Ride)
    if query.strip():
        pattern = like_pattern(query.strip())
        stmt = stmt.where(
            or_(
                Ride.origin.ilike(pattern, escape="\\"),
                Ride.destination.ilike(pattern, escape="\\"),
                Ride.vehicle_model.ilike(pattern, escape="\\"),
                Ride.driver_id == query.strip(),
            )
        )
    if status.strip():
        stmt = stmt.where(Ride.status == status.strip().lower())
    if category.strip():
        stmt = stmt.where(func.lower(Ride.category) == category.strip().lower())

    return await paginate(db, stmt, Ride.created_at.desc(), page, limit)
