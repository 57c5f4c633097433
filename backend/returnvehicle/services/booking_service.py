"""
Booking service with concurrency-safe seat reservation.

CONCURRENCY STRATEGY: Guarded Atomic Counter
============================================

Problem:
  Two riders read available_seats=4 and each asks for 3.
  Both pass an application-side check, both decrement, ride oversold.

Solution:
  The ride row's counter is only ever moved by one conditional statement:

    UPDATE rides SET available_seats = available_seats - :n
    WHERE id = :ride_id AND status = 'available' AND available_seats >= :n
    RETURNING price, driver_id

  The database evaluates the WHERE clause against the row as it is at write
  time (PostgreSQL re-checks it after waiting on the row lock), so of two
  racing requests exactly one matches. The loser gets zero rows and we raise
  SeatUnavailableError; nothing else was written. The booking row is
  inserted in the same transaction, so a decrement without its booking can
  never be committed. The price comes from the RETURNING row, i.e. from the
  same instant the seats were taken.

  No retry loop: unlike version-based optimistic locking a zero-row result
  here is a real answer (sold out / lost the race), not a spurious conflict.

Compensation (cancel / reject):
  Phase A flips the booking to its terminal status and commits. That row is
  the durable record of intent. Phase B, in one transaction, flips
  seats_released false -> true and, only if that flip matched, adds the
  seats back to the ride. Because the flip is conditional the credit is
  applied at most once no matter how often phase B is retried, and any
  booking left with seats_released=false is found and finished by
  reconcile_released_seats().

Precondition order:
  id shape, seat count, contact fields, ride existence, self-booking and ride
  status are checked before the guarded UPDATE to avoid pointless contention;
  capacity and status are re-checked inside it regardless of what was read.
"""

import asyncio
import secrets
import string
import time
from datetime import date
from typing import Optional

from sqlalchemy import case, select, update
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from returnvehicle.core.exceptions import (
    DependencyFailureError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    SeatUnavailableError,
    ValidationError,
    WindowClosedError,
)
from returnvehicle.core.logging import get_logger
from returnvehicle.core.metrics import (
    booking_latency,
    record_booking_attempt,
    record_seat_release,
    record_transition,
    seat_release_retries,
)
from returnvehicle.models.booking import Booking
from returnvehicle.models.ride import Ride
from returnvehicle.models.status import BookingStatus, RideStatus, UserRole
from returnvehicle.models.user import User
from returnvehicle.services.common import local_today, paginate, parse_id

logger = get_logger(__name__)

MAX_RETRY_ATTEMPTS = 3
# Same ceiling as a ride's total_seats
MAX_SEATS_PER_BOOKING = 100
MAX_CONTACT_NAME_LENGTH = 120
MAX_CONTACT_PHONE_LENGTH = 32
RETRY_BACKOFF_SECONDS = 0.05

_CODE_ALPHABET = string.ascii_uppercase + string.digits
_RELEASING_STATUSES = [s.value for s in BookingStatus if s.releases_seats]


def generate_booking_code() -> str:
    return "RV-" + "".join(secrets.choice(_CODE_ALPHABET) for _ in range(8))


async def get_booking(db: AsyncSession, booking_id) -> Booking:
    """Load a booking with its ride, bypassing stale identity-map state."""
    bid = parse_id(booking_id, "booking")
    result = await db.execute(
        select(Booking)
        .options(selectinload(Booking.ride))
        .where(Booking.id == bid)
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise NotFoundError("booking not found")
    return booking


async def get_booking_for(db: AsyncSession, booking_id, user: User) -> Booking:
    booking = await get_booking(db, booking_id)
    if user.role != UserRole.ADMIN.value and user.uid not in (booking.rider_id, booking.driver_id):
        raise ForbiddenError("booking belongs to another rider")
    return booking


def _validate_request(seats, contact_name: Optional[str], contact_phone: Optional[str]) -> tuple[str, str]:
    if isinstance(seats, bool) or not isinstance(seats, int) or seats < 1:
        raise ValidationError("seats must be a positive integer")
    if seats > MAX_SEATS_PER_BOOKING:
        raise ValidationError(f"seats cannot exceed {MAX_SEATS_PER_BOOKING}")
    name = (contact_name or "").strip()
    phone = (contact_phone or "").strip()
    if not name:
        raise ValidationError("contactName is required")
    if not phone:
        raise ValidationError("contactPhone is required")
    if len(name) > MAX_CONTACT_NAME_LENGTH:
        raise ValidationError(f"contactName cannot exceed {MAX_CONTACT_NAME_LENGTH} characters")
    if len(phone) > MAX_CONTACT_PHONE_LENGTH:
        raise ValidationError(f"contactPhone cannot exceed {MAX_CONTACT_PHONE_LENGTH} characters")
    return name, phone


async def book_seats(
    db: AsyncSession,
    ride_id,
    rider_id: str,
    seats: int,
    contact_name: str,
    contact_phone: str,
    note: Optional[str] = None,
) -> Booking:
    """
    Reserve `seats` on a ride for `rider_id`.
    On success exactly one booking exists and the counter dropped by `seats`;
    on any failure neither changed.
    """
    started = time.perf_counter()
    try:
        rid = parse_id(ride_id, "ride")
        name, phone = _validate_request(seats, contact_name, contact_phone)

        ride = (await db.execute(select(Ride).where(Ride.id == rid))).scalar_one_or_none()
        if not ride:
            raise NotFoundError("ride not found")
        if ride.driver_id == rider_id:
            raise ForbiddenError("drivers cannot book their own ride")
        if ride.status != RideStatus.AVAILABLE.value:
            raise InvalidStateError("ride is not available for booking")
    except (ValidationError, NotFoundError, ForbiddenError, InvalidStateError):
        record_booking_attempt("rejected")
        raise

    # The read above may already be stale; this statement is the authority
    result = await db.execute(
        update(Ride)
        .where(
            Ride.id == rid,
            Ride.status == RideStatus.AVAILABLE.value,
            Ride.available_seats >= seats,
        )
        .values(available_seats=Ride.available_seats - seats)
        .returning(Ride.price, Ride.driver_id)
        .execution_options(synchronize_session=False)
    )
    taken = result.first()
    if taken is None:
        await db.rollback()
        record_booking_attempt("seat_unavailable")
        booking_latency.observe(time.perf_counter() - started)
        logger.warning("booking_seat_unavailable", ride_id=str(rid), rider_id=rider_id, requested=seats)
        raise SeatUnavailableError("Seat is not available")

    booking = Booking(
        code=generate_booking_code(),
        ride_id=rid,
        rider_id=rider_id,
        driver_id=taken.driver_id,
        seats=seats,
        price_per_seat=taken.price,
        total_price=taken.price * seats,
        contact_name=name,
        contact_phone=phone,
        note=(note or "").strip(),
        status=BookingStatus.BOOKED.value,
        seats_released=False,
    )
    db.add(booking)
    try:
        await db.flush()
        await db.commit()
    except SQLAlchemyError:
        # Rolls the decrement back together with the insert
        await db.rollback()
        record_booking_attempt("error")
        logger.exception("booking_insert_failed", ride_id=str(rid), rider_id=rider_id)
        raise

    record_booking_attempt("success")
    record_transition(BookingStatus.BOOKED.value)
    booking_latency.observe(time.perf_counter() - started)
    logger.info(
        "booking_created",
        booking_id=str(booking.id),
        code=booking.code,
        ride_id=str(rid),
        rider_id=rider_id,
        seats=seats,
        total_price=booking.total_price,
    )
    return await get_booking(db, booking.id)


async def _transition(db: AsyncSession, booking_id, target: BookingStatus, **values) -> None:
    """
    Move a booking to `target` with a conditional UPDATE built from the
    transition table; commits on success. Losing to a concurrent transition
    surfaces as InvalidStateError.
    """
    sources = [s.value for s in BookingStatus.sources_for(target)]
    result = await db.execute(
        update(Booking)
        .where(Booking.id == booking_id, Booking.status.in_(sources))
        .values(status=target.value, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        current = (await db.execute(select(Booking.status).where(Booking.id == booking_id))).scalar_one()
        BookingStatus.check_transition(current, target)
        raise InvalidStateError(f"booking is already {current}")
    await db.commit()
    record_transition(target.value)


async def _release_once(db: AsyncSession, booking_id, path: str) -> int:
    marked = (
        await db.execute(
            update(Booking)
            .where(
                Booking.id == booking_id,
                Booking.status.in_(_RELEASING_STATUSES),
                Booking.seats_released.is_(False),
            )
            .values(seats_released=True)
            .returning(Booking.ride_id, Booking.seats)
            .execution_options(synchronize_session=False)
        )
    ).first()
    if marked is None:
        await db.rollback()
        return 0

    if marked.ride_id is not None:
        restored = Ride.available_seats + marked.seats
        await db.execute(
            update(Ride)
            .where(Ride.id == marked.ride_id)
            .values(available_seats=case((restored > Ride.total_seats, Ride.total_seats), else_=restored))
            .execution_options(synchronize_session=False)
        )
    await db.commit()

    record_seat_release(path, marked.seats)
    logger.info("seats_released", booking_id=str(booking_id), ride_id=str(marked.ride_id), seats=marked.seats, path=path)
    return marked.seats


async def release_seats(db: AsyncSession, booking_id, path: str) -> int:
    """
    Second compensation phase. Idempotent: returns the seats credited by
    this call, 0 when they had already been returned.
    """
    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        try:
            return await _release_once(db, booking_id, path)
        except (OperationalError, InterfaceError) as e:
            await db.rollback()
            seat_release_retries.inc()
            logger.warning("seat_release_retry", booking_id=str(booking_id), attempt=attempt, error=str(e))
            if attempt == MAX_RETRY_ATTEMPTS:
                raise DependencyFailureError("seat release could not be applied; it will be reconciled") from e
            await asyncio.sleep(RETRY_BACKOFF_SECONDS * attempt)
    return 0


async def _release_or_defer(db: AsyncSession, booking_id, path: str) -> None:
    try:
        await release_seats(db, booking_id, path)
    except DependencyFailureError:
        # Phase A is committed; the reconciler owns the rest
        logger.error("seat_release_deferred", booking_id=str(booking_id), path=path)


async def cancel_booking(
    db: AsyncSession,
    booking_id,
    rider_id: str,
    today: Optional[date] = None,
) -> Booking:
    """
    Rider cancels their own booking strictly before the journey date.
    A second cancel finishes any release still pending from the first and
    then reports InvalidStateError; seats are never credited twice.
    """
    booking = await get_booking(db, booking_id)
    if booking.rider_id != rider_id:
        raise ForbiddenError("only the rider who made this booking can cancel it")

    bid = booking.id
    current = BookingStatus(booking.status)
    if current == BookingStatus.CANCELLED:
        if not booking.seats_released:
            await release_seats(db, bid, path="cancel")
        raise InvalidStateError("booking is already cancelled")
    BookingStatus.check_transition(current, BookingStatus.CANCELLED)

    today = today or local_today()
    if booking.ride is not None and booking.ride.journey_date <= today:
        raise WindowClosedError("bookings cannot be cancelled on or after the journey date")

    await _transition(db, bid, BookingStatus.CANCELLED, seats_released=False)
    logger.info("booking_cancelled", booking_id=str(bid), rider_id=rider_id, seats=booking.seats)

    await _release_or_defer(db, bid, path="cancel")
    return await get_booking(db, bid)


async def _driver_transition(db: AsyncSession, booking_id, driver_id: str, target: BookingStatus) -> Booking:
    booking = await get_booking(db, booking_id)
    if booking.driver_id != driver_id:
        raise ForbiddenError("booking is not on one of your rides")
    BookingStatus.check_transition(booking.status, target)
    return booking


async def confirm_booking(db: AsyncSession, booking_id, driver_id: str) -> Booking:
    booking = await _driver_transition(db, booking_id, driver_id, BookingStatus.CONFIRMED)
    bid = booking.id
    await _transition(db, bid, BookingStatus.CONFIRMED)
    logger.info("booking_confirmed", booking_id=str(bid), driver_id=driver_id)
    return await get_booking(db, bid)


async def reject_booking(db: AsyncSession, booking_id, driver_id: str) -> Booking:
    """Driver declines a booking; its seats go back through the same compensation."""
    booking = await _driver_transition(db, booking_id, driver_id, BookingStatus.REJECTED)
    bid = booking.id
    await _transition(db, bid, BookingStatus.REJECTED, seats_released=False)
    logger.info("booking_rejected", booking_id=str(bid), driver_id=driver_id, seats=booking.seats)

    await _release_or_defer(db, bid, path="reject")
    return await get_booking(db, bid)


async def complete_booking(
    db: AsyncSession,
    booking_id,
    driver_id: str,
    today: Optional[date] = None,
) -> Booking:
    booking = await _driver_transition(db, booking_id, driver_id, BookingStatus.COMPLETED)
    today = today or local_today()
    if booking.ride is not None and booking.ride.journey_date > today:
        raise InvalidStateError("a booking can only be completed from the journey date on")

    bid = booking.id
    await _transition(db, bid, BookingStatus.COMPLETED)
    logger.info("booking_completed", booking_id=str(bid), driver_id=driver_id)
    return await get_booking(db, bid)


async def reconcile_released_seats(db: AsyncSession, batch_size: int = 500) -> int:
    """
    Finish phase B for every cancelled/rejected booking whose seats were not
    yet returned. Returns how many bookings were compensated by this run.
    """
    result = await db.execute(
        select(Booking.id)
        .where(Booking.status.in_(_RELEASING_STATUSES), Booking.seats_released.is_(False))
        .order_by(Booking.updated_at)
        .limit(batch_size)
    )
    pending = list(result.scalars().all())

    compensated = 0
    for bid in pending:
        if await release_seats(db, bid, path="reconcile"):
            compensated += 1

    if pending:
        logger.info("reconcile_completed", pending=len(pending), compensated=compensated)
    return compensated


async def list_rider_bookings(db: AsyncSession, rider_id: str, page: int = 1, limit: int = 10) -> tuple[list[Booking], int]:
    stmt = select(Booking).options(selectinload(Booking.ride)).where(Booking.rider_id == rider_id)
    return await paginate(db, stmt, Booking.created_at.desc(), page, limit)


async def list_driver_bookings(db: AsyncSession, driver_id: str, page: int = 1, limit: int = 10) -> tuple[list[Booking], int]:
    stmt = select(Booking).options(selectinload(Booking.ride)).where(Booking.driver_id == driver_id)
    return await paginate(db, stmt, Booking.created_at.desc(), page, limit)
