"""
Background sweep that finishes seat releases left pending by cancel/reject.

A release that exhausted its retries leaves the booking with
seats_released=false; until a sweep runs, those seats are missing from the
ride. The application runs one pass at startup and then one every
RECONCILE_INTERVAL_SECONDS.
"""

import asyncio

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from returnvehicle.core.exceptions import DependencyFailureError
from returnvehicle.core.logging import get_logger
from returnvehicle.services import booking_service
from returnvehicle.services.cache_service import invalidate_ride_cache

logger = get_logger(__name__)


async def reconcile_pass(session_factory: async_sessionmaker) -> int:
    """One sweep. Storage failures are logged and reported as 0; the next pass retries."""
    try:
        async with session_factory() as db:
            compensated = await booking_service.reconcile_released_seats(db)
    except (SQLAlchemyError, DependencyFailureError) as e:
        logger.error("reconcile_pass_failed", error=str(e))
        return 0

    if compensated:
        await invalidate_ride_cache()
    return compensated


async def run_periodic_reconcile(session_factory: async_sessionmaker, interval: float) -> None:
    logger.info("reconcile_loop_started", interval_seconds=interval)
    while True:
        await asyncio.sleep(interval)
        await reconcile_pass(session_factory)
