"""
Pytest fixtures for test database, client, and authentication.

Each test gets a fresh file-backed SQLite database (aiosqlite), so several
sessions can hit it at once and the concurrency tests exercise real
transaction interleaving. Set TEST_DATABASE_URL to run against PostgreSQL.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("RECONCILE_ON_STARTUP", "false")
os.environ.setdefault("RECONCILE_INTERVAL_SECONDS", "0")

from datetime import timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from returnvehicle.core.security import create_access_token
from returnvehicle.db.base import Base
from returnvehicle.db.session import get_db
from returnvehicle.main import app
from returnvehicle.models.ride import Ride
from returnvehicle.models.status import RideCategory, RideStatus, UserRole
from returnvehicle.models.user import User
from returnvehicle.services.common import local_today

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'returnvehicle_test.db'}"
    engine = create_async_engine(url, poolclass=NullPool)
    if url.startswith("sqlite"):
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests each get their own session, like production."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def auth_headers_for(uid: str, email: str = "", name: str = "") -> dict:
    token = create_access_token(uid, email=email or f"{uid}@example.com", name=name or uid)
    return {"Authorization": f"Bearer {token}"}


async def _add_user(db: AsyncSession, uid: str, role: UserRole) -> User:
    user = User(uid=uid, email=f"{uid}@example.com", display_name=uid, role=role.value)
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def driver(db_session: AsyncSession) -> User:
    return await _add_user(db_session, "driver-1", UserRole.DRIVER)


@pytest_asyncio.fixture
async def other_driver(db_session: AsyncSession) -> User:
    return await _add_user(db_session, "driver-2", UserRole.DRIVER)


@pytest_asyncio.fixture
async def rider(db_session: AsyncSession) -> User:
    return await _add_user(db_session, "rider-1", UserRole.USER)


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await _add_user(db_session, "admin-1", UserRole.ADMIN)


@pytest.fixture
def driver_headers(driver: User) -> dict:
    return auth_headers_for(driver.uid)


@pytest.fixture
def rider_headers(rider: User) -> dict:
    return auth_headers_for(rider.uid)


@pytest.fixture
def admin_headers(admin: User) -> dict:
    return auth_headers_for(admin.uid)


async def make_ride(
    db: AsyncSession,
    driver_id: str,
    seats: int = 4,
    available: int = None,
    price: int = 500,
    days_ahead: int = 7,
    status: RideStatus = RideStatus.AVAILABLE,
    origin: str = "Dhaka",
    destination: str = "Chittagong",
    category: RideCategory = RideCategory.CAR,
) -> Ride:
    ride = Ride(
        driver_id=driver_id,
        origin=origin,
        destination=destination,
        journey_date=local_today() + timedelta(days=days_ahead),
        category=category.value,
        price=price,
        vehicle_model="Toyota Noah",
        total_seats=seats,
        available_seats=seats if available is None else available,
        status=status.value,
    )
    db.add(ride)
    await db.commit()
    return ride


@pytest_asyncio.fixture
async def test_ride(db_session: AsyncSession, driver: User) -> Ride:
    """A car from Dhaka to Chittagong next week, 4 seats at 500 each."""
    return await make_ride(db_session, driver.uid)


@pytest_asyncio.fixture
async def full_ride(db_session: AsyncSession, driver: User) -> Ride:
    return await make_ride(db_session, driver.uid, seats=3, available=0)
