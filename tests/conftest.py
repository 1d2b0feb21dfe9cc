import os
from datetime import datetime

os.environ.setdefault("BOOKING_DB", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from booking_service.cache import AvailabilityCache
from booking_service.config import JWT_ALGORITHM, JWT_SECRET
from booking_service.db import Base, get_db
from booking_service.main import app
from booking_service.models import Court, Venue
from booking_service.reservations import ReservationCoordinator
from booking_service.routes import get_cache, get_clock, get_coordinator

OWNER_ID = 100
VENUE_ID = 1
COURT_ID = 5


class FixedClock:
    """Venue clock frozen at ``now`` until a test moves it."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class StubPublisher:
    def __init__(self):
        self.published = []

    async def publish(self, routing_key: str, message_body: str):
        self.published.append((routing_key, message_body))


class StubCache:
    def __init__(self):
        self.invalidated = []

    async def invalidate(self, court_id, day):
        self.invalidated.append((court_id, day))
        return 0


def make_token(user_id: int, roles=("user",)) -> str:
    return jwt.encode({"sub": str(user_id), "roles": list(roles)}, JWT_SECRET, algorithm=JWT_ALGORITHM)


def auth(user_id: int, roles=("user",)) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, roles)}"}


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 5, 1, 9, 0))


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, expire_on_commit=False)
    async with factory() as db:
        db.add(Venue(id=VENUE_ID, owner_id=OWNER_ID, name="Downtown Sports", address="1 Main St", approved=True))
        db.add(
            Court(
                id=COURT_ID,
                venue_id=VENUE_ID,
                name="Court A",
                sport_type="tennis",
                price_per_hour=1200,
                opening_minute=8 * 60,
                closing_minute=22 * 60,
            )
        )
        await db.commit()

    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def publisher():
    return StubPublisher()


@pytest.fixture
def stub_cache():
    return StubCache()


@pytest.fixture
def coordinator(session_factory, publisher, stub_cache, clock):
    return ReservationCoordinator(session_factory, publisher=publisher, cache=stub_cache, clock=clock)


@pytest.fixture
def api_cache():
    return AvailabilityCache(client=None)


@pytest_asyncio.fixture
async def client(session_factory, publisher, api_cache, clock):
    reservations = ReservationCoordinator(session_factory, publisher=publisher, cache=api_cache, clock=clock)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_coordinator] = lambda: reservations
    app.dependency_overrides[get_cache] = lambda: api_cache
    app.dependency_overrides[get_clock] = lambda: clock

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
