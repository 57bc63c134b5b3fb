import datetime as dt
import os

# Settings are read once at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("STORE_RETRY_ATTEMPTS", "2")
os.environ.setdefault("RETRY_BACKOFF_SECONDS", "0")
os.environ.setdefault("SMS_API_KEY", "test-key")
os.environ.setdefault("SMS_ORG_ID", "1234")

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from waste_service.db.base import Base
from waste_service.models import Resident, WasteType
from waste_service.realtime import InMemoryChangeFeed
from waste_service.schemas.schedule import ScheduleCreate
from waste_service.services import schedules as schedule_service

import waste_service.models  # noqa: F401


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def feed():
    return InMemoryChangeFeed(queue_size=100)


@pytest.fixture
def make_schedule(session, feed):
    async def _make(**overrides):
        data = {
            "purok": "Purok 3",
            "date": dt.date(2026, 10, 19),
            "start_time": dt.time(9, 0),
            "end_time": dt.time(11, 0),
            "waste_type": WasteType.general,
        }
        data.update(overrides)
        return await schedule_service.create_schedule(session, ScheduleCreate(**data), feed=feed)

    return _make


@pytest.fixture
def add_resident(session):
    async def _add(resident_id, purok="Purok 3", mobile="+639170000001", name="Juan"):
        resident = Resident(id=resident_id, name=name, purok=purok, mobile=mobile)
        session.add(resident)
        await session.commit()
        return resident

    return _add


@pytest.fixture
async def client(session_factory, feed):
    from waste_service.api.deps import get_db
    from waste_service.main import app

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.state.change_feed = feed
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()
    app.state.change_feed = None
