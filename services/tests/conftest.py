"""
CareLink Service — shared test fixtures

Each test gets its own SQLite file. Transactions open with BEGIN IMMEDIATE so
concurrent sessions serialize on the write lock the way row-locked
PostgreSQL writes do, which keeps the race tests meaningful.
"""
import os
import uuid
from datetime import date, time, timedelta

# Settings are read at import time; configure before importing the app.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["METRICS_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["OPT_LOCK_BASE_DELAY_MS"] = "1"
os.environ["OPT_LOCK_JITTER_MS"] = "1"

import httpx
import pytest
import pytest_asyncio
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.db.database import Base, get_db
from app.main import app
from app.models import DonationCategory, VisitingSchedule

ADMIN_ID = "admin-1"
USER_ID = "user-1"
OTHER_USER_ID = "user-2"


def make_token(user_id: str, role: str = "user") -> str:
    return jwt.encode({"sub": user_id, "role": role}, "test-secret", algorithm="HS256")


def auth_headers(user_id: str = USER_ID, role: str = "user") -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


def next_week() -> date:
    return date.today() + timedelta(days=7)


# ─── Database ──────────────────────────────────────────────────────────────────
@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'carelink.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://carelink.test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ─── Seed helpers ──────────────────────────────────────────────────────────────
async def add_schedule(session, max_capacity: int = 10, current_bookings: int = 0, slot_date: date | None = None,
                       is_active: bool = True) -> VisitingSchedule:
    schedule = VisitingSchedule(
        id=str(uuid.uuid4()),
        date=slot_date or next_week(),
        start_time=time(10, 0),
        end_time=time(12, 0),
        max_capacity=max_capacity,
        current_bookings=current_bookings,
        is_active=is_active,
        created_by=ADMIN_ID,
    )
    session.add(schedule)
    await session.commit()
    return schedule


async def add_category(session, name: str = "Grains & Cereals") -> DonationCategory:
    category = DonationCategory(id=str(uuid.uuid4()), name=name, description="")
    session.add(category)
    await session.commit()
    return category
