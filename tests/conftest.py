"""
tests/conftest.py
Shared fixtures: a throwaway SQLite database per test, sessions bound to it,
an HTTP client wired to the app, and seeded students, tutors and slots.
"""

import os

# Must be set before config.settings is imported anywhere.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./scheduler-test.db"
os.environ["APP_ENV"] = "test"
os.environ["DEBUG"] = "false"

from datetime import date, time
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from config.database import Base, get_db
from shared.models.models import (
    Availability,
    SlotStatus,
    Subject,
    TutorSubject,
    User,
    UserRole,
)
from shared.utils.formatting import slot_end_time

SLOT_DATE = date(2025, 10, 27)


# ── Database ───────────────────────────────────────────────────────────────────

@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'scheduler.db'}"


@pytest_asyncio.fixture
async def engine(db_url):
    engine = create_async_engine(db_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def race_factory(engine, db_url):
    """
    Sessions whose transactions start with BEGIN IMMEDIATE, so two of them
    writing the same file serialise on SQLite's write lock instead of
    failing with 'database is locked'.
    """
    race_engine = create_async_engine(db_url)

    @event.listens_for(race_engine.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(race_engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    yield async_sessionmaker(bind=race_engine, class_=AsyncSession, expire_on_commit=False)
    await race_engine.dispose()


# ── HTTP Client ────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(session_factory):
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ── Seed Helpers ───────────────────────────────────────────────────────────────

async def create_user(session_factory, full_name: str, role: UserRole, email: Optional[str] = None) -> User:
    async with session_factory() as session:
        user = User(
            full_name=full_name,
            email=email or f"{full_name.lower().replace(' ', '.')}@example.edu",
            role=role,
        )
        session.add(user)
        await session.commit()
        return user


async def create_subject(session_factory, name: str, *tutors: User) -> Subject:
    async with session_factory() as session:
        subject = Subject(subject_name=name)
        session.add(subject)
        await session.flush()
        for tutor in tutors:
            session.add(TutorSubject(tutor_id=tutor.user_id, subject_id=subject.subject_id))
        await session.commit()
        return subject


async def create_slot(
    session_factory,
    tutor: User,
    on: date = SLOT_DATE,
    start: time = time(14, 0),
    status: SlotStatus = SlotStatus.AVAILABLE,
) -> Availability:
    async with session_factory() as session:
        slot = Availability(
            tutor_id=tutor.user_id,
            available_date=on,
            start_time=start,
            end_time=slot_end_time(start),
            status=status,
        )
        session.add(slot)
        await session.commit()
        return slot


# ── Seed Fixtures ──────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def student(session_factory) -> User:
    return await create_user(session_factory, "Sam Student", UserRole.STUDENT)


@pytest_asyncio.fixture
async def other_student(session_factory) -> User:
    return await create_user(session_factory, "Olive Other", UserRole.STUDENT)


@pytest_asyncio.fixture
async def tutor(session_factory) -> User:
    return await create_user(session_factory, "Ada Lovelace", UserRole.TUTOR)


@pytest_asyncio.fixture
async def admin(session_factory) -> User:
    return await create_user(session_factory, "Alex Admin", UserRole.ADMIN)


@pytest_asyncio.fixture
async def math(session_factory, tutor) -> Subject:
    """'Math 101', taught by `tutor`. Located in Hume Hall."""
    return await create_subject(session_factory, "Math 101", tutor)


@pytest_asyncio.fixture
async def slot(session_factory, tutor) -> Availability:
    """Open 2:00-3:00 PM slot on Oct 27, 2025."""
    return await create_slot(session_factory, tutor)
