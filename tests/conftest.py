"""Shared test fixtures for the one-and-done pool."""

from datetime import timedelta
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from oneanddone.config import pool_today
from oneanddone.models import Base, Candidate, Database, Event

TODAY = pool_today()


def _event(event_id, week, name, start_offset, purse, segment, multiplier=1.0, event_type="regular", completed=False):
    start = TODAY + timedelta(days=start_offset)
    return Event(
        id=event_id,
        name=name,
        course_name=f"{name} Course",
        week_number=week,
        start_date=start,
        end_date=start + timedelta(days=3),
        purse=purse,
        multiplier=multiplier,
        segment=segment,
        event_type=event_type,
        is_completed=completed,
    )


def season_events() -> list[Event]:
    """Five weeks over two segments.

    Week 1 is long finished, week 2 is being played today, weeks 3-5 are
    still to come.
    """
    return [
        _event("evt-1", 1, "Sony Open", -21, 8_300_000, "Fall", completed=True),
        _event("evt-2", 2, "American Express", -1, 8_800_000, "Fall"),
        _event("evt-3", 3, "Pebble Beach Pro-Am", 6, 20_000_000, "Fall", 1.5, "signature"),
        _event("evt-4", 4, "Genesis Invitational", 13, 12_000_000, "Spring"),
        _event("evt-5", 5, "The Masters", 20, 25_000_000, "Spring", 2.0, "major"),
    ]


def season_candidates() -> list[Candidate]:
    return [
        Candidate(id="scheffler", name="Scottie Scheffler", tier="Elite", rank=1, version=0),
        Candidate(id="mcilroy", name="Rory McIlroy", tier="Elite", rank=3, version=0),
        Candidate(id="morikawa", name="Collin Morikawa", tier="Tier 1", rank=15, version=0),
        Candidate(id="fowler", name="Rickie Fowler", tier="Tier 2", rank=50, version=0),
        Candidate(id="kuchar", name="Matt Kuchar", tier="Tier 3", rank=120, version=0),
    ]


async def seed_season(db: AsyncSession) -> None:
    db.add_all(season_events())
    db.add_all(season_candidates())
    await db.commit()


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session() as session:
        yield session


@pytest.fixture
async def season(db_session) -> AsyncSession:
    """A session over a seeded season."""
    await seed_season(db_session)
    return db_session


@pytest.fixture
async def file_db(tmp_path) -> AsyncGenerator[Database, None]:
    """A seeded file-backed database, for tests that need real concurrent connections."""
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'pool.db'}")
    await database.init()
    async with database.session() as db:
        await seed_season(db)
    yield database
    await database.dispose()


@pytest.fixture
def today():
    """The pool-local date the seeded season is laid out around."""
    return TODAY
