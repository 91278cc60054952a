"""Shared test fixtures."""

import os
import tempfile

# Settings are read on import; configure them before the app is loaded
_DATA_DIR = tempfile.mkdtemp(prefix="eventrelay-tests-")
os.environ["ACCESS_TOKEN"] = "test-token"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DATA_DIR}/events.db"
os.environ["METRICS_ENABLED"] = "false"

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from eventrelay.database import Base
from eventrelay.services.event_store import EventStore

ACCESS_TOKEN = os.environ["ACCESS_TOKEN"]


@pytest.fixture
async def session_factory(tmp_path):
    """Session factory over a fresh SQLite file with the schema created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/events.db")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def store(session_factory):
    """Event store with a small buffer and read batch to exercise refills."""
    event_store = EventStore(session_factory=session_factory, buffer_size=4, read_batch=3)
    await event_store.initialize()

    yield event_store

    await event_store.close()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {ACCESS_TOKEN}"}
