import os

from eventrelay.config import settings
from eventrelay.utils.time import utcnow

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

DATABASE_URL = settings.database_url

# Make sure the directory of a file-backed SQLite database exists
_url = make_url(DATABASE_URL)
if _url.get_backend_name() == "sqlite" and _url.database and _url.database != ":memory:":
    _data_dir = os.path.dirname(os.path.abspath(_url.database))
    os.makedirs(_data_dir, exist_ok=True)

# Create async engine
engine = create_async_engine(DATABASE_URL, echo=False)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class StoredEvent(Base):
    """A single entry of the append-only event log."""

    __tablename__ = "events"

    # Fixed-width, time-ordered key: lexicographic order is insertion order
    id = Column(String(32), primary_key=True)
    data = Column(Text, nullable=False)  # Opaque payload, usually JSON
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<StoredEvent(id='{self.id}', size={len(self.data or '')})>"


async def init_db():
    """Initialize the database, creating all tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

