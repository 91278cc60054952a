"""
Append-only event log with per-connection streaming cursors.

Events are kept in the ``events`` table under fixed-width, time-ordered
ids, so "everything after X" is a plain ``id > X`` range scan. Every open
cursor registers with the store as an observer; ``store_event`` wakes all
of them after each commit and each cursor's producer task reads forward
from its own ``last_seen`` id into a bounded buffer.
"""

import asyncio
import logging
from typing import List, Optional, Set

from sqlalchemy import func, select

from eventrelay.config import settings
from eventrelay.database import StoredEvent, async_session
from eventrelay.models.event import EventEnvelope
from eventrelay.services.metrics import EVENTS_STORED, OPEN_STREAMS
from eventrelay.utils.exceptions import EventSourceError, EventStreamClosed
from eventrelay.utils.time import monotonic_ns_after

logger = logging.getLogger(__name__)

# Width of a zero-padded nanosecond timestamp id
EVENT_ID_WIDTH = 20

_CLOSED = object()


class EventCursor:
    """Pull cursor over the event log, owned by a single connection.

    ``next()`` suspends until an event is available. The cursor stays open
    until ``close()`` is called (by the connection or by store shutdown)
    or the producer fails to read the log.
    """

    def __init__(
        self,
        store: "EventStore",
        last_seen: Optional[str],
        buffer_size: int,
        read_batch: int,
    ):
        self._store = store
        self._last_seen = last_seen or None
        self._read_batch = read_batch
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=buffer_size)
        # Starts signalled so the backlog after last_seen is read right away
        self._changed = asyncio.Event()
        self._changed.set()
        self._error: Optional[EventSourceError] = None
        self._closed = False
        self._task: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        self._task = asyncio.create_task(self._produce())

    def notify(self) -> None:
        """Called by the store when new events were written."""
        self._changed.set()

    async def _produce(self) -> None:
        try:
            while True:
                await self._changed.wait()
                self._changed.clear()

                while True:
                    batch = await self._store.read_events_after(
                        self._last_seen, limit=self._read_batch
                    )
                    for envelope in batch:
                        # Suspends while the connection is behind
                        await self._queue.put(envelope)
                        self._last_seen = envelope.id
                    if len(batch) < self._read_batch:
                        break
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Could not read next events after {self._last_seen}: {e}")
            self._error = EventSourceError(f"could not read next events: {e}")
            self._store._unregister(self)
            await self._queue.put(_CLOSED)

    async def next(self) -> EventEnvelope:
        """Wait for and return the next event."""
        if self._closed and self._queue.empty():
            raise EventStreamClosed("closed")

        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker so later calls fail fast too
            self._queue.put_nowait(_CLOSED)
            if self._error is not None:
                raise self._error
            raise EventStreamClosed("closed")
        return item

    async def close(self) -> None:
        """Stop the producer and release buffered events. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        self._store._unregister(self)

        try:
            if self._task is not None and not self._task.done():
                self._task.cancel()
                # Cancellation of the caller still propagates from gather
                await asyncio.gather(self._task, return_exceptions=True)
        finally:
            while not self._queue.empty():
                self._queue.get_nowait()
            # Wake a consumer blocked in next()
            self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> EventEnvelope:
        try:
            return await self.next()
        except EventStreamClosed:
            raise StopAsyncIteration

    async def __aenter__(self) -> "EventCursor":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class EventStore:
    """Persistent event log and source of streaming cursors"""

    def __init__(
        self,
        session_factory=async_session,
        buffer_size: Optional[int] = None,
        read_batch: Optional[int] = None,
    ):
        self._session_factory = session_factory
        self._buffer_size = buffer_size or settings.event_buffer_size
        self._read_batch = read_batch or settings.event_read_batch
        self._cursors: Set[EventCursor] = set()
        self._last_ns: int = 0
        # Serializes id assignment and commit so ids become visible in order
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def open_streams(self) -> int:
        return len(self._cursors)

    async def initialize(self) -> None:
        """Continue the id sequence after the newest stored event."""
        async with self._session_factory() as session:
            result = await session.execute(select(func.max(StoredEvent.id)))
            newest = result.scalar_one_or_none()

        if newest is not None:
            try:
                self._last_ns = max(self._last_ns, int(newest))
            except ValueError:
                logger.warning(f"Ignoring non-numeric event id {newest!r}")
        self._closed = False
        logger.info(f"Event store ready, newest event: {newest}")

    def _next_id(self) -> str:
        self._last_ns = monotonic_ns_after(self._last_ns)
        return f"{self._last_ns:0{EVENT_ID_WIDTH}d}"

    async def store_event(self, data: str) -> str:
        """Append an event to the log and wake all open cursors. Returns its id."""
        if self._closed:
            raise EventStreamClosed("event store is closed")

        async with self._lock:
            event_id = self._next_id()
            async with self._session_factory() as session:
                session.add(StoredEvent(id=event_id, data=data))
                await session.commit()

        EVENTS_STORED.inc()
        logger.info(f"new event stored, id: {event_id}")
        for cursor in list(self._cursors):
            cursor.notify()
        return event_id

    async def read_events_after(
        self, last_seen: Optional[str], limit: Optional[int] = None
    ) -> List[EventEnvelope]:
        """Events with an id greater than ``last_seen`` (all when it is empty), oldest first."""
        stmt = select(StoredEvent).order_by(StoredEvent.id)
        if last_seen:
            stmt = stmt.where(StoredEvent.id > last_seen)
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            rows = result.scalars().all()

        return [EventEnvelope(id=row.id, event=row.data) for row in rows]

    async def count_events(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(select(func.count()).select_from(StoredEvent))
            return result.scalar_one()

    def stream_events(self, last_seen: Optional[str] = None) -> EventCursor:
        """Open a cursor yielding every event after ``last_seen``, then new ones as they arrive."""
        if self._closed:
            raise EventStreamClosed("event store is closed")

        cursor = EventCursor(
            self, last_seen, buffer_size=self._buffer_size, read_batch=self._read_batch
        )
        self._cursors.add(cursor)
        OPEN_STREAMS.inc()
        cursor.start()
        logger.debug(f"Stream opened after {last_seen!r} ({len(self._cursors)} open)")
        return cursor

    def _unregister(self, cursor: EventCursor) -> None:
        if cursor in self._cursors:
            self._cursors.remove(cursor)
            OPEN_STREAMS.dec()

    async def close(self) -> None:
        """Close every open cursor and refuse new streams."""
        self._closed = True
        cursors = list(self._cursors)
        for cursor in cursors:
            await cursor.close()
        if cursors:
            logger.info(f"Closed {len(cursors)} open event streams")


# Global store instance
event_store = EventStore()


def get_event_store() -> EventStore:
    """Dependency returning the application's event store."""
    return event_store
