"""
Event routes.

GET  /api/events - SSE stream of stored events, resumable via Last-Event-ID
POST /api/events - Append an event (raw request body) to the log
"""

import asyncio
import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import StreamingResponse

from eventrelay.models.event import ServerEvent, StoreEventResponse
from eventrelay.services.event_store import EventStore, get_event_store
from eventrelay.utils.auth import require_access
from eventrelay.utils.exceptions import (
    EventSourceError,
    EventStreamClosed,
    raise_bad_request,
    raise_service_unavailable,
)
from eventrelay.utils.sse import format_server_event

logger = logging.getLogger(__name__)

router = APIRouter()

LAST_EVENT_ID_HEADER = "last-event-id"


async def relay_events(
    store: EventStore, last_event_id: Optional[str]
) -> AsyncIterator[str]:
    """Open a cursor after last_event_id and yield its events as complete SSE frames.

    Runs until the cursor is exhausted or fails, or until the request task
    is cancelled by a client disconnect. The cursor is opened on the first
    pull, so a response that never starts streaming holds no cursor, and it
    is closed in every case.
    """
    try:
        cursor = store.stream_events(last_event_id)
    except EventStreamClosed:
        logger.info("Event store closed before the stream started")
        return

    sent = 0
    try:
        while True:
            envelope = await cursor.next()
            frame = ServerEvent.from_envelope(envelope)
            yield format_server_event(frame)
            sent += 1
    except EventStreamClosed:
        logger.info(f"Event stream exhausted after {sent} frames")
    except EventSourceError as e:
        logger.error(f"Event stream terminated after {sent} frames: {e}")
    except asyncio.CancelledError:
        logger.info(f"Client disconnected after {sent} frames")
        raise
    finally:
        await cursor.close()


@router.get("/events", dependencies=[Depends(require_access)])
async def stream_events(
    request: Request,
    store: EventStore = Depends(get_event_store),
):
    """
    GET /api/events - Server-sent event stream

    Emits every stored event after the one named by the Last-Event-ID
    header (all events when it is absent), then new events as they are
    stored. Each frame is:

        event: event
        data: <payload>
        id: <event id>

    Requires a valid access token; otherwise 403 "not authenticated".
    """
    last_event_id = request.headers.get(LAST_EVENT_ID_HEADER)

    if store.closed:
        raise_service_unavailable()
    return StreamingResponse(
        relay_events(store, last_event_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )


@router.post(
    "/events",
    status_code=status.HTTP_201_CREATED,
    response_model=StoreEventResponse,
    dependencies=[Depends(require_access)],
)
async def store_event(
    request: Request,
    store: EventStore = Depends(get_event_store),
):
    """POST /api/events - Store the raw request body as a new event"""
    body = await request.body()
    try:
        data = body.decode("utf-8")
    except UnicodeDecodeError:
        raise_bad_request("Event payload must be UTF-8 text")

    if not data.strip():
        raise_bad_request("Event payload must not be empty")

    try:
        event_id = await store.store_event(data)
    except EventStreamClosed:
        raise_service_unavailable()
    return StoreEventResponse(id=event_id)
