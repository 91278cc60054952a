from fastapi import APIRouter, Depends

from eventrelay.services.event_store import EventStore, get_event_store

router = APIRouter()


@router.get("/health")
async def health(store: EventStore = Depends(get_event_store)):
    """Health check endpoint"""
    return {
        "status": "shutting_down" if store.closed else "healthy",
        "events": await store.count_events(),
        "streams": store.open_streams,
    }
