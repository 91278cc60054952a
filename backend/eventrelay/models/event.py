from pydantic import BaseModel
from typing import Any


class EventEnvelope(BaseModel):
    """An event as read from the event log"""

    id: str
    event: Any  # Opaque payload; stored events are strings


class ServerEvent(BaseModel):
    """SSE frame relayed to a streaming client"""

    event: str = "event"
    data: Any
    id: str

    @classmethod
    def from_envelope(cls, envelope: EventEnvelope) -> "ServerEvent":
        return cls(data=envelope.event, id=envelope.id)


class StoreEventResponse(BaseModel):
    id: str
