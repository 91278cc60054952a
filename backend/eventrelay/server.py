"""uvicorn server that ends event streams before draining connections."""

import logging

import uvicorn

from eventrelay.services.event_store import EventStore, event_store

logger = logging.getLogger(__name__)


class RelayServer(uvicorn.Server):
    """uvicorn waits for open responses before the lifespan shutdown runs.

    Event streams never finish on their own, so the store is closed here,
    before the drain, which lets every streaming response end cleanly.
    """

    def __init__(self, config: uvicorn.Config, store: EventStore = event_store):
        super().__init__(config)
        self.store = store

    async def shutdown(self, sockets=None):
        logger.info("graceful shutdown of the event streams")
        await self.store.close()
        await super().shutdown(sockets=sockets)
