"""Server entrypoint for the event relay."""

import uvicorn

from eventrelay.config import settings
from eventrelay.server import RelayServer

# Upper bound for the drain once streams have been closed
SHUTDOWN_TIMEOUT_SECONDS = 1

if __name__ == "__main__":
    config = uvicorn.Config(
        "eventrelay.main:app",
        host=settings.host,
        port=settings.port,
        log_level="debug" if settings.debug else "info",
        timeout_graceful_shutdown=SHUTDOWN_TIMEOUT_SECONDS,
    )
    RelayServer(config).run()
