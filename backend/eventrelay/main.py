import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from eventrelay.config import settings, validate_access_token

logger = logging.getLogger(__name__)
from eventrelay.routes import events, health
from eventrelay.database import init_db
from eventrelay.services.event_store import event_store
from eventrelay.services.metrics import start_metrics_server
from eventrelay.utils.exceptions import AuthorizationError, authorization_error_handler

# Validate access token before app starts
validate_access_token()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle events"""
    # Initialize database
    await init_db()

    # Continue the event id sequence from the stored log
    await event_store.initialize()

    # Prometheus scrape endpoint on its own port
    metrics_server = start_metrics_server(
        settings.host, settings.metrics_port, enabled=settings.metrics_enabled
    )

    yield

    # Shutdown: streams are normally already closed by RelayServer before the drain
    await event_store.close()
    if metrics_server is not None:
        metrics_server.stop()


app = FastAPI(
    title="Event Relay API",
    description="Event log with resumable SSE streaming",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware (EventSource clients on other origins send the cookie)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(AuthorizationError, authorization_error_handler)

# Include routers
app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(events.router, prefix="/api", tags=["events"])
