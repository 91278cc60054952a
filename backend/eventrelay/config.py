import logging
import sys

from pydantic_settings import BaseSettings
from typing import Optional


def setup_logging():
    """Configure application logging."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # Set third-party loggers to WARNING to reduce noise
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


# Initialize logging on import
setup_logging()

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # Stream access token (REQUIRED - app will not start without this)
    access_token: Optional[str] = None

    # Computed field: hashed access token (set after initialization)
    _access_token_hash: Optional[str] = None

    @property
    def access_token_hash(self) -> Optional[str]:
        """Get the hashed access token."""
        if self._access_token_hash is None and self.access_token:
            # Lazy import to avoid circular dependency with auth.py
            from eventrelay.utils.auth import hash_token
            self._access_token_hash = hash_token(self.access_token)
        return self._access_token_hash

    # Event log
    database_url: str = "sqlite+aiosqlite:///data/events.db"

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 5001
    debug: bool = False

    # Prometheus metrics server
    metrics_enabled: bool = True
    metrics_port: int = 3001

    # Streaming: per-connection buffer and store read batch size
    event_buffer_size: int = 40
    event_read_batch: int = 500

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


def validate_access_token():
    """Validate that ACCESS_TOKEN is set. Raises SystemExit if not."""
    if not settings.access_token:
        logger.error("=" * 60)
        logger.error("ACCESS_TOKEN environment variable is required!")
        logger.error("=" * 60)
        logger.error("The event relay refuses to serve streams without an access token.")
        logger.error("Please set ACCESS_TOKEN in your .env file:")
        logger.error("    ACCESS_TOKEN=your_secret_token_here")
        logger.error("=" * 60)
        sys.exit(1)


settings = Settings()
