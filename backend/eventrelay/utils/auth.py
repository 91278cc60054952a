"""
Access-token checks for the event relay.
"""

import bcrypt
import hashlib
import logging
from typing import Optional

from fastapi import Request

from eventrelay.config import settings
from eventrelay.utils.exceptions import AuthorizationError

logger = logging.getLogger(__name__)

# Cookie carrying the token for browser EventSource clients (no custom headers)
ACCESS_TOKEN_COOKIE = "access_token"


def _prehash(token: str) -> bytes:
    # bcrypt reads at most 72 bytes; a hex SHA-256 digest is 64
    return hashlib.sha256(token.encode()).hexdigest().encode()


def hash_token(token: str) -> str:
    """Hash a token of any length using bcrypt with automatic salt."""
    return bcrypt.hashpw(_prehash(token), bcrypt.gensalt(rounds=12)).decode()


def verify_token(token: str, stored_hash: str) -> bool:
    """Verify a token against a stored bcrypt hash (constant-time comparison)."""
    try:
        return bcrypt.checkpw(_prehash(token), stored_hash.encode())
    except (ValueError, TypeError):
        return False


def get_token_from_request(request: Request) -> Optional[str]:
    """Extract the token from the Authorization header, falling back to the cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]
    return request.cookies.get(ACCESS_TOKEN_COOKIE)


def is_access_token_valid(request: Request) -> bool:
    """Check the request's credential against the configured access token."""
    token = get_token_from_request(request)
    if not token:
        return False

    stored_hash = settings.access_token_hash
    if stored_hash is None:
        logger.warning("No access token configured, rejecting request")
        return False

    return verify_token(token, stored_hash)


def require_access(request: Request) -> None:
    """Dependency to require a valid access token."""
    if not is_access_token_valid(request):
        logger.info(f"Rejected unauthenticated request to {request.url.path}")
        raise AuthorizationError()
