"""
Error types of the event relay and HTTP exception helpers.

Usage:
    from eventrelay.utils.exceptions import AuthorizationError, raise_bad_request

    raise AuthorizationError()
    raise_bad_request("Event payload must not be empty")
"""

from typing import NoReturn

from fastapi import HTTPException, Request, status
from fastapi.responses import PlainTextResponse

NOT_AUTHENTICATED = "not authenticated"


class AuthorizationError(Exception):
    """Access credential missing or invalid."""

    def __init__(self, detail: str = NOT_AUTHENTICATED):
        super().__init__(detail)
        self.detail = detail


class EventSourceError(Exception):
    """The event source failed while a stream was open."""


class EventStreamClosed(Exception):
    """The event cursor is closed and will produce no more events."""


async def authorization_error_handler(request: Request, exc: AuthorizationError):
    """Reject the request with a plain-text 403."""
    return PlainTextResponse(exc.detail, status_code=status.HTTP_403_FORBIDDEN)


def raise_bad_request(detail: str) -> NoReturn:
    """Raise HTTP 400 Bad Request."""
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    )


def raise_service_unavailable(detail: str = "Event store is shutting down") -> NoReturn:
    """Raise HTTP 503 Service Unavailable."""
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=detail,
    )
