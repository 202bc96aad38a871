"""
Error Taxonomy
==============

Domain errors raised by the ledger, history and discovery services.

Every error carries an ``ErrorKind``; the API turns it into a structured
payload ``{"error": <kind>, "message": <text>}`` with a matching status code.
Storage failures are reported as ``transient`` without their driver text.
"""

import enum
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import ORJSONResponse
from sqlalchemy.exc import DBAPIError, OperationalError

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    INVALID_ARGUMENT = "invalid_argument"
    TRANSIENT = "transient"


STATUS_BY_KIND = {
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_ARGUMENT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.TRANSIENT: status.HTTP_503_SERVICE_UNAVAILABLE,
}


class PulseError(Exception):
    """Base class for domain errors."""

    kind: ErrorKind = ErrorKind.TRANSIENT

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        return {"error": self.kind.value, "message": self.message}


class Conflict(PulseError):
    """Duplicate active check-in for a (user, item) pair."""
    kind = ErrorKind.CONFLICT


class NotFound(PulseError):
    """Missing active record, user or item."""
    kind = ErrorKind.NOT_FOUND


class InvalidArgument(PulseError):
    """Missing or malformed coordinates, identifiers or windows."""
    kind = ErrorKind.INVALID_ARGUMENT


class Transient(PulseError):
    """Storage timeout or contention; safe to retry."""
    kind = ErrorKind.TRANSIENT


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

async def pulse_error_handler(request: Request, exc: PulseError) -> ORJSONResponse:
    return ORJSONResponse(status_code=STATUS_BY_KIND[exc.kind], content=exc.to_payload())


async def storage_error_handler(request: Request, exc: DBAPIError) -> ORJSONResponse:
    logger.error(f"Storage error on {request.method} {request.url.path}: {exc}")
    error = Transient("The data store is temporarily unavailable. Please retry.")
    return ORJSONResponse(status_code=STATUS_BY_KIND[error.kind], content=error.to_payload())


def register_error_handlers(app: FastAPI) -> None:
    """Install the taxonomy handlers on the application."""
    app.add_exception_handler(PulseError, pulse_error_handler)
    app.add_exception_handler(OperationalError, storage_error_handler)
    app.add_exception_handler(DBAPIError, storage_error_handler)
