"""
Error taxonomy for the booking API.

Services raise these instead of HTTPException so the ledger stays independent
of the HTTP layer; the handlers registered in main.py render them as
{"detail": ..., "code": ...} with the matching status code.
"""

from contextlib import contextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, IntegrityError

from event_booking.core.logging import get_logger

logger = get_logger(__name__)


class BookingAPIError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(BookingAPIError):
    """Event or booking absent, or not visible to the caller."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class UnavailableError(BookingAPIError):
    """Event exists but is inactive or has already started."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "event_unavailable"


class ConflictError(BookingAPIError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class InvalidRequestError(BookingAPIError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_request"


class TransactionFailureError(BookingAPIError):
    """The store aborted the transaction (lock timeout, serialization failure)."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "transaction_failed"


class AuthenticationError(BookingAPIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "not_authenticated"


class PermissionDeniedError(BookingAPIError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class RateLimitedError(BookingAPIError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "rate_limited"

    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after


@contextmanager
def translate_store_errors():
    """Re-raise driver errors from the enclosed block as taxonomy errors."""
    try:
        yield
    except IntegrityError as exc:
        logger.warning("store_integrity_error", error=str(exc.orig))
        raise ConflictError("Request conflicts with an existing record") from exc
    except DBAPIError as exc:
        logger.warning("store_transaction_aborted", error=str(exc.orig))
        raise TransactionFailureError(
            "The booking could not be completed, please retry"
        ) from exc


def error_response(exc: BookingAPIError, headers: Optional[dict] = None) -> JSONResponse:
    """Render a taxonomy error as {"detail", "code"} with its status and retry hints."""
    headers = dict(headers or {})
    if isinstance(exc, AuthenticationError):
        headers["WWW-Authenticate"] = "Bearer"
    elif isinstance(exc, TransactionFailureError):
        headers["Retry-After"] = "1"
    elif isinstance(exc, RateLimitedError):
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=headers or None,
    )


async def booking_api_error_handler(request: Request, exc: BookingAPIError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_error", code=exc.code, detail=exc.message)
    else:
        logger.info("request_rejected", code=exc.code, detail=exc.message)
    return error_response(exc)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "code": "internal_error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingAPIError, booking_api_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
