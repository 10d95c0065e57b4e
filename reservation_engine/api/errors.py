"""Translate engine errors into HTTP responses with stable reason codes."""

from fastapi import HTTPException, status

from reservation_engine.errors import (
    InvalidGuestCount,
    InvalidRange,
    InvalidTransition,
    NotFound,
    PaymentGatewayError,
    ReservationError,
    SlotUnavailable,
)

_STATUS_BY_ERROR: dict[type[ReservationError], int] = {
    SlotUnavailable: status.HTTP_409_CONFLICT,
    InvalidTransition: status.HTTP_409_CONFLICT,
    InvalidRange: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidGuestCount: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFound: status.HTTP_404_NOT_FOUND,
    PaymentGatewayError: status.HTTP_502_BAD_GATEWAY,
}


def to_http_exception(exc: ReservationError) -> HTTPException:
    """Build the HTTPException for an engine error; detail carries ``code`` and ``message``."""
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(
        status_code=status_code,
        detail={"code": exc.code, "message": exc.message},
    )
