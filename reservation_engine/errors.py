"""Reservation engine error taxonomy.

Every error carries a stable ``code`` so the API layer can hand the client a
reason it can act on (pick other dates vs. fix the request).
"""

from __future__ import annotations


class ReservationError(Exception):
    """Base class for all engine errors."""

    code = "reservation_error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__doc__)
        self.message = message or (self.__class__.__doc__ or "").strip()


class SlotUnavailable(ReservationError):
    """Requested dates conflict with an existing reservation."""

    code = "slot_unavailable"


class InvalidRange(ReservationError):
    """Date range is empty, inverted, or in the past."""

    code = "invalid_range"


class InvalidGuestCount(ReservationError):
    """Guest count is below one or above the property capacity."""

    code = "invalid_guest_count"


class InvalidTransition(ReservationError):
    """Transition is not legal from the reservation's current state."""

    code = "invalid_transition"

    def __init__(self, current: str | None, attempted: str, message: str | None = None) -> None:
        self.current = current
        self.attempted = attempted
        super().__init__(message or f"Cannot {attempted} a reservation in state {current}")


class PaymentGatewayError(ReservationError):
    """Transient failure talking to the payment gateway; safe to retry."""

    code = "payment_gateway_error"


class NotFound(ReservationError):
    """Unknown property or reservation."""

    code = "not_found"
