"""Cancellation policy — refund eligibility computed from reservation state and time."""

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from decimal import Decimal

from reservation_engine.errors import InvalidTransition
from reservation_engine.models.reservation import PaymentMethod, PaymentStatus, Reservation, ReservationStatus

CANCELLABLE_STATUSES = frozenset({ReservationStatus.CONFIRMED, ReservationStatus.PENDING_HOST_APPROVAL})

_ZERO = Decimal("0.00")


@dataclass(frozen=True)
class RefundDecision:
    refund_amount: Decimal
    refundable: bool


def check_in_instant(reservation: Reservation) -> datetime:
    """Midnight UTC at the start of the check-in day (naive)."""
    return datetime.combine(reservation.check_in, time.min)


def evaluate(reservation: Reservation, now_utc: datetime, *, cutoff_hours: int = 48) -> RefundDecision:
    """Decide how much of what was paid goes back to the guest.

    Online stays are fully refunded when cancelled more than ``cutoff_hours``
    before check-in and not at all afterwards. Cash-on-arrival stays were never
    charged, so they are always refundable with nothing to refund.

    Never mutates ``reservation`` and never talks to the gateway.

    Raises:
        InvalidTransition: the reservation is not in a cancellable state.
    """
    if reservation.status not in CANCELLABLE_STATUSES:
        raise InvalidTransition(reservation.status.value, "cancel")

    if reservation.payment_method is PaymentMethod.CASH_ON_ARRIVAL:
        return RefundDecision(refund_amount=_ZERO, refundable=True)

    if check_in_instant(reservation) - now_utc > timedelta(hours=cutoff_hours):
        paid = reservation.total_price if reservation.payment_status is PaymentStatus.PAID else _ZERO
        return RefundDecision(refund_amount=paid, refundable=True)

    return RefundDecision(refund_amount=_ZERO, refundable=False)
