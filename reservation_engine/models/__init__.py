"""SQLAlchemy models for the reservation engine.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from reservation_engine.models.availability import AvailabilitySlot
from reservation_engine.models.payment import PaymentIntent, ProcessedPaymentEvent, Refund
from reservation_engine.models.property import Property
from reservation_engine.models.reservation import Reservation
from reservation_engine.models.reward import RewardTransaction

__all__ = [
    "AvailabilitySlot",
    "PaymentIntent",
    "ProcessedPaymentEvent",
    "Property",
    "Refund",
    "Reservation",
    "RewardTransaction",
]
