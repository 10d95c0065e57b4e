"""Pydantic v2 request/response schemas for reservation endpoints."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from reservation_engine.models.reservation import PaymentMethod, PaymentStatus, ReservationStatus

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ReservationCreate(BaseModel):
    """Schema for requesting a stay.

    Date order and guest count are checked by the engine so the client gets
    the engine's reason code instead of a generic validation error.
    """

    property_id: uuid.UUID
    guest_id: uuid.UUID
    check_in: date
    check_out: date
    guest_count: int = 1
    payment_method: PaymentMethod
    special_requests: str | None = Field(None, max_length=2000)


class CancelRequest(BaseModel):
    """Schema for cancelling a reservation."""

    actor: str = Field(..., min_length=1, max_length=255, description="Who is cancelling, e.g. guest:<id>")
    reason: str | None = Field(None, max_length=2000)
    expected_status: ReservationStatus | None = Field(
        None, description="Only cancel if the reservation is still in this state"
    )


class HostDecision(BaseModel):
    """Schema for a host approving or rejecting a cash-on-arrival request."""

    host_id: uuid.UUID
    reason: str | None = Field(None, max_length=2000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ReservationResponse(BaseModel):
    """Standard reservation response."""

    id: uuid.UUID
    property_id: uuid.UUID
    guest_id: uuid.UUID
    check_in: date
    check_out: date
    guest_count: int
    total_price: Decimal
    currency: str
    payment_method: PaymentMethod
    status: ReservationStatus
    payment_status: PaymentStatus
    points_earned: int | None = None
    refund_amount: Decimal | None = None
    cancelled_by: str | None = None
    cancellation_reason: str | None = None
    special_requests: str | None = None
    created_at: datetime
    last_transition_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReservationCreatedResponse(ReservationResponse):
    """Creation response; online stays carry the gateway intent to pay against."""

    payment_intent_ref: str | None = None


class PaymentIntentResponse(BaseModel):
    reservation_id: uuid.UUID
    payment_intent_ref: str


class ReservationListResponse(BaseModel):
    """Paginated list of reservations."""

    items: list[ReservationResponse]
    total: int


class OccupiedRange(BaseModel):
    reservation_id: uuid.UUID
    check_in: date
    check_out: date
    is_hold: bool
    expires_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class AvailabilityResponse(BaseModel):
    """Occupied ranges of a property within a window."""

    property_id: uuid.UUID
    start: date
    end: date
    occupied: list[OccupiedRange]


class ErrorDetail(BaseModel):
    code: str
    message: str
