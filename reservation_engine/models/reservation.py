"""Reservation model — the aggregate root of the booking lifecycle."""

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, Enum, Index, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from reservation_engine.database import Base, CreatedAtMixin, UUIDPrimaryKeyMixin


class ReservationStatus(str, enum.Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PENDING_HOST_APPROVAL = "PENDING_HOST_APPROVAL"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    PAYMENT_FAILED = "PAYMENT_FAILED"


TERMINAL_STATUSES = frozenset(
    {ReservationStatus.COMPLETED, ReservationStatus.CANCELLED, ReservationStatus.PAYMENT_FAILED}
)


class PaymentMethod(str, enum.Enum):
    ONLINE = "ONLINE"
    CASH_ON_ARRIVAL = "CASH_ON_ARRIVAL"


class PaymentStatus(str, enum.Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"
    REFUNDED = "REFUNDED"
    FAILED = "FAILED"


class Reservation(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    """A guest's claim on a property for a half-open date range [check_in, check_out).

    ``total_price`` is fixed at creation and ``points_earned`` at the first
    CONFIRMED transition; neither is recomputed afterwards. Rows are never
    deleted.
    """

    __tablename__ = "reservations"

    property_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    guest_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)
    guest_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod, native_enum=False, length=32), nullable=False
    )
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus, native_enum=False, length=32), nullable=False, index=True
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, native_enum=False, length=32),
        nullable=False,
        default=PaymentStatus.UNPAID,
    )
    points_earned: Mapped[int | None] = mapped_column(Integer, nullable=True)
    refund_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    cancelled_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)

    last_transition_at: Mapped[datetime] = mapped_column(server_default=func.now())

    __table_args__ = (
        Index("ix_reservations_property_dates", "property_id", "check_in", "check_out"),
    )

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Reservation(id={self.id}, property_id={self.property_id}, "
            f"status={self.status.value}, payment_status={self.payment_status.value})>"
        )
