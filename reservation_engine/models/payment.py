"""Payment models — gateway intents, consumed callbacks, and the refund outbox."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Enum, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from reservation_engine.database import Base, CreatedAtMixin, UUIDPrimaryKeyMixin


class PaymentOutcome(str, enum.Enum):
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class RefundStatus(str, enum.Enum):
    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class PaymentIntent(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    """The gateway intent created for an online reservation (one per reservation)."""

    __tablename__ = "payment_intents"

    reservation_id: Mapped[uuid.UUID] = mapped_column(unique=True, nullable=False)
    intent_ref: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    # First outcome received is authoritative; a capture replaces a decline
    outcome: Mapped[PaymentOutcome | None] = mapped_column(
        Enum(PaymentOutcome, native_enum=False, length=16), nullable=True
    )
    outcome_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<PaymentIntent(reservation_id={self.reservation_id}, ref={self.intent_ref!r}, outcome={self.outcome})>"


class ProcessedPaymentEvent(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    """A gateway callback id that has already been consumed."""

    __tablename__ = "processed_payment_events"

    event_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    intent_ref: Mapped[str] = mapped_column(String(255), nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)


class Refund(UUIDPrimaryKeyMixin, Base):
    """Refund outbox row; retried until the gateway acknowledges it."""

    __tablename__ = "refunds"

    reservation_id: Mapped[uuid.UUID] = mapped_column(unique=True, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[RefundStatus] = mapped_column(
        Enum(RefundStatus, native_enum=False, length=16),
        nullable=False,
        default=RefundStatus.PENDING,
        index=True,
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gateway_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<Refund(reservation_id={self.reservation_id}, amount={self.amount}, status={self.status.value})>"
