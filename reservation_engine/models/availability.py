"""Availability slot model — one occupied date interval per reservation."""

import uuid
from datetime import date, datetime

from sqlalchemy import Date, Index
from sqlalchemy.orm import Mapped, mapped_column

from reservation_engine.database import Base, CreatedAtMixin, UUIDPrimaryKeyMixin


class AvailabilitySlot(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    """An interval [check_in, check_out) a reservation holds on a property.

    A slot occupies the property while ``released_at`` is NULL and either
    ``expires_at`` is NULL (committed) or still in the future (a payment hold).
    """

    __tablename__ = "availability_slots"

    property_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    reservation_id: Mapped[uuid.UUID] = mapped_column(unique=True, nullable=False)
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        Index("ix_availability_slots_property_range", "property_id", "check_in", "check_out"),
    )

    @property
    def is_hold(self) -> bool:
        return self.expires_at is not None

    def occupies_at(self, now: datetime) -> bool:
        if self.released_at is not None:
            return False
        return self.expires_at is None or self.expires_at > now

    def __repr__(self) -> str:
        return (
            f"<AvailabilitySlot(property_id={self.property_id}, reservation_id={self.reservation_id}, "
            f"{self.check_in}..{self.check_out})>"
        )
