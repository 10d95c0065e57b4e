"""Property model — local mirror of the property catalog."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from reservation_engine.database import Base, UUIDPrimaryKeyMixin


class Property(UUIDPrimaryKeyMixin, Base):
    """A bookable villa, apartment, or room. Read-mostly from the engine's side."""

    __tablename__ = "properties"

    owner_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    nightly_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")
    max_guests: Mapped[int | None] = mapped_column(default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, name={self.name!r}, active={self.is_active})>"
