"""Reward ledger model — append-only point grants and reversals."""

import enum
import uuid

from sqlalchemy import Enum, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from reservation_engine.database import Base, CreatedAtMixin, UUIDPrimaryKeyMixin


class RewardKind(str, enum.Enum):
    EARN = "EARN"
    REVERSE = "REVERSE"


class RewardTransaction(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    """A signed point movement for a user, optionally tied to a reservation."""

    __tablename__ = "reward_transactions"

    reservation_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[RewardKind] = mapped_column(Enum(RewardKind, native_enum=False, length=16), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    # One EARN and at most one REVERSE per reservation
    __table_args__ = (UniqueConstraint("reservation_id", "kind", name="uq_reward_transactions_reservation_kind"),)

    def __repr__(self) -> str:
        return f"<RewardTransaction(user_id={self.user_id}, kind={self.kind.value}, points={self.points})>"
