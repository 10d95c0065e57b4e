"""Reward ledger — append-only EARN/REVERSE transactions tied to reservations."""

import logging
import math
import uuid
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.models.reward import RewardKind, RewardTransaction

logger = logging.getLogger(__name__)


def points_for(total_price: Decimal, per_unit: int = 2) -> int:
    """Points a stay earns: ``per_unit`` points per whole currency unit, floored."""
    return math.floor(total_price * per_unit)


class RewardLedger:
    """Ledger operations run inside the caller's transaction."""

    async def _get(self, db: AsyncSession, reservation_id: uuid.UUID, kind: RewardKind) -> RewardTransaction | None:
        result = await db.execute(
            select(RewardTransaction).where(
                RewardTransaction.reservation_id == reservation_id,
                RewardTransaction.kind == kind,
            )
        )
        return result.scalar_one_or_none()

    async def credit(
        self, db: AsyncSession, reservation_id: uuid.UUID, user_id: uuid.UUID, points: int
    ) -> RewardTransaction | None:
        """Append an EARN for the reservation. Returns None if one already exists."""
        if await self._get(db, reservation_id, RewardKind.EARN) is not None:
            logger.info("Reservation %s already credited, skipping", reservation_id)
            return None

        txn = RewardTransaction(
            reservation_id=reservation_id,
            user_id=user_id,
            points=points,
            kind=RewardKind.EARN,
            description=f"Points earned for reservation {reservation_id}",
        )
        db.add(txn)
        await db.flush()
        logger.info("Credited %d points to user %s for reservation %s", points, user_id, reservation_id)
        return txn

    async def reverse(self, db: AsyncSession, reservation_id: uuid.UUID) -> RewardTransaction | None:
        """Append a REVERSE cancelling the reservation's EARN, at most once."""
        earn = await self._get(db, reservation_id, RewardKind.EARN)
        if earn is None:
            return None
        if await self._get(db, reservation_id, RewardKind.REVERSE) is not None:
            return None

        txn = RewardTransaction(
            reservation_id=reservation_id,
            user_id=earn.user_id,
            points=-earn.points,
            kind=RewardKind.REVERSE,
            description=f"Points reversed for cancelled reservation {reservation_id}",
        )
        db.add(txn)
        await db.flush()
        logger.info("Reversed %d points of user %s for reservation %s", earn.points, earn.user_id, reservation_id)
        return txn

    async def balance(self, db: AsyncSession, user_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.coalesce(func.sum(RewardTransaction.points), 0)).where(RewardTransaction.user_id == user_id)
        )
        return int(result.scalar_one())

    async def history(self, db: AsyncSession, user_id: uuid.UUID, *, limit: int = 100) -> list[RewardTransaction]:
        result = await db.execute(
            select(RewardTransaction)
            .where(RewardTransaction.user_id == user_id)
            .order_by(RewardTransaction.created_at.desc(), RewardTransaction.kind)
            .limit(limit)
        )
        return list(result.scalars().all())
