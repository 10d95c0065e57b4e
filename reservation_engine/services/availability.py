"""Availability index — authoritative per-property occupancy with atomic reserve/release.

Two layers keep ``reserve`` atomic per property:

- an in-process ``asyncio.Lock`` per property id, which callers hold for the
  whole transaction via :meth:`AvailabilityIndex.locked`;
- a ``SELECT ... FOR UPDATE`` on the property row, which serializes writers in
  other processes on PostgreSQL until commit.

Overlap for half-open ranges [a, b) and [c, d) is ``a < d AND c < b``.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.errors import InvalidRange, NotFound, SlotUnavailable
from reservation_engine.models.availability import AvailabilitySlot
from reservation_engine.models.property import Property

logger = logging.getLogger(__name__)


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Half-open overlap test: checkout day of one stay may be check-in of the next."""
    return a_start < b_end and b_start < a_end


def _occupying(now: datetime):
    return and_(
        AvailabilitySlot.released_at.is_(None),
        or_(AvailabilitySlot.expires_at.is_(None), AvailabilitySlot.expires_at > now),
    )


class AvailabilityIndex:
    """Per-property interval store. All mutating calls run inside the caller's session."""

    def __init__(self) -> None:
        self._locks: dict[uuid.UUID, asyncio.Lock] = {}

    @asynccontextmanager
    async def locked(self, property_id: uuid.UUID) -> AsyncIterator[None]:
        """Serialize in-process writers on one property for the duration of a transaction."""
        lock = self._locks.setdefault(property_id, asyncio.Lock())
        async with lock:
            yield

    async def _lock_property(self, db: AsyncSession, property_id: uuid.UUID) -> Property:
        result = await db.execute(select(Property).where(Property.id == property_id).with_for_update())
        prop = result.scalar_one_or_none()
        if prop is None or not prop.is_active:
            raise NotFound(f"Property {property_id} not found")
        return prop

    async def reserve(
        self,
        db: AsyncSession,
        property_id: uuid.UUID,
        check_in: date,
        check_out: date,
        reservation_id: uuid.UUID,
        *,
        now: datetime,
        expires_at: datetime | None = None,
    ) -> list[uuid.UUID]:
        """Insert a slot for ``reservation_id`` if nothing occupying overlaps it.

        Expired holds that overlap (not yet swept) are released here so the
        caller can fail their reservations in the same transaction; their
        reservation ids are returned.

        Raises:
            InvalidRange: ``check_in >= check_out``.
            NotFound: unknown or inactive property.
            SlotUnavailable: an occupying slot overlaps the range.
        """
        if check_in >= check_out:
            raise InvalidRange("check_out must be after check_in")

        await self._lock_property(db, property_id)

        result = await db.execute(
            select(AvailabilitySlot).where(
                AvailabilitySlot.property_id == property_id,
                AvailabilitySlot.released_at.is_(None),
                AvailabilitySlot.check_in < check_out,
                AvailabilitySlot.check_out > check_in,
            )
        )
        overlapping = list(result.scalars().all())

        if any(slot.occupies_at(now) for slot in overlapping):
            raise SlotUnavailable(f"Dates {check_in}..{check_out} conflict with an existing reservation")

        reclaimed: list[uuid.UUID] = []
        for slot in overlapping:
            # Only lapsed holds remain here
            slot.released_at = now
            reclaimed.append(slot.reservation_id)
            logger.info(
                "Reclaimed lapsed hold of reservation %s on property %s", slot.reservation_id, property_id
            )

        db.add(
            AvailabilitySlot(
                property_id=property_id,
                reservation_id=reservation_id,
                check_in=check_in,
                check_out=check_out,
                expires_at=expires_at,
            )
        )
        await db.flush()
        logger.info(
            "Reserved %s..%s on property %s for reservation %s (hold=%s)",
            check_in,
            check_out,
            property_id,
            reservation_id,
            expires_at is not None,
        )
        return reclaimed

    async def _get_slot(self, db: AsyncSession, property_id: uuid.UUID, reservation_id: uuid.UUID) -> AvailabilitySlot:
        result = await db.execute(
            select(AvailabilitySlot).where(
                AvailabilitySlot.property_id == property_id,
                AvailabilitySlot.reservation_id == reservation_id,
            )
        )
        slot = result.scalar_one_or_none()
        if slot is None:
            raise NotFound(f"No availability slot for reservation {reservation_id}")
        return slot

    async def release(
        self, db: AsyncSession, property_id: uuid.UUID, reservation_id: uuid.UUID, *, now: datetime
    ) -> bool:
        """Stop the reservation's slot from occupying. Returns False if it already did not."""
        await self._lock_property(db, property_id)
        slot = await self._get_slot(db, property_id, reservation_id)
        if slot.released_at is not None:
            return False
        slot.released_at = now
        await db.flush()
        logger.info("Released slot of reservation %s on property %s", reservation_id, property_id)
        return True

    async def promote(self, db: AsyncSession, property_id: uuid.UUID, reservation_id: uuid.UUID) -> None:
        """Turn a hold into a committed slot (no expiry). The range itself is unchanged."""
        await self._lock_property(db, property_id)
        slot = await self._get_slot(db, property_id, reservation_id)
        if slot.released_at is not None:
            raise SlotUnavailable(f"Slot of reservation {reservation_id} was already released")
        slot.expires_at = None
        await db.flush()

    async def occupied(
        self,
        db: AsyncSession,
        property_id: uuid.UUID,
        start: date,
        end: date,
        *,
        now: datetime,
    ) -> list[AvailabilitySlot]:
        """Occupying slots that intersect [start, end), ordered by check-in."""
        result = await db.execute(
            select(AvailabilitySlot)
            .where(
                AvailabilitySlot.property_id == property_id,
                AvailabilitySlot.check_in < end,
                AvailabilitySlot.check_out > start,
                _occupying(now),
            )
            .order_by(AvailabilitySlot.check_in)
        )
        return list(result.scalars().all())
