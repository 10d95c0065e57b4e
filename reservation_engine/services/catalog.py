"""Property catalog — the engine's read-only view of prices and capacity."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.errors import NotFound
from reservation_engine.models.property import Property


class PropertyCatalog(Protocol):
    async def get_nightly_price(self, db: AsyncSession, property_id: uuid.UUID) -> tuple[Decimal, str]: ...

    async def get_capacity(self, db: AsyncSession, property_id: uuid.UUID) -> int | None: ...


class SqlPropertyCatalog:
    """Catalog backed by the local ``properties`` table."""

    async def _get_active(self, db: AsyncSession, property_id: uuid.UUID) -> Property:
        result = await db.execute(select(Property).where(Property.id == property_id))
        prop = result.scalar_one_or_none()
        if prop is None or not prop.is_active:
            raise NotFound(f"Property {property_id} not found")
        return prop

    async def get_nightly_price(self, db: AsyncSession, property_id: uuid.UUID) -> tuple[Decimal, str]:
        prop = await self._get_active(db, property_id)
        return prop.nightly_price, prop.currency

    async def get_capacity(self, db: AsyncSession, property_id: uuid.UUID) -> int | None:
        prop = await self._get_active(db, property_id)
        return prop.max_guests
