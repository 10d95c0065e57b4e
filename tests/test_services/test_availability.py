"""Tests for the availability index — overlap rules, holds, and release/promote."""

import uuid
from datetime import date, datetime, timedelta

import pytest

from reservation_engine.errors import InvalidRange, NotFound, SlotUnavailable
from reservation_engine.models.availability import AvailabilitySlot
from reservation_engine.services.availability import AvailabilityIndex, ranges_overlap

NOW = datetime(2025, 5, 25, 12, 0, 0)


class TestRangesOverlap:
    def test_back_to_back_stays_do_not_overlap(self):
        assert not ranges_overlap(date(2025, 6, 1), date(2025, 6, 4), date(2025, 6, 4), date(2025, 6, 6))
        assert not ranges_overlap(date(2025, 6, 4), date(2025, 6, 6), date(2025, 6, 1), date(2025, 6, 4))

    def test_partial_overlap(self):
        assert ranges_overlap(date(2025, 6, 1), date(2025, 6, 4), date(2025, 6, 3), date(2025, 6, 5))

    def test_containment(self):
        assert ranges_overlap(date(2025, 6, 1), date(2025, 6, 10), date(2025, 6, 3), date(2025, 6, 4))


async def _reserve(db, index, property_id, check_in, check_out, *, now=NOW, expires_at=None):
    reservation_id = uuid.uuid4()
    reclaimed = await index.reserve(
        db, property_id, check_in, check_out, reservation_id, now=now, expires_at=expires_at
    )
    return reservation_id, reclaimed


@pytest.mark.asyncio
async def test_reserve_rejects_overlap(session_factory, make_property):
    prop = await make_property()
    index = AvailabilityIndex()

    async with session_factory() as db, db.begin():
        await _reserve(db, index, prop.id, date(2025, 6, 1), date(2025, 6, 4))

    async with session_factory() as db, db.begin():
        with pytest.raises(SlotUnavailable):
            await _reserve(db, index, prop.id, date(2025, 6, 3), date(2025, 6, 5))


@pytest.mark.asyncio
async def test_reserve_allows_checkout_day_as_next_checkin(session_factory, make_property):
    prop = await make_property()
    index = AvailabilityIndex()

    async with session_factory() as db, db.begin():
        await _reserve(db, index, prop.id, date(2025, 6, 1), date(2025, 6, 4))
        await _reserve(db, index, prop.id, date(2025, 6, 4), date(2025, 6, 6))
        occupied = await index.occupied(db, prop.id, date(2025, 6, 1), date(2025, 6, 30), now=NOW)

    assert [(s.check_in, s.check_out) for s in occupied] == [
        (date(2025, 6, 1), date(2025, 6, 4)),
        (date(2025, 6, 4), date(2025, 6, 6)),
    ]


@pytest.mark.asyncio
async def test_other_properties_are_independent(session_factory, make_property):
    first = await make_property()
    second = await make_property()
    index = AvailabilityIndex()

    async with session_factory() as db, db.begin():
        await _reserve(db, index, first.id, date(2025, 6, 1), date(2025, 6, 4))
        await _reserve(db, index, second.id, date(2025, 6, 1), date(2025, 6, 4))


@pytest.mark.asyncio
async def test_reserve_validates_range_and_property(session_factory, make_property):
    prop = await make_property()
    inactive = await make_property(is_active=False)
    index = AvailabilityIndex()

    async with session_factory() as db:
        with pytest.raises(InvalidRange):
            await _reserve(db, index, prop.id, date(2025, 6, 4), date(2025, 6, 4))
        with pytest.raises(NotFound):
            await _reserve(db, index, uuid.uuid4(), date(2025, 6, 1), date(2025, 6, 4))
        with pytest.raises(NotFound):
            await _reserve(db, index, inactive.id, date(2025, 6, 1), date(2025, 6, 4))


@pytest.mark.asyncio
async def test_release_frees_the_range(session_factory, make_property):
    prop = await make_property()
    index = AvailabilityIndex()

    async with session_factory() as db, db.begin():
        reservation_id, _ = await _reserve(db, index, prop.id, date(2025, 6, 1), date(2025, 6, 4))
        assert await index.release(db, prop.id, reservation_id, now=NOW) is True
        # Second release is a no-op
        assert await index.release(db, prop.id, reservation_id, now=NOW) is False

    async with session_factory() as db, db.begin():
        await _reserve(db, index, prop.id, date(2025, 6, 1), date(2025, 6, 4))


@pytest.mark.asyncio
async def test_unexpired_hold_occupies_and_lapsed_hold_is_reclaimed(session_factory, make_property):
    prop = await make_property()
    index = AvailabilityIndex()
    expires_at = NOW + timedelta(minutes=20)

    async with session_factory() as db, db.begin():
        held_id, _ = await _reserve(
            db, index, prop.id, date(2025, 6, 1), date(2025, 6, 4), expires_at=expires_at
        )

    async with session_factory() as db, db.begin():
        with pytest.raises(SlotUnavailable):
            await _reserve(db, index, prop.id, date(2025, 6, 2), date(2025, 6, 3), now=NOW + timedelta(minutes=19))

    later = NOW + timedelta(minutes=21)
    async with session_factory() as db, db.begin():
        new_id, reclaimed = await _reserve(db, index, prop.id, date(2025, 6, 2), date(2025, 6, 3), now=later)
        assert reclaimed == [held_id]
        occupied = await index.occupied(db, prop.id, date(2025, 6, 1), date(2025, 6, 30), now=later)

    assert [s.reservation_id for s in occupied] == [new_id]


@pytest.mark.asyncio
async def test_promote_removes_expiry(session_factory, make_property):
    prop = await make_property()
    index = AvailabilityIndex()

    async with session_factory() as db, db.begin():
        reservation_id, _ = await _reserve(
            db, index, prop.id, date(2025, 6, 1), date(2025, 6, 4), expires_at=NOW + timedelta(minutes=20)
        )
        await index.promote(db, prop.id, reservation_id)

    async with session_factory() as db:
        far_future = NOW + timedelta(days=3)
        occupied = await index.occupied(db, prop.id, date(2025, 6, 1), date(2025, 6, 4), now=far_future)
        assert len(occupied) == 1
        assert isinstance(occupied[0], AvailabilitySlot)
        assert occupied[0].is_hold is False


@pytest.mark.asyncio
async def test_promote_of_released_slot_fails(session_factory, make_property):
    prop = await make_property()
    index = AvailabilityIndex()

    async with session_factory() as db, db.begin():
        reservation_id, _ = await _reserve(db, index, prop.id, date(2025, 6, 1), date(2025, 6, 4))
        await index.release(db, prop.id, reservation_id, now=NOW)
        with pytest.raises(SlotUnavailable):
            await index.promote(db, prop.id, reservation_id)
