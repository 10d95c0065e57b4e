"""Tests for the scheduler-facing sweep endpoints."""

from datetime import date, datetime

import pytest

from reservation_engine.models.reservation import PaymentMethod, ReservationStatus

pytestmark = pytest.mark.asyncio


async def test_hold_sweep(client, machine, make_property, book, clock):
    prop = await make_property()
    reservation = await book(prop, date(2025, 6, 1), date(2025, 6, 4))

    resp = await client.post("/api/v1/sweeps/holds")
    assert resp.json() == {"expired": 0}

    clock.advance(minutes=25)
    resp = await client.post("/api/v1/sweeps/holds")
    assert resp.status_code == 200
    assert resp.json() == {"expired": 1}
    assert (await machine.get_reservation(reservation.id)).status is ReservationStatus.PAYMENT_FAILED


async def test_completion_sweep(client, machine, make_property, book, clock):
    prop = await make_property()
    reservation = await book(prop, date(2025, 6, 1), date(2025, 6, 4), payment_method=PaymentMethod.CASH_ON_ARRIVAL)
    await machine.approve(reservation.id)

    clock.now = datetime(2025, 6, 4, 11, 0)
    resp = await client.post("/api/v1/sweeps/completions")
    assert resp.json() == {"completed": 1}
    assert (await machine.get_reservation(reservation.id)).status is ReservationStatus.COMPLETED


async def test_refund_sweep_with_nothing_pending(client):
    resp = await client.post("/api/v1/sweeps/refunds")
    assert resp.status_code == 200
    assert resp.json() == {"settled": 0}
