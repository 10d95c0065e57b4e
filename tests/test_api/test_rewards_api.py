"""Tests for the reward points endpoint."""

import uuid
from datetime import date
from decimal import Decimal

import pytest

pytestmark = pytest.mark.asyncio


async def _confirm(machine, reservation_id):
    intent_ref = await machine.payment_intent_ref(reservation_id)
    return await machine.payment_confirmed(f"evt_{uuid.uuid4().hex}", intent_ref)


async def test_balance_follows_earn_and_reverse(client, machine, make_property, book):
    guest_id = uuid.uuid4()
    prop = await make_property(nightly_price=Decimal("250.00"))
    reservation = await book(prop, date(2025, 6, 1), date(2025, 6, 5), guest_id=guest_id)
    await _confirm(machine, reservation.id)

    resp = await client.get(f"/api/v1/rewards/{guest_id}")
    assert resp.status_code == 200
    data = resp.json()
    assert data["balance"] == 2000
    assert [(t["kind"], t["points"]) for t in data["transactions"]] == [("EARN", 2000)]

    await machine.cancel(reservation.id, actor="guest")

    resp = await client.get(f"/api/v1/rewards/{guest_id}")
    data = resp.json()
    assert data["balance"] == 0
    assert sorted(t["points"] for t in data["transactions"]) == [-2000, 2000]


async def test_unknown_user_has_zero_balance(client):
    user_id = uuid.uuid4()
    resp = await client.get(f"/api/v1/rewards/{user_id}")
    assert resp.status_code == 200
    assert resp.json() == {"user_id": str(user_id), "balance": 0, "transactions": []}
