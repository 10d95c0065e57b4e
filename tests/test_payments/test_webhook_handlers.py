"""Tests for payment webhook handlers with fake Stripe events."""

import uuid
from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from reservation_engine.errors import InvalidTransition
from reservation_engine.models.reservation import ReservationStatus
from reservation_engine.payments.webhooks import (
    handle_payment_intent_failed,
    handle_payment_intent_succeeded,
)


class _StripeObj(SimpleNamespace):
    """SimpleNamespace with bracket notation support (like Stripe API objects)."""

    def __getitem__(self, key: str):
        return getattr(self, key)


def _make_event(event_type: str, intent_id: str, event_id: str | None = None) -> _StripeObj:
    """Create a fake Stripe Event-like object."""
    return _StripeObj(
        type=event_type,
        id=event_id or f"evt_test_{uuid.uuid4().hex[:8]}",
        data=_StripeObj(object=_StripeObj(id=intent_id, object="payment_intent")),
    )


async def _pending_reservation(machine, make_property, book):
    prop = await make_property(nightly_price=Decimal("120.00"))
    reservation = await book(prop, date(2025, 6, 1), date(2025, 6, 3))
    intent_ref = await machine.payment_intent_ref(reservation.id)
    return reservation, intent_ref


@pytest.mark.asyncio
class TestPaymentIntentSucceeded:
    async def test_confirms_reservation(self, machine, make_property, book):
        reservation, intent_ref = await _pending_reservation(machine, make_property, book)

        outcome = await handle_payment_intent_succeeded(
            machine, _make_event("payment_intent.succeeded", intent_ref)
        )

        assert outcome == "processed"
        current = await machine.get_reservation(reservation.id)
        assert current.status is ReservationStatus.CONFIRMED
        assert current.points_earned == 480

    async def test_redelivery_is_duplicate(self, machine, make_property, book):
        _, intent_ref = await _pending_reservation(machine, make_property, book)
        event = _make_event("payment_intent.succeeded", intent_ref, event_id="evt_same")

        assert await handle_payment_intent_succeeded(machine, event) == "processed"
        assert await handle_payment_intent_succeeded(machine, event) == "duplicate"

    async def test_unknown_intent_is_ignored(self, machine):
        outcome = await handle_payment_intent_succeeded(
            machine, _make_event("payment_intent.succeeded", "pi_not_ours")
        )
        assert outcome == "ignored"

    async def test_lost_race_is_ignored(self):
        machine = SimpleNamespace(
            payment_confirmed=AsyncMock(side_effect=InvalidTransition("CANCELLED", "confirm"))
        )
        outcome = await handle_payment_intent_succeeded(
            machine, _make_event("payment_intent.succeeded", "pi_123")
        )
        assert outcome == "ignored"


@pytest.mark.asyncio
class TestPaymentIntentFailed:
    async def test_fails_reservation(self, machine, make_property, book):
        reservation, intent_ref = await _pending_reservation(machine, make_property, book)

        outcome = await handle_payment_intent_failed(
            machine, _make_event("payment_intent.payment_failed", intent_ref)
        )

        assert outcome == "processed"
        current = await machine.get_reservation(reservation.id)
        assert current.status is ReservationStatus.PAYMENT_FAILED

    async def test_failure_after_success_is_duplicate(self, machine, make_property, book):
        reservation, intent_ref = await _pending_reservation(machine, make_property, book)
        await handle_payment_intent_succeeded(machine, _make_event("payment_intent.succeeded", intent_ref))

        outcome = await handle_payment_intent_failed(
            machine, _make_event("payment_intent.payment_failed", intent_ref)
        )

        assert outcome == "duplicate"
        current = await machine.get_reservation(reservation.id)
        assert current.status is ReservationStatus.CONFIRMED

    async def test_unknown_intent_is_ignored(self, machine):
        outcome = await handle_payment_intent_failed(
            machine, _make_event("payment_intent.payment_failed", "pi_not_ours")
        )
        assert outcome == "ignored"
