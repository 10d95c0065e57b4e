"""Seed the database with sample properties and a few cash-on-arrival stays.

Reservations are created through the state machine, not inserted directly, so
availability slots and reward entries are consistent with their status.

Run:
    python -m scripts.seed_data
"""

import asyncio
import sys
import uuid
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

# Add project root to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import delete, select

from reservation_engine.database import async_session_factory, engine
from reservation_engine.main import build_state_machine
from reservation_engine.models import (
    AvailabilitySlot,
    PaymentIntent,
    ProcessedPaymentEvent,
    Property,
    Refund,
    Reservation,
    RewardTransaction,
)
from reservation_engine.models.reservation import PaymentMethod

# ---------------------------------------------------------------------------
# Seed data definitions
# ---------------------------------------------------------------------------

DEMO_HOST_ID = uuid.UUID("00000000-0000-4000-8000-000000000001")
DEMO_GUEST_ID = uuid.UUID("00000000-0000-4000-8000-000000000002")

PROPERTIES = [
    {"name": "Le Ayu Villa Canggu", "nightly_price": Decimal("129.00"), "currency": "usd", "max_guests": 4},
    {"name": "Pitu Village Escape", "nightly_price": Decimal("86.00"), "currency": "usd", "max_guests": 2},
    {"name": "Da Vinci Villa by Nagisa", "nightly_price": Decimal("350.00"), "currency": "usd", "max_guests": 8},
    {"name": "Umah Anyar Villas Ubud", "nightly_price": Decimal("163.00"), "currency": "usd", "max_guests": 2},
]

# (property index, days from today, nights, guests, approve?)
STAYS = [
    (0, 7, 3, 2, True),
    (0, 14, 5, 4, False),
    (1, 10, 2, 2, True),
    (2, 21, 7, 6, True),
    (3, 30, 4, 1, False),
]


async def seed() -> None:
    """Reset engine tables and populate them. Idempotent: wipes previous seed data."""
    async with async_session_factory() as session:
        for model in (
            RewardTransaction,
            Refund,
            ProcessedPaymentEvent,
            PaymentIntent,
            AvailabilitySlot,
            Reservation,
        ):
            await session.execute(delete(model))
        await session.execute(delete(Property).where(Property.owner_id == DEMO_HOST_ID))
        await session.flush()

        created_properties: list[Property] = []
        for prop_data in PROPERTIES:
            prop = Property(owner_id=DEMO_HOST_ID, is_active=True, **prop_data)
            session.add(prop)
            await session.flush()
            created_properties.append(prop)
            print(f"   🏠 {prop.name} (${prop.nightly_price}/night, sleeps {prop.max_guests})")
        await session.commit()

    print(f"✅ Created {len(created_properties)} properties")

    machine = build_state_machine()
    today = date.today()
    for prop_index, offset, nights, guests, approve in STAYS:
        prop = created_properties[prop_index]
        check_in = today + timedelta(days=offset)
        reservation = await machine.create_reservation(
            property_id=prop.id,
            guest_id=DEMO_GUEST_ID,
            check_in=check_in,
            check_out=check_in + timedelta(days=nights),
            guest_count=guests,
            payment_method=PaymentMethod.CASH_ON_ARRIVAL,
        )
        if approve:
            reservation = await machine.approve(reservation.id, host_id=DEMO_HOST_ID)
        print(f"   📅 {prop.name}: {reservation.check_in}..{reservation.check_out} → {reservation.status.value}")

    async with async_session_factory() as session:
        total = len((await session.execute(select(Reservation.id))).all())
        balance = await machine.ledger.balance(session, DEMO_GUEST_ID)

    print("=" * 60)
    print(f"   Properties:    {len(created_properties)}")
    print(f"   Reservations:  {total}")
    print(f"   Guest points:  {balance}")
    print("=" * 60)
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
