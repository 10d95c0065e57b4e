"""Shared test configuration and fixtures.

Each test gets a fresh database: a SQLite file under ``tmp_path`` by default,
or the database named by ``TEST_DATABASE_URL`` (tables are dropped and
recreated per test). The engine commits its own transactions, so tests look
at state through new sessions rather than a rolled-back outer transaction.
"""

import os

# Settings are read at import time; keep tests off the production database.
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./.pytest_reservations.db")

import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from reservation_engine.database import Base, get_db
from reservation_engine.errors import PaymentGatewayError
from reservation_engine.main import app
from reservation_engine.models.property import Property
from reservation_engine.models.reservation import PaymentMethod, Reservation
from reservation_engine.payments.gateway import GatewayRefund
from reservation_engine.services.payment_orchestrator import PaymentOrchestrator
from reservation_engine.services.reservation_machine import ReservationStateMachine

# Default "now" for engine tests: well before the stays they book.
NOW = datetime(2025, 5, 25, 12, 0, 0)


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeGateway:
    """In-memory payment gateway that records calls and honours idempotency keys."""

    def __init__(self) -> None:
        self.intents: dict[str, str] = {}
        self.refunds: dict[str, GatewayRefund] = {}
        self.create_calls: list[dict] = []
        self.refund_calls: list[dict] = []
        self.create_failures = 0
        self.refund_failures = 0
        self.decline_refunds = False

    async def create_intent(self, *, idempotency_key, amount, currency, metadata) -> str:
        self.create_calls.append(
            {"idempotency_key": idempotency_key, "amount": amount, "currency": currency, "metadata": metadata}
        )
        if self.create_failures:
            self.create_failures -= 1
            raise PaymentGatewayError("Gateway timed out")
        if idempotency_key not in self.intents:
            self.intents[idempotency_key] = f"pi_{uuid.uuid4().hex[:16]}"
        return self.intents[idempotency_key]

    async def refund(self, *, idempotency_key, intent_ref, amount, currency) -> GatewayRefund:
        self.refund_calls.append(
            {"idempotency_key": idempotency_key, "intent_ref": intent_ref, "amount": amount, "currency": currency}
        )
        if self.refund_failures:
            self.refund_failures -= 1
            raise PaymentGatewayError("Gateway timed out")
        if self.decline_refunds:
            return GatewayRefund(succeeded=False, error="charge_disputed")
        if idempotency_key not in self.refunds:
            self.refunds[idempotency_key] = GatewayRefund(succeeded=True, ref=f"re_{uuid.uuid4().hex[:16]}")
        return self.refunds[idempotency_key]


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: list[tuple[str, uuid.UUID]] = []

    async def approval_requested(self, reservation: Reservation) -> None:
        self.events.append(("approval_requested", reservation.id))

    async def reservation_confirmed(self, reservation: Reservation) -> None:
        self.events.append(("reservation_confirmed", reservation.id))


class FakeClock:
    """Settable clock handed to the state machine."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a per-test engine with all tables in place."""
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    engine = create_async_engine(url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """A plain session for setup and assertions."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Engine wiring
# ---------------------------------------------------------------------------


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture
def machine(session_factory, gateway, notifier, clock) -> ReservationStateMachine:
    return ReservationStateMachine(
        session_factory,
        PaymentOrchestrator(gateway),
        notifier=notifier,
        clock=clock,
        hold_ttl=timedelta(minutes=20),
        refund_cutoff_hours=48,
        points_per_currency_unit=2,
        service_fee_rate=Decimal("0"),
    )


@pytest.fixture
def make_property(session_factory):
    """Factory that inserts a property and returns it."""

    async def _make(
        nightly_price: Decimal = Decimal("100.00"),
        max_guests: int | None = 4,
        is_active: bool = True,
        owner_id: uuid.UUID | None = None,
        currency: str = "usd",
    ) -> Property:
        async with session_factory() as session:
            prop = Property(
                owner_id=owner_id or uuid.uuid4(),
                name=f"Villa {uuid.uuid4().hex[:6]}",
                nightly_price=nightly_price,
                currency=currency,
                max_guests=max_guests,
                is_active=is_active,
            )
            session.add(prop)
            await session.commit()
        return prop

    return _make


@pytest.fixture
def book(machine):
    """Shortcut for ``machine.create_reservation`` with sensible defaults."""

    async def _book(
        prop: Property,
        check_in,
        check_out,
        payment_method: PaymentMethod = PaymentMethod.ONLINE,
        guest_id: uuid.UUID | None = None,
        guest_count: int = 2,
    ) -> Reservation:
        return await machine.create_reservation(
            property_id=prop.id,
            guest_id=guest_id or uuid.uuid4(),
            check_in=check_in,
            check_out=check_out,
            guest_count=guest_count,
            payment_method=payment_method,
        )

    return _book


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(machine, session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test engine and state machine."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.state.reservations = machine

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.reservations = None
