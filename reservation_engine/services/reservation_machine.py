"""Reservation state machine — drives a reservation from request to a terminal state.

::

    ONLINE:           PENDING_PAYMENT ──confirm──▶ CONFIRMED ──complete──▶ COMPLETED
                            │ fail / hold expiry         │ cancel
                            ▼                            ▼
                       PAYMENT_FAILED                CANCELLED
    CASH_ON_ARRIVAL:  PENDING_HOST_APPROVAL ──approve──▶ CONFIRMED
                            │ reject / cancel
                            ▼
                        CANCELLED

Every operation opens its own session, takes the property's lock for the
whole transaction, and applies the status change as a compare-and-set
(``UPDATE ... WHERE status = <expected>``). A transition that finds the row
in any other state raises ``InvalidTransition`` and the transaction rolls
back, so the loser of a race leaves no side effects behind.

Gateway calls (intent creation, refunds) and host notifications happen after
commit, outside the property lock.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reservation_engine.config import settings
from reservation_engine.database import utcnow
from reservation_engine.errors import (
    InvalidGuestCount,
    InvalidRange,
    InvalidTransition,
    NotFound,
    PaymentGatewayError,
    ReservationError,
)
from reservation_engine.models.availability import AvailabilitySlot
from reservation_engine.models.payment import PaymentIntent
from reservation_engine.models.reservation import (
    PaymentMethod,
    PaymentStatus,
    Reservation,
    ReservationStatus,
)
from reservation_engine.models.reward import RewardTransaction
from reservation_engine.services import cancellation_policy
from reservation_engine.services.availability import AvailabilityIndex
from reservation_engine.services.catalog import PropertyCatalog, SqlPropertyCatalog
from reservation_engine.services.notifications import HostNotifier, LoggingHostNotifier
from reservation_engine.services.payment_orchestrator import PaymentOrchestrator, RefundResult
from reservation_engine.services.reward_ledger import RewardLedger, points_for

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


class ReservationStateMachine:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        payments: PaymentOrchestrator,
        *,
        catalog: PropertyCatalog | None = None,
        availability: AvailabilityIndex | None = None,
        ledger: RewardLedger | None = None,
        notifier: HostNotifier | None = None,
        clock: Callable[[], datetime] = utcnow,
        hold_ttl: timedelta | None = None,
        refund_cutoff_hours: int | None = None,
        points_per_currency_unit: int | None = None,
        service_fee_rate: Decimal | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.payments = payments
        self.catalog = catalog or SqlPropertyCatalog()
        self.availability = availability or AvailabilityIndex()
        self.ledger = ledger or RewardLedger()
        self.notifier = notifier or LoggingHostNotifier()
        self.clock = clock
        self.hold_ttl = hold_ttl or timedelta(minutes=settings.hold_ttl_minutes)
        self.refund_cutoff_hours = (
            settings.refund_cutoff_hours if refund_cutoff_hours is None else refund_cutoff_hours
        )
        self.points_per_currency_unit = (
            settings.points_per_currency_unit if points_per_currency_unit is None else points_per_currency_unit
        )
        self.service_fee_rate = settings.service_fee_rate if service_fee_rate is None else service_fee_rate

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _transaction(self, property_id: uuid.UUID) -> AsyncIterator[AsyncSession]:
        async with self.availability.locked(property_id):
            async with self._session_factory() as db, db.begin():
                yield db

    async def _load(self, db: AsyncSession, reservation_id: uuid.UUID) -> Reservation:
        result = await db.execute(select(Reservation).where(Reservation.id == reservation_id))
        reservation = result.scalar_one_or_none()
        if reservation is None:
            raise NotFound(f"Reservation {reservation_id} not found")
        return reservation

    async def _property_of(self, reservation_id: uuid.UUID) -> uuid.UUID:
        async with self._session_factory() as db:
            result = await db.execute(select(Reservation.property_id).where(Reservation.id == reservation_id))
            property_id = result.scalar_one_or_none()
        if property_id is None:
            raise NotFound(f"Reservation {reservation_id} not found")
        return property_id

    async def _property_of_intent(self, intent_ref: str) -> uuid.UUID:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Reservation.property_id)
                .join(PaymentIntent, PaymentIntent.reservation_id == Reservation.id)
                .where(PaymentIntent.intent_ref == intent_ref)
            )
            property_id = result.scalar_one_or_none()
        if property_id is None:
            raise NotFound(f"Unknown payment intent {intent_ref}")
        return property_id

    @staticmethod
    def _require(reservation: Reservation, allowed: set[ReservationStatus], attempted: str) -> None:
        if reservation.status not in allowed:
            logger.warning(
                "Rejected %s of reservation %s in state %s", attempted, reservation.id, reservation.status.value
            )
            raise InvalidTransition(reservation.status.value, attempted)

    async def _cas(
        self,
        db: AsyncSession,
        reservation: Reservation,
        expected: ReservationStatus,
        new: ReservationStatus,
        attempted: str,
        now: datetime,
        **values,
    ) -> None:
        result = await db.execute(
            update(Reservation)
            .where(Reservation.id == reservation.id, Reservation.status == expected)
            .values(status=new, last_transition_at=now, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.refresh(reservation)
            logger.warning(
                "Lost race on %s of reservation %s: expected %s, found %s",
                attempted,
                reservation.id,
                expected.value,
                reservation.status.value,
            )
            raise InvalidTransition(reservation.status.value, attempted)
        await db.refresh(reservation)
        logger.info("Reservation %s: %s -> %s", reservation.id, expected.value, new.value)

    def quote(self, nightly_price: Decimal, nights: int) -> Decimal:
        """Total for a stay: nightly price times nights plus the service fee."""
        subtotal = nightly_price * nights
        fee = (subtotal * self.service_fee_rate).quantize(_CENT, rounding=ROUND_HALF_UP)
        return (subtotal + fee).quantize(_CENT, rounding=ROUND_HALF_UP)

    # ------------------------------------------------------------------
    # 1. Creation
    # ------------------------------------------------------------------

    async def create_reservation(
        self,
        property_id: uuid.UUID,
        guest_id: uuid.UUID,
        check_in: date,
        check_out: date,
        guest_count: int,
        payment_method: PaymentMethod,
        special_requests: str | None = None,
    ) -> Reservation:
        """Open a reservation in its initial state, or fail with no state left behind.

        Raises:
            InvalidRange, InvalidGuestCount: request validation failed.
            NotFound: unknown or inactive property.
            SlotUnavailable: the dates overlap an occupying reservation.
        """
        now = self.clock()
        if check_in >= check_out:
            raise InvalidRange("check_out must be after check_in")
        if check_in < now.date():
            raise InvalidRange("check_in must not be in the past")
        if guest_count < 1:
            raise InvalidGuestCount("guest_count must be at least 1")

        online = payment_method is PaymentMethod.ONLINE

        async with self._transaction(property_id) as db:
            capacity = await self.catalog.get_capacity(db, property_id)
            if capacity is not None and guest_count > capacity:
                raise InvalidGuestCount(f"Property sleeps at most {capacity} guests")

            nightly_price, currency = await self.catalog.get_nightly_price(db, property_id)
            reservation = Reservation(
                id=uuid.uuid4(),
                property_id=property_id,
                guest_id=guest_id,
                check_in=check_in,
                check_out=check_out,
                guest_count=guest_count,
                total_price=self.quote(nightly_price, (check_out - check_in).days),
                currency=currency,
                payment_method=payment_method,
                status=ReservationStatus.PENDING_PAYMENT if online else ReservationStatus.PENDING_HOST_APPROVAL,
                payment_status=PaymentStatus.UNPAID,
                special_requests=special_requests,
                created_at=now,
                last_transition_at=now,
            )

            reclaimed = await self.availability.reserve(
                db,
                property_id,
                check_in,
                check_out,
                reservation.id,
                now=now,
                expires_at=now + self.hold_ttl if online else None,
            )
            for lapsed_id in reclaimed:
                await self._fail_lapsed_hold(db, lapsed_id, now)

            db.add(reservation)
            await db.flush()

        logger.info(
            "Created reservation %s on property %s (%s..%s, %s, total=%s %s)",
            reservation.id,
            property_id,
            check_in,
            check_out,
            payment_method.value,
            reservation.total_price,
            currency,
        )

        if online:
            try:
                await self.ensure_payment_intent(reservation.id)
            except PaymentGatewayError as e:
                logger.warning("Payment intent for %s not created yet, client must retry: %s", reservation.id, e)
        else:
            await self.notifier.approval_requested(reservation)

        return reservation

    async def _fail_lapsed_hold(self, db: AsyncSession, reservation_id: uuid.UUID, now: datetime) -> None:
        reservation = await self._load(db, reservation_id)
        if reservation.status is not ReservationStatus.PENDING_PAYMENT:
            logger.warning(
                "Reclaimed slot belonged to reservation %s in state %s", reservation_id, reservation.status.value
            )
            return
        await self._cas(
            db,
            reservation,
            ReservationStatus.PENDING_PAYMENT,
            ReservationStatus.PAYMENT_FAILED,
            "expire",
            now,
            payment_status=PaymentStatus.FAILED,
        )

    async def ensure_payment_intent(self, reservation_id: uuid.UUID) -> str:
        """Return the reservation's intent ref, creating it at the gateway if needed.

        Safe to retry after ``PaymentGatewayError``.
        """
        async with self._session_factory() as db:
            reservation = await self._load(db, reservation_id)
            if reservation.payment_method is not PaymentMethod.ONLINE:
                raise InvalidTransition(reservation.status.value, "create a payment intent for")

            existing = await self.payments.get_intent(db, reservation_id)
            if existing is not None:
                return existing.intent_ref
            self._require(reservation, {ReservationStatus.PENDING_PAYMENT}, "create a payment intent for")

            try:
                intent_ref = await self.payments.create_intent(
                    db, reservation_id, reservation.total_price, reservation.currency
                )
                await db.commit()
            except IntegrityError:
                # Another worker stored the same intent first
                await db.rollback()
                existing = await self.payments.get_intent(db, reservation_id)
                if existing is None:
                    raise
                return existing.intent_ref
        return intent_ref

    async def payment_intent_ref(self, reservation_id: uuid.UUID) -> str | None:
        async with self._session_factory() as db:
            intent = await self.payments.get_intent(db, reservation_id)
        return intent.intent_ref if intent else None

    # ------------------------------------------------------------------
    # 2. Hold expiry
    # ------------------------------------------------------------------

    async def expire_hold(self, reservation_id: uuid.UUID) -> Reservation | None:
        """Fail a PENDING_PAYMENT reservation whose hold lapsed. Returns None if not yet expired."""
        property_id = await self._property_of(reservation_id)
        async with self._transaction(property_id) as db:
            now = self.clock()
            reservation = await self._load(db, reservation_id)
            self._require(reservation, {ReservationStatus.PENDING_PAYMENT}, "expire")

            result = await db.execute(
                select(AvailabilitySlot.expires_at).where(AvailabilitySlot.reservation_id == reservation_id)
            )
            expires_at = result.scalar_one_or_none()
            if expires_at is None or expires_at > now:
                return None

            await self.availability.release(db, property_id, reservation_id, now=now)
            await self._cas(
                db,
                reservation,
                ReservationStatus.PENDING_PAYMENT,
                ReservationStatus.PAYMENT_FAILED,
                "expire",
                now,
                payment_status=PaymentStatus.FAILED,
            )
        return reservation

    # ------------------------------------------------------------------
    # 3 & 4. Gateway outcomes
    # ------------------------------------------------------------------

    async def payment_confirmed(self, event_id: str, intent_ref: str) -> Reservation | None:
        """Apply a success callback. Returns None for duplicate or superseded callbacks.

        A success for a reservation that already lost its slot (cancelled, or
        failed and then captured on retry) is a late capture: the state stays
        put and the money is queued for refund. Any other state only
        acknowledges the event.
        """
        property_id = await self._property_of_intent(intent_ref)
        confirmed = False
        late_capture = False

        async with self._transaction(property_id) as db:
            now = self.clock()
            reservation_id = await self.payments.on_payment_confirmed(db, event_id, intent_ref, now=now)
            if reservation_id is None:
                return None
            reservation = await self._load(db, reservation_id)

            if reservation.status is ReservationStatus.PENDING_PAYMENT:
                points = points_for(reservation.total_price, self.points_per_currency_unit)
                await self.availability.promote(db, property_id, reservation_id)
                await self._cas(
                    db,
                    reservation,
                    ReservationStatus.PENDING_PAYMENT,
                    ReservationStatus.CONFIRMED,
                    "confirm",
                    now,
                    payment_status=PaymentStatus.PAID,
                    points_earned=points,
                )
                await self.ledger.credit(db, reservation_id, reservation.guest_id, points)
                confirmed = True
            elif reservation.status in (ReservationStatus.CANCELLED, ReservationStatus.PAYMENT_FAILED):
                logger.warning(
                    "Payment captured for reservation %s in state %s; refunding in full",
                    reservation_id,
                    reservation.status.value,
                )
                reservation.payment_status = PaymentStatus.PAID
                await self.payments.queue_refund(db, reservation_id, reservation.total_price)
                late_capture = True
            else:
                logger.info(
                    "Payment success for reservation %s already in state %s; nothing to do",
                    reservation_id,
                    reservation.status.value,
                )

        if confirmed:
            await self.notifier.reservation_confirmed(reservation)
        if late_capture:
            await self.settle_refund(reservation.id)
            reservation = await self.get_reservation(reservation.id)
        return reservation

    async def payment_failed(self, event_id: str, intent_ref: str) -> Reservation | None:
        """Apply a failure callback. Returns None for duplicate or superseded callbacks."""
        property_id = await self._property_of_intent(intent_ref)
        async with self._transaction(property_id) as db:
            now = self.clock()
            reservation_id = await self.payments.on_payment_failed(db, event_id, intent_ref, now=now)
            if reservation_id is None:
                return None
            reservation = await self._load(db, reservation_id)

            if reservation.status is not ReservationStatus.PENDING_PAYMENT:
                logger.info(
                    "Payment failure for reservation %s already in state %s; nothing to do",
                    reservation_id,
                    reservation.status.value,
                )
                return reservation

            await self.availability.release(db, property_id, reservation_id, now=now)
            await self._cas(
                db,
                reservation,
                ReservationStatus.PENDING_PAYMENT,
                ReservationStatus.PAYMENT_FAILED,
                "fail payment of",
                now,
                payment_status=PaymentStatus.FAILED,
            )
        return reservation

    # ------------------------------------------------------------------
    # 5 & 6. Host decisions
    # ------------------------------------------------------------------

    async def approve(self, reservation_id: uuid.UUID, host_id: uuid.UUID | None = None) -> Reservation:
        """Host accepts a cash-on-arrival request. Payment stays UNPAID until arrival."""
        property_id = await self._property_of(reservation_id)
        async with self._transaction(property_id) as db:
            now = self.clock()
            reservation = await self._load(db, reservation_id)
            self._require(reservation, {ReservationStatus.PENDING_HOST_APPROVAL}, "approve")

            points = points_for(reservation.total_price, self.points_per_currency_unit)
            await self._cas(
                db,
                reservation,
                ReservationStatus.PENDING_HOST_APPROVAL,
                ReservationStatus.CONFIRMED,
                "approve",
                now,
                points_earned=points,
            )
            await self.ledger.credit(db, reservation_id, reservation.guest_id, points)

        logger.info("Host %s approved reservation %s", host_id, reservation_id)
        await self.notifier.reservation_confirmed(reservation)
        return reservation

    async def reject(
        self, reservation_id: uuid.UUID, host_id: uuid.UUID | None = None, reason: str | None = None
    ) -> Reservation:
        """Host declines a cash-on-arrival request and frees the dates."""
        property_id = await self._property_of(reservation_id)
        async with self._transaction(property_id) as db:
            now = self.clock()
            reservation = await self._load(db, reservation_id)
            self._require(reservation, {ReservationStatus.PENDING_HOST_APPROVAL}, "reject")

            await self.availability.release(db, property_id, reservation_id, now=now)
            await self._cas(
                db,
                reservation,
                ReservationStatus.PENDING_HOST_APPROVAL,
                ReservationStatus.CANCELLED,
                "reject",
                now,
                cancelled_by=f"host:{host_id}" if host_id else "host",
                cancellation_reason=reason,
                refund_amount=Decimal("0.00"),
            )
        return reservation

    # ------------------------------------------------------------------
    # 7. Cancellation
    # ------------------------------------------------------------------

    async def cancel(
        self,
        reservation_id: uuid.UUID,
        actor: str,
        reason: str | None = None,
        expected_status: ReservationStatus | None = None,
    ) -> Reservation:
        """Cancel a reservation, refunding per policy and reversing its points.

        ``expected_status`` makes the cancel conditional on the state the caller
        last saw; a checkout abandoned while PENDING_PAYMENT must not cancel a
        stay a racing payment callback has just confirmed.
        """
        property_id = await self._property_of(reservation_id)
        refund_queued = False

        async with self._transaction(property_id) as db:
            now = self.clock()
            reservation = await self._load(db, reservation_id)
            if expected_status is not None:
                self._require(reservation, {expected_status}, "cancel")
            self._require(
                reservation,
                {
                    ReservationStatus.PENDING_PAYMENT,
                    ReservationStatus.PENDING_HOST_APPROVAL,
                    ReservationStatus.CONFIRMED,
                },
                "cancel",
            )
            prior = reservation.status

            if prior is ReservationStatus.PENDING_PAYMENT:
                refund_amount = Decimal("0.00")
            else:
                decision = cancellation_policy.evaluate(reservation, now, cutoff_hours=self.refund_cutoff_hours)
                refund_amount = decision.refund_amount
            was_paid = reservation.payment_status is PaymentStatus.PAID

            await self.availability.release(db, property_id, reservation_id, now=now)
            await self._cas(
                db,
                reservation,
                prior,
                ReservationStatus.CANCELLED,
                "cancel",
                now,
                cancelled_by=actor,
                cancellation_reason=reason,
                refund_amount=refund_amount,
            )
            await self.ledger.reverse(db, reservation_id)

            if was_paid and refund_amount > 0:
                await self.payments.queue_refund(db, reservation_id, refund_amount)
                refund_queued = True

        logger.info("Reservation %s cancelled by %s (refund=%s)", reservation_id, actor, refund_amount)
        if refund_queued:
            await self.settle_refund(reservation_id)
            reservation = await self.get_reservation(reservation_id)
        return reservation

    async def settle_refund(self, reservation_id: uuid.UUID) -> RefundResult | None:
        """Push a queued refund to the gateway. Returns None if nothing settled this time.

        Runs outside the property lock; concurrent settles of the same refund
        share one gateway idempotency key.
        """
        async with self._session_factory() as db, db.begin():
            refund = await self.payments.get_refund(db, reservation_id)
            if refund is None:
                return None
            try:
                result = await self.payments.refund(db, reservation_id, refund.amount)
            except PaymentGatewayError as e:
                # Keep the recorded attempt; the refund sweep retries
                logger.warning("Refund for reservation %s deferred: %s", reservation_id, e)
                return None

            if result is RefundResult.OK:
                await db.execute(
                    update(Reservation)
                    .where(Reservation.id == reservation_id)
                    .values(payment_status=PaymentStatus.REFUNDED)
                    .execution_options(synchronize_session=False)
                )
        return result

    # ------------------------------------------------------------------
    # 8. Completion
    # ------------------------------------------------------------------

    async def complete(self, reservation_id: uuid.UUID) -> Reservation:
        """Close out a confirmed stay once its checkout day has arrived."""
        property_id = await self._property_of(reservation_id)
        async with self._transaction(property_id) as db:
            now = self.clock()
            reservation = await self._load(db, reservation_id)
            self._require(reservation, {ReservationStatus.CONFIRMED}, "complete")
            if reservation.check_out > now.date():
                raise InvalidTransition(reservation.status.value, "complete", "Stay has not ended yet")

            await self._cas(
                db,
                reservation,
                ReservationStatus.CONFIRMED,
                ReservationStatus.COMPLETED,
                "complete",
                now,
            )
        return reservation

    # ------------------------------------------------------------------
    # Sweeps
    # ------------------------------------------------------------------

    async def sweep_expired_holds(self) -> int:
        """Fail every PENDING_PAYMENT reservation whose hold has lapsed."""
        now = self.clock()
        async with self._session_factory() as db:
            result = await db.execute(
                select(AvailabilitySlot.reservation_id, Reservation.status)
                .outerjoin(Reservation, Reservation.id == AvailabilitySlot.reservation_id)
                .where(
                    AvailabilitySlot.released_at.is_(None),
                    AvailabilitySlot.expires_at.is_not(None),
                    AvailabilitySlot.expires_at <= now,
                )
            )
            rows = result.all()

        expired = 0
        for reservation_id, status in rows:
            if status is None:
                logger.warning("Hold for unknown reservation %s; skipping", reservation_id)
                continue
            if status is not ReservationStatus.PENDING_PAYMENT:
                logger.warning("Hold of reservation %s still open in state %s; skipping", reservation_id, status.value)
                continue
            try:
                if await self.expire_hold(reservation_id) is not None:
                    expired += 1
            except ReservationError as e:
                logger.info("Hold expiry of %s skipped: %s", reservation_id, e)
            except Exception:
                logger.exception("Unexpected error expiring hold of reservation %s", reservation_id)

        if expired:
            logger.info("Hold sweep expired %d reservations", expired)
        return expired

    async def sweep_completions(self) -> int:
        """Complete every CONFIRMED reservation whose checkout day has arrived."""
        today = self.clock().date()
        async with self._session_factory() as db:
            result = await db.execute(
                select(Reservation.id).where(
                    Reservation.status == ReservationStatus.CONFIRMED,
                    Reservation.check_out <= today,
                )
            )
            reservation_ids = list(result.scalars().all())

        completed = 0
        for reservation_id in reservation_ids:
            try:
                await self.complete(reservation_id)
                completed += 1
            except ReservationError as e:
                logger.info("Completion of %s skipped: %s", reservation_id, e)
            except Exception:
                logger.exception("Unexpected error completing reservation %s", reservation_id)

        if completed:
            logger.info("Completion sweep closed %d reservations", completed)
        return completed

    async def sweep_pending_refunds(self) -> int:
        """Retry refunds the gateway has not acknowledged yet."""
        async with self._session_factory() as db:
            pending = [refund.reservation_id for refund in await self.payments.pending_refunds(db)]

        settled = 0
        for reservation_id in pending:
            try:
                if await self.settle_refund(reservation_id) is RefundResult.OK:
                    settled += 1
            except ReservationError as e:
                logger.warning("Refund retry for %s skipped: %s", reservation_id, e)
            except Exception:
                logger.exception("Unexpected error settling refund of reservation %s", reservation_id)
        return settled

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_reservation(self, reservation_id: uuid.UUID) -> Reservation:
        async with self._session_factory() as db:
            return await self._load(db, reservation_id)

    async def list_reservations(
        self,
        *,
        guest_id: uuid.UUID | None = None,
        property_id: uuid.UUID | None = None,
        status: ReservationStatus | None = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Reservation], int]:
        query = select(Reservation)
        count_query = select(func.count()).select_from(Reservation)
        if guest_id is not None:
            query = query.where(Reservation.guest_id == guest_id)
            count_query = count_query.where(Reservation.guest_id == guest_id)
        if property_id is not None:
            query = query.where(Reservation.property_id == property_id)
            count_query = count_query.where(Reservation.property_id == property_id)
        if status is not None:
            query = query.where(Reservation.status == status)
            count_query = count_query.where(Reservation.status == status)

        async with self._session_factory() as db:
            total = (await db.execute(count_query)).scalar_one()
            result = await db.execute(query.order_by(Reservation.created_at.desc()).offset(skip).limit(limit))
            items = list(result.scalars().all())
        return items, total

    async def occupied(self, property_id: uuid.UUID, start: date, end: date) -> list[AvailabilitySlot]:
        if start >= end:
            raise InvalidRange("end must be after start")
        async with self._session_factory() as db:
            return await self.availability.occupied(db, property_id, start, end, now=self.clock())

    async def reward_balance(self, user_id: uuid.UUID) -> tuple[int, list[RewardTransaction]]:
        async with self._session_factory() as db:
            balance = await self.ledger.balance(db, user_id)
            history = await self.ledger.history(db, user_id)
        return balance, history
