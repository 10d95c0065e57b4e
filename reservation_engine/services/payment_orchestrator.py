"""Payment orchestrator — idempotent façade over the external payment gateway.

Idempotency is anchored in local tables rather than trusted to the gateway:

- ``payment_intents``: one intent per reservation; its first recorded outcome
  is authoritative, except that a capture supersedes an earlier decline.
- ``processed_payment_events``: gateway event ids already consumed, so an
  at-least-once webhook delivery is acted on once.
- ``refunds``: the refund outbox, settled at most once per reservation.

The gateway calls also carry idempotency keys derived from the reservation id,
so a retry after a timeout never creates a second charge or refund.
"""

from __future__ import annotations

import enum
import logging
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.errors import NotFound, PaymentGatewayError
from reservation_engine.models.payment import (
    PaymentIntent,
    PaymentOutcome,
    ProcessedPaymentEvent,
    Refund,
    RefundStatus,
)
from reservation_engine.payments.gateway import PaymentGateway

logger = logging.getLogger(__name__)


class RefundResult(str, enum.Enum):
    OK = "OK"
    FAILED = "FAILED"


def intent_idempotency_key(reservation_id: uuid.UUID) -> str:
    return f"reservation-{reservation_id}"


def refund_idempotency_key(reservation_id: uuid.UUID) -> str:
    return f"refund-{reservation_id}"


class PaymentOrchestrator:
    """All methods run inside the caller's session; the caller commits."""

    def __init__(self, gateway: PaymentGateway) -> None:
        self.gateway = gateway

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_intent(self, db: AsyncSession, reservation_id: uuid.UUID) -> PaymentIntent | None:
        result = await db.execute(select(PaymentIntent).where(PaymentIntent.reservation_id == reservation_id))
        return result.scalar_one_or_none()

    async def find_intent(self, db: AsyncSession, intent_ref: str, *, for_update: bool = False) -> PaymentIntent | None:
        stmt = select(PaymentIntent).where(PaymentIntent.intent_ref == intent_ref)
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_refund(self, db: AsyncSession, reservation_id: uuid.UUID) -> Refund | None:
        result = await db.execute(select(Refund).where(Refund.reservation_id == reservation_id))
        return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    async def create_intent(
        self, db: AsyncSession, reservation_id: uuid.UUID, amount: Decimal, currency: str
    ) -> str:
        """Return the reservation's intent ref, creating it at the gateway on first call.

        Raises:
            PaymentGatewayError: the gateway did not answer; retry with the same reservation.
        """
        existing = await self.get_intent(db, reservation_id)
        if existing is not None:
            return existing.intent_ref

        intent_ref = await self.gateway.create_intent(
            idempotency_key=intent_idempotency_key(reservation_id),
            amount=amount,
            currency=currency,
            metadata={"reservation_id": str(reservation_id)},
        )
        db.add(
            PaymentIntent(
                reservation_id=reservation_id,
                intent_ref=intent_ref,
                amount=amount,
                currency=currency,
            )
        )
        await db.flush()
        logger.info("Payment intent %s opened for reservation %s", intent_ref, reservation_id)
        return intent_ref

    # ------------------------------------------------------------------
    # Gateway callbacks
    # ------------------------------------------------------------------

    async def _record_outcome(
        self,
        db: AsyncSession,
        event_id: str,
        event_type: str,
        intent_ref: str,
        outcome: PaymentOutcome,
        now: datetime,
    ) -> uuid.UUID | None:
        intent = await self.find_intent(db, intent_ref, for_update=True)
        if intent is None:
            raise NotFound(f"Unknown payment intent {intent_ref}")

        seen = await db.execute(select(ProcessedPaymentEvent).where(ProcessedPaymentEvent.event_id == event_id))
        if seen.scalar_one_or_none() is not None:
            logger.info("Duplicate payment event %s for intent %s acknowledged", event_id, intent_ref)
            return None

        db.add(ProcessedPaymentEvent(event_id=event_id, intent_ref=intent_ref, event_type=event_type))

        if intent.outcome is PaymentOutcome.FAILED and outcome is PaymentOutcome.SUCCEEDED:
            # A declined intent can still be captured when the guest retries it
            logger.warning("Intent %s captured after a recorded failure (event %s)", intent_ref, event_id)
        elif intent.outcome is not None:
            if intent.outcome is not outcome:
                logger.warning(
                    "Intent %s already resolved as %s; ignoring later %s (event %s)",
                    intent_ref,
                    intent.outcome.value,
                    outcome.value,
                    event_id,
                )
            await db.flush()
            return None

        intent.outcome = outcome
        intent.outcome_at = now
        await db.flush()
        return intent.reservation_id

    async def on_payment_confirmed(
        self, db: AsyncSession, event_id: str, intent_ref: str, *, now: datetime
    ) -> uuid.UUID | None:
        """Record a success callback. Returns the reservation to act on, or None if already handled.

        A success after a recorded failure is returned too: the money was
        captured and the caller must refund it.
        """
        return await self._record_outcome(
            db, event_id, "payment_intent.succeeded", intent_ref, PaymentOutcome.SUCCEEDED, now
        )

    async def on_payment_failed(
        self, db: AsyncSession, event_id: str, intent_ref: str, *, now: datetime
    ) -> uuid.UUID | None:
        """Record a failure callback. Returns the reservation to fail, or None if already handled."""
        return await self._record_outcome(
            db, event_id, "payment_intent.payment_failed", intent_ref, PaymentOutcome.FAILED, now
        )

    # ------------------------------------------------------------------
    # Refunds
    # ------------------------------------------------------------------

    async def queue_refund(self, db: AsyncSession, reservation_id: uuid.UUID, amount: Decimal) -> Refund:
        """Write the refund outbox row; the first queued amount wins."""
        existing = await self.get_refund(db, reservation_id)
        if existing is not None:
            return existing
        refund = Refund(reservation_id=reservation_id, amount=amount, status=RefundStatus.PENDING, attempts=0)
        db.add(refund)
        await db.flush()
        logger.info("Queued refund of %s for reservation %s", amount, reservation_id)
        return refund

    async def refund(self, db: AsyncSession, reservation_id: uuid.UUID, amount: Decimal) -> RefundResult:
        """Issue the reservation's refund at most once.

        A reservation already refunded returns OK without calling the gateway.

        Raises:
            NotFound: the reservation has no payment intent to refund against.
            PaymentGatewayError: no answer from the gateway; the attempt is
                recorded on the outbox row and the call may be retried.
        """
        row = await self.queue_refund(db, reservation_id, amount)
        if row.status is RefundStatus.SUCCEEDED:
            return RefundResult.OK
        if row.status is RefundStatus.FAILED:
            return RefundResult.FAILED

        intent = await self.get_intent(db, reservation_id)
        if intent is None:
            raise NotFound(f"No payment intent for reservation {reservation_id}")

        row.attempts += 1
        try:
            result = await self.gateway.refund(
                idempotency_key=refund_idempotency_key(reservation_id),
                intent_ref=intent.intent_ref,
                amount=row.amount,
                currency=intent.currency,
            )
        except PaymentGatewayError as e:
            row.last_error = str(e)
            await db.flush()
            raise

        row.gateway_ref = result.ref
        if result.succeeded:
            row.status = RefundStatus.SUCCEEDED
            row.last_error = None
            await db.flush()
            logger.info("Refund of %s settled for reservation %s", row.amount, reservation_id)
            return RefundResult.OK

        row.status = RefundStatus.FAILED
        row.last_error = result.error
        await db.flush()
        logger.error("Gateway declined refund for reservation %s: %s", reservation_id, result.error)
        return RefundResult.FAILED

    async def pending_refunds(self, db: AsyncSession, *, limit: int = 100) -> list[Refund]:
        result = await db.execute(
            select(Refund).where(Refund.status == RefundStatus.PENDING).order_by(Refund.created_at).limit(limit)
        )
        return list(result.scalars().all())
