"""Async Stripe adapter — PaymentIntents for online stays, Refunds for cancellations."""

import logging
from decimal import Decimal

import stripe
from stripe import StripeClient

from reservation_engine.config import settings
from reservation_engine.errors import PaymentGatewayError
from reservation_engine.payments.gateway import GatewayRefund, to_minor_units

logger = logging.getLogger(__name__)

# Errors where Stripe gave no definitive answer; retrying with the same key is safe
_TRANSIENT_ERRORS = (stripe.APIConnectionError, stripe.RateLimitError, stripe.APIError)


def get_stripe_client() -> StripeClient:
    """Create a StripeClient with async HTTP support and a bounded timeout."""
    return StripeClient(
        settings.stripe_secret_key,
        http_client=stripe.HTTPXClient(timeout=settings.payment_gateway_timeout_seconds),
    )


class StripePaymentGateway:
    """``PaymentGateway`` implementation on top of the Stripe API."""

    def __init__(self, client: StripeClient | None = None) -> None:
        self._client = client

    @property
    def client(self) -> StripeClient:
        if self._client is None:
            self._client = get_stripe_client()
        return self._client

    async def create_intent(
        self,
        *,
        idempotency_key: str,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
    ) -> str:
        logger.info("Creating payment intent %s for %s %s", idempotency_key, amount, currency)
        try:
            intent = await self.client.v1.payment_intents.create_async(
                params={
                    "amount": to_minor_units(amount, currency),
                    "currency": currency.lower(),
                    "metadata": metadata,
                    "automatic_payment_methods": {"enabled": True},
                },
                options={"idempotency_key": idempotency_key},
            )
        except stripe.StripeError as e:
            logger.warning("Stripe intent creation failed for %s: %s", idempotency_key, e)
            raise PaymentGatewayError(f"Payment intent creation failed: {e}") from e

        logger.info("Created payment intent %s (%s)", intent.id, idempotency_key)
        return intent.id

    async def refund(
        self,
        *,
        idempotency_key: str,
        intent_ref: str,
        amount: Decimal,
        currency: str,
    ) -> GatewayRefund:
        logger.info("Refunding %s %s on intent %s", amount, currency, intent_ref)
        try:
            refund = await self.client.v1.refunds.create_async(
                params={
                    "payment_intent": intent_ref,
                    "amount": to_minor_units(amount, currency),
                },
                options={"idempotency_key": idempotency_key},
            )
        except _TRANSIENT_ERRORS as e:
            logger.warning("Transient Stripe error refunding %s: %s", intent_ref, e)
            raise PaymentGatewayError(f"Refund call failed: {e}") from e
        except stripe.StripeError as e:
            logger.error("Stripe rejected refund for %s: %s", intent_ref, e)
            return GatewayRefund(succeeded=False, error=str(e))

        if refund.status in ("failed", "canceled"):
            return GatewayRefund(succeeded=False, ref=refund.id, error=getattr(refund, "failure_reason", None))
        return GatewayRefund(succeeded=True, ref=refund.id)


def construct_webhook_event(payload: bytes, sig_header: str) -> stripe.Event:
    """Verify and construct a Stripe webhook event (synchronous)."""
    client = StripeClient(settings.stripe_secret_key)
    return client.construct_event(payload, sig_header, settings.stripe_webhook_secret)
