"""Optional Stripe integration tests — hit the real Stripe test mode API.

Auto-skipped when STRIPE_SECRET_KEY is not set (e.g., in CI).
"""

import os
import uuid
from decimal import Decimal

import pytest

from reservation_engine.payments.stripe_client import StripePaymentGateway

SKIP_REASON = "STRIPE_SECRET_KEY not set — skipping real Stripe integration tests"
pytestmark = [
    pytest.mark.asyncio,
    pytest.mark.integration,
    pytest.mark.skipif(not os.getenv("STRIPE_SECRET_KEY"), reason=SKIP_REASON),
]


class TestStripeIntegration:
    async def test_create_intent_is_idempotent(self):
        """The same idempotency key returns the same PaymentIntent."""
        gateway = StripePaymentGateway()
        key = f"reservation-{uuid.uuid4()}"

        first = await gateway.create_intent(
            idempotency_key=key, amount=Decimal("12.34"), currency="usd", metadata={"test": "true"}
        )
        second = await gateway.create_intent(
            idempotency_key=key, amount=Decimal("12.34"), currency="usd", metadata={"test": "true"}
        )

        assert first.startswith("pi_")
        assert first == second
