"""Payment gateway boundary — what the orchestrator needs from a processor."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

# ISO-4217 currencies without a minor unit
ZERO_DECIMAL_CURRENCIES = frozenset(
    {"bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga", "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf"}
)


def to_minor_units(amount: Decimal, currency: str) -> int:
    """Convert a currency amount to the integer the gateway charges (e.g. cents)."""
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class GatewayRefund:
    """Result of a refund call the gateway answered (transient errors raise instead)."""

    succeeded: bool
    ref: str | None = None
    error: str | None = None


class PaymentGateway(Protocol):
    async def create_intent(
        self,
        *,
        idempotency_key: str,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
    ) -> str:
        """Create a payment intent and return its reference.

        Raises:
            PaymentGatewayError: on timeouts or any failure to get an answer.
        """
        ...

    async def refund(
        self,
        *,
        idempotency_key: str,
        intent_ref: str,
        amount: Decimal,
        currency: str,
    ) -> GatewayRefund:
        """Refund ``amount`` of the captured intent.

        Raises:
            PaymentGatewayError: on timeouts or transient failures.
        """
        ...
