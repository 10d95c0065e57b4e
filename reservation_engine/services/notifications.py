"""Host notification events — emitted after a transition commits."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from reservation_engine.config import settings
from reservation_engine.models.reservation import Reservation

logger = logging.getLogger(__name__)


class HostNotifier(Protocol):
    async def approval_requested(self, reservation: Reservation) -> None: ...

    async def reservation_confirmed(self, reservation: Reservation) -> None: ...


def _payload(event: str, reservation: Reservation) -> dict:
    return {
        "event": event,
        "reservation_id": str(reservation.id),
        "property_id": str(reservation.property_id),
        "check_in": reservation.check_in.isoformat(),
        "check_out": reservation.check_out.isoformat(),
        "guest_count": reservation.guest_count,
        "payment_method": reservation.payment_method.value,
    }


class LoggingHostNotifier:
    """Default notifier when no host notification service is configured."""

    async def approval_requested(self, reservation: Reservation) -> None:
        logger.info("approvalRequested: reservation %s on property %s", reservation.id, reservation.property_id)

    async def reservation_confirmed(self, reservation: Reservation) -> None:
        logger.info("reservationConfirmed: reservation %s on property %s", reservation.id, reservation.property_id)


class WebhookHostNotifier:
    """POSTs JSON events to the host notification service.

    Delivery failures are logged and dropped; they never undo a transition.
    """

    def __init__(self, url: str, timeout: float = 5.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def _send(self, payload: dict) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Host notification %s for %s failed: %s", payload["event"], payload["reservation_id"], e)
            return
        logger.info("Host notification %s sent for %s", payload["event"], payload["reservation_id"])

    async def approval_requested(self, reservation: Reservation) -> None:
        await self._send(_payload("approval_requested", reservation))

    async def reservation_confirmed(self, reservation: Reservation) -> None:
        await self._send(_payload("reservation_confirmed", reservation))


def get_host_notifier() -> HostNotifier:
    """Build the notifier configured in settings."""
    if settings.host_notification_url:
        return WebhookHostNotifier(settings.host_notification_url, timeout=settings.host_notification_timeout_seconds)
    return LoggingHostNotifier()
