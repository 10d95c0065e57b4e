"""Stripe webhook event handlers — feed payment outcomes into the state machine."""

import logging

import stripe

from reservation_engine.errors import InvalidTransition, NotFound
from reservation_engine.services.reservation_machine import ReservationStateMachine

logger = logging.getLogger(__name__)


async def handle_payment_intent_succeeded(machine: ReservationStateMachine, event: stripe.Event) -> str:
    """Handle payment_intent.succeeded: confirm the reservation once."""
    intent = event.data.object
    try:
        reservation = await machine.payment_confirmed(event.id, intent.id)
    except NotFound:
        logger.warning("payment_intent.succeeded for unknown intent %s (event %s)", intent.id, event.id)
        return "ignored"
    except InvalidTransition as e:
        logger.warning("payment_intent.succeeded for %s not applied: %s", intent.id, e)
        return "ignored"

    if reservation is None:
        return "duplicate"
    logger.info("Intent %s succeeded: reservation %s is %s", intent.id, reservation.id, reservation.status.value)
    return "processed"


async def handle_payment_intent_failed(machine: ReservationStateMachine, event: stripe.Event) -> str:
    """Handle payment_intent.payment_failed: fail the reservation and free its dates."""
    intent = event.data.object
    try:
        reservation = await machine.payment_failed(event.id, intent.id)
    except NotFound:
        logger.warning("payment_intent.payment_failed for unknown intent %s (event %s)", intent.id, event.id)
        return "ignored"
    except InvalidTransition as e:
        logger.warning("payment_intent.payment_failed for %s not applied: %s", intent.id, e)
        return "ignored"

    if reservation is None:
        return "duplicate"
    logger.info("Intent %s failed: reservation %s is %s", intent.id, reservation.id, reservation.status.value)
    return "processed"
