"""Shared API dependencies — single import point for all routers.

The state machine is built once at startup and stored on ``app.state``::

    from reservation_engine.api.deps import get_state_machine
"""

from fastapi import Request

from reservation_engine.database import get_db
from reservation_engine.services.reservation_machine import ReservationStateMachine


def get_state_machine(request: Request) -> ReservationStateMachine:
    """Return the application's reservation state machine."""
    return request.app.state.reservations


__all__ = [
    "get_db",
    "get_state_machine",
]
