"""Property availability API router (read-only)."""

from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query

from reservation_engine.api.deps import get_state_machine
from reservation_engine.api.errors import to_http_exception
from reservation_engine.errors import ReservationError
from reservation_engine.schemas.reservation import AvailabilityResponse
from reservation_engine.services.reservation_machine import ReservationStateMachine

router = APIRouter(prefix="/api/v1/properties", tags=["availability"])


@router.get(
    "/{property_id}/availability",
    response_model=AvailabilityResponse,
    summary="List occupied date ranges of a property",
)
async def get_availability(
    property_id: uuid.UUID,
    start: date = Query(..., description="Window start (inclusive)"),
    end: date = Query(..., description="Window end (exclusive)"),
    machine: ReservationStateMachine = Depends(get_state_machine),
) -> dict:
    """Return the ranges held by confirmed stays and unexpired payment holds."""
    try:
        slots = await machine.occupied(property_id, start, end)
    except ReservationError as e:
        raise to_http_exception(e) from e
    return {"property_id": property_id, "start": start, "end": end, "occupied": slots}
