"""Sweep trigger endpoints — invoked by the external scheduler.

Each sweep is idempotent and safe to call redundantly or concurrently.
"""

from fastapi import APIRouter, Depends

from reservation_engine.api.deps import get_state_machine
from reservation_engine.services.reservation_machine import ReservationStateMachine

router = APIRouter(prefix="/api/v1/sweeps", tags=["sweeps"])


@router.post("/holds", summary="Fail reservations whose payment hold expired")
async def sweep_holds(machine: ReservationStateMachine = Depends(get_state_machine)) -> dict[str, int]:
    return {"expired": await machine.sweep_expired_holds()}


@router.post("/completions", summary="Complete stays whose checkout day has arrived")
async def sweep_completions(machine: ReservationStateMachine = Depends(get_state_machine)) -> dict[str, int]:
    return {"completed": await machine.sweep_completions()}


@router.post("/refunds", summary="Retry refunds not yet acknowledged by the gateway")
async def sweep_refunds(machine: ReservationStateMachine = Depends(get_state_machine)) -> dict[str, int]:
    return {"settled": await machine.sweep_pending_refunds()}
