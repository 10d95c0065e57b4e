"""Reward points API router — read-only view of the ledger."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from reservation_engine.api.deps import get_state_machine
from reservation_engine.schemas.reward import RewardBalanceResponse
from reservation_engine.services.reservation_machine import ReservationStateMachine

router = APIRouter(prefix="/api/v1/rewards", tags=["rewards"])


@router.get(
    "/{user_id}",
    response_model=RewardBalanceResponse,
    summary="Get a user's points balance and history",
)
async def get_rewards(
    user_id: uuid.UUID,
    machine: ReservationStateMachine = Depends(get_state_machine),
) -> dict:
    balance, transactions = await machine.reward_balance(user_id)
    return {"user_id": user_id, "balance": balance, "transactions": transactions}
