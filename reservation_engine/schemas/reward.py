"""Pydantic v2 response schemas for the reward points display."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from reservation_engine.models.reward import RewardKind


class RewardTransactionResponse(BaseModel):
    id: uuid.UUID
    reservation_id: uuid.UUID | None = None
    points: int
    kind: RewardKind
    description: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RewardBalanceResponse(BaseModel):
    """A user's point balance and recent ledger entries."""

    user_id: uuid.UUID
    balance: int
    transactions: list[RewardTransactionResponse]
