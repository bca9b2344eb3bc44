"""Escrow request/response schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from services.ledger_service.models.enums import EscrowStatus


class EscrowLockRequest(BaseModel):
    campaign_id: uuid.UUID
    amount: int = Field(..., gt=0, description="Amount in paise")


class ReleaseItem(BaseModel):
    creator_id: str
    amount: int = Field(..., gt=0, description="Amount in paise")


class EscrowReleaseRequest(BaseModel):
    releases: list[ReleaseItem] = Field(..., min_length=1)

    @field_validator("releases")
    @classmethod
    def unique_creators(cls, value: list[ReleaseItem]) -> list[ReleaseItem]:
        creators = [item.creator_id for item in value]
        if len(creators) != len(set(creators)):
            raise ValueError("Each creator may appear only once per release")
        return value


class EscrowResponse(BaseModel):
    id: uuid.UUID
    campaign_id: uuid.UUID
    brand_wallet_id: uuid.UUID
    total_amount: int
    released_amount: int
    remaining_amount: int
    commission_amount: int
    status: EscrowStatus
    locked_at: datetime
    released_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
