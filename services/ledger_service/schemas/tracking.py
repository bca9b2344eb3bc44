"""Tracking ingest schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ConversionCreate(BaseModel):
    """Sale reported by a brand's store for a promo code."""

    promo_code: str = Field(..., min_length=1, max_length=64)
    order_reference: str = Field(..., min_length=1, max_length=128)
    order_amount: int = Field(0, ge=0, description="Order value in paise")


class ConversionResponse(BaseModel):
    id: uuid.UUID
    campaign_id: uuid.UUID
    creator_id: str
    order_reference: str
    order_amount: int
    is_verified: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
