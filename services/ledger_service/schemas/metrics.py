"""Campaign metrics schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class RecomputeMetricsRequest(BaseModel):
    campaign_id: uuid.UUID
    creator_id: str


class CampaignMetricsResponse(BaseModel):
    id: uuid.UUID
    campaign_id: uuid.UUID
    creator_id: str
    verified_views: int
    verified_clicks: int
    verified_conversions: int
    earned_amount: int
    paid_amount: int
    last_computed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
