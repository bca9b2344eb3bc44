"""Fraud flag schemas and the evidence union stored on each flag."""

import uuid
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from services.ledger_service.models.enums import (
    FraudFlagStatus,
    FraudFlagType,
    Platform,
)


class ClickAnomalyEvidence(BaseModel):
    kind: Literal["click_anomaly"] = "click_anomaly"
    tracking_link_id: uuid.UUID
    slug: str
    clicks_last_hour: int


class IpAbuseEvidence(BaseModel):
    kind: Literal["ip_abuse"] = "ip_abuse"
    tracking_link_id: uuid.UUID
    ip: str
    clicks_last_hour: int


class BotDetectedEvidence(BaseModel):
    kind: Literal["bot_detected"] = "bot_detected"
    tracking_link_id: uuid.UUID
    total_clicks: int
    fraud_clicks: int
    fraud_ratio: float


class ViewSpikeEvidence(BaseModel):
    kind: Literal["view_spike"] = "view_spike"
    platform: Platform
    post_url: str
    previous_views: int
    current_views: int
    growth_percent: float


class ConversionMismatchEvidence(BaseModel):
    kind: Literal["conversion_mismatch"] = "conversion_mismatch"
    verified_clicks: int
    verified_conversions: int
    conversion_rate: float


FraudEvidence = Annotated[
    Union[
        ClickAnomalyEvidence,
        IpAbuseEvidence,
        BotDetectedEvidence,
        ViewSpikeEvidence,
        ConversionMismatchEvidence,
    ],
    Field(discriminator="kind"),
]


class FraudFlagResponse(BaseModel):
    id: uuid.UUID
    flag_type: FraudFlagType
    status: FraudFlagStatus
    severity: int
    description: str
    evidence: FraudEvidence
    campaign_id: Optional[uuid.UUID] = None
    creator_id: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolution_note: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FraudFlagListResponse(BaseModel):
    flags: list[FraudFlagResponse]
    total: int
    skip: int
    limit: int


class ResolveFraudFlagRequest(BaseModel):
    status: Literal["investigating", "confirmed", "dismissed"]
    note: Optional[str] = Field(None, max_length=2000)
