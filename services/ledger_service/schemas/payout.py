"""Withdrawal and payout admin schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.ledger_service.models.enums import PayoutApprovalStatus, PayoutStatus


class WithdrawalRequest(BaseModel):
    amount: int = Field(..., gt=0, description="Amount in paise")
    payment_method_id: uuid.UUID
    idempotency_key: Optional[str] = Field(None, max_length=128)


class PayoutResponse(BaseModel):
    id: uuid.UUID
    wallet_id: uuid.UUID
    owner_id: str
    payment_method_id: Optional[uuid.UUID] = None
    amount: int
    tds_amount: int
    net_amount: int
    status: PayoutStatus
    approval_status: PayoutApprovalStatus
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    external_transfer_id: Optional[str] = None
    failure_reason: Optional[str] = None
    processed_at: Optional[datetime] = None
    reversed_by: Optional[str] = None
    reversed_at: Optional[datetime] = None
    reversal_reason: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PayoutListResponse(BaseModel):
    payouts: list[PayoutResponse]
    total: int
    skip: int
    limit: int


class ReversePayoutRequest(BaseModel):
    reason: str = Field(..., min_length=3, max_length=500)


class BatchApproveRequest(BaseModel):
    payout_ids: list[uuid.UUID] = Field(..., min_length=1, max_length=100)


class BatchApproveResponse(BaseModel):
    approved: list[uuid.UUID]
    skipped: list[uuid.UUID]
