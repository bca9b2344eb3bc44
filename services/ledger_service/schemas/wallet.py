"""Wallet and ledger history schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from services.ledger_service.models.enums import (
    TransactionStatus,
    TransactionType,
    WalletType,
)


class WalletResponse(BaseModel):
    id: uuid.UUID
    owner_id: str
    owner_type: WalletType
    available_balance: int
    pending_balance: int
    escrow_balance: int
    total_balance: int
    lifetime_funded: int
    lifetime_earnings: int
    total_withdrawn: int
    currency: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WalletCreateRequest(BaseModel):
    owner_type: WalletType


class TransactionResponse(BaseModel):
    id: uuid.UUID
    wallet_id: uuid.UUID
    transaction_type: TransactionType
    status: TransactionStatus
    amount: int
    available_delta: int
    pending_delta: int
    escrow_delta: int
    description: str
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    initiated_by: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    total: int
    skip: int
    limit: int


class BucketDrift(BaseModel):
    bucket: str
    stored: int
    from_ledger: int
    difference: int


class WalletReconciliationResponse(BaseModel):
    """Stored balances compared with the sum of ledger deltas."""

    wallet_id: uuid.UUID
    is_consistent: bool
    drift: list[BucketDrift]
    transaction_count: int
