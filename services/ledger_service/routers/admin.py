"""Admin endpoints: payout approval, fraud review, metrics and ledger checks."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.common.rate_limit import admin_limit
from libs.db.session import get_async_db
from services.ledger_service.models import (
    FraudFlag,
    FraudFlagStatus,
    FraudFlagType,
    Payout,
    PayoutApprovalStatus,
)
from services.ledger_service.schemas import (
    BatchApproveRequest,
    BatchApproveResponse,
    CampaignMetricsResponse,
    FraudFlagListResponse,
    FraudFlagResponse,
    PayoutListResponse,
    PayoutResponse,
    RecomputeMetricsRequest,
    ResolveFraudFlagRequest,
    ReversePayoutRequest,
    WalletReconciliationResponse,
)
from services.ledger_service.services.fraud_detection import resolve_flag
from services.ledger_service.services.metrics_ops import recompute_metrics
from services.ledger_service.services.payout_ops import (
    approve_payout,
    batch_approve_payouts,
    reject_payout,
    retry_payout,
    reverse_withdrawal,
)
from services.ledger_service.services.wallet_ops import reconcile_wallet
from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Payouts
# ---------------------------------------------------------------------------


@router.get("/payouts/pending", response_model=PayoutListResponse)
async def list_pending_payouts(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Payouts awaiting approval, oldest first."""
    pending = Payout.approval_status == PayoutApprovalStatus.PENDING_APPROVAL
    total = (
        await db.execute(select(func.count()).select_from(Payout).where(pending))
    ).scalar() or 0
    result = await db.execute(
        select(Payout).where(pending).order_by(Payout.created_at).offset(skip).limit(limit)
    )
    payouts = result.scalars().all()

    return PayoutListResponse(
        payouts=[PayoutResponse.model_validate(p) for p in payouts],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("/payouts/batch-approve", response_model=BatchApproveResponse)
@admin_limit
async def batch_approve(
    request: Request,
    payload: BatchApproveRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    approved, skipped = await batch_approve_payouts(
        db, payout_ids=payload.payout_ids, approved_by=admin.user_id
    )
    return BatchApproveResponse(approved=approved, skipped=skipped)


@router.post("/payouts/{payout_id}/approve", response_model=PayoutResponse)
async def approve(
    payout_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Approve a payout so the executor sends it."""
    return await approve_payout(db, payout_id=payout_id, approved_by=admin.user_id)


@router.post("/payouts/{payout_id}/reject", response_model=PayoutResponse)
async def reject(
    payout_id: uuid.UUID,
    payload: ReversePayoutRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Reject a pending payout and credit the amount back."""
    return await reject_payout(
        db, payout_id=payout_id, rejected_by=admin.user_id, reason=payload.reason
    )


@router.post("/payouts/{payout_id}/reverse", response_model=PayoutResponse)
async def reverse(
    payout_id: uuid.UUID,
    payload: ReversePayoutRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Credit a withdrawal back to the creator.

    Valid before approval, and after the executor marked the payout FAILED.
    """
    return await reverse_withdrawal(
        db, payout_id=payout_id, reversed_by=admin.user_id, reason=payload.reason
    )


@router.post("/payouts/{payout_id}/retry", response_model=PayoutResponse)
async def retry(
    payout_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Re-queue a failed payout for the next executor run."""
    return await retry_payout(db, payout_id=payout_id, retried_by=admin.user_id)


# ---------------------------------------------------------------------------
# Fraud review
# ---------------------------------------------------------------------------


@router.get("/fraud-flags", response_model=FraudFlagListResponse)
async def list_fraud_flags(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    flag_status: Optional[FraudFlagStatus] = Query(None, alias="status"),
    flag_type: Optional[FraudFlagType] = None,
    campaign_id: Optional[uuid.UUID] = None,
    min_severity: Optional[int] = Query(None, ge=1, le=5),
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """List fraud flags, most severe first."""
    query = select(FraudFlag)
    count_query = select(func.count()).select_from(FraudFlag)

    if flag_status:
        query = query.where(FraudFlag.status == flag_status)
        count_query = count_query.where(FraudFlag.status == flag_status)
    if flag_type:
        query = query.where(FraudFlag.flag_type == flag_type)
        count_query = count_query.where(FraudFlag.flag_type == flag_type)
    if campaign_id:
        query = query.where(FraudFlag.campaign_id == campaign_id)
        count_query = count_query.where(FraudFlag.campaign_id == campaign_id)
    if min_severity:
        query = query.where(FraudFlag.severity >= min_severity)
        count_query = count_query.where(FraudFlag.severity >= min_severity)

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(
        query.order_by(desc(FraudFlag.severity), desc(FraudFlag.created_at))
        .offset(skip)
        .limit(limit)
    )
    flags = result.scalars().all()

    return FraudFlagListResponse(
        flags=[FraudFlagResponse.model_validate(f) for f in flags],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("/fraud-flags/{flag_id}/resolve", response_model=FraudFlagResponse)
async def resolve_fraud_flag(
    flag_id: uuid.UUID,
    payload: ResolveFraudFlagRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await resolve_flag(
        db,
        flag_id=flag_id,
        status=FraudFlagStatus(payload.status),
        resolved_by=admin.user_id,
        note=payload.note,
    )


# ---------------------------------------------------------------------------
# Metrics and ledger checks
# ---------------------------------------------------------------------------


@router.post("/metrics/recompute", response_model=CampaignMetricsResponse)
async def recompute_pair_metrics(
    payload: RecomputeMetricsRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Recount verified activity for one creator on one campaign."""
    logger.info(
        "Manual metrics recompute for %s/%s by %s",
        payload.campaign_id,
        payload.creator_id,
        admin.user_id,
    )
    return await recompute_metrics(
        db, campaign_id=payload.campaign_id, creator_id=payload.creator_id
    )


@router.get("/wallets/{wallet_id}/reconcile", response_model=WalletReconciliationResponse)
async def reconcile_wallet_ledger(
    wallet_id: uuid.UUID,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Compare stored balances with the sum of the wallet's ledger entries."""
    return await reconcile_wallet(db, wallet_id)
