"""Campaign escrow endpoints.

Brands lock funds for their own campaigns; releases and refunds are
platform (admin) decisions.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from libs.auth.dependencies import get_current_user, require_admin, require_brand
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.ledger_service.models import Campaign
from services.ledger_service.schemas import (
    EscrowLockRequest,
    EscrowReleaseRequest,
    EscrowResponse,
)
from services.ledger_service.services.escrow_ops import (
    get_escrow_for_campaign,
    lock_escrow,
    refund_escrow,
    release_escrow,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/escrow", tags=["escrow"])


@router.post("/lock", response_model=EscrowResponse, status_code=status.HTTP_201_CREATED)
async def lock_campaign_escrow(
    payload: EscrowLockRequest,
    brand: AuthUser = Depends(require_brand),
    db: AsyncSession = Depends(get_async_db),
):
    """Move funds from the brand's available balance into campaign escrow."""
    return await lock_escrow(
        db,
        campaign_id=payload.campaign_id,
        brand_owner_id=brand.user_id,
        amount=payload.amount,
    )


@router.get("/campaign/{campaign_id}", response_model=EscrowResponse)
async def get_campaign_escrow(
    campaign_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Escrow state for a campaign (owning brand or admin)."""
    campaign = await db.get(Campaign, campaign_id)
    if not campaign:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found"
        )
    if campaign.brand_id != current_user.user_id and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to view this escrow",
        )
    return await get_escrow_for_campaign(db, campaign_id)


@router.post("/{escrow_id}/release", response_model=EscrowResponse)
async def release_campaign_escrow(
    escrow_id: uuid.UUID,
    payload: EscrowReleaseRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Pay creators from escrow. The whole batch applies or none of it."""
    return await release_escrow(
        db,
        escrow_id=escrow_id,
        releases=payload.releases,
        released_by=admin.user_id,
    )


@router.post("/{escrow_id}/refund", response_model=EscrowResponse)
async def refund_campaign_escrow(
    escrow_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Return the unreleased remainder to the brand."""
    return await refund_escrow(db, escrow_id=escrow_id, refunded_by=admin.user_id)
