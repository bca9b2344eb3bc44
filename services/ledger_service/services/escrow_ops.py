"""Escrow lifecycle — lock brand funds, release to creators, refund the remainder.

State machine::

    LOCKED ──► PARTIALLY_RELEASED ──► FULLY_RELEASED
       │               │
       └───────────────┴──► REFUNDED

Status is always derived from the amounts (``derive_escrow_status``), never
set independently of them.
"""

import uuid
from typing import Sequence

from libs.common.currency import apply_basis_points, format_inr
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.ledger_service.errors import (
    AlreadySettled,
    EscrowAlreadyExists,
    Forbidden,
    InsufficientFunds,
    InvalidAmount,
    InvalidState,
    NotFound,
    OverRelease,
)
from services.ledger_service.models import (
    Campaign,
    CampaignMetrics,
    CampaignStatus,
    Escrow,
    EscrowStatus,
    TransactionType,
    Wallet,
    WalletType,
)
from services.ledger_service.schemas.escrow import ReleaseItem
from services.ledger_service.services.metrics_ops import new_metrics_row
from services.ledger_service.services.wallet_ops import (
    lock_wallet_by_owner,
    lock_wallets,
    post_ledger_entry,
)
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

FUNDABLE_CAMPAIGN_STATUSES = (CampaignStatus.DRAFT, CampaignStatus.FUNDING)
SETTLED_ESCROW_STATUSES = (EscrowStatus.FULLY_RELEASED, EscrowStatus.REFUNDED)


def derive_escrow_status(total_amount: int, released_amount: int) -> EscrowStatus:
    if released_amount >= total_amount:
        return EscrowStatus.FULLY_RELEASED
    if released_amount > 0:
        return EscrowStatus.PARTIALLY_RELEASED
    return EscrowStatus.LOCKED


async def get_escrow_for_campaign(db: AsyncSession, campaign_id: uuid.UUID) -> Escrow:
    result = await db.execute(select(Escrow).where(Escrow.campaign_id == campaign_id))
    escrow = result.scalar_one_or_none()
    if not escrow:
        raise NotFound("Escrow not found")
    return escrow


async def _lock_escrow_row(db: AsyncSession, escrow_id: uuid.UUID) -> Escrow:
    result = await db.execute(
        select(Escrow)
        .where(Escrow.id == escrow_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    escrow = result.scalar_one_or_none()
    if not escrow:
        raise NotFound("Escrow not found")
    return escrow


# ---------------------------------------------------------------------------
# Lock: brand available → brand escrow
# ---------------------------------------------------------------------------


async def lock_escrow(
    db: AsyncSession,
    *,
    campaign_id: uuid.UUID,
    brand_owner_id: str,
    amount: int,
) -> Escrow:
    """Move ``amount`` paise from the brand's available bucket into escrow.

    The campaign must belong to the caller and still be DRAFT or FUNDING; it
    moves to FUNDING. A campaign has at most one escrow.
    """
    if amount <= 0:
        raise InvalidAmount("Escrow amount must be positive")

    campaign = await db.get(Campaign, campaign_id)
    if not campaign or campaign.brand_id != brand_owner_id:
        raise Forbidden("Not authorized to fund this campaign")
    if campaign.status not in FUNDABLE_CAMPAIGN_STATUSES:
        raise InvalidState("Can only fund campaigns in DRAFT or FUNDING status")

    existing = await db.execute(
        select(Escrow.id).where(Escrow.campaign_id == campaign_id)
    )
    if existing.scalar_one_or_none():
        raise EscrowAlreadyExists("Escrow already exists for this campaign")

    wallet = await lock_wallet_by_owner(db, brand_owner_id)
    if wallet.owner_type != WalletType.BRAND:
        raise Forbidden("Only brand wallets can fund campaigns")
    if wallet.available_balance < amount:
        raise InsufficientFunds(
            f"Insufficient balance: need {format_inr(amount)}, "
            f"have {format_inr(wallet.available_balance)}"
        )

    escrow = Escrow(
        id=uuid.uuid4(),
        campaign_id=campaign_id,
        brand_wallet_id=wallet.id,
        total_amount=amount,
        released_amount=0,
        commission_amount=apply_basis_points(amount, campaign.platform_commission_bps),
        status=EscrowStatus.LOCKED,
    )
    db.add(escrow)
    post_ledger_entry(
        db,
        wallet,
        transaction_type=TransactionType.ESCROW_LOCK,
        amount=-amount,
        available_delta=-amount,
        escrow_delta=amount,
        description=f"Escrow lock for campaign: {campaign.name}",
        reference_type="escrow",
        reference_id=str(escrow.id),
        initiated_by=brand_owner_id,
    )
    campaign.status = CampaignStatus.FUNDING

    try:
        await db.commit()
    except IntegrityError:
        # Lost the race with a concurrent lock for the same campaign
        await db.rollback()
        raise EscrowAlreadyExists("Escrow already exists for this campaign")
    await db.refresh(escrow)

    logger.info(
        "Locked %d paise in escrow %s for campaign %s (commission=%d)",
        amount,
        escrow.id,
        campaign_id,
        escrow.commission_amount,
    )
    return escrow


# ---------------------------------------------------------------------------
# Release: brand escrow → creator available
# ---------------------------------------------------------------------------


async def release_escrow(
    db: AsyncSession,
    *,
    escrow_id: uuid.UUID,
    releases: Sequence[ReleaseItem],
    released_by: str,
) -> Escrow:
    """Pay a batch of creators out of a campaign escrow, all or nothing.

    Every check (escrow state, cap, creator wallets, earned amounts) runs
    before the first write, so a rejected batch leaves no trace.
    """
    if not releases:
        raise InvalidAmount("At least one release is required")
    if any(item.amount <= 0 for item in releases):
        raise InvalidAmount("Release amounts must be positive")
    if len({item.creator_id for item in releases}) != len(releases):
        raise InvalidAmount("Each creator may appear only once per release")

    escrow = await _lock_escrow_row(db, escrow_id)
    if escrow.status in SETTLED_ESCROW_STATUSES:
        raise AlreadySettled(f"Escrow already {escrow.status.value.replace('_', ' ')}")

    total_release = sum(item.amount for item in releases)
    remaining = escrow.remaining_amount
    if total_release > remaining:
        raise OverRelease(
            f"Release amount ({format_inr(total_release)}) exceeds remaining "
            f"escrow ({format_inr(remaining)})"
        )

    creator_ids = [item.creator_id for item in releases]
    result = await db.execute(
        select(Wallet.id, Wallet.owner_id).where(Wallet.owner_id.in_(creator_ids))
    )
    wallet_id_by_owner = {owner_id: wallet_id for wallet_id, owner_id in result.all()}
    missing = [cid for cid in creator_ids if cid not in wallet_id_by_owner]
    if missing:
        raise NotFound(f"Creator wallet not found: {', '.join(missing)}")

    wallets = await lock_wallets(
        db, [escrow.brand_wallet_id, *wallet_id_by_owner.values()]
    )
    brand_wallet = wallets[escrow.brand_wallet_id]
    if brand_wallet.escrow_balance < total_release:
        raise InsufficientFunds("Brand escrow balance is below the release total")

    metrics_result = await db.execute(
        select(CampaignMetrics)
        .where(
            CampaignMetrics.campaign_id == escrow.campaign_id,
            CampaignMetrics.creator_id.in_(creator_ids),
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    metrics_by_creator = {m.creator_id: m for m in metrics_result.scalars().all()}

    campaign = await db.get(Campaign, escrow.campaign_id)
    if not campaign:
        raise NotFound("Campaign not found")
    # Pairs never reconciled get a row now so the payment is recorded against it
    new_metrics = []
    for creator_id in creator_ids:
        if creator_id not in metrics_by_creator:
            metrics = await new_metrics_row(db, campaign, creator_id)
            metrics_by_creator[creator_id] = metrics
            new_metrics.append(metrics)

    for item in releases:
        metrics = metrics_by_creator[item.creator_id]
        if metrics.paid_amount + item.amount > metrics.earned_amount:
            raise OverRelease(
                f"Release to {item.creator_id} ({format_inr(item.amount)}) exceeds "
                f"unpaid earnings ({format_inr(metrics.unpaid_amount)})"
            )

    # All checks passed; apply every write in one unit of work
    db.add_all(new_metrics)
    campaign_name = campaign.name
    for item in releases:
        creator_wallet = wallets[wallet_id_by_owner[item.creator_id]]
        post_ledger_entry(
            db,
            creator_wallet,
            transaction_type=TransactionType.ESCROW_RELEASE,
            amount=item.amount,
            available_delta=item.amount,
            description=f"Escrow release for campaign: {campaign_name}",
            reference_type="escrow",
            reference_id=str(escrow.id),
            initiated_by=released_by,
        )
        creator_wallet.lifetime_earnings += item.amount
        metrics_by_creator[item.creator_id].paid_amount += item.amount

    post_ledger_entry(
        db,
        brand_wallet,
        transaction_type=TransactionType.ESCROW_RELEASE,
        amount=-total_release,
        escrow_delta=-total_release,
        description=f"Escrow paid out to {len(releases)} creator(s): {campaign_name}",
        reference_type="escrow",
        reference_id=str(escrow.id),
        initiated_by=released_by,
    )

    escrow.released_amount += total_release
    escrow.status = derive_escrow_status(escrow.total_amount, escrow.released_amount)
    if escrow.status == EscrowStatus.FULLY_RELEASED:
        escrow.released_at = utc_now()

    await db.commit()
    await db.refresh(escrow)

    logger.info(
        "Released %d paise from escrow %s to %d creator(s) by %s, status=%s",
        total_release,
        escrow.id,
        len(releases),
        released_by,
        escrow.status.value,
    )
    return escrow


# ---------------------------------------------------------------------------
# Refund: brand escrow remainder → brand available
# ---------------------------------------------------------------------------


async def refund_escrow(
    db: AsyncSession,
    *,
    escrow_id: uuid.UUID,
    refunded_by: str,
) -> Escrow:
    """Return whatever is left in escrow to the brand and close it."""
    escrow = await _lock_escrow_row(db, escrow_id)
    refund_amount = escrow.remaining_amount
    if escrow.status in SETTLED_ESCROW_STATUSES or refund_amount <= 0:
        raise AlreadySettled("No funds to refund")

    wallets = await lock_wallets(db, [escrow.brand_wallet_id])
    brand_wallet = wallets[escrow.brand_wallet_id]
    post_ledger_entry(
        db,
        brand_wallet,
        transaction_type=TransactionType.REFUND,
        amount=refund_amount,
        available_delta=refund_amount,
        escrow_delta=-refund_amount,
        description="Escrow refund for cancelled campaign",
        reference_type="escrow_refund",
        reference_id=str(escrow.id),
        initiated_by=refunded_by,
    )
    escrow.status = EscrowStatus.REFUNDED
    escrow.refunded_at = utc_now()

    await db.commit()
    await db.refresh(escrow)

    logger.info(
        "Refunded %d paise from escrow %s to brand wallet %s",
        refund_amount,
        escrow.id,
        brand_wallet.id,
    )
    return escrow
