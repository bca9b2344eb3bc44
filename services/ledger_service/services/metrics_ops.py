"""Metrics reconciliation — recount verified signals and recompute earnings.

``recompute_metrics`` is a pure function of the current verified counts:
running it twice in a row yields the same row. ``paid_amount`` is owned by
escrow releases and is never touched here.
"""

import uuid
from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings
from libs.common.currency import round_to_paise
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.ledger_service.errors import NotFound
from services.ledger_service.models import (
    Campaign,
    CampaignMetrics,
    CampaignParticipation,
    CampaignStatus,
    CampaignType,
    ClickEvent,
    ConversionEvent,
    Platform,
    ViewSnapshot,
)
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

RECONCILED_CAMPAIGN_STATUSES = (CampaignStatus.LIVE, CampaignStatus.COMPLETED)


def compute_earnings(
    campaign: Campaign,
    *,
    verified_views: int,
    verified_clicks: int,
    verified_conversions: int,
) -> int:
    """Earnings in paise for one creator, capped and rounded half-up."""
    earnings = Decimal(0)
    if campaign.campaign_type == CampaignType.VIEW and campaign.payout_per_1k_views:
        earnings = Decimal(verified_views) / 1000 * campaign.payout_per_1k_views
    elif campaign.campaign_type == CampaignType.CLICK and campaign.payout_per_click:
        earnings = Decimal(verified_clicks) * campaign.payout_per_click
    elif campaign.campaign_type == CampaignType.CONVERSION and campaign.payout_per_sale:
        earnings = Decimal(verified_conversions) * campaign.payout_per_sale

    cap = campaign.max_payout_per_creator
    if cap is not None and earnings > cap:
        earnings = Decimal(cap)
    return round_to_paise(earnings)


# ---------------------------------------------------------------------------
# Verified counts
# ---------------------------------------------------------------------------


async def count_verified_clicks(
    db: AsyncSession, campaign_id: uuid.UUID, creator_id: str
) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(ClickEvent)
        .where(
            ClickEvent.campaign_id == campaign_id,
            ClickEvent.creator_id == creator_id,
            ClickEvent.is_fraud.is_(False),
        )
    )
    return result.scalar() or 0


async def count_verified_conversions(
    db: AsyncSession, campaign_id: uuid.UUID, creator_id: str
) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(ConversionEvent)
        .where(
            ConversionEvent.campaign_id == campaign_id,
            ConversionEvent.creator_id == creator_id,
            ConversionEvent.is_verified.is_(True),
        )
    )
    return result.scalar() or 0


async def count_verified_views(
    db: AsyncSession, campaign_id: uuid.UUID, creator_id: str
) -> int:
    """Sum over platforms of the latest verified snapshot's cumulative views."""
    total = 0
    for platform in Platform:
        result = await db.execute(
            select(ViewSnapshot.view_count)
            .where(
                ViewSnapshot.campaign_id == campaign_id,
                ViewSnapshot.creator_id == creator_id,
                ViewSnapshot.platform == platform,
                ViewSnapshot.is_verified.is_(True),
            )
            .order_by(ViewSnapshot.snapshot_at.desc())
            .limit(1)
        )
        total += result.scalar() or 0
    return total


# ---------------------------------------------------------------------------
# Recompute
# ---------------------------------------------------------------------------


async def measure_pair(
    db: AsyncSession, campaign: Campaign, creator_id: str
) -> tuple[int, int, int, int]:
    """Verified (views, clicks, conversions) and earnings for one pair."""
    views = await count_verified_views(db, campaign.id, creator_id)
    clicks = await count_verified_clicks(db, campaign.id, creator_id)
    conversions = await count_verified_conversions(db, campaign.id, creator_id)
    earned = compute_earnings(
        campaign,
        verified_views=views,
        verified_clicks=clicks,
        verified_conversions=conversions,
    )
    return views, clicks, conversions, earned


async def new_metrics_row(
    db: AsyncSession, campaign: Campaign, creator_id: str
) -> CampaignMetrics:
    """Unsaved metrics row for a pair that has none yet, counted as of now."""
    views, clicks, conversions, earned = await measure_pair(db, campaign, creator_id)
    return CampaignMetrics(
        id=uuid.uuid4(),
        campaign_id=campaign.id,
        creator_id=creator_id,
        verified_views=views,
        verified_clicks=clicks,
        verified_conversions=conversions,
        earned_amount=earned,
        paid_amount=0,
        last_computed_at=utc_now(),
    )


async def recompute_metrics(
    db: AsyncSession,
    *,
    campaign_id: uuid.UUID,
    creator_id: str,
    campaign: Optional[Campaign] = None,
) -> CampaignMetrics:
    """Full recount for one (campaign, creator) pair, upserted. Commits."""
    campaign = campaign or await db.get(Campaign, campaign_id)
    if not campaign:
        raise NotFound("Campaign not found")

    views, clicks, conversions, earned = await measure_pair(db, campaign, creator_id)

    for attempt in range(2):
        result = await db.execute(
            select(CampaignMetrics)
            .where(
                CampaignMetrics.campaign_id == campaign_id,
                CampaignMetrics.creator_id == creator_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        metrics = result.scalar_one_or_none()
        if metrics is None:
            metrics = CampaignMetrics(
                id=uuid.uuid4(),
                campaign_id=campaign_id,
                creator_id=creator_id,
                paid_amount=0,
            )
            db.add(metrics)

        metrics.verified_views = views
        metrics.verified_clicks = clicks
        metrics.verified_conversions = conversions
        metrics.earned_amount = earned
        metrics.last_computed_at = utc_now()
        try:
            await db.commit()
            break
        except IntegrityError:
            # A concurrent recompute inserted the row first; update it instead
            await db.rollback()
            if attempt:
                raise

    if metrics.earned_amount < metrics.paid_amount:
        logger.warning(
            "Metrics %s/%s earned %d below already paid %d; no clawback",
            campaign_id,
            creator_id,
            metrics.earned_amount,
            metrics.paid_amount,
        )
    return metrics


async def reconcile_all_metrics(
    db: AsyncSession, *, page_size: Optional[int] = None
) -> int:
    """Recompute every participation of LIVE and COMPLETED campaigns.

    Returns the number of pairs recomputed. A failing pair is logged and
    skipped.
    """
    page_size = page_size or get_settings().METRICS_PAGE_SIZE
    recomputed = 0
    failures = 0
    last_id: Optional[uuid.UUID] = None

    while True:
        query = (
            select(
                CampaignParticipation.id,
                CampaignParticipation.campaign_id,
                CampaignParticipation.creator_id,
            )
            .join(Campaign, Campaign.id == CampaignParticipation.campaign_id)
            .where(Campaign.status.in_(RECONCILED_CAMPAIGN_STATUSES))
            .order_by(CampaignParticipation.id)
            .limit(page_size)
        )
        if last_id is not None:
            query = query.where(CampaignParticipation.id > last_id)
        rows = (await db.execute(query)).all()
        if not rows:
            break
        last_id = rows[-1][0]

        for _, campaign_id, creator_id in rows:
            try:
                await recompute_metrics(db, campaign_id=campaign_id, creator_id=creator_id)
                recomputed += 1
            except Exception:
                failures += 1
                logger.exception(
                    "Metrics recompute failed for %s/%s", campaign_id, creator_id
                )
                await db.rollback()

    logger.info(
        "Metrics reconciliation finished: %d pairs recomputed, %d failures",
        recomputed,
        failures,
    )
    return recomputed
