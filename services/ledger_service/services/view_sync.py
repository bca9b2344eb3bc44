"""View sync — pull view counts for live VIEW campaigns and snapshot them.

Each new snapshot is compared with the previous one for the same series
(view-spike check) and the pair's metrics are recomputed.
"""

import uuid
from typing import Optional

from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.ledger_service.models import (
    Campaign,
    CampaignParticipation,
    CampaignStatus,
    CampaignType,
    ParticipationStatus,
)
from services.ledger_service.services.fraud_detection import check_view_spike
from services.ledger_service.services.metrics_ops import recompute_metrics
from services.ledger_service.services.tracking_ops import record_view_snapshot
from services.ledger_service.social_metrics_client import (
    SocialMetricsClient,
    detect_platform,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

SYNCED_PARTICIPATION_STATUSES = (ParticipationStatus.ACTIVE, ParticipationStatus.COMPLETED)


async def sync_views(
    db: AsyncSession,
    provider: SocialMetricsClient,
    *,
    page_size: Optional[int] = None,
) -> int:
    """Snapshot every live VIEW participation with posted content.

    ``provider`` is anything with ``async get_metrics(post_url)`` returning
    views/likes/comments or ``None``. Returns the number of snapshots taken.
    """
    page_size = page_size or get_settings().METRICS_PAGE_SIZE
    synced = 0
    last_id: Optional[uuid.UUID] = None

    while True:
        query = (
            select(
                CampaignParticipation.id,
                CampaignParticipation.campaign_id,
                CampaignParticipation.creator_id,
                CampaignParticipation.content_url,
            )
            .join(Campaign, Campaign.id == CampaignParticipation.campaign_id)
            .where(
                Campaign.campaign_type == CampaignType.VIEW,
                Campaign.status == CampaignStatus.LIVE,
                CampaignParticipation.status.in_(SYNCED_PARTICIPATION_STATUSES),
                CampaignParticipation.content_url.is_not(None),
            )
            .order_by(CampaignParticipation.id)
            .limit(page_size)
        )
        if last_id is not None:
            query = query.where(CampaignParticipation.id > last_id)
        rows = (await db.execute(query)).all()
        if not rows:
            break
        last_id = rows[-1][0]

        for participation_id, campaign_id, creator_id, post_url in rows:
            try:
                metrics = await provider.get_metrics(post_url)
                if metrics is None:
                    continue

                snapshot, previous = await record_view_snapshot(
                    db,
                    campaign_id=campaign_id,
                    creator_id=creator_id,
                    platform=detect_platform(post_url),
                    post_url=post_url,
                    views=metrics.views,
                    likes=metrics.likes,
                    comments=metrics.comments,
                )
                await check_view_spike(db, snapshot=snapshot, previous=previous)
                await recompute_metrics(db, campaign_id=campaign_id, creator_id=creator_id)
                synced += 1
                logger.info(
                    "Updated %s/%s: %d views", campaign_id, creator_id, metrics.views
                )
            except Exception:
                logger.exception("View sync failed for participation %s", participation_id)
                await db.rollback()

    logger.info("View sync finished: %d snapshots", synced)
    return synced
