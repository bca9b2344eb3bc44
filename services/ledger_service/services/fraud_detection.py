"""Fraud detection — heuristics over the tracking stream that raise advisory flags.

Flags never move money. An open flag (DETECTED / INVESTIGATING) of the same
type for the same campaign is upgraded in place when a check finds a higher
severity, so a campaign under sustained abuse has one escalating flag per
type rather than a pile of duplicates.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now, window_start
from libs.common.logging import get_logger
from services.ledger_service.errors import AlreadyProcessed, InvalidState, NotFound
from services.ledger_service.models import (
    OPEN_FRAUD_STATUSES,
    TERMINAL_FRAUD_STATUSES,
    Campaign,
    CampaignParticipation,
    CampaignStatus,
    CampaignType,
    ClickEvent,
    FraudFlag,
    FraudFlagStatus,
    FraudFlagType,
    ParticipationStatus,
    TrackingLink,
    ViewSnapshot,
)
from services.ledger_service.schemas.fraud import (
    BotDetectedEvidence,
    ClickAnomalyEvidence,
    ConversionMismatchEvidence,
    IpAbuseEvidence,
    ViewSpikeEvidence,
)
from services.ledger_service.services.metrics_ops import (
    count_verified_clicks,
    count_verified_conversions,
)
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

WINDOW_MINUTES = 60

# Active participations that are still producing signals
SWEPT_PARTICIPATION_STATUSES = (ParticipationStatus.ACTIVE,)


# ---------------------------------------------------------------------------
# Severity ladders (strictly-greater thresholds)
# ---------------------------------------------------------------------------


def click_anomaly_severity(clicks_last_hour: int) -> Optional[int]:
    if clicks_last_hour > 200:
        return 5
    if clicks_last_hour > 100:
        return 4
    if clicks_last_hour > 50:
        return 3
    return None


def ip_abuse_severity(clicks_last_hour: int) -> Optional[int]:
    if clicks_last_hour > 50:
        return 5
    if clicks_last_hour > 20:
        return 4
    return None


def view_spike_severity(previous_views: int, current_views: int) -> Optional[int]:
    """Growth of more than 500% between consecutive snapshots."""
    if previous_views <= 0:
        return None
    growth = (current_views - previous_views) / previous_views
    if growth > 20:
        return 5
    if growth > 10:
        return 4
    if growth > 5:
        return 3
    return None


def conversion_mismatch_severity(clicks: int, conversions: int) -> Optional[int]:
    if clicks <= 0 or conversions <= 10:
        return None
    rate = conversions / clicks
    if rate > 0.7:
        return 5
    if rate > 0.5:
        return 4
    if rate > 0.3:
        return 3
    return None


def bot_ratio_severity(total_clicks: int, fraud_clicks: int) -> Optional[int]:
    if total_clicks <= 10:
        return None
    ratio = fraud_clicks / total_clicks
    if ratio > 0.8:
        return 5
    if ratio > 0.5:
        return 4
    return None


# ---------------------------------------------------------------------------
# Flag persistence
# ---------------------------------------------------------------------------


async def raise_flag(
    db: AsyncSession,
    *,
    flag_type: FraudFlagType,
    severity: int,
    description: str,
    evidence: dict,
    campaign_id: Optional[uuid.UUID],
    creator_id: Optional[str] = None,
) -> FraudFlag:
    """Create a flag, or upgrade the open flag of the same type and campaign.

    Severity never goes down. Commits.
    """
    same_campaign = (
        FraudFlag.campaign_id.is_(None)
        if campaign_id is None
        else FraudFlag.campaign_id == campaign_id
    )
    result = await db.execute(
        select(FraudFlag)
        .where(
            FraudFlag.flag_type == flag_type,
            same_campaign,
            FraudFlag.status.in_(OPEN_FRAUD_STATUSES),
        )
        .order_by(FraudFlag.created_at)
        .limit(1)
        .with_for_update()
    )
    existing = result.scalar_one_or_none()

    if existing:
        if severity > existing.severity:
            previous = existing.severity
            existing.severity = severity
            existing.description = description
            existing.evidence = evidence
            existing.updated_at = utc_now()
            await db.commit()
            logger.warning(
                "Escalated %s flag %s for campaign %s: severity %d → %d",
                flag_type.value,
                existing.id,
                campaign_id,
                previous,
                severity,
            )
        else:
            await db.commit()
        return existing

    flag = FraudFlag(
        id=uuid.uuid4(),
        flag_type=flag_type,
        status=FraudFlagStatus.DETECTED,
        severity=severity,
        description=description,
        evidence=evidence,
        campaign_id=campaign_id,
        creator_id=creator_id,
    )
    db.add(flag)
    await db.commit()
    logger.warning(
        "Raised %s flag %s (severity %d) for campaign %s: %s",
        flag_type.value,
        flag.id,
        severity,
        campaign_id,
        description,
    )
    return flag


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


async def check_click_fraud(
    db: AsyncSession, link, *, now: Optional[datetime] = None
) -> list[FraudFlag]:
    """Click burst on the link and per-IP abuse within the trailing hour.

    ``link`` is a TrackingLink or any row exposing ``id``, ``slug``,
    ``campaign_id`` and ``creator_id``.
    """
    since = window_start(WINDOW_MINUTES, now)
    flags: list[FraudFlag] = []

    clicks = (
        await db.execute(
            select(func.count())
            .select_from(ClickEvent)
            .where(ClickEvent.tracking_link_id == link.id, ClickEvent.created_at >= since)
        )
    ).scalar() or 0
    severity = click_anomaly_severity(clicks)
    if severity:
        flags.append(
            await raise_flag(
                db,
                flag_type=FraudFlagType.CLICK_ANOMALY,
                severity=severity,
                description=(
                    f"Click burst detected: {clicks} clicks in last hour "
                    f"on tracking link {link.slug}"
                ),
                evidence=ClickAnomalyEvidence(
                    tracking_link_id=link.id, slug=link.slug, clicks_last_hour=clicks
                ).model_dump(mode="json"),
                campaign_id=link.campaign_id,
                creator_id=link.creator_id,
            )
        )

    ip_counts = await db.execute(
        select(ClickEvent.ip, func.count().label("clicks"))
        .where(ClickEvent.tracking_link_id == link.id, ClickEvent.created_at >= since)
        .group_by(ClickEvent.ip)
        .having(func.count() > 20)
        .order_by(func.count().desc())
    )
    for ip, ip_clicks in ip_counts.all():
        severity = ip_abuse_severity(ip_clicks)
        if not severity:
            continue
        flags.append(
            await raise_flag(
                db,
                flag_type=FraudFlagType.IP_ABUSE,
                severity=severity,
                description=f"IP abuse: {ip} made {ip_clicks} clicks in last hour",
                evidence=IpAbuseEvidence(
                    tracking_link_id=link.id, ip=ip, clicks_last_hour=ip_clicks
                ).model_dump(mode="json"),
                campaign_id=link.campaign_id,
                creator_id=link.creator_id,
            )
        )
    return flags


async def check_bot_ratio(
    db: AsyncSession, link, *, now: Optional[datetime] = None
) -> Optional[FraudFlag]:
    """Share of clicks classified as fraud at ingest within the trailing hour."""
    since = window_start(WINDOW_MINUTES, now)
    total, fraud = (
        await db.execute(
            select(
                func.count(ClickEvent.id),
                func.coalesce(
                    func.sum(case((ClickEvent.is_fraud.is_(True), 1), else_=0)), 0
                ),
            ).where(ClickEvent.tracking_link_id == link.id, ClickEvent.created_at >= since)
        )
    ).one()
    total, fraud = int(total), int(fraud)
    severity = bot_ratio_severity(total, fraud)
    if not severity:
        return None
    return await raise_flag(
        db,
        flag_type=FraudFlagType.BOT_DETECTED,
        severity=severity,
        description=(
            f"High bot ratio: {fraud}/{total} ({round(fraud / total * 100)}%) "
            f"clicks flagged as fraud in last hour"
        ),
        evidence=BotDetectedEvidence(
            tracking_link_id=link.id,
            total_clicks=total,
            fraud_clicks=fraud,
            fraud_ratio=round(fraud / total, 4),
        ).model_dump(mode="json"),
        campaign_id=link.campaign_id,
        creator_id=link.creator_id,
    )


async def check_view_spike(
    db: AsyncSession,
    *,
    snapshot: ViewSnapshot,
    previous: Optional[ViewSnapshot],
) -> Optional[FraudFlag]:
    """Compare a new snapshot with the one before it for the same series."""
    if previous is None:
        return None
    severity = view_spike_severity(previous.view_count, snapshot.view_count)
    if not severity:
        return None
    growth = (snapshot.view_count - previous.view_count) / previous.view_count
    return await raise_flag(
        db,
        flag_type=FraudFlagType.VIEW_SPIKE,
        severity=severity,
        description=(
            f"View spike: {round(growth * 100)}% growth "
            f"({previous.view_count} → {snapshot.view_count})"
        ),
        evidence=ViewSpikeEvidence(
            platform=snapshot.platform,
            post_url=snapshot.post_url,
            previous_views=previous.view_count,
            current_views=snapshot.view_count,
            growth_percent=round(growth * 100, 2),
        ).model_dump(mode="json"),
        campaign_id=snapshot.campaign_id,
        creator_id=snapshot.creator_id,
    )


async def check_conversion_mismatch(
    db: AsyncSession, *, campaign_id: uuid.UUID, creator_id: str
) -> Optional[FraudFlag]:
    clicks = await count_verified_clicks(db, campaign_id, creator_id)
    conversions = await count_verified_conversions(db, campaign_id, creator_id)
    severity = conversion_mismatch_severity(clicks, conversions)
    if not severity:
        return None
    rate = conversions / clicks
    return await raise_flag(
        db,
        flag_type=FraudFlagType.CONVERSION_MISMATCH,
        severity=severity,
        description=(
            f"Unusually high conversion rate: {round(rate * 100)}% "
            f"({conversions}/{clicks})"
        ),
        evidence=ConversionMismatchEvidence(
            verified_clicks=clicks,
            verified_conversions=conversions,
            conversion_rate=round(rate, 4),
        ).model_dump(mode="json"),
        campaign_id=campaign_id,
        creator_id=creator_id,
    )


# ---------------------------------------------------------------------------
# Sweep
# ---------------------------------------------------------------------------


@dataclass
class SweepResult:
    links_checked: int = 0
    pairs_checked: int = 0
    failures: int = 0
    flag_ids: set[uuid.UUID] = field(default_factory=set)


async def run_fraud_sweep(
    db: AsyncSession,
    *,
    page_size: Optional[int] = None,
    now: Optional[datetime] = None,
) -> SweepResult:
    """One pass over live links and live conversion participations.

    Pages through rows with keyset pagination. A failing link or pair is
    logged and skipped; it never aborts the rest of the sweep.
    """
    page_size = page_size or get_settings().FRAUD_SWEEP_PAGE_SIZE
    now = now or utc_now()
    outcome = SweepResult()

    last_link_id: Optional[uuid.UUID] = None
    while True:
        # Plain rows, not ORM objects: a per-link rollback must not expire them
        query = (
            select(
                TrackingLink.id,
                TrackingLink.slug,
                TrackingLink.campaign_id,
                TrackingLink.creator_id,
            )
            .join(Campaign, Campaign.id == TrackingLink.campaign_id)
            .where(
                TrackingLink.is_active.is_(True),
                Campaign.status == CampaignStatus.LIVE,
            )
            .order_by(TrackingLink.id)
            .limit(page_size)
        )
        if last_link_id is not None:
            query = query.where(TrackingLink.id > last_link_id)
        links = (await db.execute(query)).all()
        if not links:
            break
        last_link_id = links[-1].id

        for link in links:
            try:
                for flag in await check_click_fraud(db, link, now=now):
                    outcome.flag_ids.add(flag.id)
                bot_flag = await check_bot_ratio(db, link, now=now)
                if bot_flag:
                    outcome.flag_ids.add(bot_flag.id)
                outcome.links_checked += 1
            except Exception:
                outcome.failures += 1
                logger.exception("Click fraud check failed for link %s", link.id)
                await db.rollback()

    last_pair: Optional[uuid.UUID] = None
    while True:
        query = (
            select(
                CampaignParticipation.id,
                CampaignParticipation.campaign_id,
                CampaignParticipation.creator_id,
            )
            .join(Campaign, Campaign.id == CampaignParticipation.campaign_id)
            .where(
                Campaign.campaign_type == CampaignType.CONVERSION,
                Campaign.status == CampaignStatus.LIVE,
                CampaignParticipation.status.in_(SWEPT_PARTICIPATION_STATUSES),
            )
            .order_by(CampaignParticipation.id)
            .limit(page_size)
        )
        if last_pair is not None:
            query = query.where(CampaignParticipation.id > last_pair)
        pairs = (await db.execute(query)).all()
        if not pairs:
            break
        last_pair = pairs[-1][0]

        for _, campaign_id, creator_id in pairs:
            try:
                flag = await check_conversion_mismatch(
                    db, campaign_id=campaign_id, creator_id=creator_id
                )
                if flag:
                    outcome.flag_ids.add(flag.id)
                outcome.pairs_checked += 1
            except Exception:
                outcome.failures += 1
                logger.exception(
                    "Conversion mismatch check failed for %s/%s", campaign_id, creator_id
                )
                await db.rollback()

    logger.info(
        "Fraud sweep finished: %d links, %d pairs, %d flags touched, %d failures",
        outcome.links_checked,
        outcome.pairs_checked,
        len(outcome.flag_ids),
        outcome.failures,
    )
    return outcome


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


async def resolve_flag(
    db: AsyncSession,
    *,
    flag_id: uuid.UUID,
    status: FraudFlagStatus,
    resolved_by: str,
    note: Optional[str] = None,
) -> FraudFlag:
    """Move a flag to INVESTIGATING, CONFIRMED or DISMISSED.

    CONFIRMED and DISMISSED are final.
    """
    if status == FraudFlagStatus.DETECTED:
        raise InvalidState("A flag cannot be moved back to DETECTED")

    result = await db.execute(
        select(FraudFlag)
        .where(FraudFlag.id == flag_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    flag = result.scalar_one_or_none()
    if not flag:
        raise NotFound("Fraud flag not found")
    if flag.status in TERMINAL_FRAUD_STATUSES:
        raise AlreadyProcessed(f"Flag already {flag.status.value}")

    flag.status = status
    flag.resolution_note = note
    flag.resolved_by = resolved_by
    if status in TERMINAL_FRAUD_STATUSES:
        flag.resolved_at = utc_now()
    flag.updated_at = utc_now()
    await db.commit()
    await db.refresh(flag)

    logger.info(
        "Fraud flag %s marked %s by %s", flag.id, status.value, resolved_by
    )
    return flag
