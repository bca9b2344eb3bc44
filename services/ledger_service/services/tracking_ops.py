"""Tracking ingest — clicks, conversions and view snapshots.

Raw events are always stored; suspicious ones carry ``is_fraud`` (clicks) or
``is_verified=False`` (conversions) instead of being dropped, so the fraud
sweep and audits see the full stream. Counters on links and promo codes move
only for clean events and always with an in-database increment.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now, window_start
from libs.common.logging import get_logger
from services.ledger_service.errors import NotFound
from services.ledger_service.models import (
    Campaign,
    CampaignStatus,
    ClickEvent,
    ClickFraudReason,
    ConversionEvent,
    Platform,
    PromoCode,
    TrackingLink,
    ViewSnapshot,
)
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from user_agents import parse as parse_user_agent

logger = get_logger(__name__)

# Max clicks per IP per link in the trailing window before clicks count as fraud
CLICK_RATE_LIMIT = 5
CLICK_RATE_WINDOW_MINUTES = 60


@dataclass
class ClickOutcome:
    destination_url: str
    recorded: bool
    is_fraud: bool = False
    fraud_reason: Optional[ClickFraudReason] = None


HEADLESS_BROWSER_MARKERS = ("headless", "phantomjs")


def is_bot_user_agent(user_agent: Optional[str]) -> bool:
    """True unless the header parses to a real browser on a desktop, phone or tablet.

    Scripted clients (curl, python-requests, Go-http-client) parse to a
    browser family but no device class, so they land here too.
    """
    if not user_agent:
        return True
    parsed = parse_user_agent(user_agent)
    if parsed.is_bot:
        return True
    family = parsed.browser.family
    if family == "Other" or any(m in family.lower() for m in HEADLESS_BROWSER_MARKERS):
        return True
    return not (parsed.is_pc or parsed.is_mobile or parsed.is_tablet)


def classify_click(
    user_agent: Optional[str], recent_clicks_from_ip: int
) -> Optional[ClickFraudReason]:
    if is_bot_user_agent(user_agent):
        return ClickFraudReason.BOT_USER_AGENT
    if recent_clicks_from_ip >= CLICK_RATE_LIMIT:
        return ClickFraudReason.IP_RATE_LIMIT
    return None


async def record_click(
    db: AsyncSession,
    *,
    slug: str,
    ip: str,
    user_agent: Optional[str],
    referer: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ClickOutcome:
    """Record a tracking-link hit and return where to redirect.

    Raises NotFound for unknown or inactive links. Clicks on campaigns that
    are not LIVE redirect without being recorded.
    """
    result = await db.execute(
        select(TrackingLink, Campaign.status)
        .join(Campaign, Campaign.id == TrackingLink.campaign_id)
        .where(TrackingLink.slug == slug)
    )
    row = result.one_or_none()
    if row is None or not row[0].is_active:
        raise NotFound("Link not found or inactive")
    link, campaign_status = row

    if campaign_status != CampaignStatus.LIVE:
        return ClickOutcome(destination_url=link.destination_url, recorded=False)

    now = now or utc_now()
    recent_clicks = (
        await db.execute(
            select(func.count())
            .select_from(ClickEvent)
            .where(
                ClickEvent.tracking_link_id == link.id,
                ClickEvent.ip == ip,
                ClickEvent.created_at >= window_start(CLICK_RATE_WINDOW_MINUTES, now),
            )
        )
    ).scalar() or 0
    fraud_reason = classify_click(user_agent, recent_clicks)

    db.add(
        ClickEvent(
            tracking_link_id=link.id,
            campaign_id=link.campaign_id,
            creator_id=link.creator_id,
            ip=ip,
            user_agent=user_agent or "",
            referer=referer,
            is_fraud=fraud_reason is not None,
            fraud_reason=fraud_reason,
            created_at=now,
        )
    )
    if fraud_reason is None:
        await db.execute(
            update(TrackingLink)
            .where(TrackingLink.id == link.id)
            .values(total_clicks=TrackingLink.total_clicks + 1)
        )
    await db.commit()

    if fraud_reason is not None:
        logger.debug(
            "Fraud click on %s from %s: %s", slug, ip, fraud_reason.value
        )
    return ClickOutcome(
        destination_url=link.destination_url,
        recorded=True,
        is_fraud=fraud_reason is not None,
        fraud_reason=fraud_reason,
    )


async def record_conversion(
    db: AsyncSession,
    *,
    promo_code: str,
    order_reference: str,
    order_amount: int = 0,
) -> ConversionEvent:
    """Record a sale attributed to a promo code.

    A repeated order reference for the same code is stored unverified so it
    never earns twice.
    """
    result = await db.execute(select(PromoCode).where(PromoCode.code == promo_code))
    code = result.scalar_one_or_none()
    if not code or not code.is_active:
        raise NotFound("Promo code not found or inactive")

    duplicate = (
        await db.execute(
            select(ConversionEvent.id)
            .where(
                ConversionEvent.promo_code_id == code.id,
                ConversionEvent.order_reference == order_reference,
            )
            .limit(1)
        )
    ).scalar_one_or_none()

    event = ConversionEvent(
        id=uuid.uuid4(),
        promo_code_id=code.id,
        campaign_id=code.campaign_id,
        creator_id=code.creator_id,
        order_reference=order_reference,
        order_amount=order_amount,
        is_verified=duplicate is None,
    )
    db.add(event)
    if event.is_verified:
        await db.execute(
            update(PromoCode)
            .where(PromoCode.id == code.id)
            .values(total_uses=PromoCode.total_uses + 1)
        )
    else:
        logger.warning(
            "Duplicate order %s for promo code %s recorded unverified",
            order_reference,
            promo_code,
        )
    await db.commit()
    await db.refresh(event)
    return event


async def latest_snapshot(
    db: AsyncSession,
    *,
    campaign_id: uuid.UUID,
    creator_id: str,
    platform: Platform,
) -> Optional[ViewSnapshot]:
    result = await db.execute(
        select(ViewSnapshot)
        .where(
            ViewSnapshot.campaign_id == campaign_id,
            ViewSnapshot.creator_id == creator_id,
            ViewSnapshot.platform == platform,
        )
        .order_by(ViewSnapshot.snapshot_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def record_view_snapshot(
    db: AsyncSession,
    *,
    campaign_id: uuid.UUID,
    creator_id: str,
    platform: Platform,
    post_url: str,
    views: int,
    likes: int = 0,
    comments: int = 0,
    snapshot_at: Optional[datetime] = None,
) -> tuple[ViewSnapshot, Optional[ViewSnapshot]]:
    """Store a provider reading. Returns ``(new, previous)`` for spike checks."""
    previous = await latest_snapshot(
        db, campaign_id=campaign_id, creator_id=creator_id, platform=platform
    )
    snapshot = ViewSnapshot(
        id=uuid.uuid4(),
        campaign_id=campaign_id,
        creator_id=creator_id,
        platform=platform,
        post_url=post_url,
        view_count=views,
        like_count=likes,
        comment_count=comments,
        snapshot_at=snapshot_at or utc_now(),
    )
    db.add(snapshot)
    await db.commit()
    return snapshot, previous
