"""Unit tests for tracking_ops: click classification and event ingest."""

from datetime import timedelta

import pytest
from libs.common.datetime_utils import utc_now
from services.ledger_service.errors import NotFound
from services.ledger_service.models import (
    CampaignStatus,
    ClickEvent,
    ClickFraudReason,
    Platform,
)
from services.ledger_service.services.tracking_ops import (
    classify_click,
    is_bot_user_agent,
    record_click,
    record_conversion,
    record_view_snapshot,
)
from sqlalchemy import func, select

from tests.factories import (
    CHROME_UA,
    GOOGLEBOT_UA,
    CampaignFactory,
    ClickEventFactory,
    PromoCodeFactory,
    TrackingLinkFactory,
    persist,
)

IPHONE_SAFARI_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)


async def _live_link(db, **overrides):
    campaign = await persist(db, CampaignFactory.create(status=CampaignStatus.LIVE))
    link = await persist(db, TrackingLinkFactory.create(campaign_id=campaign.id, **overrides))
    return campaign, link


async def _click_count(db, link_id, *, is_fraud=None):
    query = select(func.count()).select_from(ClickEvent).where(
        ClickEvent.tracking_link_id == link_id
    )
    if is_fraud is not None:
        query = query.where(ClickEvent.is_fraud.is_(is_fraud))
    return (await db.execute(query)).scalar()


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize(
    "user_agent,expected",
    [
        (CHROME_UA, False),
        (IPHONE_SAFARI_UA, False),
        (GOOGLEBOT_UA, True),
        ("", True),
        (None, True),
        ("curl/7.68.0", True),
        ("python-requests/2.31.0", True),
        ("Go-http-client/1.1", True),
        ("Wget/1.21", True),
        ("HeadlessChrome", True),
        (
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
            "HeadlessChrome/120.0.0.0 Safari/537.36",
            True,
        ),
    ],
)
def test_is_bot_user_agent(user_agent, expected):
    assert is_bot_user_agent(user_agent) is expected


@pytest.mark.unit
def test_classify_click_prefers_bot_reason():
    assert classify_click(GOOGLEBOT_UA, 10) == ClickFraudReason.BOT_USER_AGENT
    assert classify_click(CHROME_UA, 5) == ClickFraudReason.IP_RATE_LIMIT
    assert classify_click(CHROME_UA, 4) is None


# ---------------------------------------------------------------------------
# record_click
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_clean_click_counts_and_redirects(db_session):
    _, link = await _live_link(db_session)

    outcome = await record_click(
        db_session, slug=link.slug, ip="198.51.100.7", user_agent=CHROME_UA
    )

    assert outcome.recorded is True
    assert outcome.is_fraud is False
    assert outcome.destination_url == link.destination_url
    await db_session.refresh(link)
    assert link.total_clicks == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_sixth_click_from_same_ip_is_fraud(db_session):
    _, link = await _live_link(db_session)
    now = utc_now()

    for minute in range(5):
        outcome = await record_click(
            db_session,
            slug=link.slug,
            ip="198.51.100.7",
            user_agent=CHROME_UA,
            now=now - timedelta(minutes=50 - minute),
        )
        assert outcome.is_fraud is False

    sixth = await record_click(
        db_session, slug=link.slug, ip="198.51.100.7", user_agent=CHROME_UA, now=now
    )
    other_ip = await record_click(
        db_session, slug=link.slug, ip="198.51.100.8", user_agent=CHROME_UA, now=now
    )

    assert sixth.is_fraud is True
    assert sixth.fraud_reason == ClickFraudReason.IP_RATE_LIMIT
    assert other_ip.is_fraud is False
    await db_session.refresh(link)
    assert link.total_clicks == 6
    assert await _click_count(db_session, link.id, is_fraud=True) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_clicks_outside_window_do_not_count(db_session):
    _, link = await _live_link(db_session)
    now = utc_now()
    for _ in range(5):
        await persist(
            db_session,
            ClickEventFactory.create(
                link, ip="198.51.100.7", created_at=now - timedelta(minutes=61)
            ),
        )

    outcome = await record_click(
        db_session, slug=link.slug, ip="198.51.100.7", user_agent=CHROME_UA, now=now
    )

    assert outcome.is_fraud is False


@pytest.mark.asyncio
@pytest.mark.unit
async def test_bot_click_is_stored_but_not_counted(db_session):
    _, link = await _live_link(db_session)

    outcome = await record_click(
        db_session, slug=link.slug, ip="198.51.100.7", user_agent=GOOGLEBOT_UA
    )

    assert outcome.recorded is True
    assert outcome.fraud_reason == ClickFraudReason.BOT_USER_AGENT
    await db_session.refresh(link)
    assert link.total_clicks == 0
    assert await _click_count(db_session, link.id, is_fraud=True) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_click_on_paused_campaign_redirects_without_recording(db_session):
    campaign = await persist(db_session, CampaignFactory.create(status=CampaignStatus.PAUSED))
    link = await persist(db_session, TrackingLinkFactory.create(campaign_id=campaign.id))

    outcome = await record_click(
        db_session, slug=link.slug, ip="198.51.100.7", user_agent=CHROME_UA
    )

    assert outcome.recorded is False
    assert outcome.destination_url == link.destination_url
    assert await _click_count(db_session, link.id) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_inactive_or_unknown_link_not_found(db_session):
    _, link = await _live_link(db_session, is_active=False)

    with pytest.raises(NotFound):
        await record_click(db_session, slug=link.slug, ip="1.2.3.4", user_agent=CHROME_UA)
    with pytest.raises(NotFound):
        await record_click(db_session, slug="nope", ip="1.2.3.4", user_agent=CHROME_UA)


# ---------------------------------------------------------------------------
# record_conversion
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_duplicate_order_is_stored_unverified(db_session):
    campaign = await persist(db_session, CampaignFactory.create(status=CampaignStatus.LIVE))
    code = await persist(db_session, PromoCodeFactory.create(campaign_id=campaign.id))

    first = await record_conversion(
        db_session, promo_code=code.code, order_reference="ORD-1", order_amount=99_900
    )
    repeat = await record_conversion(
        db_session, promo_code=code.code, order_reference="ORD-1", order_amount=99_900
    )

    assert first.is_verified is True
    assert repeat.is_verified is False
    assert repeat.creator_id == code.creator_id
    await db_session.refresh(code)
    assert code.total_uses == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_conversion_with_unknown_code_not_found(db_session):
    with pytest.raises(NotFound):
        await record_conversion(db_session, promo_code="NOPE", order_reference="ORD-1")


# ---------------------------------------------------------------------------
# record_view_snapshot
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_view_snapshot_returns_previous_reading(db_session):
    campaign = await persist(db_session, CampaignFactory.create(status=CampaignStatus.LIVE))
    now = utc_now()
    kwargs = {
        "campaign_id": campaign.id,
        "creator_id": "creator-1",
        "platform": Platform.YOUTUBE,
        "post_url": "https://youtube.com/watch?v=abc",
    }

    first, previous = await record_view_snapshot(
        db_session, views=1_000, snapshot_at=now - timedelta(hours=1), **kwargs
    )
    assert previous is None

    second, previous = await record_view_snapshot(
        db_session, views=1_500, snapshot_at=now, **kwargs
    )
    assert previous.id == first.id
    assert second.view_count == 1_500
