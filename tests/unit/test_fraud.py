"""Unit tests for fraud_detection: severity ladders, flag upgrades and the sweep."""

from datetime import timedelta

import pytest
from libs.common.datetime_utils import utc_now
from services.ledger_service.errors import AlreadyProcessed, InvalidState
from services.ledger_service.models import (
    CampaignStatus,
    CampaignType,
    FraudFlag,
    FraudFlagStatus,
    FraudFlagType,
    Platform,
)
from services.ledger_service.services.fraud_detection import (
    bot_ratio_severity,
    check_click_fraud,
    check_view_spike,
    click_anomaly_severity,
    conversion_mismatch_severity,
    ip_abuse_severity,
    raise_flag,
    resolve_flag,
    run_fraud_sweep,
    view_spike_severity,
)
from services.ledger_service.services.tracking_ops import record_view_snapshot
from sqlalchemy import select

from tests.factories import (
    CampaignFactory,
    ClickEventFactory,
    ConversionEventFactory,
    ParticipationFactory,
    PromoCodeFactory,
    TrackingLinkFactory,
    persist,
)


async def _flags(db, campaign_id):
    result = await db.execute(
        select(FraudFlag)
        .where(FraudFlag.campaign_id == campaign_id)
        .order_by(FraudFlag.flag_type)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


def _clicks(link, count, *, now, ip=None, start=0, **overrides):
    """``count`` clicks spread over the last 50 minutes."""
    return [
        ClickEventFactory.create(
            link,
            ip=ip or f"10.0.{(start + i) // 250}.{(start + i) % 250}",
            created_at=now - timedelta(seconds=3000 * i // max(count, 1)),
            **overrides,
        )
        for i in range(count)
    ]


# ---------------------------------------------------------------------------
# Severity ladders
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_click_anomaly_thresholds_are_strict():
    assert click_anomaly_severity(50) is None
    assert click_anomaly_severity(51) == 3
    assert click_anomaly_severity(101) == 4
    assert click_anomaly_severity(201) == 5


@pytest.mark.unit
def test_ip_abuse_thresholds():
    assert ip_abuse_severity(20) is None
    assert ip_abuse_severity(21) == 4
    assert ip_abuse_severity(51) == 5


@pytest.mark.unit
def test_view_spike_thresholds():
    assert view_spike_severity(0, 10_000) is None
    assert view_spike_severity(1_000, 6_000) is None
    assert view_spike_severity(1_000, 7_000) == 3
    assert view_spike_severity(1_000, 12_000) == 4
    assert view_spike_severity(1_000, 22_000) == 5


@pytest.mark.unit
def test_conversion_mismatch_needs_more_than_ten_conversions():
    assert conversion_mismatch_severity(20, 10) is None
    assert conversion_mismatch_severity(30, 11) == 3
    assert conversion_mismatch_severity(20, 11) == 4
    assert conversion_mismatch_severity(15, 11) == 5
    assert conversion_mismatch_severity(0, 50) is None


@pytest.mark.unit
def test_bot_ratio_thresholds():
    assert bot_ratio_severity(10, 10) is None
    assert bot_ratio_severity(20, 10) is None
    assert bot_ratio_severity(20, 11) == 4
    assert bot_ratio_severity(20, 17) == 5


# ---------------------------------------------------------------------------
# Click checks and escalation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_click_burst_escalates_single_flag(db_session):
    campaign = await persist(db_session, CampaignFactory.create(status=CampaignStatus.LIVE))
    link = await persist(db_session, TrackingLinkFactory.create(campaign_id=campaign.id))
    now = utc_now()

    # 60 clicks in the hour, 35 of them from one address
    await persist(
        db_session,
        *_clicks(link, 35, now=now, ip="203.0.113.99"),
        *_clicks(link, 25, now=now),
    )
    await check_click_fraud(db_session, link, now=now)

    flags = {flag.flag_type: flag for flag in await _flags(db_session, campaign.id)}
    assert set(flags) == {FraudFlagType.CLICK_ANOMALY, FraudFlagType.IP_ABUSE}
    assert flags[FraudFlagType.CLICK_ANOMALY].severity == 3
    assert flags[FraudFlagType.IP_ABUSE].severity == 4
    assert flags[FraudFlagType.IP_ABUSE].evidence["ip"] == "203.0.113.99"
    anomaly_id = flags[FraudFlagType.CLICK_ANOMALY].id

    # Burst keeps growing to 210 clicks
    await persist(db_session, *_clicks(link, 150, now=now, start=25))
    await check_click_fraud(db_session, link, now=now)

    flags = await _flags(db_session, campaign.id)
    anomaly = [f for f in flags if f.flag_type == FraudFlagType.CLICK_ANOMALY]
    assert len(anomaly) == 1
    assert anomaly[0].id == anomaly_id
    assert anomaly[0].severity == 5
    assert anomaly[0].evidence["clicks_last_hour"] == 210
    assert len([f for f in flags if f.flag_type == FraudFlagType.IP_ABUSE]) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_clicks_older_than_an_hour_are_ignored(db_session):
    campaign = await persist(db_session, CampaignFactory.create(status=CampaignStatus.LIVE))
    link = await persist(db_session, TrackingLinkFactory.create(campaign_id=campaign.id))
    now = utc_now()
    await persist(db_session, *_clicks(link, 80, now=now - timedelta(hours=2)))

    assert await check_click_fraud(db_session, link, now=now) == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_raise_flag_never_lowers_severity(db_session):
    campaign = await persist(db_session, CampaignFactory.create())
    kwargs = {
        "flag_type": FraudFlagType.BOT_DETECTED,
        "description": "bots",
        "evidence": {},
        "campaign_id": campaign.id,
    }

    first = await raise_flag(db_session, severity=5, **kwargs)
    second = await raise_flag(db_session, severity=4, **kwargs)

    assert second.id == first.id
    assert second.severity == 5


@pytest.mark.asyncio
@pytest.mark.unit
async def test_resolved_flag_is_not_upgraded(db_session):
    campaign = await persist(db_session, CampaignFactory.create())
    kwargs = {
        "flag_type": FraudFlagType.CLICK_ANOMALY,
        "description": "burst",
        "evidence": {},
        "campaign_id": campaign.id,
    }
    first = await raise_flag(db_session, severity=3, **kwargs)
    await resolve_flag(
        db_session,
        flag_id=first.id,
        status=FraudFlagStatus.DISMISSED,
        resolved_by="admin-1",
    )

    second = await raise_flag(db_session, severity=4, **kwargs)

    assert second.id != first.id
    assert second.status == FraudFlagStatus.DETECTED


# ---------------------------------------------------------------------------
# View spikes
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_view_spike_flags_sixfold_growth(db_session):
    campaign = await persist(
        db_session,
        CampaignFactory.create(
            status=CampaignStatus.LIVE,
            campaign_type=CampaignType.VIEW,
            payout_per_click=None,
            payout_per_1k_views=5_000,
        ),
    )
    now = utc_now()
    series = {
        "campaign_id": campaign.id,
        "creator_id": "creator-1",
        "platform": Platform.INSTAGRAM,
        "post_url": "https://instagram.com/p/xyz",
    }
    snapshot, previous = await record_view_snapshot(
        db_session, views=1_000, snapshot_at=now - timedelta(hours=1), **series
    )
    assert await check_view_spike(db_session, snapshot=snapshot, previous=previous) is None

    snapshot, previous = await record_view_snapshot(
        db_session, views=7_000, snapshot_at=now, **series
    )
    flag = await check_view_spike(db_session, snapshot=snapshot, previous=previous)

    assert flag.flag_type == FraudFlagType.VIEW_SPIKE
    assert flag.severity == 3
    assert flag.creator_id == "creator-1"
    assert flag.evidence["previous_views"] == 1_000
    assert flag.evidence["current_views"] == 7_000


# ---------------------------------------------------------------------------
# Sweep
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_sweep_checks_live_links_and_conversion_pairs(db_session):
    now = utc_now()
    click_campaign = await persist(
        db_session, CampaignFactory.create(status=CampaignStatus.LIVE)
    )
    draft_campaign = await persist(db_session, CampaignFactory.create())
    live_link = await persist(
        db_session, TrackingLinkFactory.create(campaign_id=click_campaign.id)
    )
    draft_link = await persist(
        db_session, TrackingLinkFactory.create(campaign_id=draft_campaign.id)
    )
    await persist(
        db_session,
        *_clicks(live_link, 12, now=now, is_fraud=True),
        *_clicks(draft_link, 80, now=now),
    )

    sale_campaign = await persist(
        db_session,
        CampaignFactory.create(
            status=CampaignStatus.LIVE,
            campaign_type=CampaignType.CONVERSION,
            payout_per_click=None,
            payout_per_sale=10_000,
        ),
    )
    await persist(
        db_session,
        ParticipationFactory.create(campaign_id=sale_campaign.id, creator_id="creator-1"),
    )
    sale_link = await persist(
        db_session, TrackingLinkFactory.create(campaign_id=sale_campaign.id, is_active=False)
    )
    code = await persist(db_session, PromoCodeFactory.create(campaign_id=sale_campaign.id))
    await persist(
        db_session,
        *_clicks(sale_link, 15, now=now - timedelta(days=1)),
        *[ConversionEventFactory.create(code) for _ in range(12)],
    )

    result = await run_fraud_sweep(db_session, page_size=1, now=now)

    assert result.links_checked == 1
    assert result.pairs_checked == 1
    assert result.failures == 0

    bot_flags = await _flags(db_session, click_campaign.id)
    assert [f.flag_type for f in bot_flags] == [FraudFlagType.BOT_DETECTED]
    assert bot_flags[0].severity == 5
    assert await _flags(db_session, draft_campaign.id) == []

    sale_flags = await _flags(db_session, sale_campaign.id)
    assert [f.flag_type for f in sale_flags] == [FraudFlagType.CONVERSION_MISMATCH]
    # 12 sales on 15 clicks
    assert sale_flags[0].severity == 5
    assert len(result.flag_ids) == 2


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_resolve_flag_lifecycle(db_session):
    campaign = await persist(db_session, CampaignFactory.create())
    flag = await raise_flag(
        db_session,
        flag_type=FraudFlagType.IP_ABUSE,
        severity=4,
        description="abuse",
        evidence={},
        campaign_id=campaign.id,
    )

    with pytest.raises(InvalidState):
        await resolve_flag(
            db_session, flag_id=flag.id, status=FraudFlagStatus.DETECTED, resolved_by="a"
        )

    flag = await resolve_flag(
        db_session,
        flag_id=flag.id,
        status=FraudFlagStatus.INVESTIGATING,
        resolved_by="admin-1",
    )
    assert flag.status == FraudFlagStatus.INVESTIGATING
    assert flag.resolved_at is None

    flag = await resolve_flag(
        db_session,
        flag_id=flag.id,
        status=FraudFlagStatus.CONFIRMED,
        resolved_by="admin-1",
        note="Click farm",
    )
    assert flag.status == FraudFlagStatus.CONFIRMED
    assert flag.resolved_at is not None
    assert flag.resolution_note == "Click farm"

    with pytest.raises(AlreadyProcessed):
        await resolve_flag(
            db_session,
            flag_id=flag.id,
            status=FraudFlagStatus.DISMISSED,
            resolved_by="admin-1",
        )
