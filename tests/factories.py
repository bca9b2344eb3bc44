"""
Model factories for creating valid test data.

Every factory produces a valid, insertable SQLAlchemy model instance.
Override any field via kwargs. Amounts are in paise.

Usage:
    wallet = WalletFactory.create(owner_id="brand-1", available_balance=5_000_00)
    db_session.add(wallet)
    await db_session.commit()
"""

import uuid
from datetime import datetime, timezone

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


def _now() -> datetime:
    return datetime.now(timezone.utc)


CHROME_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
GOOGLEBOT_UA = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"


def _slug() -> str:
    return f"lnk-{uuid.uuid4().hex[:10]}"


async def persist(db, *objects):
    """Add, commit and return the objects (single object if one given)."""
    for obj in objects:
        db.add(obj)
    await db.commit()
    return objects[0] if len(objects) == 1 else objects


# ---------------------------------------------------------------------------
# Wallets
# ---------------------------------------------------------------------------


class WalletFactory:
    @staticmethod
    def create(**overrides):
        from services.ledger_service.models import Wallet, WalletType

        defaults = {
            "id": _uuid(),
            "owner_id": f"creator-{uuid.uuid4().hex[:8]}",
            "owner_type": WalletType.CREATOR,
            "available_balance": 0,
            "pending_balance": 0,
            "escrow_balance": 0,
            "lifetime_funded": 0,
            "lifetime_earnings": 0,
            "total_withdrawn": 0,
            "currency": "INR",
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Wallet(**defaults)


class PaymentMethodFactory:
    @staticmethod
    def create(wallet_id=None, **overrides):
        from services.ledger_service.models import PaymentMethod, PaymentMethodType

        defaults = {
            "id": _uuid(),
            "wallet_id": wallet_id or _uuid(),
            "method_type": PaymentMethodType.UPI,
            "details": {"method_type": "upi", "vpa": "creator@okaxis"},
            "fund_account_id": f"fa_{uuid.uuid4().hex[:14]}",
            "is_primary": True,
            "is_verified": True,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return PaymentMethod(**defaults)


# ---------------------------------------------------------------------------
# Campaigns
# ---------------------------------------------------------------------------


class CampaignFactory:
    @staticmethod
    def create(**overrides):
        from services.ledger_service.models import (
            Campaign,
            CampaignStatus,
            CampaignType,
        )

        defaults = {
            "id": _uuid(),
            "brand_id": "brand-1",
            "name": "Summer Launch",
            "campaign_type": CampaignType.CLICK,
            "status": CampaignStatus.DRAFT,
            "platform_commission_bps": 1500,
            "payout_per_1k_views": None,
            "payout_per_click": 200,
            "payout_per_sale": None,
            "max_payout_per_creator": None,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Campaign(**defaults)


class ParticipationFactory:
    @staticmethod
    def create(campaign_id=None, **overrides):
        from services.ledger_service.models import (
            CampaignParticipation,
            ParticipationStatus,
        )

        defaults = {
            "id": _uuid(),
            "campaign_id": campaign_id or _uuid(),
            "creator_id": f"creator-{uuid.uuid4().hex[:8]}",
            "status": ParticipationStatus.ACTIVE,
            "content_url": None,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return CampaignParticipation(**defaults)


# ---------------------------------------------------------------------------
# Tracking
# ---------------------------------------------------------------------------


class TrackingLinkFactory:
    @staticmethod
    def create(campaign_id=None, **overrides):
        from services.ledger_service.models import TrackingLink

        defaults = {
            "id": _uuid(),
            "slug": _slug(),
            "campaign_id": campaign_id or _uuid(),
            "creator_id": "creator-1",
            "destination_url": "https://shop.example.com/summer",
            "is_active": True,
            "total_clicks": 0,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return TrackingLink(**defaults)


class PromoCodeFactory:
    @staticmethod
    def create(campaign_id=None, **overrides):
        from services.ledger_service.models import PromoCode

        defaults = {
            "id": _uuid(),
            "code": f"SAVE{uuid.uuid4().hex[:6].upper()}",
            "campaign_id": campaign_id or _uuid(),
            "creator_id": "creator-1",
            "is_active": True,
            "total_uses": 0,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return PromoCode(**defaults)


class ClickEventFactory:
    @staticmethod
    def create(link, **overrides):
        from services.ledger_service.models import ClickEvent

        defaults = {
            "id": _uuid(),
            "tracking_link_id": link.id,
            "campaign_id": link.campaign_id,
            "creator_id": link.creator_id,
            "ip": "203.0.113.10",
            "user_agent": CHROME_UA,
            "referer": None,
            "is_fraud": False,
            "fraud_reason": None,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return ClickEvent(**defaults)


class ConversionEventFactory:
    @staticmethod
    def create(promo_code, **overrides):
        from services.ledger_service.models import ConversionEvent

        defaults = {
            "id": _uuid(),
            "promo_code_id": promo_code.id,
            "campaign_id": promo_code.campaign_id,
            "creator_id": promo_code.creator_id,
            "order_reference": f"ORD-{uuid.uuid4().hex[:8]}",
            "order_amount": 49_900,
            "is_verified": True,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return ConversionEvent(**defaults)


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


class CampaignMetricsFactory:
    @staticmethod
    def create(campaign_id=None, **overrides):
        from services.ledger_service.models import CampaignMetrics

        defaults = {
            "id": _uuid(),
            "campaign_id": campaign_id or _uuid(),
            "creator_id": "creator-1",
            "verified_views": 0,
            "verified_clicks": 0,
            "verified_conversions": 0,
            "earned_amount": 0,
            "paid_amount": 0,
            "last_computed_at": None,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return CampaignMetrics(**defaults)
