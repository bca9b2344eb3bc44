"""Attribution identifiers and raw tracking signals.

Raw events are never deleted; fraud classification lives in flags on the
rows themselves.
"""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.ledger_service.models.enums import (
    ClickFraudReason,
    Platform,
    enum_values,
)
from sqlalchemy import BigInteger, Boolean, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class TrackingLink(Base):
    __tablename__ = "tracking_links"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    slug: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("campaigns.id"), nullable=False, index=True
    )
    creator_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    destination_url: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    total_clicks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


class PromoCode(Base):
    __tablename__ = "promo_codes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("campaigns.id"), nullable=False, index=True
    )
    creator_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    total_uses: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


class ClickEvent(Base):
    __tablename__ = "click_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tracking_link_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tracking_links.id"), nullable=False
    )
    campaign_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    creator_id: Mapped[str] = mapped_column(String, nullable=False)
    ip: Mapped[str] = mapped_column(String, nullable=False)
    user_agent: Mapped[str] = mapped_column(Text, default="", nullable=False)
    referer: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_fraud: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    fraud_reason: Mapped[Optional[ClickFraudReason]] = mapped_column(
        SAEnum(
            ClickFraudReason,
            name="click_fraud_reason_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        # Rate-limit window lookup on the redirect path
        Index("ix_click_events_link_ip_created", "tracking_link_id", "ip", "created_at"),
        Index("ix_click_events_link_created", "tracking_link_id", "created_at"),
        Index("ix_click_events_pair", "campaign_id", "creator_id", "is_fraud"),
    )


class ConversionEvent(Base):
    __tablename__ = "conversion_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    promo_code_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("promo_codes.id"), nullable=False, index=True
    )
    campaign_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    creator_id: Mapped[str] = mapped_column(String, nullable=False)
    order_reference: Mapped[str] = mapped_column(String, nullable=False)
    order_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        Index("ix_conversion_events_pair", "campaign_id", "creator_id", "is_verified"),
        Index("ix_conversion_events_order", "promo_code_id", "order_reference"),
    )


class ViewSnapshot(Base):
    """Cumulative view count read from the platform at ``snapshot_at``."""

    __tablename__ = "view_snapshots"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    campaign_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    creator_id: Mapped[str] = mapped_column(String, nullable=False)
    platform: Mapped[Platform] = mapped_column(
        SAEnum(
            Platform,
            name="platform_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    post_url: Mapped[str] = mapped_column(Text, nullable=False)
    view_count: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    like_count: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    comment_count: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    snapshot_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        Index(
            "ix_view_snapshots_series",
            "campaign_id",
            "creator_id",
            "platform",
            "snapshot_at",
        ),
    )
