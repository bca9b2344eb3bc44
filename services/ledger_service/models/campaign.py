"""Campaign read model.

Campaign authoring lives in the marketplace app; the ledger only needs the
fields that decide funding, payout formulas and which creators take part.
"""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.ledger_service.models.enums import (
    CampaignStatus,
    CampaignType,
    ParticipationStatus,
    enum_values,
)
from sqlalchemy import BigInteger, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class Campaign(Base):
    __tablename__ = "campaigns"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    brand_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    campaign_type: Mapped[CampaignType] = mapped_column(
        SAEnum(
            CampaignType,
            name="campaign_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    status: Mapped[CampaignStatus] = mapped_column(
        SAEnum(
            CampaignStatus,
            name="campaign_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=CampaignStatus.DRAFT,
        nullable=False,
        index=True,
    )
    platform_commission_bps: Mapped[int] = mapped_column(
        Integer, default=1500, nullable=False
    )
    # Payout rates in paise
    payout_per_1k_views: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    payout_per_click: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    payout_per_sale: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    max_payout_per_creator: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Campaign {self.id} {self.campaign_type.value} {self.status.value}>"


class CampaignParticipation(Base):
    """A creator's accepted place in a campaign."""

    __tablename__ = "campaign_participations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("campaigns.id"), nullable=False, index=True
    )
    creator_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    status: Mapped[ParticipationStatus] = mapped_column(
        SAEnum(
            ParticipationStatus,
            name="participation_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=ParticipationStatus.PENDING,
        nullable=False,
    )
    content_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("campaign_id", "creator_id", name="uq_participation_pair"),
    )
