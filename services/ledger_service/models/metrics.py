"""CampaignMetrics model — derived, recomputable earnings per creator."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from sqlalchemy import BigInteger, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class CampaignMetrics(Base):
    """One row per (campaign, creator). Everything except ``paid_amount`` is
    overwritten by each recompute."""

    __tablename__ = "campaign_metrics"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("campaigns.id"), nullable=False
    )
    creator_id: Mapped[str] = mapped_column(String, nullable=False)
    verified_views: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    verified_clicks: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    verified_conversions: Mapped[int] = mapped_column(
        BigInteger, default=0, nullable=False
    )
    earned_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    paid_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    last_computed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("campaign_id", "creator_id", name="uq_campaign_metrics_pair"),
    )

    @property
    def unpaid_amount(self) -> int:
        return max(self.earned_amount - self.paid_amount, 0)
