"""Escrow model — brand funds locked against a single campaign."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.ledger_service.models.enums import EscrowStatus, enum_values
from sqlalchemy import BigInteger, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class Escrow(Base):
    __tablename__ = "escrows"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("campaigns.id"), unique=True, nullable=False
    )
    brand_wallet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("wallets.id"), nullable=False, index=True
    )
    total_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    released_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    commission_amount: Mapped[int] = mapped_column(
        BigInteger, default=0, nullable=False
    )
    status: Mapped[EscrowStatus] = mapped_column(
        SAEnum(
            EscrowStatus,
            name="escrow_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=EscrowStatus.LOCKED,
        nullable=False,
    )
    locked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    released_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    refunded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("total_amount > 0", name="ck_escrow_total_positive"),
        CheckConstraint(
            "released_amount >= 0 AND released_amount <= total_amount",
            name="ck_escrow_released_within_total",
        ),
    )

    @property
    def remaining_amount(self) -> int:
        return self.total_amount - self.released_amount

    def __repr__(self) -> str:
        return (
            f"<Escrow {self.id} campaign={self.campaign_id} "
            f"{self.released_amount}/{self.total_amount} {self.status.value}>"
        )
