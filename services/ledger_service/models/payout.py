"""Payout model — withdrawal request through approval and external transfer."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.ledger_service.models.enums import (
    PayoutApprovalStatus,
    PayoutStatus,
    enum_values,
)
from sqlalchemy import BigInteger, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship


class Payout(Base):
    """Funds leave ``available`` when the request is made and are held here
    until the transfer completes or an admin reverses the request."""

    __tablename__ = "payouts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    wallet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("wallets.id"), nullable=False, index=True
    )
    owner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    payment_method_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("payment_methods.id"), nullable=True
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    tds_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    net_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[PayoutStatus] = mapped_column(
        SAEnum(
            PayoutStatus,
            name="payout_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=PayoutStatus.PENDING,
        nullable=False,
    )
    approval_status: Mapped[PayoutApprovalStatus] = mapped_column(
        SAEnum(
            PayoutApprovalStatus,
            name="payout_approval_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=PayoutApprovalStatus.PENDING_APPROVAL,
        nullable=False,
    )
    approved_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    external_transfer_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reversed_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    reversed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reversal_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    payment_method: Mapped[Optional["PaymentMethod"]] = relationship(  # noqa: F821
        lazy="selectin"
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payout_amount_positive"),
        CheckConstraint(
            "net_amount + tds_amount = amount", name="ck_payout_net_plus_tds"
        ),
        Index("ix_payouts_queue", "approval_status", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Payout {self.id} {self.amount} {self.status.value}/"
            f"{self.approval_status.value}>"
        )
