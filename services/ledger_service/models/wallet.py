"""Wallet and PaymentMethod models — balance buckets and payout destinations."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.ledger_service.models.enums import (
    PaymentMethodType,
    WalletType,
    enum_values,
)
from sqlalchemy import JSON, BigInteger, Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship


class Wallet(Base):
    """One per marketplace account (brand or creator), created with the account.

    All amounts are paise. ``available + pending + escrow`` is the money the
    platform holds for this owner.
    """

    __tablename__ = "wallets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False
    )
    owner_type: Mapped[WalletType] = mapped_column(
        SAEnum(
            WalletType,
            name="wallet_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    available_balance: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    pending_balance: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    escrow_balance: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    lifetime_funded: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    lifetime_earnings: Mapped[int] = mapped_column(
        BigInteger, default=0, nullable=False
    )
    total_withdrawn: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="INR", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    payment_methods: Mapped[list["PaymentMethod"]] = relationship(
        back_populates="wallet", lazy="selectin"
    )

    __table_args__ = (
        CheckConstraint("available_balance >= 0", name="ck_wallet_available_non_negative"),
        CheckConstraint("pending_balance >= 0", name="ck_wallet_pending_non_negative"),
        CheckConstraint("escrow_balance >= 0", name="ck_wallet_escrow_non_negative"),
    )

    @property
    def total_balance(self) -> int:
        return self.available_balance + self.pending_balance + self.escrow_balance

    def __repr__(self) -> str:
        return (
            f"<Wallet {self.id} owner={self.owner_id} type={self.owner_type.value} "
            f"available={self.available_balance} escrow={self.escrow_balance}>"
        )


class PaymentMethod(Base):
    """Payout destination. ``details`` holds a tagged union validated by
    ``services.ledger_service.schemas.payment_method.PaymentDetails``."""

    __tablename__ = "payment_methods"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    wallet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("wallets.id"), nullable=False, index=True
    )
    method_type: Mapped[PaymentMethodType] = mapped_column(
        SAEnum(
            PaymentMethodType,
            name="payment_method_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    details: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False
    )
    # Razorpay fund account id; the payout rail only accepts registered destinations
    fund_account_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    wallet: Mapped["Wallet"] = relationship(back_populates="payment_methods")

    def __repr__(self) -> str:
        return f"<PaymentMethod {self.id} {self.method_type.value} wallet={self.wallet_id}>"
