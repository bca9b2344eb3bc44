"""LedgerTransaction model — append-only audit of every bucket change."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.ledger_service.models.enums import (
    TransactionStatus,
    TransactionType,
    enum_values,
)
from sqlalchemy import BigInteger, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class LedgerTransaction(Base):
    """Immutable ledger entry. Source of truth for wallet balances.

    ``amount`` is the signed headline figure shown in history; the three
    ``*_delta`` columns are the exact bucket changes, so that summing them
    per wallet reproduces the wallet's balances. Only ``status`` changes
    after insert (PENDING withdrawal → COMPLETED / REVERSED).
    """

    __tablename__ = "ledger_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    wallet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("wallets.id"), nullable=False, index=True
    )
    transaction_type: Mapped[TransactionType] = mapped_column(
        SAEnum(
            TransactionType,
            name="ledger_transaction_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(
            TransactionStatus,
            name="ledger_transaction_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=TransactionStatus.COMPLETED,
        nullable=False,
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    available_delta: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    pending_delta: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    escrow_delta: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=False)
    reference_type: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    reference_id: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    initiated_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    idempotency_key: Mapped[Optional[str]] = mapped_column(
        String, unique=True, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        Index("ix_ledger_transactions_wallet_created", "wallet_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerTransaction {self.id} {self.transaction_type.value} "
            f"{self.amount} {self.status.value}>"
        )
