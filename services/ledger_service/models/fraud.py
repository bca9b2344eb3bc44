"""FraudFlag model — advisory anomaly awaiting human resolution."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.ledger_service.models.enums import (
    FraudFlagStatus,
    FraudFlagType,
    enum_values,
)
from sqlalchemy import JSON, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Index, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column


class FraudFlag(Base):
    __tablename__ = "fraud_flags"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    flag_type: Mapped[FraudFlagType] = mapped_column(
        SAEnum(
            FraudFlagType,
            name="fraud_flag_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    status: Mapped[FraudFlagStatus] = mapped_column(
        SAEnum(
            FraudFlagStatus,
            name="fraud_flag_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=FraudFlagStatus.DETECTED,
        nullable=False,
    )
    severity: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # Tagged by flag type; see schemas.fraud.FraudEvidence
    evidence: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False
    )
    campaign_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    creator_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    resolved_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    resolution_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("severity BETWEEN 1 AND 5", name="ck_fraud_flag_severity_range"),
        Index("ix_fraud_flags_open_lookup", "flag_type", "campaign_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<FraudFlag {self.id} {self.flag_type.value} sev={self.severity} "
            f"{self.status.value}>"
        )
