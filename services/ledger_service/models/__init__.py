"""Ledger Service models package.

Re-exports all models and enums so that:
  - ``from services.ledger_service.models import Wallet`` works
  - Alembic env.py imports every table from one place
  - SQLAlchemy's mapper registry sees every model class on import

IMPORTANT: Every model class AND enum must be listed here.
When adding a new model, add both its import and its __all__ entry.
"""

from services.ledger_service.models.campaign import (  # noqa: F401
    Campaign,
    CampaignParticipation,
)
from services.ledger_service.models.enums import (  # noqa: F401
    OPEN_FRAUD_STATUSES,
    TERMINAL_FRAUD_STATUSES,
    CampaignStatus,
    CampaignType,
    ClickFraudReason,
    EscrowStatus,
    FraudFlagStatus,
    FraudFlagType,
    ParticipationStatus,
    PaymentMethodType,
    PayoutApprovalStatus,
    PayoutStatus,
    Platform,
    TransactionStatus,
    TransactionType,
    WalletType,
)
from services.ledger_service.models.escrow import Escrow  # noqa: F401
from services.ledger_service.models.fraud import FraudFlag  # noqa: F401
from services.ledger_service.models.metrics import CampaignMetrics  # noqa: F401
from services.ledger_service.models.payout import Payout  # noqa: F401
from services.ledger_service.models.tracking import (  # noqa: F401
    ClickEvent,
    ConversionEvent,
    PromoCode,
    TrackingLink,
    ViewSnapshot,
)
from services.ledger_service.models.transaction import LedgerTransaction  # noqa: F401
from services.ledger_service.models.wallet import PaymentMethod, Wallet  # noqa: F401

__all__ = [
    # Enums
    "OPEN_FRAUD_STATUSES",
    "TERMINAL_FRAUD_STATUSES",
    "CampaignStatus",
    "CampaignType",
    "ClickFraudReason",
    "EscrowStatus",
    "FraudFlagStatus",
    "FraudFlagType",
    "ParticipationStatus",
    "PaymentMethodType",
    "PayoutApprovalStatus",
    "PayoutStatus",
    "Platform",
    "TransactionStatus",
    "TransactionType",
    "WalletType",
    # Money
    "Wallet",
    "PaymentMethod",
    "LedgerTransaction",
    "Escrow",
    "Payout",
    # Campaign read model
    "Campaign",
    "CampaignParticipation",
    # Tracking
    "TrackingLink",
    "PromoCode",
    "ClickEvent",
    "ConversionEvent",
    "ViewSnapshot",
    # Derived / trust
    "CampaignMetrics",
    "FraudFlag",
]
