"""Ledger Service schemas package.

Re-exports all schemas so that routers import from one place.

IMPORTANT: Every schema class must be listed here.
When adding a new schema, add its import and __all__ entry.
"""

from services.ledger_service.schemas.escrow import (  # noqa: F401
    EscrowLockRequest,
    EscrowReleaseRequest,
    EscrowResponse,
    ReleaseItem,
)
from services.ledger_service.schemas.fraud import (  # noqa: F401
    BotDetectedEvidence,
    ClickAnomalyEvidence,
    ConversionMismatchEvidence,
    FraudEvidence,
    FraudFlagListResponse,
    FraudFlagResponse,
    IpAbuseEvidence,
    ResolveFraudFlagRequest,
    ViewSpikeEvidence,
)
from services.ledger_service.schemas.metrics import (  # noqa: F401
    CampaignMetricsResponse,
    RecomputeMetricsRequest,
)
from services.ledger_service.schemas.payment_method import (  # noqa: F401
    BankAccountDetails,
    PaymentDetails,
    PaymentMethodCreate,
    PaymentMethodResponse,
    PaypalDetails,
    UpiDetails,
)
from services.ledger_service.schemas.payout import (  # noqa: F401
    BatchApproveRequest,
    BatchApproveResponse,
    PayoutListResponse,
    PayoutResponse,
    ReversePayoutRequest,
    WithdrawalRequest,
)
from services.ledger_service.schemas.tracking import (  # noqa: F401
    ConversionCreate,
    ConversionResponse,
)
from services.ledger_service.schemas.wallet import (  # noqa: F401
    BucketDrift,
    TransactionListResponse,
    TransactionResponse,
    WalletCreateRequest,
    WalletReconciliationResponse,
    WalletResponse,
)

__all__ = [
    # Wallet
    "WalletCreateRequest",
    "WalletResponse",
    "TransactionListResponse",
    "TransactionResponse",
    "BucketDrift",
    "WalletReconciliationResponse",
    # Payment methods
    "BankAccountDetails",
    "PaymentDetails",
    "PaymentMethodCreate",
    "PaymentMethodResponse",
    "PaypalDetails",
    "UpiDetails",
    # Escrow
    "EscrowLockRequest",
    "EscrowReleaseRequest",
    "EscrowResponse",
    "ReleaseItem",
    # Payout
    "BatchApproveRequest",
    "BatchApproveResponse",
    "PayoutListResponse",
    "PayoutResponse",
    "ReversePayoutRequest",
    "WithdrawalRequest",
    # Tracking
    "ConversionCreate",
    "ConversionResponse",
    # Fraud
    "BotDetectedEvidence",
    "ClickAnomalyEvidence",
    "ConversionMismatchEvidence",
    "FraudEvidence",
    "FraudFlagListResponse",
    "FraudFlagResponse",
    "IpAbuseEvidence",
    "ResolveFraudFlagRequest",
    "ViewSpikeEvidence",
    # Metrics
    "CampaignMetricsResponse",
    "RecomputeMetricsRequest",
]
