"""Enums for the Ledger Service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class WalletType(str, enum.Enum):
    BRAND = "brand"
    CREATOR = "creator"


class TransactionType(str, enum.Enum):
    EARNING = "earning"
    WITHDRAWAL = "withdrawal"
    ESCROW_LOCK = "escrow_lock"
    ESCROW_RELEASE = "escrow_release"
    REFUND = "refund"
    PLATFORM_FEE = "platform_fee"
    CAMPAIGN_FUND = "campaign_fund"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REVERSED = "reversed"


class EscrowStatus(str, enum.Enum):
    LOCKED = "locked"
    PARTIALLY_RELEASED = "partially_released"
    FULLY_RELEASED = "fully_released"
    REFUNDED = "refunded"


class PayoutStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PayoutApprovalStatus(str, enum.Enum):
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentMethodType(str, enum.Enum):
    BANK_ACCOUNT = "bank_account"
    UPI = "upi"
    PAYPAL = "paypal"


class CampaignType(str, enum.Enum):
    VIEW = "view"
    CLICK = "click"
    CONVERSION = "conversion"


class CampaignStatus(str, enum.Enum):
    DRAFT = "draft"
    FUNDING = "funding"
    LIVE = "live"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ParticipationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    ACTIVE = "active"
    COMPLETED = "completed"
    FROZEN = "frozen"
    REJECTED = "rejected"


class Platform(str, enum.Enum):
    INSTAGRAM = "instagram"
    YOUTUBE = "youtube"
    OTHER = "other"


class ClickFraudReason(str, enum.Enum):
    BOT_USER_AGENT = "bot_user_agent"
    IP_RATE_LIMIT = "ip_rate_limit"


class FraudFlagType(str, enum.Enum):
    VIEW_SPIKE = "view_spike"
    CLICK_ANOMALY = "click_anomaly"
    CONVERSION_MISMATCH = "conversion_mismatch"
    BOT_DETECTED = "bot_detected"
    IP_ABUSE = "ip_abuse"


class FraudFlagStatus(str, enum.Enum):
    DETECTED = "detected"
    INVESTIGATING = "investigating"
    CONFIRMED = "confirmed"
    DISMISSED = "dismissed"


OPEN_FRAUD_STATUSES = (FraudFlagStatus.DETECTED, FraudFlagStatus.INVESTIGATING)
TERMINAL_FRAUD_STATUSES = (FraudFlagStatus.CONFIRMED, FraudFlagStatus.DISMISSED)
