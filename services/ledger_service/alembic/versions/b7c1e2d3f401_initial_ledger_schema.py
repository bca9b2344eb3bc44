"""initial_ledger_schema

Revision ID: b7c1e2d3f401
Revises:
Create Date: 2026-03-02 09:12:00.000000
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "b7c1e2d3f401"
down_revision = None
branch_labels = None
depends_on = None


JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

wallet_type_enum = sa.Enum("brand", "creator", name="wallet_type_enum")
transaction_type_enum = sa.Enum(
    "earning",
    "withdrawal",
    "escrow_lock",
    "escrow_release",
    "refund",
    "platform_fee",
    "campaign_fund",
    name="ledger_transaction_type_enum",
)
transaction_status_enum = sa.Enum(
    "pending", "completed", "failed", "reversed", name="ledger_transaction_status_enum"
)
escrow_status_enum = sa.Enum(
    "locked",
    "partially_released",
    "fully_released",
    "refunded",
    name="escrow_status_enum",
)
payout_status_enum = sa.Enum(
    "pending",
    "processing",
    "completed",
    "failed",
    "cancelled",
    name="payout_status_enum",
)
payout_approval_status_enum = sa.Enum(
    "pending_approval", "approved", "rejected", name="payout_approval_status_enum"
)
payment_method_type_enum = sa.Enum(
    "bank_account", "upi", "paypal", name="payment_method_type_enum"
)
campaign_type_enum = sa.Enum("view", "click", "conversion", name="campaign_type_enum")
campaign_status_enum = sa.Enum(
    "draft",
    "funding",
    "live",
    "paused",
    "completed",
    "cancelled",
    name="campaign_status_enum",
)
participation_status_enum = sa.Enum(
    "pending",
    "approved",
    "active",
    "completed",
    "frozen",
    "rejected",
    name="participation_status_enum",
)
platform_enum = sa.Enum("instagram", "youtube", "other", name="platform_enum")
click_fraud_reason_enum = sa.Enum(
    "bot_user_agent", "ip_rate_limit", name="click_fraud_reason_enum"
)
fraud_flag_type_enum = sa.Enum(
    "view_spike",
    "click_anomaly",
    "conversion_mismatch",
    "bot_detected",
    "ip_abuse",
    name="fraud_flag_type_enum",
)
fraud_flag_status_enum = sa.Enum(
    "detected",
    "investigating",
    "confirmed",
    "dismissed",
    name="fraud_flag_status_enum",
)

ALL_ENUMS = (
    wallet_type_enum,
    transaction_type_enum,
    transaction_status_enum,
    escrow_status_enum,
    payout_status_enum,
    payout_approval_status_enum,
    payment_method_type_enum,
    campaign_type_enum,
    campaign_status_enum,
    participation_status_enum,
    platform_enum,
    click_fraud_reason_enum,
    fraud_flag_type_enum,
    fraud_flag_status_enum,
)


def upgrade() -> None:
    op.create_table(
        "wallets",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("owner_type", wallet_type_enum, nullable=False),
        sa.Column("available_balance", sa.BigInteger(), nullable=False),
        sa.Column("pending_balance", sa.BigInteger(), nullable=False),
        sa.Column("escrow_balance", sa.BigInteger(), nullable=False),
        sa.Column("lifetime_funded", sa.BigInteger(), nullable=False),
        sa.Column("lifetime_earnings", sa.BigInteger(), nullable=False),
        sa.Column("total_withdrawn", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "available_balance >= 0", name="ck_wallet_available_non_negative"
        ),
        sa.CheckConstraint("pending_balance >= 0", name="ck_wallet_pending_non_negative"),
        sa.CheckConstraint("escrow_balance >= 0", name="ck_wallet_escrow_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_wallets_owner_id", "wallets", ["owner_id"], unique=True)

    op.create_table(
        "payment_methods",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("wallet_id", sa.Uuid(), nullable=False),
        sa.Column("method_type", payment_method_type_enum, nullable=False),
        sa.Column("details", JSON_TYPE, nullable=False),
        sa.Column("fund_account_id", sa.String(), nullable=True),
        sa.Column("is_primary", sa.Boolean(), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["wallet_id"], ["wallets.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_payment_methods_wallet_id", "payment_methods", ["wallet_id"], unique=False
    )

    op.create_table(
        "ledger_transactions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("wallet_id", sa.Uuid(), nullable=False),
        sa.Column("transaction_type", transaction_type_enum, nullable=False),
        sa.Column("status", transaction_status_enum, nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("available_delta", sa.BigInteger(), nullable=False),
        sa.Column("pending_delta", sa.BigInteger(), nullable=False),
        sa.Column("escrow_delta", sa.BigInteger(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("reference_type", sa.String(), nullable=True),
        sa.Column("reference_id", sa.String(), nullable=True),
        sa.Column("initiated_by", sa.String(), nullable=True),
        sa.Column("idempotency_key", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["wallet_id"], ["wallets.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("idempotency_key"),
    )
    op.create_index(
        "ix_ledger_transactions_wallet_id",
        "ledger_transactions",
        ["wallet_id"],
        unique=False,
    )
    op.create_index(
        "ix_ledger_transactions_reference_id",
        "ledger_transactions",
        ["reference_id"],
        unique=False,
    )
    op.create_index(
        "ix_ledger_transactions_wallet_created",
        "ledger_transactions",
        ["wallet_id", "created_at"],
        unique=False,
    )

    op.create_table(
        "campaigns",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("brand_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("campaign_type", campaign_type_enum, nullable=False),
        sa.Column("status", campaign_status_enum, nullable=False),
        sa.Column("platform_commission_bps", sa.Integer(), nullable=False),
        sa.Column("payout_per_1k_views", sa.BigInteger(), nullable=True),
        sa.Column("payout_per_click", sa.BigInteger(), nullable=True),
        sa.Column("payout_per_sale", sa.BigInteger(), nullable=True),
        sa.Column("max_payout_per_creator", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_campaigns_brand_id", "campaigns", ["brand_id"], unique=False)
    op.create_index("ix_campaigns_status", "campaigns", ["status"], unique=False)

    op.create_table(
        "campaign_participations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("campaign_id", sa.Uuid(), nullable=False),
        sa.Column("creator_id", sa.String(), nullable=False),
        sa.Column("status", participation_status_enum, nullable=False),
        sa.Column("content_url", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("campaign_id", "creator_id", name="uq_participation_pair"),
    )
    op.create_index(
        "ix_campaign_participations_campaign_id",
        "campaign_participations",
        ["campaign_id"],
        unique=False,
    )
    op.create_index(
        "ix_campaign_participations_creator_id",
        "campaign_participations",
        ["creator_id"],
        unique=False,
    )

    op.create_table(
        "escrows",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("campaign_id", sa.Uuid(), nullable=False),
        sa.Column("brand_wallet_id", sa.Uuid(), nullable=False),
        sa.Column("total_amount", sa.BigInteger(), nullable=False),
        sa.Column("released_amount", sa.BigInteger(), nullable=False),
        sa.Column("commission_amount", sa.BigInteger(), nullable=False),
        sa.Column("status", escrow_status_enum, nullable=False),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("total_amount > 0", name="ck_escrow_total_positive"),
        sa.CheckConstraint(
            "released_amount >= 0 AND released_amount <= total_amount",
            name="ck_escrow_released_within_total",
        ),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"]),
        sa.ForeignKeyConstraint(["brand_wallet_id"], ["wallets.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("campaign_id"),
    )
    op.create_index(
        "ix_escrows_brand_wallet_id", "escrows", ["brand_wallet_id"], unique=False
    )

    op.create_table(
        "payouts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("wallet_id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("payment_method_id", sa.Uuid(), nullable=True),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("tds_amount", sa.BigInteger(), nullable=False),
        sa.Column("net_amount", sa.BigInteger(), nullable=False),
        sa.Column("status", payout_status_enum, nullable=False),
        sa.Column("approval_status", payout_approval_status_enum, nullable=False),
        sa.Column("approved_by", sa.String(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("external_transfer_id", sa.String(), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reversed_by", sa.String(), nullable=True),
        sa.Column("reversed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reversal_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_payout_amount_positive"),
        sa.CheckConstraint("net_amount + tds_amount = amount", name="ck_payout_net_plus_tds"),
        sa.ForeignKeyConstraint(["wallet_id"], ["wallets.id"]),
        sa.ForeignKeyConstraint(["payment_method_id"], ["payment_methods.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_payouts_wallet_id", "payouts", ["wallet_id"], unique=False)
    op.create_index("ix_payouts_owner_id", "payouts", ["owner_id"], unique=False)
    op.create_index(
        "ix_payouts_queue",
        "payouts",
        ["approval_status", "status", "created_at"],
        unique=False,
    )

    op.create_table(
        "tracking_links",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("campaign_id", sa.Uuid(), nullable=False),
        sa.Column("creator_id", sa.String(), nullable=False),
        sa.Column("destination_url", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("total_clicks", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tracking_links_slug", "tracking_links", ["slug"], unique=True)
    op.create_index(
        "ix_tracking_links_campaign_id", "tracking_links", ["campaign_id"], unique=False
    )
    op.create_index(
        "ix_tracking_links_creator_id", "tracking_links", ["creator_id"], unique=False
    )

    op.create_table(
        "promo_codes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("campaign_id", sa.Uuid(), nullable=False),
        sa.Column("creator_id", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("total_uses", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_promo_codes_code", "promo_codes", ["code"], unique=True)
    op.create_index(
        "ix_promo_codes_campaign_id", "promo_codes", ["campaign_id"], unique=False
    )
    op.create_index(
        "ix_promo_codes_creator_id", "promo_codes", ["creator_id"], unique=False
    )

    op.create_table(
        "click_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tracking_link_id", sa.Uuid(), nullable=False),
        sa.Column("campaign_id", sa.Uuid(), nullable=False),
        sa.Column("creator_id", sa.String(), nullable=False),
        sa.Column("ip", sa.String(), nullable=False),
        sa.Column("user_agent", sa.Text(), nullable=False),
        sa.Column("referer", sa.Text(), nullable=True),
        sa.Column("is_fraud", sa.Boolean(), nullable=False),
        sa.Column("fraud_reason", click_fraud_reason_enum, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["tracking_link_id"], ["tracking_links.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_click_events_link_ip_created",
        "click_events",
        ["tracking_link_id", "ip", "created_at"],
        unique=False,
    )
    op.create_index(
        "ix_click_events_link_created",
        "click_events",
        ["tracking_link_id", "created_at"],
        unique=False,
    )
    op.create_index(
        "ix_click_events_pair",
        "click_events",
        ["campaign_id", "creator_id", "is_fraud"],
        unique=False,
    )

    op.create_table(
        "conversion_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("promo_code_id", sa.Uuid(), nullable=False),
        sa.Column("campaign_id", sa.Uuid(), nullable=False),
        sa.Column("creator_id", sa.String(), nullable=False),
        sa.Column("order_reference", sa.String(), nullable=False),
        sa.Column("order_amount", sa.BigInteger(), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["promo_code_id"], ["promo_codes.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_conversion_events_promo_code_id",
        "conversion_events",
        ["promo_code_id"],
        unique=False,
    )
    op.create_index(
        "ix_conversion_events_pair",
        "conversion_events",
        ["campaign_id", "creator_id", "is_verified"],
        unique=False,
    )
    op.create_index(
        "ix_conversion_events_order",
        "conversion_events",
        ["promo_code_id", "order_reference"],
        unique=False,
    )

    op.create_table(
        "view_snapshots",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("campaign_id", sa.Uuid(), nullable=False),
        sa.Column("creator_id", sa.String(), nullable=False),
        sa.Column("platform", platform_enum, nullable=False),
        sa.Column("post_url", sa.Text(), nullable=False),
        sa.Column("view_count", sa.BigInteger(), nullable=False),
        sa.Column("like_count", sa.BigInteger(), nullable=False),
        sa.Column("comment_count", sa.BigInteger(), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("snapshot_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_view_snapshots_series",
        "view_snapshots",
        ["campaign_id", "creator_id", "platform", "snapshot_at"],
        unique=False,
    )

    op.create_table(
        "campaign_metrics",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("campaign_id", sa.Uuid(), nullable=False),
        sa.Column("creator_id", sa.String(), nullable=False),
        sa.Column("verified_views", sa.BigInteger(), nullable=False),
        sa.Column("verified_clicks", sa.BigInteger(), nullable=False),
        sa.Column("verified_conversions", sa.BigInteger(), nullable=False),
        sa.Column("earned_amount", sa.BigInteger(), nullable=False),
        sa.Column("paid_amount", sa.BigInteger(), nullable=False),
        sa.Column("last_computed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "campaign_id", "creator_id", name="uq_campaign_metrics_pair"
        ),
    )

    op.create_table(
        "fraud_flags",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("flag_type", fraud_flag_type_enum, nullable=False),
        sa.Column("status", fraud_flag_status_enum, nullable=False),
        sa.Column("severity", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("evidence", JSON_TYPE, nullable=False),
        sa.Column("campaign_id", sa.Uuid(), nullable=True),
        sa.Column("creator_id", sa.String(), nullable=True),
        sa.Column("resolved_by", sa.String(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution_note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "severity BETWEEN 1 AND 5", name="ck_fraud_flag_severity_range"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_fraud_flags_open_lookup",
        "fraud_flags",
        ["flag_type", "campaign_id", "status"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_fraud_flags_open_lookup", table_name="fraud_flags")
    op.drop_table("fraud_flags")
    op.drop_table("campaign_metrics")
    op.drop_index("ix_view_snapshots_series", table_name="view_snapshots")
    op.drop_table("view_snapshots")
    op.drop_table("conversion_events")
    op.drop_table("click_events")
    op.drop_table("promo_codes")
    op.drop_table("tracking_links")
    op.drop_table("payouts")
    op.drop_table("escrows")
    op.drop_table("campaign_participations")
    op.drop_table("campaigns")
    op.drop_table("ledger_transactions")
    op.drop_table("payment_methods")
    op.drop_table("wallets")

    bind = op.get_bind()
    for enum_type in ALL_ENUMS:
        enum_type.drop(bind, checkfirst=True)
