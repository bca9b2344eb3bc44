"""Core wallet operations — bucket moves paired with ledger entries under row locks.

Every balance change goes through ``post_ledger_entry`` so that the wallet
row and the LedgerTransaction documenting it are written in the same unit of
work. Callers lock the wallet rows first (``lock_wallets``) and commit once.
"""

import uuid
from typing import Iterable, Optional

from libs.common.currency import format_inr
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.ledger_service.errors import (
    Forbidden,
    InsufficientFunds,
    InvalidAmount,
    NotFound,
)
from services.ledger_service.models import (
    LedgerTransaction,
    PaymentMethod,
    PaymentMethodType,
    TransactionStatus,
    TransactionType,
    Wallet,
    WalletType,
)
from services.ledger_service.schemas.payment_method import PaymentDetails
from services.ledger_service.schemas.wallet import (
    BucketDrift,
    WalletReconciliationResponse,
)
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Wallet creation and lookup
# ---------------------------------------------------------------------------


async def create_wallet(
    db: AsyncSession,
    *,
    owner_id: str,
    owner_type: WalletType,
) -> Wallet:
    """Create the wallet for a marketplace account.

    Idempotent — returns the existing wallet if the owner already has one.
    """
    result = await db.execute(select(Wallet).where(Wallet.owner_id == owner_id))
    existing = result.scalar_one_or_none()
    if existing:
        return existing

    wallet = Wallet(owner_id=owner_id, owner_type=owner_type)
    db.add(wallet)
    await db.commit()
    await db.refresh(wallet)

    logger.info("Created %s wallet %s for owner %s", owner_type.value, wallet.id, owner_id)
    return wallet


async def get_wallet_by_owner(db: AsyncSession, owner_id: str) -> Wallet:
    """Get wallet by owner (auth subject). Raises NotFound if missing."""
    result = await db.execute(select(Wallet).where(Wallet.owner_id == owner_id))
    wallet = result.scalar_one_or_none()
    if not wallet:
        raise NotFound("Wallet not found")
    return wallet


async def get_wallet_by_id(db: AsyncSession, wallet_id: uuid.UUID) -> Wallet:
    result = await db.execute(select(Wallet).where(Wallet.id == wallet_id))
    wallet = result.scalar_one_or_none()
    if not wallet:
        raise NotFound("Wallet not found")
    return wallet


# ---------------------------------------------------------------------------
# Row locks
# ---------------------------------------------------------------------------


async def lock_wallets(
    db: AsyncSession, wallet_ids: Iterable[uuid.UUID]
) -> dict[uuid.UUID, Wallet]:
    """SELECT ... FOR UPDATE on every wallet, in id order.

    A fixed lock order means two multi-wallet operations can never deadlock
    on each other. Raises NotFound if any id is unknown.
    """
    ids = sorted(set(wallet_ids))
    result = await db.execute(
        select(Wallet)
        .where(Wallet.id.in_(ids))
        .order_by(Wallet.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    wallets = {wallet.id: wallet for wallet in result.scalars().all()}
    missing = [str(wallet_id) for wallet_id in ids if wallet_id not in wallets]
    if missing:
        raise NotFound(f"Wallet not found: {', '.join(missing)}")
    return wallets


async def lock_wallet_by_owner(db: AsyncSession, owner_id: str) -> Wallet:
    result = await db.execute(
        select(Wallet)
        .where(Wallet.owner_id == owner_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    wallet = result.scalar_one_or_none()
    if not wallet:
        raise NotFound("Wallet not found")
    return wallet


# ---------------------------------------------------------------------------
# Ledger posting
# ---------------------------------------------------------------------------


def post_ledger_entry(
    db: AsyncSession,
    wallet: Wallet,
    *,
    transaction_type: TransactionType,
    amount: int,
    description: str,
    available_delta: int = 0,
    pending_delta: int = 0,
    escrow_delta: int = 0,
    status: TransactionStatus = TransactionStatus.COMPLETED,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    initiated_by: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> LedgerTransaction:
    """Apply bucket deltas to a locked wallet and stage the ledger entry.

    Does not flush or commit. Raises InsufficientFunds before touching the
    wallet if any bucket would go negative.
    """
    new_available = wallet.available_balance + available_delta
    new_pending = wallet.pending_balance + pending_delta
    new_escrow = wallet.escrow_balance + escrow_delta
    if new_available < 0 or new_pending < 0 or new_escrow < 0:
        raise InsufficientFunds(
            f"Insufficient funds in wallet {wallet.id}: available "
            f"{format_inr(wallet.available_balance)}, escrow "
            f"{format_inr(wallet.escrow_balance)}"
        )

    txn = LedgerTransaction(
        id=uuid.uuid4(),
        wallet_id=wallet.id,
        transaction_type=transaction_type,
        status=status,
        amount=amount,
        available_delta=available_delta,
        pending_delta=pending_delta,
        escrow_delta=escrow_delta,
        description=description,
        reference_type=reference_type,
        reference_id=reference_id,
        initiated_by=initiated_by,
        idempotency_key=idempotency_key,
    )
    db.add(txn)

    wallet.available_balance = new_available
    wallet.pending_balance = new_pending
    wallet.escrow_balance = new_escrow
    wallet.updated_at = utc_now()
    return txn


async def set_transaction_status(
    db: AsyncSession,
    *,
    reference_type: str,
    reference_id: str,
    transaction_type: TransactionType,
    status: TransactionStatus,
) -> None:
    """Progress the status of the entries documenting one reference.

    Amounts and deltas are never rewritten; only status moves forward.
    """
    await db.execute(
        update(LedgerTransaction)
        .where(
            LedgerTransaction.reference_type == reference_type,
            LedgerTransaction.reference_id == reference_id,
            LedgerTransaction.transaction_type == transaction_type,
        )
        .values(status=status, updated_at=utc_now())
    )


# ---------------------------------------------------------------------------
# Funding (provider-captured payment → brand available)
# ---------------------------------------------------------------------------


async def fund_wallet(
    db: AsyncSession,
    *,
    owner_id: str,
    amount: int,
    payment_reference: str,
    description: Optional[str] = None,
) -> LedgerTransaction:
    """Credit a captured brand payment to the wallet's available bucket.

    Idempotent on the provider payment id: a redelivered webhook returns the
    original entry.
    """
    if amount <= 0:
        raise InvalidAmount("Funding amount must be positive")

    idempotency_key = f"campaign-fund-{payment_reference}"
    result = await db.execute(
        select(LedgerTransaction).where(
            LedgerTransaction.idempotency_key == idempotency_key
        )
    )
    existing = result.scalar_one_or_none()
    if existing:
        logger.info("Idempotent replay for key=%s → txn=%s", idempotency_key, existing.id)
        return existing

    wallet = await lock_wallet_by_owner(db, owner_id)
    if wallet.owner_type != WalletType.BRAND:
        raise Forbidden("Only brand wallets can be funded")
    txn = post_ledger_entry(
        db,
        wallet,
        transaction_type=TransactionType.CAMPAIGN_FUND,
        amount=amount,
        available_delta=amount,
        description=description or f"Wallet top-up of {format_inr(amount)}",
        reference_type="payment",
        reference_id=payment_reference,
        initiated_by=owner_id,
        idempotency_key=idempotency_key,
    )
    wallet.lifetime_funded += amount

    await db.commit()
    await db.refresh(txn)

    logger.info(
        "Funded wallet %s with %d paise (payment=%s), available now %d",
        wallet.id,
        amount,
        payment_reference,
        wallet.available_balance,
    )
    return txn


# ---------------------------------------------------------------------------
# Payment methods
# ---------------------------------------------------------------------------


async def add_payment_method(
    db: AsyncSession,
    *,
    owner_id: str,
    details: PaymentDetails,
    fund_account_id: Optional[str] = None,
    is_primary: bool = False,
) -> PaymentMethod:
    wallet = await get_wallet_by_owner(db, owner_id)

    existing_count = (
        await db.execute(
            select(func.count())
            .select_from(PaymentMethod)
            .where(PaymentMethod.wallet_id == wallet.id)
        )
    ).scalar() or 0
    # The first destination is always primary
    if existing_count == 0:
        is_primary = True
    if is_primary:
        await db.execute(
            update(PaymentMethod)
            .where(PaymentMethod.wallet_id == wallet.id)
            .values(is_primary=False)
        )

    method = PaymentMethod(
        wallet_id=wallet.id,
        method_type=PaymentMethodType(details.method_type),
        details=details.model_dump(mode="json"),
        fund_account_id=fund_account_id,
        is_primary=is_primary,
        # Destinations registered on the rail have been validated there
        is_verified=fund_account_id is not None,
    )
    db.add(method)
    await db.commit()
    await db.refresh(method)

    logger.info(
        "Added %s payment method %s to wallet %s (primary=%s)",
        method.method_type.value,
        method.id,
        wallet.id,
        is_primary,
    )
    return method


async def list_payment_methods(db: AsyncSession, owner_id: str) -> list[PaymentMethod]:
    wallet = await get_wallet_by_owner(db, owner_id)
    result = await db.execute(
        select(PaymentMethod)
        .where(PaymentMethod.wallet_id == wallet.id)
        .order_by(PaymentMethod.is_primary.desc(), PaymentMethod.created_at)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Reconciliation (read-only)
# ---------------------------------------------------------------------------


async def reconcile_wallet(
    db: AsyncSession, wallet_id: uuid.UUID
) -> WalletReconciliationResponse:
    """Compare stored buckets with the sum of ledger deltas for the wallet."""
    wallet = await get_wallet_by_id(db, wallet_id)
    result = await db.execute(
        select(
            func.coalesce(func.sum(LedgerTransaction.available_delta), 0),
            func.coalesce(func.sum(LedgerTransaction.pending_delta), 0),
            func.coalesce(func.sum(LedgerTransaction.escrow_delta), 0),
            func.count(LedgerTransaction.id),
        ).where(LedgerTransaction.wallet_id == wallet_id)
    )
    available_sum, pending_sum, escrow_sum, count = result.one()

    drift: list[BucketDrift] = []
    for bucket, stored, from_ledger in (
        ("available", wallet.available_balance, int(available_sum)),
        ("pending", wallet.pending_balance, int(pending_sum)),
        ("escrow", wallet.escrow_balance, int(escrow_sum)),
    ):
        if stored != from_ledger:
            drift.append(
                BucketDrift(
                    bucket=bucket,
                    stored=stored,
                    from_ledger=from_ledger,
                    difference=stored - from_ledger,
                )
            )

    if drift:
        logger.warning(
            "Ledger drift on wallet %s: %s",
            wallet_id,
            ", ".join(f"{d.bucket} {d.difference:+d}" for d in drift),
        )

    return WalletReconciliationResponse(
        wallet_id=wallet_id,
        is_consistent=not drift,
        drift=drift,
        transaction_count=int(count),
    )
