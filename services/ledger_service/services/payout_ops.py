"""Withdrawal requests and the admin side of the payout lifecycle.

A withdrawal debits ``available`` the moment it is requested and records a
PENDING WITHDRAWAL entry. From there:

* approve → the executor transfers it (COMPLETED) or records a failure;
* reject / reverse → a REFUND entry credits ``available`` back and the
  WITHDRAWAL entry becomes REVERSED.

Failed transfers are never credited back automatically because the rail's
state may be ambiguous; an admin either retries or reverses.
"""

import uuid
from decimal import Decimal
from typing import Optional, Sequence

from libs.common.currency import format_inr, round_to_paise, rupees_to_paise
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.ledger_service.errors import (
    AlreadyProcessed,
    InsufficientFunds,
    InvalidAmount,
    InvalidState,
    NoPaymentMethod,
    NotFound,
)
from services.ledger_service.models import (
    LedgerTransaction,
    PaymentMethod,
    Payout,
    PayoutApprovalStatus,
    PayoutStatus,
    TransactionStatus,
    TransactionType,
)
from services.ledger_service.services.wallet_ops import (
    get_wallet_by_owner,
    lock_wallets,
    post_ledger_entry,
    set_transaction_status,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Withdrawal policy
# ---------------------------------------------------------------------------
MINIMUM_WITHDRAWAL = rupees_to_paise(100)
TDS_THRESHOLD = rupees_to_paise(20_000)
TDS_RATE = Decimal("0.10")

PAYOUT_REFERENCE = "payout"


def compute_tds(amount: int) -> int:
    """Tax deducted at source: 10% of withdrawals above ₹20,000."""
    if amount > TDS_THRESHOLD:
        return round_to_paise(Decimal(amount) * TDS_RATE)
    return 0


async def get_payout(db: AsyncSession, payout_id: uuid.UUID) -> Payout:
    payout = await db.get(Payout, payout_id)
    if not payout:
        raise NotFound("Payout not found")
    return payout


async def lock_payout(db: AsyncSession, payout_id: uuid.UUID) -> Payout:
    result = await db.execute(
        select(Payout)
        .where(Payout.id == payout_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    payout = result.scalar_one_or_none()
    if not payout:
        raise NotFound("Payout not found")
    return payout


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


async def request_withdrawal(
    db: AsyncSession,
    *,
    owner_id: str,
    amount: int,
    payment_method_id: uuid.UUID,
    idempotency_key: Optional[str] = None,
) -> Payout:
    """Debit ``available`` and open a payout awaiting admin approval.

    With an idempotency key, a repeated request returns the original payout
    instead of debiting twice.
    """
    ledger_key = f"withdrawal-{owner_id}-{idempotency_key}" if idempotency_key else None
    if ledger_key:
        result = await db.execute(
            select(LedgerTransaction).where(
                LedgerTransaction.idempotency_key == ledger_key
            )
        )
        existing = result.scalar_one_or_none()
        if existing:
            logger.info(
                "Idempotent replay for key=%s → payout=%s",
                ledger_key,
                existing.reference_id,
            )
            return await get_payout(db, uuid.UUID(existing.reference_id))

    if amount < MINIMUM_WITHDRAWAL:
        raise InvalidAmount(f"Minimum withdrawal is {format_inr(MINIMUM_WITHDRAWAL)}")

    wallet = await get_wallet_by_owner(db, owner_id)
    method = await db.get(PaymentMethod, payment_method_id)
    if not method or method.wallet_id != wallet.id:
        raise NoPaymentMethod("Payment method not found")

    wallet = (await lock_wallets(db, [wallet.id]))[wallet.id]
    if wallet.available_balance < amount:
        raise InsufficientFunds(
            f"Insufficient balance: need {format_inr(amount)}, "
            f"have {format_inr(wallet.available_balance)}"
        )

    tds_amount = compute_tds(amount)
    payout = Payout(
        id=uuid.uuid4(),
        wallet_id=wallet.id,
        owner_id=owner_id,
        payment_method_id=method.id,
        amount=amount,
        tds_amount=tds_amount,
        net_amount=amount - tds_amount,
        status=PayoutStatus.PENDING,
        approval_status=PayoutApprovalStatus.PENDING_APPROVAL,
    )
    db.add(payout)
    post_ledger_entry(
        db,
        wallet,
        transaction_type=TransactionType.WITHDRAWAL,
        status=TransactionStatus.PENDING,
        amount=-amount,
        available_delta=-amount,
        description=f"Withdrawal request to {method.method_type.value}",
        reference_type=PAYOUT_REFERENCE,
        reference_id=str(payout.id),
        initiated_by=owner_id,
        idempotency_key=ledger_key,
    )

    await db.commit()
    await db.refresh(payout)

    logger.info(
        "Withdrawal %s requested by %s: amount=%d tds=%d net=%d",
        payout.id,
        owner_id,
        payout.amount,
        payout.tds_amount,
        payout.net_amount,
    )
    return payout


# ---------------------------------------------------------------------------
# Admin approval
# ---------------------------------------------------------------------------


async def approve_payout(
    db: AsyncSession, *, payout_id: uuid.UUID, approved_by: str
) -> Payout:
    payout = await lock_payout(db, payout_id)
    if payout.approval_status != PayoutApprovalStatus.PENDING_APPROVAL:
        raise AlreadyProcessed("Payout already processed")

    payout.approval_status = PayoutApprovalStatus.APPROVED
    payout.approved_by = approved_by
    payout.approved_at = utc_now()
    await db.commit()
    await db.refresh(payout)

    logger.info("Payout %s approved by %s", payout.id, approved_by)
    return payout


async def batch_approve_payouts(
    db: AsyncSession, *, payout_ids: Sequence[uuid.UUID], approved_by: str
) -> tuple[list[uuid.UUID], list[uuid.UUID]]:
    """Approve every listed payout still awaiting approval.

    Returns ``(approved_ids, skipped_ids)``; unknown or already-decided ids
    are skipped rather than failing the batch.
    """
    ids = list(dict.fromkeys(payout_ids))
    result = await db.execute(
        select(Payout)
        .where(
            Payout.id.in_(ids),
            Payout.approval_status == PayoutApprovalStatus.PENDING_APPROVAL,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    now = utc_now()
    approved: list[uuid.UUID] = []
    for payout in result.scalars().all():
        payout.approval_status = PayoutApprovalStatus.APPROVED
        payout.approved_by = approved_by
        payout.approved_at = now
        approved.append(payout.id)
    await db.commit()

    approved_set = set(approved)
    skipped = [payout_id for payout_id in ids if payout_id not in approved_set]
    logger.info(
        "Batch approval by %s: %d approved, %d skipped",
        approved_by,
        len(approved),
        len(skipped),
    )
    return approved, skipped


# ---------------------------------------------------------------------------
# Reversal (compensating credit)
# ---------------------------------------------------------------------------


async def reverse_withdrawal(
    db: AsyncSession,
    *,
    payout_id: uuid.UUID,
    reversed_by: str,
    reason: str,
    reject: bool = False,
) -> Payout:
    """Credit a withdrawal back to ``available``.

    Allowed while the payout awaits approval (it becomes REJECTED when
    ``reject`` is set, CANCELLED otherwise) and for FAILED payouts that have
    not been reversed yet, which keep their FAILED status.
    """
    payout = await lock_payout(db, payout_id)

    awaiting_approval = payout.approval_status == PayoutApprovalStatus.PENDING_APPROVAL
    failed_unreversed = (
        payout.status == PayoutStatus.FAILED and payout.reversed_at is None
    )
    if not (awaiting_approval or failed_unreversed):
        if payout.reversed_at is not None or payout.status in (
            PayoutStatus.COMPLETED,
            PayoutStatus.CANCELLED,
        ):
            raise AlreadyProcessed("Payout already processed")
        raise InvalidState(
            "Only payouts awaiting approval or failed payouts can be reversed"
        )

    wallet = (await lock_wallets(db, [payout.wallet_id]))[payout.wallet_id]
    post_ledger_entry(
        db,
        wallet,
        transaction_type=TransactionType.REFUND,
        amount=payout.amount,
        available_delta=payout.amount,
        description=f"Withdrawal reversed: {reason}",
        reference_type=PAYOUT_REFERENCE,
        reference_id=str(payout.id),
        initiated_by=reversed_by,
    )
    await set_transaction_status(
        db,
        reference_type=PAYOUT_REFERENCE,
        reference_id=str(payout.id),
        transaction_type=TransactionType.WITHDRAWAL,
        status=TransactionStatus.REVERSED,
    )

    if awaiting_approval:
        if reject:
            payout.approval_status = PayoutApprovalStatus.REJECTED
        payout.status = PayoutStatus.CANCELLED
        payout.failure_reason = reason
    payout.reversed_by = reversed_by
    payout.reversed_at = utc_now()
    payout.reversal_reason = reason

    await db.commit()
    await db.refresh(payout)

    logger.info(
        "Payout %s reversed by %s (%s): %d paise credited back to wallet %s",
        payout.id,
        reversed_by,
        reason,
        payout.amount,
        wallet.id,
    )
    return payout


async def reject_payout(
    db: AsyncSession, *, payout_id: uuid.UUID, rejected_by: str, reason: str
) -> Payout:
    payout = await get_payout(db, payout_id)
    if payout.approval_status != PayoutApprovalStatus.PENDING_APPROVAL:
        raise AlreadyProcessed("Payout already processed")
    return await reverse_withdrawal(
        db,
        payout_id=payout_id,
        reversed_by=rejected_by,
        reason=reason,
        reject=True,
    )


async def retry_payout(
    db: AsyncSession, *, payout_id: uuid.UUID, retried_by: str
) -> Payout:
    """Send a FAILED, unreversed payout back to the executor queue.

    The payout id is the provider idempotency key, so a transfer that did
    land the first time is not duplicated.
    """
    payout = await lock_payout(db, payout_id)
    if payout.status != PayoutStatus.FAILED or payout.reversed_at is not None:
        raise InvalidState("Only failed, unreversed payouts can be retried")

    previous_reason = payout.failure_reason
    payout.status = PayoutStatus.PENDING
    payout.failure_reason = None
    payout.processed_at = None
    await db.commit()
    await db.refresh(payout)

    logger.info(
        "Payout %s re-queued by %s (previous failure: %s)",
        payout.id,
        retried_by,
        previous_reason,
    )
    return payout


# ---------------------------------------------------------------------------
# Settlement (executor and provider webhook)
# ---------------------------------------------------------------------------


async def mark_payout_completed(
    db: AsyncSession,
    payout: Payout,
    *,
    external_transfer_id: Optional[str],
) -> Payout:
    """Finalise a transfer the rail confirmed. Caller holds the payout lock."""
    wallet = (await lock_wallets(db, [payout.wallet_id]))[payout.wallet_id]

    payout.status = PayoutStatus.COMPLETED
    if external_transfer_id:
        payout.external_transfer_id = external_transfer_id
    payout.failure_reason = None
    payout.processed_at = utc_now()
    await set_transaction_status(
        db,
        reference_type=PAYOUT_REFERENCE,
        reference_id=str(payout.id),
        transaction_type=TransactionType.WITHDRAWAL,
        status=TransactionStatus.COMPLETED,
    )
    wallet.total_withdrawn += payout.amount
    wallet.updated_at = utc_now()

    await db.commit()
    await db.refresh(payout)

    logger.info(
        "Payout %s completed: %d paise sent (transfer=%s)",
        payout.id,
        payout.net_amount,
        payout.external_transfer_id,
    )
    return payout


async def mark_payout_failed(db: AsyncSession, payout: Payout, *, reason: str) -> Payout:
    """Record a failed transfer. ``available`` stays debited."""
    payout.status = PayoutStatus.FAILED
    payout.failure_reason = reason
    payout.processed_at = utc_now()
    await db.commit()
    await db.refresh(payout)

    logger.warning("Payout %s failed: %s", payout.id, reason)
    return payout


async def mark_payout_returned(db: AsyncSession, payout: Payout, *, reason: str) -> Payout:
    """A COMPLETED transfer the bank sent back.

    The payout drops to FAILED and ``total_withdrawn`` is undone; the money
    is credited back only by an admin ``reverse_withdrawal``.
    """
    wallet = (await lock_wallets(db, [payout.wallet_id]))[payout.wallet_id]
    wallet.total_withdrawn -= payout.amount
    wallet.updated_at = utc_now()

    payout.status = PayoutStatus.FAILED
    payout.failure_reason = f"Reversed by provider: {reason}"
    payout.processed_at = utc_now()
    await set_transaction_status(
        db,
        reference_type=PAYOUT_REFERENCE,
        reference_id=str(payout.id),
        transaction_type=TransactionType.WITHDRAWAL,
        status=TransactionStatus.FAILED,
    )
    await db.commit()
    await db.refresh(payout)

    logger.warning(
        "Payout %s returned by provider after completion (%s); awaiting admin reversal",
        payout.id,
        reason,
    )
    return payout


async def settle_from_provider(
    db: AsyncSession,
    *,
    payout_id: uuid.UUID,
    succeeded: bool,
    external_transfer_id: Optional[str] = None,
    reason: Optional[str] = None,
    returned: bool = False,
) -> Payout:
    """Apply a provider webhook outcome to a payout.

    ``returned`` marks a reversal of a transfer that had already completed.
    Otherwise repeated or stale events for a settled payout are ignored.
    """
    payout = await lock_payout(db, payout_id)
    if returned and payout.status == PayoutStatus.COMPLETED and payout.reversed_at is None:
        return await mark_payout_returned(db, payout, reason=reason or "Transfer reversed")
    if payout.reversed_at is not None or payout.status in (
        PayoutStatus.COMPLETED,
        PayoutStatus.CANCELLED,
    ):
        logger.info(
            "Ignoring provider event for settled payout %s (%s)",
            payout.id,
            payout.status.value,
        )
        await db.commit()
        return payout

    if succeeded:
        return await mark_payout_completed(
            db, payout, external_transfer_id=external_transfer_id
        )
    if payout.status == PayoutStatus.FAILED:
        await db.commit()
        return payout
    return await mark_payout_failed(db, payout, reason=reason or "Transfer failed")
