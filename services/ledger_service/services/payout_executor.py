"""Payout executor — send approved payouts to the transfer rail in small batches.

Payouts are claimed with ``FOR UPDATE SKIP LOCKED`` and moved to PROCESSING
in one commit, so two executors never pick the same payout. Each payout is
then settled on its own: a failure is recorded on that payout and the batch
carries on.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional

from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.ledger_service.errors import ProviderTimeout
from services.ledger_service.models import (
    PaymentMethodType,
    Payout,
    PayoutApprovalStatus,
    PayoutStatus,
)
from services.ledger_service.razorpay_client import RazorpayClient
from services.ledger_service.services.payout_ops import (
    lock_payout,
    mark_payout_completed,
    mark_payout_failed,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

NO_PAYMENT_METHOD_REASON = "No payment method configured"

# Razorpay transfer mode per destination type
TRANSFER_MODES = {
    PaymentMethodType.UPI: "UPI",
    PaymentMethodType.BANK_ACCOUNT: "IMPS",
}


@dataclass
class ExecutionResult:
    completed: list[uuid.UUID] = field(default_factory=list)
    failed: list[uuid.UUID] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.completed) + len(self.failed)


async def claim_payouts(db: AsyncSession, batch_size: int) -> list[uuid.UUID]:
    """Move up to ``batch_size`` approved payouts to PROCESSING and return their ids."""
    result = await db.execute(
        select(Payout)
        .where(
            Payout.approval_status == PayoutApprovalStatus.APPROVED,
            Payout.status == PayoutStatus.PENDING,
        )
        .order_by(Payout.approved_at, Payout.created_at)
        .limit(batch_size)
        .with_for_update(skip_locked=True)
    )
    payouts = list(result.scalars().all())
    for payout in payouts:
        payout.status = PayoutStatus.PROCESSING
    await db.commit()
    return [payout.id for payout in payouts]


def _unsendable_reason(payout: Payout) -> Optional[str]:
    method = payout.payment_method
    if method is None:
        logger.error("No payment method for payout %s", payout.id)
        return NO_PAYMENT_METHOD_REASON
    if not method.fund_account_id:
        return "Payment method is not registered with the payout provider"
    if method.method_type not in TRANSFER_MODES:
        return f"{method.method_type.value} payouts are not supported by the provider"
    return None


async def _execute_one(
    db: AsyncSession, provider: RazorpayClient, payout_id: uuid.UUID
) -> bool:
    """Submit one claimed payout. Returns True when it completed.

    No row lock or transaction is held during the transfer call; the
    outcome is written under a fresh lock afterwards.
    """
    result = await db.execute(
        select(Payout)
        .where(Payout.id == payout_id)
        .execution_options(populate_existing=True)
    )
    payout = result.scalar_one()

    reason = _unsendable_reason(payout)
    if reason:
        payout = await lock_payout(db, payout_id)
        await mark_payout_failed(db, payout, reason=reason)
        return False

    method = payout.payment_method
    destination_account = method.fund_account_id
    mode = TRANSFER_MODES[method.method_type]
    net_amount = payout.net_amount
    await db.commit()

    transfer = None
    try:
        transfer = await provider.create_payout(
            destination_account=destination_account,
            amount=net_amount,
            reference_id=str(payout_id),
            narration=f"Creator payout {str(payout_id)[:8]}",
            mode=mode,
        )
    except ProviderTimeout as exc:
        reason = f"Provider timeout, transfer possibly applied: {exc}"
    except Exception as exc:
        logger.exception("Transfer submission failed for payout %s", payout_id)
        reason = str(exc) or type(exc).__name__

    payout = await lock_payout(db, payout_id)
    if payout.status != PayoutStatus.PROCESSING:
        # A provider webhook settled it while the call was in flight
        logger.info("Payout %s already %s after submission", payout.id, payout.status.value)
        await db.commit()
        return payout.status == PayoutStatus.COMPLETED

    if transfer is not None and transfer.failed:
        reason = f"Transfer {transfer.status} by provider ({transfer.transfer_id})"
    if reason:
        await mark_payout_failed(db, payout, reason=reason)
        return False

    await mark_payout_completed(db, payout, external_transfer_id=transfer.transfer_id)
    return True


async def execute_payouts(
    db: AsyncSession,
    provider: RazorpayClient,
    *,
    batch_size: Optional[int] = None,
) -> ExecutionResult:
    """Process one bounded batch of approved payouts.

    ``provider`` needs ``async create_payout(destination_account, amount,
    reference_id, narration, mode)``.
    """
    batch_size = batch_size or get_settings().PAYOUT_BATCH_SIZE
    payout_ids = await claim_payouts(db, batch_size)
    outcome = ExecutionResult()
    if not payout_ids:
        logger.info("No pending payouts to process")
        return outcome

    logger.info("Processing %d payouts", len(payout_ids))
    for payout_id in payout_ids:
        try:
            if await _execute_one(db, provider, payout_id):
                outcome.completed.append(payout_id)
            else:
                outcome.failed.append(payout_id)
        except Exception:
            # Bookkeeping failed; the payout stays PROCESSING for manual review
            logger.exception("Failed to settle payout %s", payout_id)
            await db.rollback()
            outcome.failed.append(payout_id)

    logger.info(
        "Payout batch finished: %d completed, %d failed",
        len(outcome.completed),
        len(outcome.failed),
    )
    return outcome
