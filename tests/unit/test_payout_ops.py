"""Unit tests for payout_ops: withdrawal requests, approval and reversal."""

import pytest
from libs.common.currency import rupees_to_paise
from services.ledger_service.errors import (
    AlreadyProcessed,
    InsufficientFunds,
    InvalidAmount,
    InvalidState,
    NoPaymentMethod,
)
from services.ledger_service.models import (
    LedgerTransaction,
    PayoutApprovalStatus,
    PayoutStatus,
    TransactionStatus,
    TransactionType,
)
from services.ledger_service.services.payout_ops import (
    approve_payout,
    batch_approve_payouts,
    compute_tds,
    mark_payout_failed,
    reject_payout,
    request_withdrawal,
    retry_payout,
    reverse_withdrawal,
    settle_from_provider,
)
from sqlalchemy import select

from tests.factories import PaymentMethodFactory, WalletFactory, persist


async def _creator_with_balance(db, rupees=5_000, owner_id="creator-1"):
    wallet = await persist(
        db,
        WalletFactory.create(
            owner_id=owner_id,
            available_balance=rupees_to_paise(rupees),
            lifetime_earnings=rupees_to_paise(rupees),
        ),
    )
    method = await persist(db, PaymentMethodFactory.create(wallet_id=wallet.id))
    return wallet, method


async def _entries(db, payout_id):
    result = await db.execute(
        select(LedgerTransaction)
        .where(LedgerTransaction.reference_id == str(payout_id))
        .order_by(LedgerTransaction.created_at)
    )
    return {txn.transaction_type: txn for txn in result.scalars().all()}


# ---------------------------------------------------------------------------
# compute_tds
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize(
    "rupees,expected_tds",
    [(1_000, 0), (20_000, 0), (20_001, 2_000.10), (50_000, 5_000)],
)
def test_compute_tds(rupees, expected_tds):
    assert compute_tds(rupees_to_paise(rupees)) == rupees_to_paise(str(expected_tds))


# ---------------------------------------------------------------------------
# request_withdrawal
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_withdrawal_debits_available_immediately(db_session):
    wallet, method = await _creator_with_balance(db_session)

    payout = await request_withdrawal(
        db_session,
        owner_id="creator-1",
        amount=rupees_to_paise(1_000),
        payment_method_id=method.id,
    )

    assert payout.status == PayoutStatus.PENDING
    assert payout.approval_status == PayoutApprovalStatus.PENDING_APPROVAL
    assert payout.tds_amount == 0
    assert payout.net_amount == rupees_to_paise(1_000)

    await db_session.refresh(wallet)
    assert wallet.available_balance == rupees_to_paise(4_000)

    entries = await _entries(db_session, payout.id)
    withdrawal = entries[TransactionType.WITHDRAWAL]
    assert withdrawal.status == TransactionStatus.PENDING
    assert withdrawal.amount == -rupees_to_paise(1_000)
    assert withdrawal.available_delta == -rupees_to_paise(1_000)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_withdrawal_below_minimum_rejected(db_session):
    _, method = await _creator_with_balance(db_session)

    with pytest.raises(InvalidAmount):
        await request_withdrawal(
            db_session,
            owner_id="creator-1",
            amount=rupees_to_paise(99),
            payment_method_id=method.id,
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_withdrawal_more_than_available_rejected(db_session):
    wallet, method = await _creator_with_balance(db_session, rupees=500)

    with pytest.raises(InsufficientFunds):
        await request_withdrawal(
            db_session,
            owner_id="creator-1",
            amount=rupees_to_paise(501),
            payment_method_id=method.id,
        )
    await db_session.refresh(wallet)
    assert wallet.available_balance == rupees_to_paise(500)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_withdrawal_to_someone_elses_method_rejected(db_session):
    await _creator_with_balance(db_session)
    _, other_method = await _creator_with_balance(db_session, owner_id="creator-2")

    with pytest.raises(NoPaymentMethod):
        await request_withdrawal(
            db_session,
            owner_id="creator-1",
            amount=rupees_to_paise(200),
            payment_method_id=other_method.id,
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_withdrawal_idempotency_key_replays_original(db_session):
    wallet, method = await _creator_with_balance(db_session)

    first = await request_withdrawal(
        db_session,
        owner_id="creator-1",
        amount=rupees_to_paise(300),
        payment_method_id=method.id,
        idempotency_key="req-42",
    )
    second = await request_withdrawal(
        db_session,
        owner_id="creator-1",
        amount=rupees_to_paise(300),
        payment_method_id=method.id,
        idempotency_key="req-42",
    )

    assert second.id == first.id
    await db_session.refresh(wallet)
    assert wallet.available_balance == rupees_to_paise(4_700)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_large_withdrawal_withholds_tds(db_session):
    _, method = await _creator_with_balance(db_session, rupees=30_000)

    payout = await request_withdrawal(
        db_session,
        owner_id="creator-1",
        amount=rupees_to_paise(25_000),
        payment_method_id=method.id,
    )

    assert payout.tds_amount == rupees_to_paise(2_500)
    assert payout.net_amount == rupees_to_paise(22_500)
    assert payout.net_amount + payout.tds_amount == payout.amount


# ---------------------------------------------------------------------------
# Approval
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_approve_twice_raises_already_processed(db_session):
    _, method = await _creator_with_balance(db_session)
    payout = await request_withdrawal(
        db_session,
        owner_id="creator-1",
        amount=rupees_to_paise(200),
        payment_method_id=method.id,
    )

    payout = await approve_payout(db_session, payout_id=payout.id, approved_by="admin-1")
    assert payout.approval_status == PayoutApprovalStatus.APPROVED
    assert payout.approved_by == "admin-1"

    with pytest.raises(AlreadyProcessed):
        await approve_payout(db_session, payout_id=payout.id, approved_by="admin-1")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_batch_approve_skips_decided_payouts(db_session):
    _, method = await _creator_with_balance(db_session)
    first = await request_withdrawal(
        db_session, owner_id="creator-1", amount=20_000, payment_method_id=method.id
    )
    second = await request_withdrawal(
        db_session, owner_id="creator-1", amount=20_000, payment_method_id=method.id
    )
    await approve_payout(db_session, payout_id=first.id, approved_by="admin-1")

    approved, skipped = await batch_approve_payouts(
        db_session, payout_ids=[first.id, second.id], approved_by="admin-2"
    )

    assert approved == [second.id]
    assert skipped == [first.id]


# ---------------------------------------------------------------------------
# Reject / reverse / retry
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reject_refunds_and_reverses_withdrawal_entry(db_session):
    wallet, method = await _creator_with_balance(db_session)
    payout = await request_withdrawal(
        db_session,
        owner_id="creator-1",
        amount=rupees_to_paise(1_000),
        payment_method_id=method.id,
    )

    payout = await reject_payout(
        db_session, payout_id=payout.id, rejected_by="admin-1", reason="KYC incomplete"
    )

    assert payout.approval_status == PayoutApprovalStatus.REJECTED
    assert payout.status == PayoutStatus.CANCELLED
    assert payout.reversal_reason == "KYC incomplete"
    await db_session.refresh(wallet)
    assert wallet.available_balance == rupees_to_paise(5_000)

    entries = await _entries(db_session, payout.id)
    await db_session.refresh(entries[TransactionType.WITHDRAWAL])
    assert entries[TransactionType.WITHDRAWAL].status == TransactionStatus.REVERSED
    assert entries[TransactionType.REFUND].amount == rupees_to_paise(1_000)

    with pytest.raises(AlreadyProcessed):
        await reject_payout(
            db_session, payout_id=payout.id, rejected_by="admin-1", reason="again"
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_failed_payout_stays_debited_until_reversed(db_session):
    wallet, method = await _creator_with_balance(db_session)
    payout = await request_withdrawal(
        db_session,
        owner_id="creator-1",
        amount=rupees_to_paise(1_000),
        payment_method_id=method.id,
    )
    await approve_payout(db_session, payout_id=payout.id, approved_by="admin-1")
    payout = await settle_from_provider(
        db_session, payout_id=payout.id, succeeded=False, reason="Beneficiary bank down"
    )

    assert payout.status == PayoutStatus.FAILED
    await db_session.refresh(wallet)
    assert wallet.available_balance == rupees_to_paise(4_000)

    payout = await reverse_withdrawal(
        db_session, payout_id=payout.id, reversed_by="admin-1", reason="Bank closed"
    )

    assert payout.status == PayoutStatus.FAILED
    assert payout.reversed_at is not None
    await db_session.refresh(wallet)
    assert wallet.available_balance == rupees_to_paise(5_000)
    with pytest.raises(AlreadyProcessed):
        await reverse_withdrawal(
            db_session, payout_id=payout.id, reversed_by="admin-1", reason="twice"
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reverse_approved_pending_payout_rejected(db_session):
    _, method = await _creator_with_balance(db_session)
    payout = await request_withdrawal(
        db_session,
        owner_id="creator-1",
        amount=rupees_to_paise(200),
        payment_method_id=method.id,
    )
    await approve_payout(db_session, payout_id=payout.id, approved_by="admin-1")

    with pytest.raises(InvalidState):
        await reverse_withdrawal(
            db_session, payout_id=payout.id, reversed_by="admin-1", reason="changed mind"
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_retry_requeues_failed_payout(db_session):
    _, method = await _creator_with_balance(db_session)
    payout = await request_withdrawal(
        db_session,
        owner_id="creator-1",
        amount=rupees_to_paise(200),
        payment_method_id=method.id,
    )
    await approve_payout(db_session, payout_id=payout.id, approved_by="admin-1")

    with pytest.raises(InvalidState):
        await retry_payout(db_session, payout_id=payout.id, retried_by="admin-1")

    await mark_payout_failed(db_session, payout, reason="Provider timeout")
    payout = await retry_payout(db_session, payout_id=payout.id, retried_by="admin-1")

    assert payout.status == PayoutStatus.PENDING
    assert payout.approval_status == PayoutApprovalStatus.APPROVED
    assert payout.failure_reason is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_provider_success_event_completes_once(db_session):
    wallet, method = await _creator_with_balance(db_session)
    payout = await request_withdrawal(
        db_session,
        owner_id="creator-1",
        amount=rupees_to_paise(1_000),
        payment_method_id=method.id,
    )
    await approve_payout(db_session, payout_id=payout.id, approved_by="admin-1")

    for _ in range(2):
        payout = await settle_from_provider(
            db_session,
            payout_id=payout.id,
            succeeded=True,
            external_transfer_id="pout_123",
        )

    assert payout.status == PayoutStatus.COMPLETED
    assert payout.external_transfer_id == "pout_123"
    await db_session.refresh(wallet)
    assert wallet.total_withdrawn == rupees_to_paise(1_000)
