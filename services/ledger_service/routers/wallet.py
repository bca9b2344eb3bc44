"""Wallet endpoints for brands and creators (own wallet only)."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.common.rate_limit import withdrawal_limit
from libs.db.session import get_async_db
from services.ledger_service.models import (
    LedgerTransaction,
    Payout,
    WalletType,
)
from services.ledger_service.schemas import (
    PaymentMethodCreate,
    PaymentMethodResponse,
    PayoutListResponse,
    PayoutResponse,
    TransactionListResponse,
    TransactionResponse,
    WalletCreateRequest,
    WalletResponse,
    WithdrawalRequest,
)
from services.ledger_service.services.payout_ops import request_withdrawal
from services.ledger_service.services.wallet_ops import (
    add_payment_method,
    create_wallet,
    get_wallet_by_owner,
    list_payment_methods,
)
from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/wallet", tags=["wallet"])


@router.get("/me", response_model=WalletResponse)
async def get_my_wallet(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Get the current user's wallet balances."""
    return await get_wallet_by_owner(db, current_user.user_id)


@router.post("/create", response_model=WalletResponse)
async def create_my_wallet(
    payload: WalletCreateRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Create the current user's wallet (idempotent)."""
    if payload.owner_type == WalletType.BRAND and current_user.account_type != "brand":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Brand account required for a brand wallet",
        )
    return await create_wallet(
        db, owner_id=current_user.user_id, owner_type=payload.owner_type
    )


@router.get("/transactions", response_model=TransactionListResponse)
async def list_my_transactions(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Ledger history for the current user's wallet, newest first."""
    wallet = await get_wallet_by_owner(db, current_user.user_id)

    total = (
        await db.execute(
            select(func.count())
            .select_from(LedgerTransaction)
            .where(LedgerTransaction.wallet_id == wallet.id)
        )
    ).scalar() or 0
    result = await db.execute(
        select(LedgerTransaction)
        .where(LedgerTransaction.wallet_id == wallet.id)
        .order_by(desc(LedgerTransaction.created_at))
        .offset(skip)
        .limit(limit)
    )
    transactions = result.scalars().all()

    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/payouts", response_model=PayoutListResponse)
async def list_my_payouts(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Withdrawal history for the current user."""
    wallet = await get_wallet_by_owner(db, current_user.user_id)

    total = (
        await db.execute(
            select(func.count()).select_from(Payout).where(Payout.wallet_id == wallet.id)
        )
    ).scalar() or 0
    result = await db.execute(
        select(Payout)
        .where(Payout.wallet_id == wallet.id)
        .order_by(desc(Payout.created_at))
        .offset(skip)
        .limit(limit)
    )
    payouts = result.scalars().all()

    return PayoutListResponse(
        payouts=[PayoutResponse.model_validate(p) for p in payouts],
        total=total,
        skip=skip,
        limit=limit,
    )


# ---------------------------------------------------------------------------
# Payment methods
# ---------------------------------------------------------------------------


@router.get("/payment-methods", response_model=list[PaymentMethodResponse])
async def get_my_payment_methods(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await list_payment_methods(db, current_user.user_id)


@router.post(
    "/payment-methods",
    response_model=PaymentMethodResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_my_payment_method(
    payload: PaymentMethodCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Register a payout destination (bank account, UPI or PayPal)."""
    return await add_payment_method(
        db,
        owner_id=current_user.user_id,
        details=payload.details,
        fund_account_id=payload.fund_account_id,
        is_primary=payload.is_primary,
    )


# ---------------------------------------------------------------------------
# Withdrawals
# ---------------------------------------------------------------------------


@router.post(
    "/withdrawals",
    response_model=PayoutResponse,
    status_code=status.HTTP_201_CREATED,
)
@withdrawal_limit
async def request_my_withdrawal(
    request: Request,
    payload: WithdrawalRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Request a withdrawal from the available balance.

    The amount is debited immediately and the payout waits for admin
    approval. Pass ``idempotency_key`` to make retries safe.
    """
    return await request_withdrawal(
        db,
        owner_id=current_user.user_id,
        amount=payload.amount,
        payment_method_id=payload.payment_method_id,
        idempotency_key=payload.idempotency_key,
    )
