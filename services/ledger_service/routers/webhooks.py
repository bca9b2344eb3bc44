"""Razorpay webhook handler: brand top-ups and payout settlement."""

import json
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, status
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.ledger_service.errors import LedgerError
from services.ledger_service.razorpay_client import verify_webhook_signature
from services.ledger_service.services.payout_ops import settle_from_provider
from services.ledger_service.services.wallet_ops import fund_wallet
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = get_logger(__name__)

PAYOUT_EVENTS = {
    "payout.processed": True,
    "payout.failed": False,
    "payout.reversed": False,
}


def _entity(payload: dict, name: str) -> dict:
    return ((payload.get("payload") or {}).get(name) or {}).get("entity") or {}


@router.post("/razorpay")
async def razorpay_webhook(
    request: Request,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Razorpay webhook endpoint (no auth; verified by X-Razorpay-Signature).

    Always acknowledges verified events so Razorpay stops redelivering;
    events that cannot be applied are logged.
    """
    raw = await request.body()
    signature = request.headers.get("x-razorpay-signature")
    if not verify_webhook_signature(raw, signature):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature"
        )

    payload = json.loads(raw.decode("utf-8") or "{}")
    event = payload.get("event")

    if event == "payment.captured":
        payment = _entity(payload, "payment")
        notes = payment.get("notes") or {}
        owner_id = notes.get("userId") or notes.get("owner_id")
        amount = int(payment.get("amount") or 0)
        if not owner_id or not payment.get("id"):
            logger.warning("payment.captured without owner or id: %s", payment.get("id"))
            return {"received": True}
        try:
            await fund_wallet(
                db,
                owner_id=owner_id,
                amount=amount,
                payment_reference=payment["id"],
            )
        except LedgerError as exc:
            await db.rollback()
            logger.error(
                "Could not fund wallet for %s from payment %s: %s",
                owner_id,
                payment["id"],
                exc.message,
            )
        return {"received": True}

    if event in PAYOUT_EVENTS:
        transfer = _entity(payload, "payout")
        try:
            payout_id = uuid.UUID(str(transfer.get("reference_id")))
        except ValueError:
            logger.warning(
                "%s for unknown reference %s", event, transfer.get("reference_id")
            )
            return {"received": True}

        status_details = transfer.get("status_details") or {}
        reason = (
            transfer.get("failure_reason")
            or status_details.get("description")
            or f"Transfer {transfer.get('status', event.split('.')[1])}"
        )
        try:
            await settle_from_provider(
                db,
                payout_id=payout_id,
                succeeded=PAYOUT_EVENTS[event],
                external_transfer_id=transfer.get("id"),
                reason=reason,
                returned=event == "payout.reversed",
            )
        except LedgerError as exc:
            await db.rollback()
            logger.error("Could not apply %s to payout %s: %s", event, payout_id, exc.message)
        return {"received": True}

    logger.info("Ignoring Razorpay event %s", event)
    return {"received": True}
