"""Public tracking redirect and conversion ingest."""

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse
from libs.auth.dependencies import require_service
from libs.auth.models import AuthUser
from libs.common.rate_limit import get_client_ip
from libs.db.session import get_async_db
from services.ledger_service.schemas import ConversionCreate, ConversionResponse
from services.ledger_service.services.tracking_ops import (
    record_click,
    record_conversion,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["tracking"])


@router.get("/go/{slug}", status_code=status.HTTP_302_FOUND)
async def follow_tracking_link(
    slug: str,
    request: Request,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Record a click and redirect to the campaign destination.

    Fraudulent clicks are still redirected; they are stored with a reason and
    never count towards earnings.
    """
    outcome = await record_click(
        db,
        slug=slug,
        ip=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        referer=request.headers.get("referer"),
    )
    return RedirectResponse(outcome.destination_url, status_code=status.HTTP_302_FOUND)


@router.post(
    "/track/conversions",
    response_model=ConversionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def ingest_conversion(
    payload: ConversionCreate,
    _service: AuthUser = Depends(require_service),
    db: AsyncSession = Depends(get_async_db),
):
    """Record a sale reported for a creator's promo code."""
    return await record_conversion(
        db,
        promo_code=payload.promo_code,
        order_reference=payload.order_reference,
        order_amount=payload.order_amount,
    )
