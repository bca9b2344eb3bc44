"""Ledger service routers."""

from services.ledger_service.routers.admin import router as admin_router
from services.ledger_service.routers.escrow import router as escrow_router
from services.ledger_service.routers.tracking import router as tracking_router
from services.ledger_service.routers.wallet import router as wallet_router
from services.ledger_service.routers.webhooks import router as webhooks_router

__all__ = [
    "admin_router",
    "escrow_router",
    "tracking_router",
    "wallet_router",
    "webhooks_router",
]
