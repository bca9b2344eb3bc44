"""FastAPI application for the Ledger Service."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from libs.common.config import get_settings
from libs.common.logging import configure_logging, get_logger
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from libs.db.config import Database
from services.ledger_service.errors import register_exception_handlers
from services.ledger_service.routers import (
    admin_router,
    escrow_router,
    tracking_router,
    wallet_router,
    webhooks_router,
)
from slowapi.errors import RateLimitExceeded

logger = get_logger(__name__)


def create_app(database: Optional[Database] = None) -> FastAPI:
    """Create and configure the Ledger Service FastAPI app.

    Pass ``database`` to run against an existing handle (tests); otherwise
    one is built from settings on startup and disposed on shutdown.
    """
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_database = database is None
        if owns_database:
            app.state.db = Database.from_settings()
        logger.info("Ledger service starting (env=%s)", get_settings().ENVIRONMENT)
        try:
            yield
        finally:
            if owns_database:
                await app.state.db.dispose()

    app = FastAPI(
        title="Ledger Service",
        version="0.1.0",
        description="Wallets, campaign escrow, tracking and payouts for the creator marketplace.",
        lifespan=lifespan,
    )
    if database is not None:
        app.state.db = database

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    register_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "ledger"}

    # Public tracking redirect and service-to-service ingest
    app.include_router(tracking_router)

    # Brand and creator routes
    app.include_router(wallet_router)
    app.include_router(escrow_router)

    # Admin routes
    app.include_router(admin_router)

    # Provider callbacks (signature-verified, no auth)
    app.include_router(webhooks_router)

    return app


app = create_app()
