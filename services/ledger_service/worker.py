"""ARQ worker for the ledger's periodic jobs.

Every job takes a Redis lock named after itself first, so overlapping runs
(another worker process, or a slow previous run) skip their turn.
Run with: arq services.ledger_service.worker.WorkerSettings
"""

from arq import cron
from libs.common.arq_config import get_redis_settings
from libs.common.job_lock import single_flight
from libs.common.logging import configure_logging, get_logger
from libs.db.config import Database
from services.ledger_service.razorpay_client import get_razorpay_client
from services.ledger_service.social_metrics_client import get_social_metrics_client

logger = get_logger(__name__)


async def startup(ctx: dict):
    configure_logging()
    ctx["db"] = Database.from_settings()
    ctx["metrics_provider"] = get_social_metrics_client()

    try:
        ctx["payout_provider"] = get_razorpay_client()
    except ValueError as exc:
        ctx["payout_provider"] = None
        logger.warning("Payout executor disabled: %s", exc)


async def shutdown(ctx: dict):
    await ctx["db"].dispose()


# ── Wrapper functions (ARQ requires top-level async callables) ──


async def task_fraud_sweep(ctx: dict):
    """Scan live links and conversion campaigns for fraud patterns."""
    from services.ledger_service.services.fraud_detection import run_fraud_sweep

    async with single_flight(ctx["redis"], "fraud_sweep") as acquired:
        if not acquired:
            return
        logger.info("Running: fraud_sweep")
        async with ctx["db"].session() as db:
            await run_fraud_sweep(db)


async def task_sync_views(ctx: dict):
    """Snapshot view counts for live VIEW campaigns."""
    from services.ledger_service.services.view_sync import sync_views

    async with single_flight(ctx["redis"], "view_sync") as acquired:
        if not acquired:
            return
        logger.info("Running: view_sync")
        async with ctx["db"].session() as db:
            await sync_views(db, ctx["metrics_provider"])


async def task_reconcile_metrics(ctx: dict):
    """Recompute earnings for every live or completed participation."""
    from services.ledger_service.services.metrics_ops import reconcile_all_metrics

    async with single_flight(ctx["redis"], "metrics_reconciliation") as acquired:
        if not acquired:
            return
        logger.info("Running: metrics_reconciliation")
        async with ctx["db"].session() as db:
            await reconcile_all_metrics(db)


async def task_execute_payouts(ctx: dict):
    """Send one batch of approved payouts."""
    from services.ledger_service.services.payout_executor import execute_payouts

    provider = ctx.get("payout_provider")
    if provider is None:
        logger.warning("Skipping payout executor: no payout provider configured")
        return

    async with single_flight(ctx["redis"], "payout_executor") as acquired:
        if not acquired:
            return
        logger.info("Running: payout_executor")
        async with ctx["db"].session() as db:
            await execute_payouts(db, provider)


class WorkerSettings:
    redis_settings = get_redis_settings()
    on_startup = startup
    on_shutdown = shutdown

    functions = [
        task_fraud_sweep,
        task_sync_views,
        task_reconcile_metrics,
        task_execute_payouts,
    ]

    cron_jobs = [
        # Hourly at :00
        cron(task_sync_views, minute={0}),
        # Hourly at :30
        cron(task_fraud_sweep, minute={30}),
        # Hourly at :45, after the view sync has landed
        cron(task_reconcile_metrics, minute={45}),
        # Every 15 minutes
        cron(task_execute_payouts, minute={0, 15, 30, 45}),
    ]
