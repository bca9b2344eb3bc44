"""Single-flight guard for periodic jobs.

Each scheduled job takes a Redis lock named after the job before doing any
work. A second instance (another worker process, or a slow previous run)
finds the lock held and skips its turn instead of overlapping.

Usage:
    async with single_flight(ctx["redis"], "fraud_sweep") as acquired:
        if not acquired:
            return
        ...
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from redis.asyncio import Redis
from redis.exceptions import LockError

from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)

LOCK_PREFIX = "job-lock:"


def job_lock_name(job_name: str) -> str:
    return f"{LOCK_PREFIX}{job_name}"


@asynccontextmanager
async def single_flight(
    redis: Redis,
    job_name: str,
    ttl_seconds: Optional[int] = None,
) -> AsyncIterator[bool]:
    """Yield True when this caller holds the job lock, False otherwise.

    The TTL bounds how long a crashed holder can block the job; it must
    exceed the longest expected run.
    """
    ttl = ttl_seconds or get_settings().JOB_LOCK_TTL_SECONDS
    lock = redis.lock(job_lock_name(job_name), timeout=ttl, blocking=False)
    acquired = await lock.acquire()
    if not acquired:
        logger.info("Job %s already running elsewhere; skipping", job_name)
    try:
        yield bool(acquired)
    finally:
        if acquired:
            try:
                await lock.release()
            except LockError:
                logger.warning(
                    "Lock for job %s expired before release (ttl=%ss)", job_name, ttl
                )
