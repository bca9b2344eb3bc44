"""Redis connection settings for the ledger worker.

The worker's ``ctx["redis"]`` is also where job locks live, so the queue and
the locks always share one Redis database.
"""

from typing import Optional
from urllib.parse import unquote, urlparse

from arq.connections import RedisSettings
from libs.common.config import get_settings

CONN_TIMEOUT_SECONDS = 5
CONN_RETRIES = 3


def get_redis_settings(url: Optional[str] = None) -> RedisSettings:
    """Build ARQ ``RedisSettings`` from ``url`` (defaults to REDIS_URL)."""
    parsed = urlparse(url or get_settings().REDIS_URL)
    if parsed.scheme not in ("redis", "rediss"):
        raise ValueError(f"Unsupported Redis URL scheme: {parsed.scheme!r}")

    database = parsed.path.lstrip("/")
    return RedisSettings(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        database=int(database) if database else 0,
        username=unquote(parsed.username) if parsed.username else None,
        password=unquote(parsed.password) if parsed.password else None,
        ssl=parsed.scheme == "rediss",
        conn_timeout=CONN_TIMEOUT_SECONDS,
        conn_retries=CONN_RETRIES,
    )
