"""Datetime utilities for timezone-aware UTC timestamps.

Usage:
    from libs.common.datetime_utils import utc_now

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime.

    Always use this for timestamps in the database.
    """
    return datetime.now(timezone.utc)


def window_start(minutes: int, now: Optional[datetime] = None) -> datetime:
    """Start of a trailing window of ``minutes`` ending at ``now``."""
    return (now or utc_now()) - timedelta(minutes=minutes)
