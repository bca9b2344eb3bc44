"""Database handle with an explicit lifecycle.

The API builds one ``Database`` in its lifespan and the worker builds one in
``on_startup``; both dispose it on shutdown so pooled connections drain
cleanly. Nothing in the service imports a module-level engine.
"""

from typing import Any, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from libs.common.config import Settings, get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)


class Database:
    """Async engine plus session factory for one process."""

    def __init__(self, url: str, *, echo: bool = False, **engine_options: Any):
        self.url = url
        self.engine: AsyncEngine = create_async_engine(
            url,
            echo=echo,
            future=True,
            **engine_options,
        )
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "Database":
        settings = settings or get_settings()
        options: dict[str, Any] = {}
        if not settings.DATABASE_URL.startswith("sqlite"):
            options.update(
                pool_pre_ping=True,  # Test connections before using
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_timeout=settings.DB_POOL_TIMEOUT,
                pool_recycle=settings.DB_POOL_RECYCLE,
            )
        return cls(settings.DATABASE_URL, echo=settings.DB_ECHO, **options)

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Database pool disposed")
