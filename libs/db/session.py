from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession


async def get_async_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields an async database session from the
    app-scoped ``Database`` created in the lifespan.
    """
    async with request.app.state.db.session() as session:
        try:
            yield session
        finally:
            await session.close()
