from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from dex_indexer.app.config import settings


def create_app_async_engine(*, echo: bool = False, url: str | None = None) -> AsyncEngine:
    """
    Factory for AsyncEngine used by background tasks / sync units.

    One engine per task invocation, shared by every worker unit of that
    invocation; its connection pool hands each unit its own connections.
    """
    return create_async_engine(
        url or settings.database_url,  # postgresql+asyncpg://...
        echo=echo,
        pool_pre_ping=True,
    )
