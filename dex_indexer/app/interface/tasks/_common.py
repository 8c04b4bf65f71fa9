from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from dex_indexer.app.domain.errors import ConfigurationError
from dex_indexer.app.domain.models import Exchange, SyncReport
from dex_indexer.app.infrastructure.adapters.domain.exchanges_repository import (
    SqlAlchemyExchangesRepository,
)
from dex_indexer.app.infrastructure.db.engine import create_app_async_engine

logger = logging.getLogger(__name__)


async def load_syncable_exchange(engine: AsyncEngine, exchange_key: str) -> Exchange:
    exchange = await SqlAlchemyExchangesRepository(engine).get_by_key(exchange_key)
    if exchange is None:
        raise ConfigurationError(f"Exchange {exchange_key!r} not found")
    if exchange.factory_contract is None:
        raise ConfigurationError(f"Factory contract not found for {exchange_key!r}")
    return exchange


async def list_exchange_keys(engine: AsyncEngine | None = None) -> list[str]:
    """Exchange keys known to the store, for interactive prompts."""
    owns_engine = engine is None
    if engine is None:
        engine = create_app_async_engine()
    try:
        return await SqlAlchemyExchangesRepository(engine).list_keys()
    finally:
        if owns_engine:
            await engine.dispose()


def log_report(label: str, report: SyncReport, *, retry_failed: bool = False) -> None:
    logger.info(
        "%s done: %s ranges processed, %s failed, %s records",
        label,
        len(report.processed),
        len(report.failed),
        report.records,
    )
    for from_block, to_block in report.failed:
        if retry_failed:
            logger.warning(
                "%s: [%s, %s] failed and will be offered again on the next run",
                label,
                from_block,
                to_block,
            )
        else:
            logger.warning(
                "%s: [%s, %s] failed and counts as covered; "
                "set RETRY_FAILED_RANGES=true to sync it again",
                label,
                from_block,
                to_block,
            )
