from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncEngine

from dex_indexer.app.infrastructure.db.engine import create_app_async_engine
from dex_indexer.app.infrastructure.db.models.registry import ExchangesDB, metadata

logger = logging.getLogger(__name__)

EXCHANGES_SEED = Path(__file__).resolve().parents[2] / "registry" / "exchanges.json"


def load_exchange_seeds(path: Path = EXCHANGES_SEED) -> list[dict[str, Any]]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"Unsupported exchanges seed format in {path}: expected a list")
    return data


async def rebuild_database(engine: AsyncEngine, *, seeds: list[dict[str, Any]] | None = None) -> int:
    """Drop and recreate every table, then seed `exchanges`. Returns the seeded row count."""
    rows = load_exchange_seeds() if seeds is None else seeds
    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)
        if rows:
            await conn.execute(insert(ExchangesDB.__table__), rows)

    logger.info("Database rebuilt, %s exchanges seeded", len(rows))
    return len(rows)


async def database_rebuild_task() -> None:
    """
    Task: drop + recreate the schema and seed the exchange registry.

    Destroys all synced data.
    """
    engine = create_app_async_engine()
    try:
        await rebuild_database(engine)
    finally:
        await engine.dispose()
