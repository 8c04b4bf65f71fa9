from __future__ import annotations

from typing import Any, Mapping, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine

from dex_indexer.app.domain.models import Exchange, Pair
from dex_indexer.app.infrastructure.db.models.domain.pairs import PairsDB


def _to_pair(row: Mapping[str, Any]) -> Pair:
    return Pair(
        id=row["id"],
        exchange_id=row["exchange_id"],
        address=row["address"],
        token0_id=row["token0_id"],
        token1_id=row["token1_id"],
        block_number=row["block_number"],
        timestamp=row["timestamp"],
    )


class SqlAlchemyPairsRepository:
    """Read access to `pairs`, always scoped to one exchange."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def get_by_ids(self, exchange: Exchange, pair_ids: Sequence[int]) -> dict[int, Pair]:
        if not pair_ids:
            return {}
        t = PairsDB.__table__
        query = select(t).where(t.c.exchange_id == exchange.id, t.c.id.in_(list(pair_ids)))
        async with self._engine.connect() as conn:
            rows = (await conn.execute(query)).mappings().all()
        return {row["id"]: _to_pair(row) for row in rows}

    async def get_by_addresses(
        self,
        exchange: Exchange,
        addresses: Sequence[str],
    ) -> dict[str, Pair]:
        if not addresses:
            return {}
        t = PairsDB.__table__
        query = select(t).where(
            t.c.exchange_id == exchange.id,
            t.c.address.in_(list(addresses)),
        )
        async with self._engine.connect() as conn:
            rows = (await conn.execute(query)).mappings().all()
        return {row["address"]: _to_pair(row) for row in rows}
