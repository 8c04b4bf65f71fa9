from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine

from dex_indexer.app.domain.models import Exchange, FactoryContract
from dex_indexer.app.infrastructure.db.models.domain.exchanges import ExchangesDB


def _factory_contract(raw: Mapping[str, Any] | None) -> FactoryContract | None:
    if not raw:
        return None
    return FactoryContract(
        address=raw["address"],
        abi_key=raw["abi_key"],
        event_name=raw["event_name"],
        start_block_number=int(raw["start_block_number"]),
        swap_abi_key=raw.get("swap_abi_key"),
    )


def to_exchange(row: Mapping[str, Any]) -> Exchange:
    return Exchange(
        id=row["id"],
        key=row["key"],
        name=row["name"],
        platform=row["platform"],
        factory_contract=_factory_contract(row["factory_contract"]),
    )


class SqlAlchemyExchangesRepository:
    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def get_by_key(self, key: str) -> Exchange | None:
        t = ExchangesDB.__table__
        async with self._engine.connect() as conn:
            row = (await conn.execute(select(t).where(t.c.key == key))).mappings().one_or_none()
        return None if row is None else to_exchange(row)

    async def list_keys(self) -> list[str]:
        t = ExchangesDB.__table__
        async with self._engine.connect() as conn:
            result = await conn.execute(select(t.c.key).order_by(t.c.key))
            return list(result.scalars().all())
