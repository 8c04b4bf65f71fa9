import pytest
from sqlalchemy import func, insert, select

from dex_indexer.app.infrastructure.adapters.domain.exchanges_repository import (
    SqlAlchemyExchangesRepository,
)
from dex_indexer.app.infrastructure.db.models.registry import ExchangesDB, TokensDB
from dex_indexer.app.interface.tasks.database_rebuild_task import (
    load_exchange_seeds,
    rebuild_database,
)


def test_seed_file_lists_known_exchanges():
    seeds = load_exchange_seeds()
    keys = [row["key"] for row in seeds]

    assert keys == ["uniswap", "uniswap_v2", "uniswap_v3", "pancakeswap", "pancakeswap_v2"]
    for row in seeds:
        factory = row["factory_contract"]
        if factory is not None:
            assert factory["start_block_number"] > 0
            assert factory["swap_abi_key"]


@pytest.mark.asyncio
async def test_rebuild_seeds_exchange_registry(engine):
    seeded = await rebuild_database(engine)
    repo = SqlAlchemyExchangesRepository(engine)

    assert seeded == 5
    assert await repo.list_keys() == sorted(
        ["uniswap", "uniswap_v2", "uniswap_v3", "pancakeswap", "pancakeswap_v2"]
    )

    v2 = await repo.get_by_key("uniswap_v2")
    assert v2 is not None
    assert v2.platform == "ethereum"
    assert v2.factory_contract is not None
    assert v2.factory_contract.event_name == "PairCreated"
    assert v2.factory_contract.start_block_number == 10000835

    v1 = await repo.get_by_key("uniswap")
    assert v1 is not None
    assert v1.factory_contract is None

    assert await repo.get_by_key("sushiswap") is None


@pytest.mark.asyncio
async def test_rebuild_drops_existing_data(engine):
    async with engine.begin() as conn:
        await conn.execute(
            insert(TokensDB.__table__),
            [{"platform": "ethereum", "address": "0xA", "name": "A", "symbol": "A"}],
        )

    await rebuild_database(engine, seeds=[])

    async with engine.connect() as conn:
        tokens = (await conn.execute(select(func.count()).select_from(TokensDB.__table__))).scalar_one()
        exchanges = (
            await conn.execute(select(func.count()).select_from(ExchangesDB.__table__))
        ).scalar_one()
    assert tokens == 0
    assert exchanges == 0
