from __future__ import annotations

import os

# Settings() is instantiated on import of the config module.
os.environ.setdefault("POSTGRES_USER", "indexer")
os.environ.setdefault("POSTGRES_PASSWORD", "indexer")
os.environ.setdefault("POSTGRES_SERVER", "localhost")
os.environ.setdefault("POSTGRES_PORT", "5432")
os.environ.setdefault("POSTGRES_DB", "indexer")

from datetime import datetime, timezone
from typing import Any, Sequence

import pytest
import pytest_asyncio
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import create_async_engine

from dex_indexer.app.domain.errors import TransportError
from dex_indexer.app.domain.models import (
    Exchange,
    FactoryContract,
    Pair,
    RawPair,
    RawSwap,
    TokenMetadata,
)
from dex_indexer.app.infrastructure.db.models.registry import (
    ExchangesDB,
    PairsDB,
    TokensDB,
    metadata,
)

FACTORY = FactoryContract(
    address="0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f",
    abi_key="uniswap_v2_factory",
    event_name="PairCreated",
    start_block_number=100,
    swap_abi_key="uniswap_v2_pair",
)

EXCHANGE = Exchange(
    id=1,
    key="uniswap_v2",
    name="Uniswap (v2)",
    platform="ethereum",
    factory_contract=FACTORY,
)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'indexer.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def seeded(engine):
    """One exchange, two tokens, two pairs (ids 1 and 2)."""
    when = datetime(2021, 1, 1, tzinfo=timezone.utc)
    async with engine.begin() as conn:
        await conn.execute(
            insert(ExchangesDB.__table__),
            [
                {
                    "id": EXCHANGE.id,
                    "key": EXCHANGE.key,
                    "name": EXCHANGE.name,
                    "platform": EXCHANGE.platform,
                    "factory_contract": {
                        "address": FACTORY.address,
                        "abi_key": FACTORY.abi_key,
                        "event_name": FACTORY.event_name,
                        "start_block_number": FACTORY.start_block_number,
                        "swap_abi_key": FACTORY.swap_abi_key,
                    },
                }
            ],
        )
        await conn.execute(
            insert(TokensDB.__table__),
            [
                {"id": 1, "platform": "ethereum", "address": "0xA", "name": "Token A", "symbol": "A", "decimals": 18, "block_number": 150},
                {"id": 2, "platform": "ethereum", "address": "0xB", "name": "Token B", "symbol": "B", "decimals": 6, "block_number": 150},
            ],
        )
        await conn.execute(
            insert(PairsDB.__table__),
            [
                {"id": 1, "exchange_id": 1, "address": "0xP1", "token0_id": 1, "token1_id": 2, "block_number": 150, "timestamp": when},
                {"id": 2, "exchange_id": 1, "address": "0xP2", "token0_id": 2, "token1_id": 1, "block_number": 300, "timestamp": when},
            ],
        )
    return engine


def make_pair(pair_id: int, address: str, block_number: int) -> Pair:
    return Pair(
        id=pair_id,
        exchange_id=EXCHANGE.id,
        address=address,
        token0_id=1,
        token1_id=2,
        block_number=block_number,
        timestamp=datetime(2021, 1, 1, tzinfo=timezone.utc),
    )


def make_raw_pair(address: str, token0: str, token1: str, block_number: int) -> RawPair:
    return RawPair(
        address=address,
        token0_address=token0,
        token1_address=token1,
        block_number=block_number,
        block_hash="0x" + "00" * 32,
        transaction_hash="0x" + f"{block_number:064x}",
    )


def make_raw_swap(pair_address: str, block_number: int, log_index: int = 0) -> RawSwap:
    return RawSwap(
        pair_address=pair_address,
        sender_address="0xSender",
        recipient_address="0xRecipient",
        amount0_in="1000",
        amount0_out="0",
        amount1_in="0",
        amount1_out="995",
        block_number=block_number,
        block_hash="0x" + "00" * 32,
        transaction_hash="0x" + f"{block_number:064x}",
        log_index=log_index,
    )


class FakeChainDataSource:
    """
    Scriptable ChainDataSource.

    `fail_when(from_block, to_block)` decides per request whether it raises
    TransportError; every request is logged in `calls`.
    """

    def __init__(
        self,
        *,
        pairs: Sequence[RawPair] = (),
        swaps: Sequence[RawSwap] = (),
        tokens: dict[str, TokenMetadata] | None = None,
        timestamps: dict[int, int] | None = None,
        latest_block: int = 1_000_000,
        endpoints: Sequence[str] = ("http://node-a", "http://node-b"),
        fail_when=None,
        point_failures: int = 0,
    ) -> None:
        self.pairs = list(pairs)
        self.swaps = list(swaps)
        self.tokens = dict(tokens or {})
        self.timestamps = dict(timestamps or {})
        self.latest_block = latest_block
        self.endpoints = list(endpoints)
        self.fail_when = fail_when or (lambda f, t: False)
        self.point_failures = point_failures
        self.index = 0
        self.rotations = 0
        self.calls: list[tuple[Any, ...]] = []

    @property
    def endpoint(self) -> str:
        return self.endpoints[self.index]

    async def rotate(self) -> str:
        self.index = (self.index + 1) % len(self.endpoints)
        self.rotations += 1
        return self.endpoint

    async def get_pair_creation_events(self, exchange, from_block, to_block):
        self.calls.append(("pairs", from_block, to_block))
        if self.fail_when(from_block, to_block):
            raise TransportError(f"boom [{from_block}, {to_block}]")
        return [p for p in self.pairs if from_block <= p.block_number <= to_block]

    async def get_swap_events(self, exchange, pair_addresses, from_block, to_block):
        self.calls.append(("swaps", tuple(pair_addresses), from_block, to_block))
        if self.fail_when(from_block, to_block):
            raise TransportError(f"boom [{from_block}, {to_block}]")
        return [
            s
            for s in self.swaps
            if s.pair_address in pair_addresses and from_block <= s.block_number <= to_block
        ]

    def _point_failure(self, what: str) -> None:
        if self.point_failures > 0:
            self.point_failures -= 1
            raise TransportError(f"{what} unavailable")

    async def get_token_metadata(self, address):
        self.calls.append(("token", address))
        self._point_failure("token")
        return self.tokens.get(address)

    async def get_block_timestamp(self, block_number_or_hash):
        self.calls.append(("block", block_number_or_hash))
        self._point_failure("block")
        return self.timestamps.get(block_number_or_hash)

    async def get_latest_block_number(self):
        self.calls.append(("latest",))
        self._point_failure("latest")
        return self.latest_block


class RecordingErrors:
    def __init__(self, *, fail: bool = False) -> None:
        self.records: list[tuple[str, dict[str, Any], Any]] = []
        self.fail = fail

    async def record(self, source, parameters, error=None):
        self.records.append((source, parameters, error))
        if self.fail:
            raise RuntimeError("errors table unavailable")


@pytest.fixture
def errors() -> RecordingErrors:
    return RecordingErrors()
