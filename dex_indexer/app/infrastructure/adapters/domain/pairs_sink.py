from __future__ import annotations

import logging
from typing import Any, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine

from dex_indexer.app.domain.models import Exchange, RawPair
from dex_indexer.app.domain.ports.out import ChainMetadataLookup, ErrorRecorder
from dex_indexer.app.infrastructure.adapters.domain._batching import chunks, to_datetime
from dex_indexer.app.infrastructure.db.dml import upsert_insert
from dex_indexer.app.infrastructure.db.models.domain.pairs import PairsDB
from dex_indexer.app.infrastructure.db.models.domain.tokens import TokensDB

logger = logging.getLogger(__name__)


class SqlAlchemyPairsSink:
    """
    Sink adapter: persists pair creation events as tokens + pairs.

    Strategy:
    - Collect the unique token addresses of the batch and load the known ones.
    - For each unknown token fetch ERC-20 metadata and the timestamp of the
      block the token was first seen in; unresolvable tokens are recorded.
    - Upsert tokens (ON CONFLICT DO UPDATE backfilling block_number only).
    - Insert pairs (ON CONFLICT DO NOTHING on (exchange_id, address)); pairs
      with an unresolved token are recorded and skipped.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        lookup: ChainMetadataLookup,
        errors: ErrorRecorder,
        batch_size: int = 250,
    ) -> None:
        self._engine = engine
        self._lookup = lookup
        self._errors = errors
        self._batch_size = batch_size

    async def persist(self, exchange: Exchange, raw_pairs: Sequence[RawPair]) -> int:
        if not raw_pairs:
            return 0

        # first block each token shows up in within this batch
        first_seen: dict[str, int] = {}
        for rp in raw_pairs:
            for address in (rp.token0_address, rp.token1_address):
                if address not in first_seen or rp.block_number < first_seen[address]:
                    first_seen[address] = rp.block_number

        known = await self._load_token_ids(exchange.platform, list(first_seen))
        missing = [address for address in first_seen if address not in known]
        logger.info(
            "Processing %s pairs for %s: %s tokens known, %s to fetch",
            len(raw_pairs),
            exchange.key,
            len(known),
            len(missing),
        )

        token_rows = await self._build_token_rows(exchange, missing, first_seen)
        if token_rows:
            await self._upsert_tokens(token_rows)
            known.update(await self._load_token_ids(exchange.platform, missing))

        timestamps: dict[int, Any] = {}
        pair_rows: list[dict[str, Any]] = []
        for rp in raw_pairs:
            token0_id = known.get(rp.token0_address)
            token1_id = known.get(rp.token1_address)
            if token0_id is None or token1_id is None:
                logger.warning(
                    "Skipping pair %s: token %s unresolved",
                    rp.address,
                    rp.token0_address if token0_id is None else rp.token1_address,
                )
                await self._errors.record(
                    "pairs_sink.unresolved_token",
                    {
                        "exchange": exchange.key,
                        "pair_address": rp.address,
                        "token0_address": rp.token0_address,
                        "token1_address": rp.token1_address,
                        "block_number": rp.block_number,
                    },
                )
                continue

            if rp.block_number not in timestamps:
                timestamps[rp.block_number] = to_datetime(
                    await self._lookup.get_block_timestamp(rp.block_number)
                )
            pair_rows.append(
                {
                    "exchange_id": exchange.id,
                    "address": rp.address,
                    "token0_id": token0_id,
                    "token1_id": token1_id,
                    "block_number": rp.block_number,
                    "timestamp": timestamps[rp.block_number],
                }
            )

        inserted = await self._insert_pairs(pair_rows)
        logger.info(
            "Inserted %s new pairs for %s (%s already present)",
            inserted,
            exchange.key,
            len(pair_rows) - inserted,
        )
        return inserted

    async def _build_token_rows(
        self,
        exchange: Exchange,
        addresses: list[str],
        first_seen: dict[str, int],
    ) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        for address in addresses:
            metadata = await self._lookup.get_token_metadata(address)
            if metadata is None:
                await self._errors.record(
                    "pairs_sink.token_metadata",
                    {"platform": exchange.platform, "address": address},
                )
                continue

            block_number = first_seen[address]
            rows.append(
                {
                    "platform": exchange.platform,
                    "address": address,
                    "name": metadata.name,
                    "symbol": metadata.symbol,
                    "decimals": metadata.decimals,
                    "block_number": block_number,
                    "timestamp": to_datetime(await self._lookup.get_block_timestamp(block_number)),
                }
            )
        return rows

    async def _load_token_ids(self, platform: str | None, addresses: list[str]) -> dict[str, int]:
        t = TokensDB.__table__
        out: dict[str, int] = {}
        async with self._engine.connect() as conn:
            for batch in chunks(addresses, self._batch_size):
                query = select(t.c.address, t.c.id).where(t.c.address.in_(batch))
                query = query.where(
                    t.c.platform.is_(None) if platform is None else t.c.platform == platform
                )
                for address, token_id in (await conn.execute(query)).all():
                    out[address] = token_id
        return out

    async def _upsert_tokens(self, rows: list[dict[str, Any]]) -> None:
        t = TokensDB.__table__
        async with self._engine.begin() as conn:
            for batch in chunks(rows, self._batch_size):
                stmt = upsert_insert(conn, t).values(batch)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["platform", "address"],
                    set_={"block_number": func.coalesce(t.c.block_number, stmt.excluded.block_number)},
                )
                await conn.execute(stmt)

    async def _insert_pairs(self, rows: list[dict[str, Any]]) -> int:
        t = PairsDB.__table__
        inserted = 0
        async with self._engine.begin() as conn:
            for batch in chunks(rows, self._batch_size):
                stmt = (
                    upsert_insert(conn, t)
                    .values(batch)
                    .on_conflict_do_nothing(index_elements=["exchange_id", "address"])
                    .returning(t.c.id)
                )
                inserted += len((await conn.execute(stmt)).all())
        return inserted
