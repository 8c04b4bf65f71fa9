from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy.ext.asyncio import AsyncEngine

from dex_indexer.app.domain.models import Exchange, RawSwap
from dex_indexer.app.domain.ports.out import ChainMetadataLookup, ErrorRecorder, PairsRepository
from dex_indexer.app.infrastructure.adapters.domain._batching import chunks, to_datetime
from dex_indexer.app.infrastructure.db.dml import upsert_insert
from dex_indexer.app.infrastructure.db.models.domain.swaps import SwapsDB

logger = logging.getLogger(__name__)


class SqlAlchemySwapsSink:
    """
    Sink adapter: persists swap events.

    Swaps of a pair the store does not know are recorded and skipped. Rows
    insert with ON CONFLICT DO NOTHING on (pair_id, transaction_hash, log_index),
    so replaying a range is a no-op.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        pairs: PairsRepository,
        lookup: ChainMetadataLookup,
        errors: ErrorRecorder,
        batch_size: int = 250,
    ) -> None:
        self._engine = engine
        self._pairs = pairs
        self._lookup = lookup
        self._errors = errors
        self._batch_size = batch_size

    async def persist(self, exchange: Exchange, raw_swaps: Sequence[RawSwap]) -> int:
        if not raw_swaps:
            return 0

        addresses = list(dict.fromkeys(s.pair_address for s in raw_swaps))
        pairs = await self._pairs.get_by_addresses(exchange, addresses)

        timestamps: dict[int, datetime] = {}
        rows: list[dict[str, Any]] = []
        for swap in raw_swaps:
            pair = pairs.get(swap.pair_address)
            if pair is None:
                logger.warning(
                    "Skipping swap %s#%s: pair %s not found",
                    swap.transaction_hash,
                    swap.log_index,
                    swap.pair_address,
                )
                await self._errors.record(
                    "swaps_sink.unknown_pair",
                    {
                        "exchange": exchange.key,
                        "pair_address": swap.pair_address,
                        "transaction_hash": swap.transaction_hash,
                        "log_index": swap.log_index,
                    },
                )
                continue

            if swap.block_number not in timestamps:
                timestamps[swap.block_number] = to_datetime(
                    await self._lookup.get_block_timestamp(swap.block_number)
                )
            rows.append(
                {
                    "exchange_id": exchange.id,
                    "pair_id": pair.id,
                    "transaction_hash": swap.transaction_hash,
                    "log_index": swap.log_index,
                    "block_number": swap.block_number,
                    "timestamp": timestamps[swap.block_number],
                    "sender": swap.sender_address,
                    "recipient": swap.recipient_address,
                    "amount0_in": swap.amount0_in,
                    "amount0_out": swap.amount0_out,
                    "amount1_in": swap.amount1_in,
                    "amount1_out": swap.amount1_out,
                }
            )

        t = SwapsDB.__table__
        inserted = 0
        async with self._engine.begin() as conn:
            for batch in chunks(rows, self._batch_size):
                stmt = (
                    upsert_insert(conn, t)
                    .values(batch)
                    .on_conflict_do_nothing(
                        index_elements=["pair_id", "transaction_hash", "log_index"]
                    )
                    .returning(t.c.id)
                )
                inserted += len((await conn.execute(stmt)).all())

        logger.info(
            "Inserted %s new swaps for %s (%s received)",
            inserted,
            exchange.key,
            len(raw_swaps),
        )
        return inserted
