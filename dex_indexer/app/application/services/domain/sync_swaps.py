from __future__ import annotations

from typing import Sequence

from dex_indexer.app.application.services.adaptive_fetcher import AdaptiveFetcher
from dex_indexer.app.application.services.sync_orchestrator import SyncOrchestrator
from dex_indexer.app.domain.errors import ConfigurationError
from dex_indexer.app.domain.models import BlockRange, Exchange, Pair, RawSwap, SyncReport
from dex_indexer.app.domain.ports.out import SwapsSink


class SwapsSyncJob:
    """
    Swap discovery for a set of pairs of one exchange.

    Every pair is its own scope: a gap is claimed once per pair and fetched
    with a single multi-address request.
    """

    def __init__(
        self,
        *,
        exchange: Exchange,
        pairs: Sequence[Pair],
        fetcher: AdaptiveFetcher,
        sink: SwapsSink,
    ) -> None:
        if not pairs:
            raise ConfigurationError("Please specify at least one pair")
        self._exchange = exchange
        self._pairs = list(pairs)
        self._fetcher = fetcher
        self._sink = sink

    @property
    def label(self) -> str:
        return f"swaps:{self._exchange.key}"

    @property
    def scope_ids(self) -> Sequence[int]:
        return [p.id for p in self._pairs]

    @property
    def genesis_block(self) -> int:
        return min(p.block_number for p in self._pairs)

    async def fetch(self, from_block: int, to_block: int) -> list[RawSwap] | None:
        return await self._fetcher.get_swap_events(self._exchange, self._pairs, from_block, to_block)

    async def persist(self, records: Sequence[RawSwap]) -> int:
        return await self._sink.persist(self._exchange, records)


async def sync_swaps_for_block_range(
    *,
    orchestrator: SyncOrchestrator,
    job: SwapsSyncJob,
    block_range: BlockRange,
) -> SyncReport:
    block_range.validate()
    return await orchestrator.run(job, block_range.from_block, block_range.to_block)
