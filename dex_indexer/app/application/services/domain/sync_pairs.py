from __future__ import annotations

from typing import Sequence

from dex_indexer.app.application.services.adaptive_fetcher import AdaptiveFetcher
from dex_indexer.app.application.services.sync_orchestrator import SyncOrchestrator
from dex_indexer.app.domain.errors import ConfigurationError
from dex_indexer.app.domain.models import BlockRange, Exchange, RawPair, SyncReport
from dex_indexer.app.domain.ports.out import PairsSink


class PairsSyncJob:
    """Pair discovery for one exchange; progress is tracked on the exchange scope."""

    def __init__(self, *, exchange: Exchange, fetcher: AdaptiveFetcher, sink: PairsSink) -> None:
        if exchange.factory_contract is None:
            raise ConfigurationError(f"Exchange {exchange.key!r} has no factory contract")
        self._exchange = exchange
        self._fetcher = fetcher
        self._sink = sink

    @property
    def label(self) -> str:
        return f"pairs:{self._exchange.key}"

    @property
    def scope_ids(self) -> Sequence[int]:
        return [self._exchange.id]

    async def fetch(self, from_block: int, to_block: int) -> list[RawPair] | None:
        return await self._fetcher.get_pair_creation_events(self._exchange, from_block, to_block)

    async def persist(self, records: Sequence[RawPair]) -> int:
        return await self._sink.persist(self._exchange, records)


async def sync_pairs_for_block_range(
    *,
    orchestrator: SyncOrchestrator,
    job: PairsSyncJob,
    block_range: BlockRange,
) -> SyncReport:
    block_range.validate()
    return await orchestrator.run(job, block_range.from_block, block_range.to_block)
