from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncEngine

from dex_indexer.app.application.services.adaptive_fetcher import AdaptiveFetcher
from dex_indexer.app.config import Settings
from dex_indexer.app.domain.models import ScopeKind
from dex_indexer.app.domain.ports.out import (
    ErrorRecorder,
    PairsRepository,
    PairsSink,
    RangeLedger,
    SwapsSink,
)
from dex_indexer.app.infrastructure.adapters.domain.pairs_repository import (
    SqlAlchemyPairsRepository,
)
from dex_indexer.app.infrastructure.adapters.domain.pairs_sink import SqlAlchemyPairsSink
from dex_indexer.app.infrastructure.adapters.domain.swaps_sink import SqlAlchemySwapsSink
from dex_indexer.app.infrastructure.adapters.ops.error_recorder import SqlAlchemyErrorRecorder
from dex_indexer.app.infrastructure.factories.chain_data_source_factory import (
    chain_data_source_factory,
)
from dex_indexer.app.infrastructure.factories.range_ledger_factory import range_ledger_factory


@dataclass(frozen=True)
class SyncContext:
    """Everything one sync unit talks to. Built once per unit, never shared."""

    fetcher: AdaptiveFetcher
    errors: ErrorRecorder
    pairs: PairsRepository
    pairs_ledger: RangeLedger
    swaps_ledger: RangeLedger
    pairs_sink: PairsSink
    swaps_sink: SwapsSink


SyncContextFactory = Callable[..., SyncContext]


def build_sync_context(
    *,
    engine: AsyncEngine,
    network: str | None,
    settings: Settings,
    backend: str = "sqlalchemy",
    provider: str = "web3",
) -> SyncContext:
    errors = SqlAlchemyErrorRecorder(engine)
    source = chain_data_source_factory(
        provider=provider,
        urls=settings.rpc_urls_for(network),
        timeout_seconds=settings.rpc_timeout_seconds,
    )
    fetcher = AdaptiveFetcher(
        source,
        errors=errors,
        max_past_event_attempts=settings.max_past_event_attempts,
        max_data_attempts=settings.max_data_attempts,
        max_requests_before_rotation=settings.max_requests_before_rotation,
        rotation_delay_seconds=settings.rotation_delay_seconds,
    )
    pairs = SqlAlchemyPairsRepository(engine)

    def ledger(kind: ScopeKind) -> RangeLedger:
        return range_ledger_factory(
            backend=backend,
            engine=engine,
            kind=kind,
            retry_failed=settings.retry_failed_ranges,
            lease_timeout=settings.lease_timeout,
        )

    return SyncContext(
        fetcher=fetcher,
        errors=errors,
        pairs=pairs,
        pairs_ledger=ledger(ScopeKind.EXCHANGE),
        swaps_ledger=ledger(ScopeKind.PAIR),
        pairs_sink=SqlAlchemyPairsSink(
            engine,
            lookup=fetcher,
            errors=errors,
            batch_size=settings.sink_batch_size,
        ),
        swaps_sink=SqlAlchemySwapsSink(
            engine,
            pairs=pairs,
            lookup=fetcher,
            errors=errors,
            batch_size=settings.sink_batch_size,
        ),
    )
