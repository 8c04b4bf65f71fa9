from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncEngine

from dex_indexer.app.application.services.block_bounds import (
    BlockSelector,
    narrow_to_first_gap,
    resolve_sync_bounds,
)
from dex_indexer.app.application.services.domain.sync_swaps import (
    SwapsSyncJob,
    sync_swaps_for_block_range,
)
from dex_indexer.app.application.services.sync_orchestrator import SyncOrchestrator
from dex_indexer.app.application.services.work_pool import merge_reports, run_work_pool
from dex_indexer.app.config import settings
from dex_indexer.app.domain.errors import ConfigurationError
from dex_indexer.app.domain.models import BlockRange, Exchange, Pair, SyncReport
from dex_indexer.app.domain.ranges import Interval, split
from dex_indexer.app.infrastructure.db.engine import create_app_async_engine
from dex_indexer.app.infrastructure.factories.sync_context_factory import (
    SyncContextFactory,
    build_sync_context,
)
from dex_indexer.app.interface.tasks._common import load_syncable_exchange, log_report

logger = logging.getLogger(__name__)


async def _sync_interval(
    engine: AsyncEngine,
    exchange: Exchange,
    pairs: Sequence[Pair],
    interval: Interval,
    *,
    backend: str,
    context_factory: SyncContextFactory,
) -> SyncReport:
    ctx = context_factory(
        engine=engine,
        network=exchange.platform,
        settings=settings,
        backend=backend,
    )
    return await sync_swaps_for_block_range(
        orchestrator=SyncOrchestrator(
            ctx.swaps_ledger,
            max_chunk_size=settings.max_block_range,
            lease_timeout=settings.lease_timeout,
        ),
        job=SwapsSyncJob(exchange=exchange, pairs=pairs, fetcher=ctx.fetcher, sink=ctx.swaps_sink),
        block_range=BlockRange(from_block=interval[0], to_block=interval[1]),
    )


async def swaps_sync_task(
    *,
    exchange_key: str,
    pair_ids: Sequence[int],
    from_block: int = 0,
    to_block: BlockSelector = "latest",
    unprocessed_only: bool = False,
    multiworker: bool = False,
    workers: int | None = None,
    backend: str = "sqlalchemy",
    engine: AsyncEngine | None = None,
    context_factory: SyncContextFactory = build_sync_context,
) -> SyncReport:
    """
    Task: sync swaps of the given pairs of one exchange in a block range.

    Progress is tracked per pair; a range only counts as done once every
    requested pair covers it.
    """
    if not pair_ids:
        raise ConfigurationError("Please specify at least one pair id")

    owns_engine = engine is None
    if engine is None:
        engine = create_app_async_engine()
    try:
        exchange = await load_syncable_exchange(engine, exchange_key)
        ctx = context_factory(
            engine=engine,
            network=exchange.platform,
            settings=settings,
            backend=backend,
        )
        found = await ctx.pairs.get_by_ids(exchange, pair_ids)
        missing = [pair_id for pair_id in pair_ids if pair_id not in found]
        if missing:
            raise ConfigurationError(
                f"Pairs {missing} not found for exchange {exchange.key!r}"
            )
        pairs = [found[pair_id] for pair_id in dict.fromkeys(pair_ids)]

        fb, tb = await resolve_sync_bounds(
            genesis_block=max(
                exchange.factory_contract.start_block_number,
                min(p.block_number for p in pairs),
            ),
            from_block=from_block,
            to_block=to_block,
            source=ctx.fetcher,
        )
        if unprocessed_only:
            narrowed = await narrow_to_first_gap(
                ledger=ctx.swaps_ledger,
                scope_ids=[p.id for p in pairs],
                from_block=fb,
                to_block=tb,
            )
            if narrowed is None:
                return SyncReport()
            fb, tb = narrowed

        logger.info(
            "Syncing %s swaps for pairs %s in [%s, %s]",
            exchange.key,
            ",".join(str(p.id) for p in pairs),
            fb,
            tb,
        )

        if not multiworker:
            report = await _sync_interval(
                engine,
                exchange,
                pairs,
                (fb, tb),
                backend=backend,
                context_factory=context_factory,
            )
        else:
            intervals = split(fb, tb, settings.max_block_range * settings.multiworker_range_factor)

            async def unit(_worker: int, interval: Interval) -> SyncReport:
                return await _sync_interval(
                    engine,
                    exchange,
                    pairs,
                    interval,
                    backend=backend,
                    context_factory=context_factory,
                )

            results = await run_work_pool(
                intervals,
                unit,
                workers=workers or settings.worker_count,
            )
            report = merge_reports(results)

        log_report(f"swaps:{exchange.key}", report, retry_failed=settings.retry_failed_ranges)
        return report
    finally:
        if owns_engine:
            await engine.dispose()
