from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from dex_indexer.app.application.services.block_bounds import (
    BlockSelector,
    narrow_to_first_gap,
    resolve_sync_bounds,
)
from dex_indexer.app.application.services.domain.sync_pairs import (
    PairsSyncJob,
    sync_pairs_for_block_range,
)
from dex_indexer.app.application.services.sync_orchestrator import SyncOrchestrator
from dex_indexer.app.application.services.work_pool import merge_reports, run_work_pool
from dex_indexer.app.config import settings
from dex_indexer.app.domain.models import BlockRange, Exchange, SyncReport
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
    return await sync_pairs_for_block_range(
        orchestrator=SyncOrchestrator(
            ctx.pairs_ledger,
            max_chunk_size=settings.max_block_range,
            lease_timeout=settings.lease_timeout,
        ),
        job=PairsSyncJob(exchange=exchange, fetcher=ctx.fetcher, sink=ctx.pairs_sink),
        block_range=BlockRange(from_block=interval[0], to_block=interval[1]),
    )


async def pairs_sync_task(
    *,
    exchange_key: str,
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
    Task: discover pairs created by an exchange's factory in a block range.

    - raises from_block to the factory start block, resolves "latest",
    - optionally narrows to the first unprocessed gap,
    - syncs in-process, or over a worker pool of disjoint top-level intervals.
    """
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
        fb, tb = await resolve_sync_bounds(
            genesis_block=exchange.factory_contract.start_block_number,
            from_block=from_block,
            to_block=to_block,
            source=ctx.fetcher,
        )
        if unprocessed_only:
            narrowed = await narrow_to_first_gap(
                ledger=ctx.pairs_ledger,
                scope_ids=[exchange.id],
                from_block=fb,
                to_block=tb,
            )
            if narrowed is None:
                return SyncReport()
            fb, tb = narrowed

        logger.info("Syncing %s pairs in [%s, %s]", exchange.key, fb, tb)

        if not multiworker:
            report = await _sync_interval(
                engine,
                exchange,
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

        log_report(f"pairs:{exchange.key}", report, retry_failed=settings.retry_failed_ranges)
        return report
    finally:
        if owns_engine:
            await engine.dispose()
