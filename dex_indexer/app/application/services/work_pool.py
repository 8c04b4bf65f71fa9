from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

from dex_indexer.app.domain.models import SyncReport
from dex_indexer.app.domain.ranges import Interval

logger = logging.getLogger(__name__)

# (worker number, top-level interval) -> report of that interval
WorkUnit = Callable[[int, Interval], Awaitable[SyncReport]]


@dataclass(frozen=True)
class WorkResult:
    interval: Interval
    report: SyncReport | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def default_worker_count() -> int:
    return os.cpu_count() or 1


async def run_work_pool(
    intervals: Sequence[Interval],
    unit: WorkUnit,
    *,
    workers: int | None = None,
) -> list[WorkResult]:
    """
    Run `unit` over independent top-level intervals with at most `workers` in flight.

    A worker that finishes an interval takes the next one from the queue right
    away. A failing unit is logged and reported in its WorkResult; the other
    intervals keep going. Results come back in input order.
    """
    if not intervals:
        return []

    size = max(1, min(workers or default_worker_count(), len(intervals)))
    queue: asyncio.Queue[tuple[int, Interval]] = asyncio.Queue()
    for position, interval in enumerate(intervals):
        queue.put_nowait((position, interval))

    results: list[WorkResult | None] = [None] * len(intervals)

    async def worker(number: int) -> None:
        while True:
            try:
                position, interval = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            logger.info("[Worker %s] Starting [%s, %s]", number, interval[0], interval[1])
            try:
                report = await unit(number, interval)
            except Exception as exc:
                logger.exception(
                    "[Worker %s] Interval [%s, %s] failed", number, interval[0], interval[1]
                )
                results[position] = WorkResult(interval=interval, error=exc)
            else:
                logger.info(
                    "[Worker %s] Finished [%s, %s]: %s ranges processed, %s failed, %s records",
                    number,
                    interval[0],
                    interval[1],
                    len(report.processed),
                    len(report.failed),
                    report.records,
                )
                results[position] = WorkResult(interval=interval, report=report)
            finally:
                queue.task_done()

    logger.info("Running %s intervals on %s workers", len(intervals), size)
    await asyncio.gather(*(worker(n) for n in range(1, size + 1)))

    return [r for r in results if r is not None]


def merge_reports(results: Sequence[WorkResult]) -> SyncReport:
    """Fold per-interval results into one report; crashed intervals count as failed."""
    report = SyncReport()
    for result in results:
        if result.report is not None:
            report.extend(result.report)
        else:
            report.failed.append(result.interval)
    return report
