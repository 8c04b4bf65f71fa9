from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Protocol, Sequence

from dex_indexer.app.domain.errors import DataIntegrityError
from dex_indexer.app.domain.models import BlockRange, RangeClaim, SyncReport
from dex_indexer.app.domain.ports.out import RangeLedger

logger = logging.getLogger(__name__)


class SyncJob(Protocol):
    """What to sync: the scopes whose ledgers get claimed, and how to fetch/persist."""

    @property
    def label(self) -> str: ...

    @property
    def scope_ids(self) -> Sequence[int]: ...

    async def fetch(self, from_block: int, to_block: int) -> Sequence[Any] | None:
        """None = the source gave up on this range (distinct from no records)."""
        ...

    async def persist(self, records: Sequence[Any]) -> int: ...


class SyncOrchestrator:
    """
    gap -> claim -> fetch -> persist -> resolve, for one job over one bound.

    Gaps are processed in ascending order, one at a time. A range the fetcher
    gave up on is resolved as failed and the run moves on; persistence errors
    propagate and leave the claims in flight until their lease expires.
    """

    def __init__(
        self,
        ledger: RangeLedger,
        *,
        max_chunk_size: int = 5000,
        lease_timeout: timedelta | None = None,
    ) -> None:
        self._ledger = ledger
        self._max_chunk_size = max_chunk_size
        self._lease_timeout = lease_timeout

    async def run(self, job: SyncJob, from_block: int, to_block: int) -> SyncReport:
        BlockRange(from_block=from_block, to_block=to_block).validate()
        scope_ids = list(job.scope_ids)

        gaps = await self._ledger.available_gaps_across(
            scope_ids,
            from_block,
            to_block,
            self._max_chunk_size,
            lease_timeout=self._lease_timeout,
        )
        logger.info(
            "%s: %s gaps to sync in [%s, %s]",
            job.label,
            len(gaps),
            from_block,
            to_block,
        )

        report = SyncReport()
        for gap_from, gap_to in gaps:
            claims = await self._claim_all(scope_ids, gap_from, gap_to)

            records = await job.fetch(gap_from, gap_to)
            if records is None:
                logger.error("%s: giving up on [%s, %s]", job.label, gap_from, gap_to)
                await self._resolve_all(claims, failed=True)
                report.failed.append((gap_from, gap_to))
                continue

            count = await job.persist(records)
            await self._resolve_all(claims, failed=False)
            report.processed.append((gap_from, gap_to))
            report.records += count
            logger.info(
                "%s: [%s, %s] done, %s records",
                job.label,
                gap_from,
                gap_to,
                count,
            )

        return report

    async def _claim_all(
        self,
        scope_ids: Sequence[int],
        from_block: int,
        to_block: int,
    ) -> list[RangeClaim]:
        claims: list[RangeClaim] = []
        for scope_id in scope_ids:
            claim = await self._ledger.claim(scope_id, from_block, to_block)
            if claim is None:
                raise DataIntegrityError(
                    f"Could not claim [{from_block}, {to_block}]: "
                    f"{self._ledger.scope_kind.value} {scope_id} no longer exists"
                )
            claims.append(claim)
        return claims

    async def _resolve_all(self, claims: Sequence[RangeClaim], *, failed: bool) -> None:
        for claim in claims:
            await self._ledger.resolve(claim, failed=failed)
