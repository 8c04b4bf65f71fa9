from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Sequence

from sqlalchemy import Table, delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncEngine

from dex_indexer.app.domain.models import BlockRange, RangeClaim, ScopeKind
from dex_indexer.app.domain.ranges import Interval, lowest_denominator_gaps
from dex_indexer.app.infrastructure.db.models.domain.exchanges import ExchangesDB
from dex_indexer.app.infrastructure.db.models.domain.pairs import PairsDB
from dex_indexer.app.infrastructure.db.models.ledger.range_claims import (
    ExchangePairRangesDB,
    PairSwapRangesDB,
)

logger = logging.getLogger(__name__)

DEFAULT_LEASE_TIMEOUT = timedelta(hours=4)

# scope kind -> (claims table, scope column on it, scope owner table)
_TABLES: dict[ScopeKind, tuple[Table, str, Table]] = {
    ScopeKind.EXCHANGE: (ExchangePairRangesDB.__table__, "exchange_id", ExchangesDB.__table__),
    ScopeKind.PAIR: (PairSwapRangesDB.__table__, "pair_id", PairsDB.__table__),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SqlAlchemyRangeLedger:
    """
    Range ledger adapter: durable block-range claims for one scope kind.

    Strategy:
    - claim: one transaction; lock the scope row (FOR UPDATE on PostgreSQL),
      delete any claim with the exact same bounds, insert a fresh in-flight one.
    - resolve: conditional UPDATE on the in-flight row the claim was issued
      for (id, scope, bounds, started_at), so a claim is resolved at most
      once and a stale lease never resolves its replacement.
    - gaps: purge in-flight claims older than the lease timeout, load claims
      intersecting the requested bound and hand them to the range math.
    - failed claims count as covered unless `retry_failed` is set.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        kind: ScopeKind,
        retry_failed: bool = False,
        lease_timeout: timedelta = DEFAULT_LEASE_TIMEOUT,
    ) -> None:
        self._engine = engine
        self._kind = kind
        self._retry_failed = retry_failed
        self._lease_timeout = lease_timeout
        self._table, scope_column, self._scope_table = _TABLES[kind]
        self._scope_col = self._table.c[scope_column]

    @property
    def scope_kind(self) -> ScopeKind:
        return self._kind

    async def claim(
        self,
        scope_id: int,
        from_block: int,
        to_block: int,
    ) -> RangeClaim | None:
        BlockRange(from_block=from_block, to_block=to_block).validate()
        t = self._table
        now = _utcnow()

        async with self._engine.begin() as conn:
            owner = await conn.execute(
                select(self._scope_table.c.id)
                .where(self._scope_table.c.id == scope_id)
                .with_for_update()
            )
            if owner.scalar_one_or_none() is None:
                logger.warning(
                    "Cannot claim [%s, %s]: %s %s does not exist",
                    from_block,
                    to_block,
                    self._kind.value,
                    scope_id,
                )
                return None

            await conn.execute(
                delete(t).where(
                    self._scope_col == scope_id,
                    t.c.from_block == from_block,
                    t.c.to_block == to_block,
                )
            )
            result = await conn.execute(
                insert(t)
                .values(
                    {
                        self._scope_col.name: scope_id,
                        "from_block": from_block,
                        "to_block": to_block,
                        "started_at": now,
                        "processed_at": None,
                        "failed_at": None,
                        "created_at": now,
                        "updated_at": now,
                    }
                )
                .returning(*t.c)
            )
            row = result.mappings().one()

        logger.debug("Claimed %s %s [%s, %s]", self._kind.value, scope_id, from_block, to_block)
        return self._to_claim(row)

    async def resolve(
        self,
        claim: RangeClaim,
        *,
        failed: bool = False,
    ) -> RangeClaim | None:
        t = self._table
        now = _utcnow()
        column = "failed_at" if failed else "processed_at"

        async with self._engine.begin() as conn:
            result = await conn.execute(
                update(t)
                .where(
                    t.c.id == claim.id,
                    self._scope_col == claim.scope_id,
                    t.c.from_block == claim.from_block,
                    t.c.to_block == claim.to_block,
                    t.c.started_at == claim.started_at,
                    t.c.processed_at.is_(None),
                    t.c.failed_at.is_(None),
                )
                .values({column: now, "updated_at": now})
                .returning(*t.c)
            )
            row = result.mappings().one_or_none()

        if row is None:
            logger.warning(
                "Claim %s (%s %s [%s, %s]) is not in flight anymore; resolve ignored",
                claim.id,
                self._kind.value,
                claim.scope_id,
                claim.from_block,
                claim.to_block,
            )
            return None
        return self._to_claim(row)

    async def available_gaps(
        self,
        scope_id: int,
        from_block: int,
        to_block: int,
        max_size: int,
        *,
        lease_timeout: timedelta | None = None,
    ) -> list[Interval]:
        return await self.available_gaps_across(
            [scope_id], from_block, to_block, max_size, lease_timeout=lease_timeout
        )

    async def available_gaps_across(
        self,
        scope_ids: Sequence[int],
        from_block: int,
        to_block: int,
        max_size: int,
        *,
        lease_timeout: timedelta | None = None,
    ) -> list[Interval]:
        BlockRange(from_block=from_block, to_block=to_block).validate()
        ids = list(dict.fromkeys(scope_ids))
        if not ids:
            return lowest_denominator_gaps(from_block, to_block, max_size, [])

        t = self._table
        cutoff = _utcnow() - (lease_timeout or self._lease_timeout)

        async with self._engine.begin() as conn:
            expired = await conn.execute(
                delete(t).where(
                    self._scope_col.in_(ids),
                    t.c.processed_at.is_(None),
                    t.c.failed_at.is_(None),
                    t.c.started_at < cutoff,
                )
            )
            if expired.rowcount:
                logger.info(
                    "Released %s expired %s claims",
                    expired.rowcount,
                    self._kind.value,
                )

            query = select(self._scope_col, t.c.from_block, t.c.to_block).where(
                self._scope_col.in_(ids),
                t.c.to_block >= from_block,
                t.c.from_block <= to_block,
            )
            if self._retry_failed:
                query = query.where(t.c.failed_at.is_(None))
            rows = (await conn.execute(query)).all()

        tracks: dict[int, list[Interval]] = {scope_id: [] for scope_id in ids}
        for scope_id, start, end in rows:
            tracks[scope_id].append((start, end))

        return lowest_denominator_gaps(from_block, to_block, max_size, tracks.values())

    def _to_claim(self, row: Mapping[str, Any]) -> RangeClaim:
        return RangeClaim(
            id=row["id"],
            scope_kind=self._kind,
            scope_id=row[self._scope_col.name],
            from_block=row["from_block"],
            to_block=row["to_block"],
            started_at=row["started_at"],
            processed_at=row["processed_at"],
            failed_at=row["failed_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
