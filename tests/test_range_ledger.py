from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select, update

from dex_indexer.app.domain.models import ScopeKind
from dex_indexer.app.infrastructure.adapters.ledger.sqlalchemy_range_ledger import (
    SqlAlchemyRangeLedger,
)
from dex_indexer.app.infrastructure.db.models.ledger.range_claims import (
    ExchangePairRangesDB,
    PairSwapRangesDB,
)


def exchange_ledger(engine, **kwargs) -> SqlAlchemyRangeLedger:
    return SqlAlchemyRangeLedger(engine, kind=ScopeKind.EXCHANGE, **kwargs)


async def _age_claims(engine, table, hours: int) -> None:
    past = datetime.now(timezone.utc) - timedelta(hours=hours)
    async with engine.begin() as conn:
        await conn.execute(update(table.__table__).values(started_at=past))


@pytest.mark.asyncio
async def test_processed_claim_is_skipped_by_later_gap_queries(seeded):
    ledger = exchange_ledger(seeded)

    claim = await ledger.claim(1, 0, 50)
    assert claim is not None and claim.in_flight

    resolved = await ledger.resolve(claim)
    assert resolved.processed_at is not None
    assert resolved.failed_at is None

    assert await ledger.available_gaps(1, 0, 200, 50) == [(50, 100), (100, 150), (150, 200)]


@pytest.mark.asyncio
async def test_in_flight_claims_count_as_covered(seeded):
    ledger = exchange_ledger(seeded)

    await ledger.claim(1, 0, 50)
    await ledger.claim(1, 20, 60)

    assert await ledger.available_gaps(1, 0, 100, 100) == [(60, 100)]


@pytest.mark.asyncio
async def test_expired_in_flight_claims_are_released(seeded):
    ledger = exchange_ledger(seeded, lease_timeout=timedelta(hours=4))

    await ledger.claim(1, 0, 50)
    await _age_claims(seeded, ExchangePairRangesDB, hours=5)

    assert await ledger.available_gaps(1, 0, 50, 50) == [(0, 50)]
    async with seeded.connect() as conn:
        rows = (await conn.execute(select(ExchangePairRangesDB.__table__))).all()
    assert rows == []


@pytest.mark.asyncio
async def test_expired_processed_claims_are_kept(seeded):
    ledger = exchange_ledger(seeded)

    claim = await ledger.claim(1, 0, 50)
    await ledger.resolve(claim)
    await _age_claims(seeded, ExchangePairRangesDB, hours=24)

    assert await ledger.available_gaps(1, 0, 50, 50) == []


@pytest.mark.asyncio
async def test_failed_claims_are_covered_by_default(seeded):
    ledger = exchange_ledger(seeded)

    claim = await ledger.claim(1, 0, 50)
    failed = await ledger.resolve(claim, failed=True)
    assert failed.failed_at is not None
    assert failed.processed_at is None

    assert await ledger.available_gaps(1, 0, 100, 100) == [(50, 100)]


@pytest.mark.asyncio
async def test_failed_claims_are_reoffered_when_retrying(seeded):
    ledger = exchange_ledger(seeded, retry_failed=True)

    claim = await ledger.claim(1, 0, 50)
    await ledger.resolve(claim, failed=True)

    assert await ledger.available_gaps(1, 0, 100, 100) == [(0, 100)]


@pytest.mark.asyncio
async def test_reclaiming_the_same_range_replaces_the_row(seeded):
    ledger = exchange_ledger(seeded, retry_failed=True)

    first = await ledger.claim(1, 0, 50)
    await ledger.resolve(first, failed=True)
    second = await ledger.claim(1, 0, 50)

    assert second.id != first.id
    assert second.in_flight
    async with seeded.connect() as conn:
        rows = (await conn.execute(select(ExchangePairRangesDB.__table__))).all()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_resolving_twice_is_ignored(seeded):
    ledger = exchange_ledger(seeded)

    claim = await ledger.claim(1, 0, 50)
    assert await ledger.resolve(claim) is not None
    assert await ledger.resolve(claim, failed=True) is None


@pytest.mark.asyncio
async def test_claim_for_unknown_scope_returns_none(seeded):
    assert await exchange_ledger(seeded).claim(99, 0, 50) is None


@pytest.mark.asyncio
async def test_invalid_claim_bounds(seeded):
    with pytest.raises(ValueError):
        await exchange_ledger(seeded).claim(1, 50, 0)


@pytest.mark.asyncio
async def test_scopes_are_tracked_independently(seeded):
    ledger = SqlAlchemyRangeLedger(seeded, kind=ScopeKind.PAIR)

    claim = await ledger.claim(1, 0, 100)
    await ledger.resolve(claim)

    assert await ledger.available_gaps(1, 0, 100, 100) == []
    assert await ledger.available_gaps(2, 0, 100, 100) == [(0, 100)]


@pytest.mark.asyncio
async def test_gaps_across_scopes_need_every_scope_covered(seeded):
    ledger = SqlAlchemyRangeLedger(seeded, kind=ScopeKind.PAIR)

    for scope_id, (f, t) in [(1, (0, 100)), (2, (0, 40))]:
        await ledger.resolve(await ledger.claim(scope_id, f, t))

    assert await ledger.available_gaps_across([1, 2], 0, 100, 100) == [(40, 100)]


@pytest.mark.asyncio
async def test_kinds_use_separate_tables(seeded):
    pairs_ledger = exchange_ledger(seeded)
    swaps_ledger = SqlAlchemyRangeLedger(seeded, kind=ScopeKind.PAIR)

    await pairs_ledger.resolve(await pairs_ledger.claim(1, 0, 100))

    assert await swaps_ledger.available_gaps(1, 0, 100, 100) == [(0, 100)]
    async with seeded.connect() as conn:
        rows = (await conn.execute(select(PairSwapRangesDB.__table__))).all()
    assert rows == []


@pytest.mark.asyncio
async def test_stale_lease_cannot_resolve_its_replacement(seeded):
    ledger = exchange_ledger(seeded, lease_timeout=timedelta(hours=4))

    stale = await ledger.claim(1, 0, 50)
    await _age_claims(seeded, ExchangePairRangesDB, hours=5)
    assert await ledger.available_gaps(1, 0, 50, 50) == [(0, 50)]

    fresh = await ledger.claim(1, 0, 50)
    assert fresh.id != stale.id

    assert await ledger.resolve(stale) is None
    async with seeded.connect() as conn:
        row = (
            await conn.execute(
                select(ExchangePairRangesDB.__table__).where(
                    ExchangePairRangesDB.__table__.c.id == fresh.id
                )
            )
        ).mappings().one()
    assert row["processed_at"] is None and row["failed_at"] is None

    resolved = await ledger.resolve(fresh)
    assert resolved is not None and resolved.processed_at is not None


@pytest.mark.asyncio
async def test_resolve_ignores_a_claim_whose_row_was_restarted(seeded):
    ledger = exchange_ledger(seeded)

    claim = await ledger.claim(1, 0, 50)
    # same row, new lease start
    await _age_claims(seeded, ExchangePairRangesDB, hours=1)

    assert await ledger.resolve(claim) is None
