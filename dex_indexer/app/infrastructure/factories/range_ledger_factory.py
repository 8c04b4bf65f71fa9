from __future__ import annotations

from datetime import timedelta
from typing import Callable, Dict

from sqlalchemy.ext.asyncio import AsyncEngine

from dex_indexer.app.domain.models import ScopeKind
from dex_indexer.app.domain.ports.out import RangeLedger
from dex_indexer.app.infrastructure.adapters.ledger.sqlalchemy_range_ledger import (
    SqlAlchemyRangeLedger,
)

RangeLedgerFactory = Callable[[AsyncEngine, ScopeKind, bool, timedelta], RangeLedger]

_RANGE_LEDGER_REGISTRY: Dict[str, RangeLedgerFactory] = {
    "sqlalchemy": lambda engine, kind, retry_failed, lease_timeout: SqlAlchemyRangeLedger(
        engine,
        kind=kind,
        retry_failed=retry_failed,
        lease_timeout=lease_timeout,
    ),
}


def range_ledger_factory(
    *,
    backend: str,
    engine: AsyncEngine,
    kind: ScopeKind,
    retry_failed: bool = False,
    lease_timeout: timedelta = timedelta(hours=4),
) -> RangeLedger:
    try:
        factory = _RANGE_LEDGER_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported range ledger backend: {backend!r}")
    return factory(engine, kind, retry_failed, lease_timeout)
