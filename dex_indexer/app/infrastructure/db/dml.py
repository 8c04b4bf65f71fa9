from __future__ import annotations

from typing import Any

from sqlalchemy import Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncConnection

_INSERTS: dict[str, Any] = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert_insert(conn: AsyncConnection, table: Table) -> Any:
    """
    Dialect-specific INSERT supporting ON CONFLICT for the connection's backend.

    Both PostgreSQL and SQLite expose `on_conflict_do_nothing` /
    `on_conflict_do_update` with the same signature and `.excluded`.
    """
    dialect = conn.dialect.name
    try:
        return _INSERTS[dialect](table)
    except KeyError:
        raise ValueError(f"Unsupported database dialect for upserts: {dialect!r}")
