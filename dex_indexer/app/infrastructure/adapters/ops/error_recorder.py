from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncEngine

from dex_indexer.app.infrastructure.db.models.ops.errors import ErrorsDB

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


def _describe(error: BaseException | dict[str, Any] | None) -> dict[str, Any] | None:
    if error is None:
        return None
    if isinstance(error, BaseException):
        return {"type": type(error).__name__, "message": str(error)}
    return _jsonable(error)


class SqlAlchemyErrorRecorder:
    """Appends one row to `errors` per recorded failure."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def record(
        self,
        source: str,
        parameters: dict[str, Any],
        error: BaseException | dict[str, Any] | None = None,
    ) -> None:
        row = {
            "source": source,
            "parameters": _jsonable(parameters),
            "error": _describe(error),
            "created_at": datetime.now(timezone.utc),
        }
        async with self._engine.begin() as conn:
            await conn.execute(insert(ErrorsDB.__table__).values(row))

        logger.debug("Recorded error from %s: %s", source, row["error"])
