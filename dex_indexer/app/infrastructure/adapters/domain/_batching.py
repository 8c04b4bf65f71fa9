from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from dex_indexer.app.domain.models import DEFAULT_TIMESTAMP


def chunks(seq: list[Any], size: int) -> Iterable[list[Any]]:
    for i in range(0, len(seq), size):
        yield seq[i : i + size]


def to_datetime(unix_seconds: int | None) -> datetime:
    if unix_seconds is None:
        return DEFAULT_TIMESTAMP
    return datetime.fromtimestamp(unix_seconds, tz=timezone.utc)
