from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from .database_rebuild_task import database_rebuild_task
from .pairs_sync_task import pairs_sync_task
from .swaps_sync_task import swaps_sync_task

TaskFn = Callable[..., Awaitable[Any]]

TASKS: dict[str, TaskFn] = {
    "pairs_sync_task": pairs_sync_task,
    "swaps_sync_task": swaps_sync_task,
    "database_rebuild_task": database_rebuild_task,
}
