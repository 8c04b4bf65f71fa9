from __future__ import annotations

import logging
from typing import Literal, Protocol, Sequence

from dex_indexer.app.domain.errors import ConfigurationError
from dex_indexer.app.domain.ports.out import RangeLedger

logger = logging.getLogger(__name__)

BlockSelector = int | str
_LATEST: Literal["latest"] = "latest"


class LatestBlockSource(Protocol):
    async def get_latest_block_number(self) -> int | None: ...


async def resolve_sync_bounds(
    *,
    genesis_block: int,
    from_block: int,
    to_block: BlockSelector,
    source: LatestBlockSource,
) -> tuple[int, int]:
    """
    Resolve from_block / to_block into concrete block numbers for a sync.

    - from_block is raised to genesis_block (factory start block, or the
      earliest pair block for swaps).
    - to_block "latest" / "" asks the chain; if it cannot tell, the
      invocation is aborted.
    """
    fb = max(from_block, genesis_block)
    if fb != from_block:
        logger.info("Changing from_block from %s to %s (genesis)", from_block, fb)

    if isinstance(to_block, int):
        tb = to_block
    else:
        tb_str = to_block.strip().lower()
        if tb_str not in ("", _LATEST):
            raise ConfigurationError(f"Unsupported to_block value: {to_block!r}")
        latest = await source.get_latest_block_number()
        if latest is None:
            raise ConfigurationError("Could not resolve the latest block number")
        tb = latest
        logger.info("Resolved to_block %r to %s", to_block, tb)

    if fb < 0 or fb > tb:
        raise ConfigurationError(f"Invalid block bounds: from_block={fb}, to_block={tb}")
    return fb, tb


async def narrow_to_first_gap(
    *,
    ledger: RangeLedger,
    scope_ids: Sequence[int],
    from_block: int,
    to_block: int,
) -> tuple[int, int] | None:
    """
    Unprocessed-only mode: shrink the bound to its first uncovered gap.

    Returns None when nothing in the bound is left to do.
    """
    gaps = await ledger.available_gaps_across(
        scope_ids,
        from_block,
        to_block,
        max(1, to_block - from_block),
    )
    if not gaps:
        logger.info("Nothing left to sync in [%s, %s]", from_block, to_block)
        return None

    first_from, first_to = gaps[0]
    if (first_from, first_to) != (from_block, to_block):
        logger.info(
            "Changing bounds from [%s, %s] to first unprocessed gap [%s, %s]",
            from_block,
            to_block,
            first_from,
            first_to,
        )
    return first_from, first_to
