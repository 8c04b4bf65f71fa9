from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from dex_indexer.app.domain.errors import ConfigurationError, RangeSplitError, TransportError
from dex_indexer.app.domain.models import Exchange, Pair, RawPair, RawSwap, TokenMetadata
from dex_indexer.app.domain.ports.out import ChainDataSource, ErrorRecorder
from dex_indexer.app.domain.ranges import split

logger = logging.getLogger(__name__)

T = TypeVar("T")

# name, symbol and decimals are separate calls
TOKEN_METADATA_REQUEST_COST = 3


@dataclass
class _AttemptCounter:
    """Shared by every branch of one bisecting fetch."""

    value: int = 0


class AdaptiveFetcher:
    """
    Retry layer on top of a ChainDataSource.

    - Event ranges: on TransportError the range is halved and each half is
      retried, all branches drawing from one attempt budget. Exhausting the
      budget anywhere returns None for the whole call, which is distinct from
      [] ("no events").
    - Point lookups: rotate endpoint and retry, None after the last attempt.
    - Every request counts against a per-endpoint budget; once exceeded, the
      next request rotates first. Each rotation is followed by a short delay.
    """

    def __init__(
        self,
        source: ChainDataSource,
        *,
        errors: ErrorRecorder | None = None,
        max_past_event_attempts: int = 8,
        max_data_attempts: int = 3,
        max_requests_before_rotation: int = 2000,
        rotation_delay_seconds: float = 1.0,
    ) -> None:
        self._source = source
        self._errors = errors
        self._max_past_event_attempts = max_past_event_attempts
        self._max_data_attempts = max_data_attempts
        self._max_requests = max_requests_before_rotation
        self._rotation_delay = rotation_delay_seconds
        self._requests = 0

    @property
    def request_count(self) -> int:
        return self._requests

    # ------------------------------------------------------------------
    # event ranges
    # ------------------------------------------------------------------

    async def get_pair_creation_events(
        self,
        exchange: Exchange,
        from_block: int,
        to_block: int,
    ) -> list[RawPair] | None:
        factory = exchange.factory_contract
        if factory is None:
            raise ConfigurationError(f"Factory contract not found for {exchange.key!r}")

        return await self._bisect(
            "AdaptiveFetcher.get_pair_creation_events",
            lambda f, t: self._source.get_pair_creation_events(exchange, f, t),
            from_block,
            to_block,
            genesis=factory.start_block_number,
            counter=_AttemptCounter(),
            context={"exchange": exchange.key},
        )

    async def get_swap_events(
        self,
        exchange: Exchange,
        pairs: Sequence[Pair],
        from_block: int,
        to_block: int,
    ) -> list[RawSwap] | None:
        if not pairs:
            return []
        addresses = [p.address for p in pairs]

        return await self._bisect(
            "AdaptiveFetcher.get_swap_events",
            lambda f, t: self._source.get_swap_events(exchange, addresses, f, t),
            from_block,
            to_block,
            genesis=min(p.block_number for p in pairs),
            counter=_AttemptCounter(),
            context={"exchange": exchange.key, "pair_ids": [p.id for p in pairs]},
        )

    async def _bisect(
        self,
        source: str,
        fetch: Callable[[int, int], Awaitable[list[T]]],
        from_block: int,
        to_block: int,
        *,
        genesis: int,
        counter: _AttemptCounter,
        context: dict[str, Any],
        initial: tuple[int, int] | None = None,
    ) -> list[T] | None:
        if to_block < genesis:
            return []

        await self._count_request()
        counter.value += 1
        initial = initial or (from_block, to_block)
        logger.info("%s [%s, %s] (attempt %s)", source, from_block, to_block, counter.value)

        try:
            return await fetch(from_block, to_block)
        except TransportError as exc:
            parameters = {
                **context,
                "from_block": from_block,
                "to_block": to_block,
                "initial_from_block": initial[0],
                "initial_to_block": initial[1],
                "attempt": counter.value,
                "endpoint": self._source.endpoint,
            }
            if counter.value >= self._max_past_event_attempts:
                logger.error(
                    "%s [%s, %s] still failing after %s attempts, giving up",
                    source,
                    from_block,
                    to_block,
                    counter.value,
                )
                await self._record(source, parameters, exc)
                return None

            half = (to_block - from_block) // 2
            if half < 1:
                raise RangeSplitError(
                    f"{source}: cannot split [{from_block}, {to_block}] any further"
                ) from exc

            logger.warning(
                "%s [%s, %s] failed (%s); retrying in chunks of %s",
                source,
                from_block,
                to_block,
                exc,
                half,
            )
            await self._record(source, parameters, exc)

            out: list[T] = []
            for sub_from, sub_to in split(from_block, to_block, half):
                part = await self._bisect(
                    source,
                    fetch,
                    sub_from,
                    sub_to,
                    genesis=genesis,
                    counter=counter,
                    context=context,
                    initial=initial,
                )
                if part is None:
                    return None
                out.extend(part)
            return out

    # ------------------------------------------------------------------
    # point lookups
    # ------------------------------------------------------------------

    async def get_token_metadata(self, address: str) -> TokenMetadata | None:
        metadata = await self._with_rotation(
            "AdaptiveFetcher.get_token_metadata",
            lambda: self._source.get_token_metadata(address),
            {"address": address},
            cost=TOKEN_METADATA_REQUEST_COST,
        )
        if metadata is None:
            return None
        # postgres TEXT rejects NUL
        return dataclasses.replace(
            metadata,
            name=metadata.name.replace("\x00", ""),
            symbol=metadata.symbol.replace("\x00", ""),
        )

    async def get_block_timestamp(self, block_number_or_hash: int | str) -> int | None:
        return await self._with_rotation(
            "AdaptiveFetcher.get_block_timestamp",
            lambda: self._source.get_block_timestamp(block_number_or_hash),
            {"block": block_number_or_hash},
        )

    async def get_latest_block_number(self) -> int | None:
        return await self._with_rotation(
            "AdaptiveFetcher.get_latest_block_number",
            self._source.get_latest_block_number,
            {},
        )

    async def _with_rotation(
        self,
        source: str,
        call: Callable[[], Awaitable[T]],
        context: dict[str, Any],
        *,
        cost: int = 1,
    ) -> T | None:
        for attempt in range(1, self._max_data_attempts + 1):
            await self._count_request(cost)
            try:
                return await call()
            except TransportError as exc:
                logger.error("%s failed on attempt #%s: %s", source, attempt, exc)
                await self._record(
                    source,
                    {**context, "attempt": attempt, "endpoint": self._source.endpoint},
                    exc,
                )
                if attempt < self._max_data_attempts:
                    await self._rotate()
        return None

    # ------------------------------------------------------------------
    # endpoint budget
    # ------------------------------------------------------------------

    async def _count_request(self, cost: int = 1) -> None:
        if self._requests > self._max_requests:
            logger.info("Request budget of %s spent on %s", self._max_requests, self._source.endpoint)
            await self._rotate()
        self._requests += cost

    async def _rotate(self) -> None:
        endpoint = await self._source.rotate()
        logger.info("Rotated data source to %s", endpoint)
        await asyncio.sleep(self._rotation_delay)
        self._requests = 0

    async def _record(self, source: str, parameters: dict[str, Any], exc: BaseException) -> None:
        if self._errors is None:
            return
        try:
            await self._errors.record(source, parameters, exc)
        except Exception:
            logger.exception("Could not record error from %s", source)
