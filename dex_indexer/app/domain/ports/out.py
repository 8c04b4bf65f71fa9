from __future__ import annotations

from datetime import timedelta
from typing import Any, Protocol, Sequence

from dex_indexer.app.domain.models import (
    Exchange,
    Pair,
    RangeClaim,
    RawPair,
    RawSwap,
    ScopeKind,
    TokenMetadata,
)
from dex_indexer.app.domain.ranges import Interval


class ChainDataSource(Protocol):
    """
    Port for reading DEX activity from a block-oriented ledger (RPC node).

    Implementations must raise TransportError on any transport failure;
    an empty list always means "no events in these blocks".
    """

    @property
    def endpoint(self) -> str: ...

    async def get_pair_creation_events(
        self,
        exchange: Exchange,
        from_block: int,
        to_block: int,
    ) -> list[RawPair]: ...

    async def get_swap_events(
        self,
        exchange: Exchange,
        pair_addresses: Sequence[str],
        from_block: int,
        to_block: int,
    ) -> list[RawSwap]: ...

    async def get_token_metadata(self, address: str) -> TokenMetadata | None: ...

    async def get_block_timestamp(self, block_number_or_hash: int | str) -> int | None:
        """Unix seconds (not milliseconds)."""
        ...

    async def get_latest_block_number(self) -> int: ...

    async def rotate(self) -> str:
        """Switch to the next configured endpoint and return its URL."""
        ...


class RangeLedger(Protocol):
    """
    Port for durable block-range claims of a single scope kind.

    All claim/resolve operations are atomic against the store.
    """

    @property
    def scope_kind(self) -> ScopeKind: ...

    async def claim(
        self,
        scope_id: int,
        from_block: int,
        to_block: int,
    ) -> RangeClaim | None:
        """Lease [from_block, to_block]; None when the scope no longer exists."""
        ...

    async def resolve(
        self,
        claim: RangeClaim,
        *,
        failed: bool = False,
    ) -> RangeClaim | None: ...

    async def available_gaps(
        self,
        scope_id: int,
        from_block: int,
        to_block: int,
        max_size: int,
        *,
        lease_timeout: timedelta | None = None,
    ) -> list[Interval]: ...

    async def available_gaps_across(
        self,
        scope_ids: Sequence[int],
        from_block: int,
        to_block: int,
        max_size: int,
        *,
        lease_timeout: timedelta | None = None,
    ) -> list[Interval]: ...


class ErrorRecorder(Protocol):
    """
    Port for persisting errors for offline diagnosis.

    Callers on a retry path log and swallow recorder failures.
    """

    async def record(
        self,
        source: str,
        parameters: dict[str, Any],
        error: BaseException | dict[str, Any] | None = None,
    ) -> None: ...


class ExchangesRepository(Protocol):
    async def get_by_key(self, key: str) -> Exchange | None: ...

    async def list_keys(self) -> list[str]: ...


class PairsRepository(Protocol):
    async def get_by_ids(self, exchange: Exchange, pair_ids: Sequence[int]) -> dict[int, Pair]: ...

    async def get_by_addresses(
        self,
        exchange: Exchange,
        addresses: Sequence[str],
    ) -> dict[str, Pair]: ...


class ChainMetadataLookup(Protocol):
    """Point lookups the sinks need while persisting; None = could not resolve."""

    async def get_token_metadata(self, address: str) -> TokenMetadata | None: ...

    async def get_block_timestamp(self, block_number_or_hash: int | str) -> int | None: ...


class PairsSink(Protocol):
    """Turns raw pair creation events into persisted tokens + pairs. Idempotent."""

    async def persist(self, exchange: Exchange, raw_pairs: Sequence[RawPair]) -> int: ...


class SwapsSink(Protocol):
    """Turns raw swap events into persisted swaps. Idempotent."""

    async def persist(self, exchange: Exchange, raw_swaps: Sequence[RawSwap]) -> int: ...


class EvmEventDecoder(Protocol):
    @property
    def topic0(self) -> bytes: ...

    def decode(
        self,
        *,
        topics: Sequence[bytes],
        data: bytes,
    ) -> dict[str, Any] | None:
        """
        Decode an EVM log (topics + data) into a dict of typed fields.

        Return:
          - dict[str, Any] for decoded event fields (indexed and non-indexed)
          - None if the log is not decodable / not the expected event
        """
        ...


class Erc20TokenMetadataFetcher(Protocol):
    """
    Low-level dependency used by the web3 data source.

    Fetches ERC-20 name/symbol/decimals via eth_call. Contract-level failures
    (revert, empty output) yield missing fields; transport failures raise.
    """

    async def fetch(self, *, token_address: str) -> dict[str, Any]: ...
