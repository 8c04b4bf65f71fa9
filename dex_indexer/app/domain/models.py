from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from dex_indexer.app.domain.ranges import Interval

# Used when a block timestamp cannot be resolved.
DEFAULT_TIMESTAMP = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ScopeKind(str, Enum):
    """What a block range is tracked against."""

    EXCHANGE = "exchange"  # pair discovery
    PAIR = "pair"  # swap discovery


@dataclass(frozen=True)
class BlockRange:
    from_block: int
    to_block: int

    def validate(self) -> None:
        if self.from_block < 0 or self.to_block < 0:
            raise ValueError("Block numbers must be non-negative")
        if self.from_block > self.to_block:
            raise ValueError("from_block must be <= to_block")

    def as_interval(self) -> Interval:
        return self.from_block, self.to_block


@dataclass(frozen=True)
class RangeClaim:
    """
    A leased block range for one scope.

    Neither processed_at nor failed_at set means the claim is in flight.
    """

    id: int
    scope_kind: ScopeKind
    scope_id: int
    from_block: int
    to_block: int
    started_at: datetime
    processed_at: datetime | None
    failed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @property
    def in_flight(self) -> bool:
        return self.processed_at is None and self.failed_at is None

    @property
    def interval(self) -> Interval:
        return self.from_block, self.to_block


@dataclass(frozen=True)
class FactoryContract:
    address: str
    abi_key: str
    event_name: str
    start_block_number: int
    swap_abi_key: str | None = None


@dataclass(frozen=True)
class Exchange:
    id: int
    key: str
    name: str
    platform: str | None
    factory_contract: FactoryContract | None


@dataclass(frozen=True)
class Pair:
    id: int
    exchange_id: int
    address: str
    token0_id: int
    token1_id: int
    block_number: int
    timestamp: datetime


@dataclass(frozen=True)
class Token:
    id: int
    name: str
    symbol: str
    decimals: int | None
    platform: str | None
    address: str | None
    block_number: int | None


@dataclass(frozen=True)
class TokenMetadata:
    name: str
    symbol: str
    decimals: int | None


@dataclass(frozen=True)
class RawPair:
    """Pair creation event as read from the chain."""

    address: str
    token0_address: str
    token1_address: str
    block_number: int
    block_hash: str
    transaction_hash: str


@dataclass(frozen=True)
class RawSwap:
    """Swap event as read from the chain. Amounts are decimal strings."""

    pair_address: str
    sender_address: str
    recipient_address: str
    amount0_in: str
    amount0_out: str
    amount1_in: str
    amount1_out: str
    block_number: int
    block_hash: str
    transaction_hash: str
    log_index: int


@dataclass
class SyncReport:
    processed: list[Interval] = field(default_factory=list)
    failed: list[Interval] = field(default_factory=list)
    records: int = 0

    def extend(self, other: "SyncReport") -> None:
        self.processed.extend(other.processed)
        self.failed.extend(other.failed)
        self.records += other.records
