from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from dex_indexer.app.infrastructure.db.db_base import BaseDB


class _RangeClaimColumns:
    """
    Columns shared by both range ledgers.

    Neither processed_at nor failed_at set = in-flight claim.
    Ids are never reused, not even after a released lease is deleted.
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    from_block: Mapped[int] = mapped_column(BigInteger, nullable=False)
    to_block: Mapped[int] = mapped_column(BigInteger, nullable=False)

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ExchangePairRangesDB(_RangeClaimColumns, BaseDB):
    """Pair discovery progress, one track per exchange."""

    __tablename__ = "exchange_pair_ranges"
    __table_args__ = (
        UniqueConstraint(
            "exchange_id", "from_block", "to_block", name="uq_exchange_pair_ranges_scope_range"
        ),
        Index("ix_exchange_pair_ranges_scope_to", "exchange_id", "to_block"),
        {"sqlite_autoincrement": True},
    )

    @declared_attr
    def exchange_id(cls) -> Mapped[int]:
        return mapped_column(
            Integer, ForeignKey("exchanges.id", ondelete="CASCADE"), nullable=False
        )


class PairSwapRangesDB(_RangeClaimColumns, BaseDB):
    """Swap discovery progress, one track per pair."""

    __tablename__ = "pair_swap_ranges"
    __table_args__ = (
        UniqueConstraint(
            "pair_id", "from_block", "to_block", name="uq_pair_swap_ranges_scope_range"
        ),
        Index("ix_pair_swap_ranges_scope_to", "pair_id", "to_block"),
        {"sqlite_autoincrement": True},
    )

    @declared_attr
    def pair_id(cls) -> Mapped[int]:
        return mapped_column(
            Integer, ForeignKey("pairs.id", ondelete="CASCADE"), nullable=False
        )
