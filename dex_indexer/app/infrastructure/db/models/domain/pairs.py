from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from dex_indexer.app.infrastructure.db.db_base import BaseDB


class PairsDB(BaseDB):
    """
    Liquidity pairs / pools discovered from factory creation events.

    Idempotency:
      - unique (exchange_id, address); re-processing a range inserts nothing new.
    """

    __tablename__ = "pairs"
    __table_args__ = (
        UniqueConstraint("exchange_id", "address", name="uq_pairs_exchange_address"),
        Index("ix_pairs_address", "address"),
        Index("ix_pairs_exchange_block", "exchange_id", "block_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    exchange_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("exchanges.id", ondelete="CASCADE"), nullable=False
    )
    address: Mapped[str] = mapped_column(Text, nullable=False)

    token0_id: Mapped[int] = mapped_column(Integer, ForeignKey("tokens.id"), nullable=False)
    token1_id: Mapped[int] = mapped_column(Integer, ForeignKey("tokens.id"), nullable=False)

    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
