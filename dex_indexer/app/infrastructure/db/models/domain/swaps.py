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


class SwapsDB(BaseDB):
    """
    Swap events per pair.

    Amounts are uint256 values kept as decimal strings.

    Idempotency:
      - unique (pair_id, transaction_hash, log_index) matches the event identity.
    """

    __tablename__ = "swaps"
    __table_args__ = (
        UniqueConstraint(
            "pair_id", "transaction_hash", "log_index", name="uq_swaps_pair_tx_log"
        ),
        Index("ix_swaps_pair_block", "pair_id", "block_number"),
        Index("ix_swaps_tx", "transaction_hash"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    exchange_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("exchanges.id", ondelete="CASCADE"), nullable=False
    )
    pair_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("pairs.id", ondelete="CASCADE"), nullable=False
    )

    transaction_hash: Mapped[str] = mapped_column(Text, nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    sender: Mapped[str] = mapped_column(Text, nullable=False)
    recipient: Mapped[str] = mapped_column(Text, nullable=False)

    amount0_in: Mapped[str] = mapped_column(Text, nullable=False)
    amount0_out: Mapped[str] = mapped_column(Text, nullable=False)
    amount1_in: Mapped[str] = mapped_column(Text, nullable=False)
    amount1_out: Mapped[str] = mapped_column(Text, nullable=False)
