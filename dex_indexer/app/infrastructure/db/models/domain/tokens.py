from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    DateTime,
    Index,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from dex_indexer.app.infrastructure.db.db_base import BaseDB


class TokensDB(BaseDB):
    """
    Token metadata registry (ERC-20).

    One row = one token address per platform with resolved name/symbol/decimals.
    `block_number` is the first block the indexer saw the token in a pair.
    """

    __tablename__ = "tokens"
    __table_args__ = (
        UniqueConstraint("platform", "address", name="uq_tokens_platform_address"),
        Index("ix_tokens_platform_symbol", "platform", "symbol"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    platform: Mapped[str | None] = mapped_column(Text, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    name: Mapped[str] = mapped_column(Text, nullable=False)
    symbol: Mapped[str] = mapped_column(Text, nullable=False)
    decimals: Mapped[int | None] = mapped_column(Integer, nullable=True)

    block_number: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
