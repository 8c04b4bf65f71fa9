from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from dex_indexer.app.infrastructure.db.db_base import BaseDB, JSONType


class ExchangesDB(BaseDB):
    """
    DEX registry.

    One row = one exchange (e.g. uniswap_v2) on one network. `factory_contract`
    holds address, event ABI key, event name, start block and swap ABI key;
    exchanges without a factory (Uniswap v1) keep it NULL and cannot be synced.
    """

    __tablename__ = "exchanges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    platform: Mapped[str | None] = mapped_column(Text, nullable=True)
    factory_contract: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
