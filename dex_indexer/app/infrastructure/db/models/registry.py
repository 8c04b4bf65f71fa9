"""Imports every table module so BaseDB.metadata is complete."""
from dex_indexer.app.infrastructure.db.db_base import BaseDB
from dex_indexer.app.infrastructure.db.models.domain.exchanges import ExchangesDB
from dex_indexer.app.infrastructure.db.models.domain.pairs import PairsDB
from dex_indexer.app.infrastructure.db.models.domain.swaps import SwapsDB
from dex_indexer.app.infrastructure.db.models.domain.tokens import TokensDB
from dex_indexer.app.infrastructure.db.models.ledger.range_claims import (
    ExchangePairRangesDB,
    PairSwapRangesDB,
)
from dex_indexer.app.infrastructure.db.models.ops.errors import ErrorsDB

metadata = BaseDB.metadata

__all__ = [
    "BaseDB",
    "ErrorsDB",
    "ExchangePairRangesDB",
    "ExchangesDB",
    "PairSwapRangesDB",
    "PairsDB",
    "SwapsDB",
    "TokensDB",
    "metadata",
]
