from __future__ import annotations

from typing import Callable, Dict, Sequence

from dex_indexer.app.domain.ports.out import ChainDataSource
from dex_indexer.app.infrastructure.fetchers.web3_chain_data_source import Web3ChainDataSource

ChainDataSourceFactory = Callable[[Sequence[str], float], ChainDataSource]

_CHAIN_DATA_SOURCE_REGISTRY: Dict[str, ChainDataSourceFactory] = {
    "web3": lambda urls, timeout: Web3ChainDataSource(urls=urls, timeout_seconds=timeout),
}


def chain_data_source_factory(
    *,
    provider: str,
    urls: Sequence[str],
    timeout_seconds: float = 30.0,
) -> ChainDataSource:
    try:
        factory = _CHAIN_DATA_SOURCE_REGISTRY[provider]
    except KeyError:
        raise ValueError(f"Unsupported chain data source provider: {provider!r}")
    return factory(urls, timeout_seconds)
