from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from eth_utils import to_checksum_address
from web3 import AsyncHTTPProvider, AsyncWeb3

from dex_indexer.app.domain.errors import ConfigurationError, TransportError
from dex_indexer.app.domain.models import Exchange, RawPair, RawSwap, TokenMetadata
from dex_indexer.app.infrastructure.decoders.event_decoder import EventDecoder
from dex_indexer.app.infrastructure.fetchers.erc20_tokens_fetcher import (
    Web3Erc20TokenMetadataFetcher,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SWAP_EVENT = "Swap"


def _hex(value: Any) -> str:
    if isinstance(value, str):
        return value if value.startswith("0x") else "0x" + value
    return "0x" + bytes(value).hex()


def _swap_amounts(decoded: dict[str, Any]) -> tuple[int, int, int, int]:
    """(amount0_in, amount0_out, amount1_in, amount1_out) for v2- or v3-style swaps."""
    if "amount0In" in decoded:
        return (
            decoded["amount0In"],
            decoded["amount0Out"],
            decoded["amount1In"],
            decoded["amount1Out"],
        )
    # v3 pools report signed deltas from the pool's point of view
    amount0, amount1 = decoded["amount0"], decoded["amount1"]
    return (
        max(amount0, 0),
        max(-amount0, 0),
        max(amount1, 0),
        max(-amount1, 0),
    )


class Web3ChainDataSource:
    """
    Chain data source over JSON-RPC (AsyncWeb3 + AsyncHTTPProvider).

    One instance serves one network and owns its endpoint state: `rotate()`
    moves to the next configured URL round-robin. Every RPC failure surfaces
    as TransportError; an empty list always means "no events".
    """

    def __init__(
        self,
        *,
        urls: Sequence[str],
        timeout_seconds: float = 30.0,
    ) -> None:
        if not urls:
            raise ConfigurationError("Web3ChainDataSource needs at least one endpoint URL")
        self._urls = list(urls)
        self._timeout = timeout_seconds
        self._index = 0
        self._decoders: dict[tuple[str, str], EventDecoder] = {}
        self._w3 = self._connect(self._urls[0])

    @property
    def endpoint(self) -> str:
        return self._urls[self._index]

    async def rotate(self) -> str:
        self._index = (self._index + 1) % len(self._urls)
        self._w3 = self._connect(self.endpoint)
        logger.info("Switched RPC endpoint to %s", self.endpoint)
        return self.endpoint

    async def get_pair_creation_events(
        self,
        exchange: Exchange,
        from_block: int,
        to_block: int,
    ) -> list[RawPair]:
        factory = exchange.factory_contract
        if factory is None:
            raise ConfigurationError(f"Exchange {exchange.key!r} has no factory contract")

        decoder = self._decoder(factory.abi_key, factory.event_name)
        logs = await self._get_logs(factory.address, decoder, from_block, to_block)

        out: list[RawPair] = []
        for log in logs:
            decoded = self._decode(decoder, log)
            if decoded is None:
                continue
            out.append(
                RawPair(
                    address=decoded.get("pair") or decoded["pool"],
                    token0_address=decoded["token0"],
                    token1_address=decoded["token1"],
                    block_number=int(log["blockNumber"]),
                    block_hash=_hex(log["blockHash"]),
                    transaction_hash=_hex(log["transactionHash"]),
                )
            )
        return out

    async def get_swap_events(
        self,
        exchange: Exchange,
        pair_addresses: Sequence[str],
        from_block: int,
        to_block: int,
    ) -> list[RawSwap]:
        factory = exchange.factory_contract
        if factory is None or not factory.swap_abi_key:
            raise ConfigurationError(f"Exchange {exchange.key!r} has no swap ABI configured")
        if not pair_addresses:
            return []

        decoder = self._decoder(factory.swap_abi_key, DEFAULT_SWAP_EVENT)
        addresses = [to_checksum_address(a) for a in pair_addresses]
        logs = await self._get_logs(
            addresses[0] if len(addresses) == 1 else addresses,
            decoder,
            from_block,
            to_block,
        )

        out: list[RawSwap] = []
        for log in logs:
            decoded = self._decode(decoder, log)
            if decoded is None:
                continue
            amount0_in, amount0_out, amount1_in, amount1_out = _swap_amounts(decoded)
            out.append(
                RawSwap(
                    pair_address=to_checksum_address(log["address"]),
                    sender_address=decoded["sender"],
                    recipient_address=decoded.get("to") or decoded["recipient"],
                    amount0_in=str(amount0_in),
                    amount0_out=str(amount0_out),
                    amount1_in=str(amount1_in),
                    amount1_out=str(amount1_out),
                    block_number=int(log["blockNumber"]),
                    block_hash=_hex(log["blockHash"]),
                    transaction_hash=_hex(log["transactionHash"]),
                    log_index=int(log["logIndex"]),
                )
            )
        return out

    async def get_token_metadata(self, address: str) -> TokenMetadata | None:
        fetcher = Web3Erc20TokenMetadataFetcher(w3=self._w3)
        raw = await self._request(
            f"token metadata for {address}",
            lambda: fetcher.fetch(token_address=address),
        )
        if raw["name"] is None or raw["symbol"] is None:
            logger.warning("Token %s does not expose ERC-20 name/symbol", address)
            return None
        return TokenMetadata(name=raw["name"], symbol=raw["symbol"], decimals=raw["decimals"])

    async def get_block_timestamp(self, block_number_or_hash: int | str) -> int | None:
        block = await self._request(
            f"block {block_number_or_hash}",
            lambda: self._w3.eth.get_block(block_number_or_hash),
        )
        if block is None:
            return None
        return int(block["timestamp"])

    async def get_latest_block_number(self) -> int:
        return int(await self._request("latest block number", lambda: self._w3.eth.block_number))

    # ---------------------------------------------------------------------
    # helpers
    # ---------------------------------------------------------------------

    def _connect(self, url: str) -> AsyncWeb3:
        return AsyncWeb3(AsyncHTTPProvider(url, request_kwargs={"timeout": self._timeout}))

    def _decoder(self, abi_key: str, event_name: str) -> EventDecoder:
        key = (abi_key, event_name)
        if key not in self._decoders:
            self._decoders[key] = EventDecoder.from_registry(abi_key, event_name)
        return self._decoders[key]

    async def _get_logs(
        self,
        address: str | list[str],
        decoder: EventDecoder,
        from_block: int,
        to_block: int,
    ) -> list[Any]:
        params = {
            "fromBlock": from_block,
            "toBlock": to_block,
            "address": address,
            "topics": ["0x" + decoder.topic0.hex()],
        }
        logs = await self._request(
            f"logs {decoder.event_signature} [{from_block}, {to_block}]",
            lambda: self._w3.eth.get_logs(params),
        )
        return list(logs)

    @staticmethod
    def _decode(decoder: EventDecoder, log: Any) -> dict[str, Any] | None:
        try:
            decoded = decoder.decode(topics=list(log["topics"]), data=bytes(log["data"]))
        except Exception:
            logger.warning(
                "Undecodable %s log in tx %s#%s",
                decoder.event_signature,
                _hex(log["transactionHash"]),
                log["logIndex"],
                exc_info=True,
            )
            return None
        return decoded

    async def _request(self, what: str, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await call()
        except Exception as exc:
            raise TransportError(f"{what} failed on {self.endpoint}: {exc}") from exc
