from __future__ import annotations

from typing import Any

from web3 import AsyncWeb3
from web3.contract.async_contract import AsyncContract
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from dex_indexer.app.domain.ports.out import Erc20TokenMetadataFetcher

# Minimal ERC-20 ABI fragments
_ERC20_ABI_STD = [
    {"name": "symbol", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "string"}]},
    {"name": "decimals", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint8"}]},
    {"name": "name", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "string"}]},
]

# MKR-style tokens return bytes32 for name/symbol
_ERC20_ABI_LEGACY = [
    {"name": "symbol", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "bytes32"}]},
    {"name": "decimals", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint256"}]},
    {"name": "name", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "bytes32"}]},
]


def _as_decimals(raw: Any) -> int | None:
    if isinstance(raw, int) and 0 <= raw <= 255:
        return int(raw)
    return None


class Web3Erc20TokenMetadataFetcher(Erc20TokenMetadataFetcher):
    """
    ERC-20 metadata fetcher using AsyncWeb3.

    Fetches:
      - name() -> str | None
      - symbol() -> str | None
      - decimals() -> int | None

    Contract-level failures (revert, undecodable output) leave the field as
    None. Anything else (timeouts, HTTP errors) propagates to the caller.
    """

    def __init__(self, *, w3: AsyncWeb3) -> None:
        self._w3 = w3

    async def fetch(self, *, token_address: str) -> dict[str, Any]:
        addr = self._w3.to_checksum_address(token_address)

        contract_std: AsyncContract = self._w3.eth.contract(address=addr, abi=_ERC20_ABI_STD)
        contract_legacy: AsyncContract = self._w3.eth.contract(address=addr, abi=_ERC20_ABI_LEGACY)

        # 1) Try standard
        name = self._normalize_symbol_name(await self._safe_call(contract_std, "name"))
        symbol = self._normalize_symbol_name(await self._safe_call(contract_std, "symbol"))
        decimals = _as_decimals(await self._safe_call(contract_std, "decimals"))

        # 2) Fallback to legacy ONLY for missing fields
        if name is None:
            name = self._normalize_symbol_name(await self._safe_call(contract_legacy, "name"))
        if symbol is None:
            symbol = self._normalize_symbol_name(await self._safe_call(contract_legacy, "symbol"))
        if decimals is None:
            decimals = _as_decimals(await self._safe_call(contract_legacy, "decimals"))

        return {"name": name, "symbol": symbol, "decimals": decimals}

    @staticmethod
    def _normalize_symbol_name(val: Any) -> str | None:
        if val is None:
            return None

        if isinstance(val, (bytes, bytearray, memoryview)):
            try:
                val = bytes(val).decode("utf-8")
            except UnicodeDecodeError:
                return None

        if isinstance(val, str):
            return val.replace("\x00", "").strip() or None

        return None

    async def _safe_call(self, contract: AsyncContract, fn_name: str) -> Any | None:
        try:
            fn = getattr(contract.functions, fn_name)
            return await fn().call()
        except (BadFunctionCallOutput, ContractLogicError):
            # Non-ERC20, proxy weirdness, revert, or empty response
            return None
