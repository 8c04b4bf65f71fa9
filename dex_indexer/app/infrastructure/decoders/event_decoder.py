from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping, Sequence

from eth_abi import decode as abi_decode
from eth_utils import keccak, to_checksum_address

from dex_indexer.app.domain.ports.out import EvmEventDecoder

ABI_DIR = Path(__file__).resolve().parents[2] / "registry" / "abi"


class EventDecoder(EvmEventDecoder):
    """
    ABI-based decoder for a single EVM event (PairCreated, PoolCreated, Swap, ...).

    It:
    - loads ABI from a JSON file,
    - finds the event ABI by name,
    - computes topic0 = keccak("EventName(type1,type2,...)"),
    - decodes indexed args from topics[1:] (value types only),
    - decodes non-indexed args from `data` with eth_abi.

    Addresses come out checksummed; integers as Python ints.
    """

    def __init__(self, *, abi_path: Path, event_name: str) -> None:
        self._abi = self._load_abi(abi_path)
        self._event_abi = self._find_event(self._abi, event_name)
        self._signature = self._event_signature(self._event_abi)
        self._topic0 = keccak(text=self._signature)

        self._inputs: list[dict[str, Any]] = list(self._event_abi.get("inputs", []))
        self._indexed_inputs = [i for i in self._inputs if i.get("indexed") is True]
        self._non_indexed_inputs = [i for i in self._inputs if not i.get("indexed")]

        self._non_indexed_types = [i["type"] for i in self._non_indexed_inputs]
        self._non_indexed_names = [i["name"] for i in self._non_indexed_inputs]

    @classmethod
    def from_registry(cls, abi_key: str, event_name: str) -> "EventDecoder":
        return cls(abi_path=ABI_DIR / f"{abi_key}.json", event_name=event_name)

    @property
    def topic0(self) -> bytes:
        return self._topic0

    @property
    def event_signature(self) -> str:
        return self._signature

    def decode(
        self,
        *,
        topics: Sequence[bytes],
        data: bytes,
    ) -> dict[str, Any] | None:
        # must match expected event and carry every indexed arg
        if not topics or bytes(topics[0]) != self._topic0:
            return None
        if len(topics) - 1 != len(self._indexed_inputs):
            return None

        out: dict[str, Any] = {}
        for inp, topic in zip(self._indexed_inputs, topics[1:], strict=True):
            (value,) = abi_decode([inp["type"]], self._as_bytes32(topic))
            out[inp["name"]] = self._normalize_abi_value(inp["type"], value)

        out.update(self._decode_non_indexed_data(bytes(data)))
        return out

    # ---------------------------------------------------------------------
    # ABI helpers
    # ---------------------------------------------------------------------

    def _load_abi(self, abi_path: Path) -> list[dict[str, Any]]:
        if not abi_path.exists():
            raise FileNotFoundError(f"ABI file not found: {abi_path}")
        data = json.loads(abi_path.read_text(encoding="utf-8"))

        # Common formats:
        # - [ ... ] (ABI list)
        # - { "abi": [ ... ] } (artifact)
        if isinstance(data, list):
            abi = data
        elif isinstance(data, dict) and isinstance(data.get("abi"), list):
            abi = data["abi"]
        else:
            raise ValueError(
                f"Unsupported ABI JSON format in {abi_path}. Expected list or dict with 'abi' list."
            )
        return [x for x in abi if isinstance(x, dict)]

    def _find_event(self, abi: list[dict[str, Any]], event_name: str) -> dict[str, Any]:
        events = [x for x in abi if x.get("type") == "event" and x.get("name") == event_name]
        if not events:
            names = sorted({x.get("name") for x in abi if x.get("type") == "event"})
            raise ValueError(
                f"Event {event_name!r} not found in ABI. Available events: {names}"
            )
        if len(events) > 1:
            raise ValueError(
                f"Multiple events named {event_name!r} found in ABI. "
                "Disambiguation by full signature is required."
            )
        return events[0]

    def _event_signature(self, event_abi: Mapping[str, Any]) -> str:
        name = event_abi.get("name")
        inputs = event_abi.get("inputs", [])
        if not isinstance(name, str) or not isinstance(inputs, list):
            raise ValueError("Invalid event ABI: missing name/inputs")
        types = []
        for inp in inputs:
            if not isinstance(inp, dict) or "type" not in inp:
                raise ValueError("Invalid event ABI inputs")
            types.append(inp["type"])
        return f"{name}({','.join(types)})"

    def _decode_non_indexed_data(self, data: bytes) -> dict[str, Any]:
        if not self._non_indexed_inputs:
            return {}

        values = abi_decode(self._non_indexed_types, data)
        return {
            name: self._normalize_abi_value(typ, val)
            for name, typ, val in zip(
                self._non_indexed_names, self._non_indexed_types, values, strict=True
            )
        }

    # ---------------------------------------------------------------------
    # Topic / ABI value normalization
    # ---------------------------------------------------------------------

    def _as_bytes32(self, b: bytes) -> bytes:
        bb = bytes(b)
        if len(bb) != 32:
            raise ValueError(f"Expected 32 bytes (bytes32 topic), got len={len(bb)}")
        return bb

    def _normalize_abi_value(self, typ: str, val: Any) -> Any:
        if typ == "address":
            if isinstance(val, (bytes, bytearray)):
                return to_checksum_address("0x" + bytes(val).hex())
            return to_checksum_address(val)

        if typ.startswith("uint") or typ.startswith("int"):
            return int(val)

        if typ.startswith("bytes") and isinstance(val, (bytes, bytearray, memoryview)):
            return bytes(val)

        return val
