import pytest
from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from dex_indexer.app.infrastructure.decoders.event_decoder import EventDecoder
from dex_indexer.app.infrastructure.fetchers.web3_chain_data_source import _swap_amounts

TOKEN0 = to_checksum_address("0x" + "11" * 20)
TOKEN1 = to_checksum_address("0x" + "22" * 20)
PAIR = to_checksum_address("0x" + "33" * 20)


def _topic(address: str) -> bytes:
    return encode(["address"], [address])


def test_topic0_is_keccak_of_the_signature():
    decoder = EventDecoder.from_registry("uniswap_v2_factory", "PairCreated")
    assert decoder.event_signature == "PairCreated(address,address,address,uint256)"
    assert decoder.topic0 == keccak(text="PairCreated(address,address,address,uint256)")


def test_decodes_indexed_and_data_fields():
    decoder = EventDecoder.from_registry("uniswap_v2_factory", "PairCreated")

    decoded = decoder.decode(
        topics=[decoder.topic0, _topic(TOKEN0), _topic(TOKEN1)],
        data=encode(["address", "uint256"], [PAIR, 7]),
    )

    assert decoded["token0"] == TOKEN0
    assert decoded["token1"] == TOKEN1
    assert decoded["pair"] == PAIR


def test_v3_pool_created_with_indexed_fee():
    decoder = EventDecoder.from_registry("uniswap_v3_factory", "PoolCreated")

    decoded = decoder.decode(
        topics=[decoder.topic0, _topic(TOKEN0), _topic(TOKEN1), encode(["uint24"], [3000])],
        data=encode(["int24", "address"], [-60, PAIR]),
    )

    assert decoded["fee"] == 3000
    assert decoded["tickSpacing"] == -60
    assert decoded["pool"] == PAIR


def test_other_events_are_not_decoded():
    decoder = EventDecoder.from_registry("uniswap_v2_factory", "PairCreated")
    other = keccak(text="Transfer(address,address,uint256)")

    assert decoder.decode(topics=[other, _topic(TOKEN0), _topic(TOKEN1)], data=b"") is None
    # wrong number of indexed topics
    assert decoder.decode(topics=[decoder.topic0, _topic(TOKEN0)], data=b"") is None
    assert decoder.decode(topics=[], data=b"") is None


def test_unknown_event_name():
    with pytest.raises(ValueError):
        EventDecoder.from_registry("uniswap_v2_factory", "Sync")


def test_v2_swap_amounts_pass_through():
    decoder = EventDecoder.from_registry("uniswap_v2_pair", "Swap")
    decoded = decoder.decode(
        topics=[decoder.topic0, _topic(TOKEN0), _topic(TOKEN1)],
        data=encode(["uint256"] * 4, [1000, 0, 0, 995]),
    )

    assert decoded["sender"] == TOKEN0
    assert decoded["to"] == TOKEN1
    assert _swap_amounts(decoded) == (1000, 0, 0, 995)


def test_v3_swap_amounts_are_split_by_sign():
    decoder = EventDecoder.from_registry("uniswap_v3_pool", "Swap")
    decoded = decoder.decode(
        topics=[decoder.topic0, _topic(TOKEN0), _topic(TOKEN1)],
        data=encode(
            ["int256", "int256", "uint160", "uint128", "int24"],
            [-500, 1200, 2**96, 10**18, -887],
        ),
    )

    assert decoded["recipient"] == TOKEN1
    # pool paid out token0 and received token1
    assert _swap_amounts(decoded) == (0, 500, 1200, 0)
