"""Pytest configuration and shared fixtures for splits-state tests."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_abi import encode
from web3 import Web3

from splits_state.abi import (
    SPLIT_CREATED_TOPIC,
    SPLIT_CREATED_UNSALTED_TOPIC,
    SPLIT_UPDATED_TOPIC,
    SPLIT_V2_PARAMS_TYPE,
)
from splits_state.constants import MULTICALL_3_ADDRESS
from splits_state.reconstruct import address_topic
from splits_state.tokens import DECIMALS_SELECTOR, SYMBOL_SELECTOR

# Well-formed addresses; lowercase so eth_abi accepts them without checksum validation
ALICE = "0x" + "aa" * 20
BOB = "0x" + "bb" * 20
CAROL = "0x" + "cc" * 20
OWNER = "0x" + "0d" * 20
CREATOR = "0x" + "0e" * 20
SPLIT = "0x" + "5a" * 20
FACTORY = "0x" + "fa" * 20
USDC = "0x" + "01" * 20
DAI = "0x" + "02" * 20
MKR = "0x" + "03" * 20
NFT = "0x" + "0f" * 20


def checksum(address: str) -> str:
    return Web3.to_checksum_address(address)


class _AsyncValue:
    """Awaitable that returns a fixed value each time it's awaited (for w3.eth.chain_id etc.)."""

    def __init__(self, value: Any):
        self._value = value

    def __await__(self):
        async def _coro():
            return self._value

        return _coro().__await__()


def make_created_log(
    recipients: list[str],
    allocations: list[int],
    distributor_fee: int,
    block_number: int,
    log_index: int = 0,
    split: str = SPLIT,
    total_allocation: int | None = None,
    owner: str = OWNER,
    salted: bool = True,
) -> dict[str, Any]:
    """Build a SplitCreated log as returned by eth_getLogs."""
    total = sum(allocations) if total_allocation is None else total_allocation
    params = (recipients, allocations, total, distributor_fee)
    if salted:
        data = encode([SPLIT_V2_PARAMS_TYPE, "address", "address", "bytes32"], [params, owner, CREATOR, b"\x01" * 32])
        topic0 = SPLIT_CREATED_TOPIC
    else:
        data = encode([SPLIT_V2_PARAMS_TYPE, "address", "address"], [params, owner, CREATOR])
        topic0 = SPLIT_CREATED_UNSALTED_TOPIC
    return {
        "address": checksum(FACTORY),
        "topics": [topic0, bytes.fromhex(address_topic(split)[2:])],
        "data": data,
        "blockNumber": block_number,
        "logIndex": log_index,
    }


def make_updated_log(
    recipients: list[str],
    allocations: list[int],
    distributor_fee: int,
    block_number: int,
    log_index: int = 0,
    split: str = SPLIT,
) -> dict[str, Any]:
    """Build a SplitUpdated log as returned by eth_getLogs."""
    data = encode([SPLIT_V2_PARAMS_TYPE], [(recipients, allocations, sum(allocations), distributor_fee)])
    return {
        "address": checksum(split),
        "topics": [SPLIT_UPDATED_TOPIC],
        "data": data,
        "blockNumber": block_number,
        "logIndex": log_index,
    }


def install_log_source(mock_w3: MagicMock, created: list[dict], updated: list[dict]) -> None:
    """Serve created/updated logs from w3.eth.get_logs, filtered by block range."""

    async def get_logs(params: dict[str, Any]) -> list[dict]:
        pool = created if isinstance(params["topics"][0], list) else updated
        return [log for log in pool if params["fromBlock"] <= log["blockNumber"] <= params["toBlock"]]

    mock_w3.eth.get_logs = AsyncMock(side_effect=get_logs)


def erc20_metadata(symbol: str, decimals: int) -> tuple[bytes, bytes]:
    """Encoded symbol() and decimals() return data of a well-behaved ERC20."""
    return encode(["string"], [symbol]), encode(["uint8"], [decimals])


def install_multicall(
    mock_w3: MagicMock,
    erc20: dict[str, int],
    native: int | None = 0,
    metadata: dict[str, tuple[bytes | None, bytes | None]] | None = None,
) -> MagicMock:
    """
    Answer Multicall3 aggregate3 calls from fixed balances and token metadata.

    Tokens missing from `erc20` (or native when None) answer balance calls as
    failed calls. `metadata` maps a token to its raw symbol() and decimals()
    return data; None entries and missing tokens fail.
    """
    multicall = checksum(MULTICALL_3_ADDRESS)
    by_token = {checksum(token): amount for token, amount in erc20.items()}
    token_metadata = {checksum(token): data for token, data in (metadata or {}).items()}

    def answer(target: str, call_data: bytes) -> tuple[bool, bytes]:
        selector = bytes(call_data[:4])
        if selector in (SYMBOL_SELECTOR, DECIMALS_SELECTOR):
            symbol_data, decimals_data = token_metadata.get(target, (None, None))
            data = symbol_data if selector == SYMBOL_SELECTOR else decimals_data
            return (False, b"") if data is None else (True, data)
        amount = native if target == multicall else by_token.get(target)
        return (False, b"") if amount is None else (True, encode(["uint256"], [amount]))

    def aggregate3(calls: list[tuple]) -> MagicMock:
        results = [answer(target, call_data) for target, _allow_failure, call_data in calls]
        return MagicMock(call=AsyncMock(return_value=results))

    contract = MagicMock()
    contract.functions.aggregate3.side_effect = aggregate3
    mock_w3.eth.contract.return_value = contract
    return contract


def gql_balances(account: str, amounts: dict[str, int], symbol: str = "USDC", decimals: int = 6) -> list[dict]:
    """Indexer token balance entries ("<account>-<token>" ids)."""
    return [
        {"id": f"{account}-{token}", "amount": str(amount), "token": {"id": token, "symbol": symbol, "decimals": decimals}}
        for token, amount in amounts.items()
    ]


def gql_split(
    recipients: list[tuple[str, int]],
    distributor_fee: int = 0,
    split_type: str = "splitV2",
    address: str = SPLIT,
    controller: str | None = OWNER,
    **ledgers: list[dict],
) -> dict[str, Any]:
    """An indexer Split record."""
    return {
        "__typename": "Split",
        "id": address,
        "type": split_type,
        "chainId": "1",
        "latestBlock": 100,
        "controller": {"id": controller} if controller else None,
        "distributorFee": str(distributor_fee),
        "distributionsPaused": False,
        "createdBlock": 10,
        "recipients": [{"id": f"{address}-{r}", "ownership": str(o)} for r, o in recipients],
        "internalBalances": ledgers.get("internalBalances", []),
        "warehouseBalances": ledgers.get("warehouseBalances", []),
        "distributions": ledgers.get("distributions", []),
        "withdrawals": ledgers.get("withdrawals", []),
    }


def gql_account(typename: str, address: str = ALICE, **ledgers: list[dict]) -> dict[str, Any]:
    """An indexer record of a non-split account kind."""
    return {
        "__typename": typename,
        "id": address,
        "chainId": "1",
        "latestBlock": 100,
        "internalBalances": ledgers.get("internalBalances", []),
        "warehouseBalances": ledgers.get("warehouseBalances", []),
        "distributions": ledgers.get("distributions", []),
        "withdrawals": ledgers.get("withdrawals", []),
    }


@pytest.fixture
def mock_w3() -> MagicMock:
    """Mock AsyncWeb3 on mainnet with an unremarkable provider URL."""
    w3 = MagicMock()
    w3.eth.chain_id = _AsyncValue(1)
    w3.eth.block_number = _AsyncValue(45)
    w3.provider.endpoint_uri = "http://localhost:8545"
    return w3


@pytest.fixture
def mock_indexer() -> MagicMock:
    """Indexer whose load_account result each test sets."""
    indexer = MagicMock()
    indexer.load_account = AsyncMock(return_value=None)
    return indexer
