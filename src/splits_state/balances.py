"""
Multi-source balance aggregation.

An account's balance sheet is assembled from three ledgers:

- internal: the account's balance held inside SplitMain (from the indexer)
- warehouse: the account's balance held in the SplitsWarehouse (from the indexer)
- live: tokens sitting in the account contract itself (read on-chain, splits only)

Every ledger leaves one raw unit behind per (account, token) slot, so each
source is floored before the sources are summed. Withdrawn and distributed
totals come from the indexer alone.
"""

import logging
from collections.abc import Mapping
from typing import Any

from eth_abi import decode, encode
from eth_typing import ChecksumAddress
from eth_utils import function_signature_to_4byte_selector
from pydantic import BaseModel
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception

from ._exceptions import IncompleteDataError, MissingCollaboratorError, NotFoundError
from .abi import ERC20_TRANSFER_TOPIC, MULTICALL_3_ABI
from .accounts import Ledger, SplitAccount, UserAccount
from .constants import ADDRESS_ZERO, MULTICALL_3_ADDRESS, STIPEND_FLOOR, get_start_block
from .indexer import SplitsIndexer
from .numbers import format_units
from .reconstruct import address_topic
from .tokens import TokenDataResolver
from .types import AccountBalances, FormattedTokenBalances, TokenBalance, TokenData

logger = logging.getLogger(__name__)

# Checksum token address -> raw amount
RawBalances = dict[str, int]

BALANCE_OF_SELECTOR = function_signature_to_4byte_selector("balanceOf(address)")
GET_ETH_BALANCE_SELECTOR = function_signature_to_4byte_selector("getEthBalance(address)")

BALANCE_ACCOUNT_TYPES = ("split", "splitV2", "user")


class ChainCapabilities(BaseModel):
    """
    What the configured RPC endpoint can do beyond the standard JSON-RPC API.

    Attributes:
        indexing_api: Supports alchemy_getTokenBalances
        large_log_queries: Accepts eth_getLogs over the full chain history
    """

    indexing_api: bool = False
    large_log_queries: bool = False

    model_config = {"frozen": True}


def detect_capabilities(w3: AsyncWeb3) -> ChainCapabilities:
    """Infer endpoint capabilities from the provider URL."""
    url = str(getattr(w3.provider, "endpoint_uri", None) or "")
    if ".alchemy." in url or ".alchemyapi." in url:
        return ChainCapabilities(indexing_api=True, large_log_queries=True)
    if ".infura." in url:
        return ChainCapabilities(large_log_queries=True)
    return ChainCapabilities()


def apply_stipend_floor(amount: int) -> int:
    """Spendable part of a ledger slot: one unit always stays behind."""
    return max(amount - STIPEND_FLOOR, 0)


def floor_ledger(ledger: Ledger) -> RawBalances:
    return {token: apply_stipend_floor(entry.amount) for token, entry in ledger.items()}


def floor_balances(balances: Mapping[str, int]) -> RawBalances:
    return {token: apply_stipend_floor(amount) for token, amount in balances.items()}


def merge_ledger_balances(*sources: Mapping[str, int]) -> RawBalances:
    """
    Sum balances per token across sources.

    Example:
        >>> merge_ledger_balances({"0xT": 5}, {"0xT": 3}, {"0xT": 10})
        {'0xT': 18}
    """
    merged: RawBalances = {}
    for source in sources:
        for token, amount in source.items():
            merged[token] = merged.get(token, 0) + amount
    return merged


def format_token_balances(
    balances: Mapping[str, int],
    token_data: Mapping[str, TokenData],
) -> FormattedTokenBalances:
    """
    Attach symbol and decimals to raw balances, dropping zero entries.

    Raises:
        KeyError: If a non-zero balance has no metadata
    """
    formatted: FormattedTokenBalances = {}
    for token, amount in balances.items():
        if amount <= 0:
            continue
        data = token_data[token]
        formatted[token] = TokenBalance(
            raw_amount=amount,
            formatted_amount=format_units(amount, data.decimals),
            symbol=data.symbol,
            decimals=data.decimals,
        )
    return formatted


def _known_token_data(*ledgers: Ledger) -> dict[str, TokenData]:
    known: dict[str, TokenData] = {}
    for ledger in ledgers:
        for token, entry in ledger.items():
            if token not in known and entry.symbol is not None and entry.decimals is not None:
                known[token] = TokenData(address=token, symbol=entry.symbol, decimals=entry.decimals)
    return known


class BalanceAggregator:
    """
    Builds AccountBalances by merging indexer ledgers with live chain reads.

    Example:
        >>> aggregator = BalanceAggregator(indexer, w3=w3)
        >>> balances = await aggregator.aggregate_balances(1, "0xSplit...")
    """

    def __init__(
        self,
        indexer: SplitsIndexer | None,
        w3: AsyncWeb3 | None = None,
        token_resolver: TokenDataResolver | None = None,
        capabilities: ChainCapabilities | None = None,
    ) -> None:
        """
        Initialize the aggregator.

        Args:
            indexer: Source of indexed account snapshots (required for aggregation)
            w3: AsyncWeb3 instance, needed only for live split balances
            token_resolver: Metadata resolver (defaults to one built on w3)
            capabilities: Endpoint capabilities (detected from w3 if omitted)
        """
        self.indexer = indexer
        self.w3 = w3
        self.token_resolver = token_resolver or (TokenDataResolver(w3) if w3 is not None else None)
        self._capabilities = capabilities

    @property
    def capabilities(self) -> ChainCapabilities:
        if self._capabilities is not None:
            return self._capabilities
        if self.w3 is None:
            return ChainCapabilities()
        return detect_capabilities(self.w3)

    def _require_w3(self) -> AsyncWeb3:
        if self.w3 is None:
            raise MissingCollaboratorError(
                "A chain accessor (AsyncWeb3) is required to read live balances; "
                "pass w3 or set include_active=False"
            )
        return self.w3

    async def aggregate_balances(
        self,
        chain_id: int,
        address: str,
        include_active: bool = True,
        erc20_token_list: list[str] | None = None,
    ) -> AccountBalances:
        """
        Build the balance sheet of a split or user account.

        Args:
            chain_id: Chain ID
            address: Account address
            include_active: Also compute spendable (active) balances
            erc20_token_list: ERC20 tokens to read live for splits; skips discovery

        Returns:
            AccountBalances keyed by checksum token address

        Raises:
            MissingCollaboratorError: If no indexer is configured, or live
                balances are needed without a chain accessor
            NotFoundError: If the indexer has no split or user at this address
            IncompleteDataError: If the live token universe cannot be determined
        """
        if self.indexer is None:
            raise MissingCollaboratorError("An indexer is required to aggregate balances")

        account = await self.indexer.load_account(chain_id, address)
        if account is None:
            raise NotFoundError("account", address, chain_id)
        if account.type not in BALANCE_ACCOUNT_TYPES:
            raise NotFoundError("split or user", address, chain_id)

        withdrawn = floor_ledger(account.withdrawals)
        distributed = floor_ledger(account.distributions)
        known = _known_token_data(
            account.withdrawals, account.distributions, account.internal_balances, account.warehouse_balances
        )

        if not include_active:
            token_data = await self._resolve_token_data(
                chain_id,
                [token for balances in (withdrawn, distributed) for token, amount in balances.items() if amount],
                known,
            )
            return AccountBalances(
                withdrawn=format_token_balances(withdrawn, token_data),
                distributed=format_token_balances(distributed, token_data),
            )

        internal = floor_ledger(account.internal_balances)
        warehouse = floor_ledger(account.warehouse_balances)

        if isinstance(account, UserAccount):
            active = merge_ledger_balances(internal, warehouse)
        else:
            live = floor_balances(await self.fetch_live_balances(chain_id, account, erc20_token_list))
            ledger_tokens = {
                *account.withdrawals,
                *account.distributions,
                *account.internal_balances,
                *account.warehouse_balances,
            }
            live = await self._drop_non_erc20_balances(chain_id, live, known, ledger_tokens)
            active = merge_ledger_balances(internal, warehouse, live)

        token_data = await self._resolve_token_data(
            chain_id,
            [token for balances in (withdrawn, distributed, active) for token, amount in balances.items() if amount],
            known,
        )
        return AccountBalances(
            withdrawn=format_token_balances(withdrawn, token_data),
            distributed=format_token_balances(distributed, token_data),
            active_balances=format_token_balances(active, token_data),
        )

    async def _drop_non_erc20_balances(
        self,
        chain_id: int,
        live: RawBalances,
        known: dict[str, TokenData],
        ledger_tokens: set[str],
    ) -> RawBalances:
        """
        Drop live balances of discovered tokens that have no ERC20 metadata.

        Metadata found on the way is added to `known`. Tokens the indexer
        tracks are left alone; missing metadata for them still raises later.
        """
        discovered = [
            token for token, amount in live.items() if amount and token not in known and token not in ledger_tokens
        ]
        if not discovered:
            return live
        if self.token_resolver is None:
            raise MissingCollaboratorError("A token resolver is required to read metadata of live balances")

        known.update(await self.token_resolver.fetch_token_data_with_multicall(chain_id, discovered))
        kept: RawBalances = {}
        for token, amount in live.items():
            if token in discovered and token not in known:
                logger.debug("Ignoring live balance of %s: not an ERC20 token", token)
                continue
            kept[token] = amount
        return kept

    async def _resolve_token_data(
        self,
        chain_id: int,
        tokens: list[str],
        known: dict[str, TokenData],
    ) -> dict[str, TokenData]:
        missing = [token for token in tokens if token not in known]
        if not missing:
            return known
        if self.token_resolver is None:
            raise MissingCollaboratorError(
                f"Token metadata for {len(missing)} tokens is not indexed and no chain accessor is configured"
            )
        return await self.token_resolver.resolve_many(chain_id, tokens, known)

    async def fetch_live_balances(
        self,
        chain_id: int,
        account: SplitAccount,
        erc20_token_list: list[str] | None = None,
    ) -> RawBalances:
        """
        Read the raw token balances held by a split contract.

        The token universe is the explicit list if given, otherwise whatever
        the endpoint can discover (indexing API, then Transfer log scan).
        Native, distributed, internal and warehouse tokens are always included.
        """
        self._require_w3()
        folded = [
            ADDRESS_ZERO,
            *account.distributions,
            *account.internal_balances,
            *account.warehouse_balances,
        ]
        capabilities = self.capabilities

        if erc20_token_list is not None:
            logger.debug("Reading live balances for %s from explicit token list", account.address)
            tokens = [*folded, *(AsyncWeb3.to_checksum_address(t) for t in erc20_token_list)]
            return await self.fetch_balances_with_multicall(account.address, tokens)

        if capabilities.indexing_api:
            logger.debug("Reading live balances for %s with the indexing API", account.address)
            balances = await self.fetch_balances_with_indexing_api(account.address)
            remaining = [token for token in dict.fromkeys(folded) if token not in balances]
            if remaining:
                balances.update(await self.fetch_balances_with_multicall(account.address, remaining))
            return balances

        if capabilities.large_log_queries:
            logger.debug("Discovering tokens for %s from Transfer logs", account.address)
            transferred = await self.fetch_transferred_tokens(chain_id, account.address)
            return await self.fetch_balances_with_multicall(account.address, [*folded, *transferred])

        raise IncompleteDataError(
            f"Cannot determine the token list for {account.address}: pass erc20_token_list "
            "or use an endpoint with a token indexing API or full-history log queries"
        )

    async def fetch_balances_with_indexing_api(self, address: ChecksumAddress | str) -> RawBalances:
        """
        Read native and ERC20 balances through alchemy_getTokenBalances.

        Follows pageKey until the API reports no further pages.
        """
        w3 = self._require_w3()
        checksum = AsyncWeb3.to_checksum_address(address)
        balances: RawBalances = {ADDRESS_ZERO: await w3.eth.get_balance(checksum)}

        page_key: str | None = None
        while True:
            params: list[Any] = [checksum, "erc20"]
            if page_key:
                params.append({"pageKey": page_key})
            response = await w3.provider.make_request("alchemy_getTokenBalances", params)
            if response.get("error"):
                raise Web3Exception(f"alchemy_getTokenBalances failed: {response['error']}")

            result = response["result"]
            for entry in result.get("tokenBalances", []):
                if entry.get("tokenBalance") is None:
                    continue
                token = AsyncWeb3.to_checksum_address(entry["contractAddress"])
                balances[token] = int(entry["tokenBalance"], 16)

            page_key = result.get("pageKey")
            if not page_key:
                break

        return balances

    async def fetch_transferred_tokens(self, chain_id: int, address: ChecksumAddress | str) -> list[str]:
        """ERC20 contracts that have ever emitted a Transfer to `address`."""
        w3 = self._require_w3()
        logs = await w3.eth.get_logs(
            {
                "fromBlock": get_start_block(chain_id),
                "toBlock": "latest",
                "topics": [ERC20_TRANSFER_TOPIC.to_0x_hex(), None, address_topic(address)],
            }
        )
        tokens = dict.fromkeys(AsyncWeb3.to_checksum_address(log["address"]) for log in logs)
        logger.debug("Found %d transferred tokens for %s", len(tokens), address)
        return list(tokens)

    async def fetch_balances_with_multicall(self, address: ChecksumAddress | str, tokens: list[str]) -> RawBalances:
        """
        Read balances for a fixed token list in one Multicall3 aggregate3 call.

        Tokens whose call reverts or returns nothing (non-ERC20 contracts) are skipped.
        """
        w3 = self._require_w3()
        account = AsyncWeb3.to_checksum_address(address)
        multicall_address = AsyncWeb3.to_checksum_address(MULTICALL_3_ADDRESS)
        tokens = list(dict.fromkeys(tokens))

        calls = []
        for token in tokens:
            if token == ADDRESS_ZERO:
                calls.append((multicall_address, True, GET_ETH_BALANCE_SELECTOR + encode(["address"], [account])))
            else:
                calls.append((token, True, BALANCE_OF_SELECTOR + encode(["address"], [account])))

        multicall = w3.eth.contract(address=multicall_address, abi=MULTICALL_3_ABI)
        results = await multicall.functions.aggregate3(calls).call()

        balances: RawBalances = {}
        for token, (success, return_data) in zip(tokens, results, strict=True):
            if not success or len(return_data) < 32:
                logger.debug("Skipping balance of %s for %s: call failed", token, account)
                continue
            (balances[token],) = decode(["uint256"], return_data)
        return balances

