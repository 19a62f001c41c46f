# Suppress websockets deprecation warning from web3.py (ethereum/web3.py#3530)
# web3.py unconditionally imports LegacyWebSocketProvider even for HTTP-only usage.
# This will be fixed in web3.py v8. Remove this filter after upgrading.
import warnings

warnings.filterwarnings(
    "ignore",
    message="websockets.legacy is deprecated",
    category=DeprecationWarning,
    module=r"websockets\.legacy",
)

"""
splits-state

A consistent view of splits-protocol accounts, assembled from the Splits
indexer, direct contract reads and event-log replay.

Usage:
    import asyncio
    from splits_state import AsyncSplitsDataClient

    async def main():
        async with AsyncSplitsDataClient(
            rpc_url="https://eth-mainnet.g.alchemy.com/v2/...",
            api_key="...",
        ) as client:
            split = await client.get_split_metadata(1, "0xSplit...")
            balances = await client.aggregate_balances(1, "0xSplit...")
            verified = await client.verify_split(1, "0xSplit...")

    asyncio.run(main())

Pure helpers:
    from splits_state import SplitRecipient, hash_split, to_scaled

    to_scaled(7.35)  # 73_500
    hash_split(
        [
            SplitRecipient(address="0xAlice...", allocation=600_000, percent_allocation=60),
            SplitRecipient(address="0xBob...", allocation=400_000, percent_allocation=40),
        ],
        distributor_fee=10_000,
    )
"""

from ._exceptions import (
    ConfigurationError,
    IncompleteDataError,
    InconsistentSourceError,
    IndexerError,
    InvalidRecipientsError,
    MissingCollaboratorError,
    NotFoundError,
    SplitsError,
    UnsupportedChainError,
)
from ._version import __version__

# Account kinds
from .accounts import (
    Account,
    LedgerEntry,
    LiquidSplitAccount,
    PassThroughWalletAccount,
    SplitAccount,
    SwapperAccount,
    UserAccount,
    VestingAccount,
    WaterfallAccount,
    parse_account,
)

# Balance aggregation
from .balances import (
    BalanceAggregator,
    ChainCapabilities,
    apply_stipend_floor,
    detect_capabilities,
    format_token_balances,
    merge_ledger_balances,
)

# Client
from .client import AsyncSplitsDataClient

# Constants
from .constants import (
    ADDRESS_ZERO,
    CHAIN_INFO,
    MAX_DISTRIBUTOR_FEE,
    PERCENTAGE_SCALE,
    SPLIT_V2_DEPLOYMENTS,
    STIPEND_FLOOR,
    get_split_v2_deployment,
    get_start_block,
    is_supported_chain,
)
from .ens import add_ens_names, fetch_ens_names

# Ordering and hashing
from .hashing import (
    canonical_order,
    get_sorted_addresses_and_allocations,
    hash_split,
    hash_split_config,
    hash_split_v2_ordered,
)
from .indexer import GraphQLIndexerClient, SplitsIndexer

# Percent codec
from .numbers import (
    format_units,
    get_percent_precision,
    parse_units,
    round_to_decimals,
    scale_recipients,
    to_percent,
    to_scaled,
    validate_scaled_total,
)

# Reconstruction
from .reconstruct import (
    SplitReconstructor,
    decode_split_created_log,
    decode_split_updated_log,
    get_block_ranges,
    select_latest_event,
)
from .tokens import TokenDataResolver

# Types
from .types import (
    AccountBalances,
    EventRecord,
    Recipient,
    SplitConfig,
    SplitRecipient,
    TokenBalance,
    TokenData,
)

__all__ = [
    # Version
    "__version__",
    # Client
    "AsyncSplitsDataClient",
    # Components
    "BalanceAggregator",
    "ChainCapabilities",
    "GraphQLIndexerClient",
    "SplitReconstructor",
    "SplitsIndexer",
    "TokenDataResolver",
    "detect_capabilities",
    # Types
    "AccountBalances",
    "EventRecord",
    "Recipient",
    "SplitConfig",
    "SplitRecipient",
    "TokenBalance",
    "TokenData",
    # Account kinds
    "Account",
    "LedgerEntry",
    "LiquidSplitAccount",
    "PassThroughWalletAccount",
    "SplitAccount",
    "SwapperAccount",
    "UserAccount",
    "VestingAccount",
    "WaterfallAccount",
    "parse_account",
    # Percent codec
    "to_scaled",
    "to_percent",
    "get_percent_precision",
    "round_to_decimals",
    "scale_recipients",
    "validate_scaled_total",
    "format_units",
    "parse_units",
    # Ordering and hashing
    "canonical_order",
    "get_sorted_addresses_and_allocations",
    "hash_split",
    "hash_split_config",
    "hash_split_v2_ordered",
    # Reconstruction
    "decode_split_created_log",
    "decode_split_updated_log",
    "get_block_ranges",
    "select_latest_event",
    # Balances
    "apply_stipend_floor",
    "merge_ledger_balances",
    "format_token_balances",
    # ENS
    "add_ens_names",
    "fetch_ens_names",
    # Constants
    "ADDRESS_ZERO",
    "CHAIN_INFO",
    "MAX_DISTRIBUTOR_FEE",
    "PERCENTAGE_SCALE",
    "SPLIT_V2_DEPLOYMENTS",
    "STIPEND_FLOOR",
    "get_split_v2_deployment",
    "get_start_block",
    "is_supported_chain",
    # Exceptions
    "SplitsError",
    "ConfigurationError",
    "UnsupportedChainError",
    "NotFoundError",
    "MissingCollaboratorError",
    "IncompleteDataError",
    "InconsistentSourceError",
    "InvalidRecipientsError",
    "IndexerError",
]
