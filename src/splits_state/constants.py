"""Protocol constants and per-chain data for splits-state."""

from ._exceptions import UnsupportedChainError

# 100% in the protocol's fixed-point representation.
PERCENTAGE_SCALE = 1_000_000

# Largest distributor fee accepted by the legacy SplitMain contract (10%).
MAX_DISTRIBUTOR_FEE = 100_000

# Ledgers leave this many raw units behind in every (account, token) slot.
STIPEND_FLOOR = 1

ADDRESS_ZERO = "0x0000000000000000000000000000000000000000"

# https://github.com/mds1/multicall
MULTICALL_3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"

# ENS ReverseRecords helper (mainnet only).
REVERSE_RECORDS_ADDRESS = "0x3671aE578E63FdF66ad4F3E12CC0c0d71Ac7510C"

MAINNET_CHAIN_ID = 1
NATIVE_TOKEN_DECIMALS = 18

# Block the protocol was first deployed at, and native currency symbol, per chain.
CHAIN_INFO: dict[int, dict[str, int | str]] = {
    1: {"start_block": 14206768, "native_symbol": "ETH"},  # Ethereum
    5: {"start_block": 6374540, "native_symbol": "ETH"},  # Goerli
    11155111: {"start_block": 4836125, "native_symbol": "ETH"},  # Sepolia
    17000: {"start_block": 148241, "native_symbol": "ETH"},  # Holesky
    137: {"start_block": 25303316, "native_symbol": "MATIC"},  # Polygon
    80001: {"start_block": 25258326, "native_symbol": "MATIC"},  # Mumbai
    10: {"start_block": 24704537, "native_symbol": "ETH"},  # Optimism
    420: {"start_block": 1324620, "native_symbol": "ETH"},  # Optimism Goerli
    42161: {"start_block": 26082503, "native_symbol": "ETH"},  # Arbitrum
    421613: {"start_block": 383218, "native_symbol": "ETH"},  # Arbitrum Goerli
    100: {"start_block": 26014830, "native_symbol": "xDai"},  # Gnosis
    250: {"start_block": 53993922, "native_symbol": "FTM"},  # Fantom
    43114: {"start_block": 25125818, "native_symbol": "AVAX"},  # Avalanche
    56: {"start_block": 24962607, "native_symbol": "BNB"},  # BSC
    1313161554: {"start_block": 83401794, "native_symbol": "ETH"},  # Aurora
    7777777: {"start_block": 1860322, "native_symbol": "ETH"},  # Zora
    999999999: {"start_block": 2296044, "native_symbol": "ETH"},  # Zora Sepolia
    8453: {"start_block": 2293907, "native_symbol": "ETH"},  # Base
    84532: {"start_block": 3324413, "native_symbol": "ETH"},  # Base Sepolia
}

# SplitV2 factories (same CREATE2 address on every chain). Their deployment
# postdates the chain's start block, so scanning from it never misses events.
SPLIT_V2_PULL_FACTORY_ADDRESS = "0x80f1B766817D04870f115fEBbcCADF8DBF75E017"
SPLIT_V2_PUSH_FACTORY_ADDRESS = "0xaDC87646f736d6A82e9a6539cddC488b2aA07f38"

SPLIT_V2_CHAIN_IDS: list[int] = [1, 11155111, 17000, 137, 10, 42161, 100, 56, 7777777, 8453, 84532]

SPLIT_V2_DEPLOYMENTS: dict[int, dict[str, int | list[str]]] = {
    chain_id: {
        "start_block": CHAIN_INFO[chain_id]["start_block"],
        "factories": [SPLIT_V2_PULL_FACTORY_ADDRESS, SPLIT_V2_PUSH_FACTORY_ADDRESS],
    }
    for chain_id in SPLIT_V2_CHAIN_IDS
}

SPLITS_API_URL = "https://api.splits.org/graphql"


def is_supported_chain(chain_id: int) -> bool:
    """Check if a chain is known to the protocol."""
    return chain_id in CHAIN_INFO


def get_start_block(chain_id: int) -> int:
    """Get the protocol's first deployment block for a chain."""
    info = CHAIN_INFO.get(chain_id)
    if not info:
        raise UnsupportedChainError(chain_id)
    return int(info["start_block"])


def get_native_token_symbol(chain_id: int) -> str:
    """Get the native currency symbol for a chain."""
    info = CHAIN_INFO.get(chain_id)
    if not info:
        raise UnsupportedChainError(chain_id)
    return str(info["native_symbol"])


def get_split_v2_deployment(chain_id: int) -> dict[str, int | list[str]]:
    """Get the SplitV2 factory addresses and scan start block for a chain."""
    deployment = SPLIT_V2_DEPLOYMENTS.get(chain_id)
    if not deployment:
        raise UnsupportedChainError(chain_id, "split reconstruction")
    return deployment
