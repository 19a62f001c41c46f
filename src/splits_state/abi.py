"""
Contract ABIs and event signatures read by splits-state.

Only the view functions and events this package consumes are included.
"""

from eth_utils import event_abi_to_log_topic
from hexbytes import HexBytes

# Tuple layout of SplitV2Lib.Split
SPLIT_V2_PARAMS_TYPE = "(address[],uint256[],uint256,uint16)"

_SPLIT_PARAMS_COMPONENTS = [
    {"name": "recipients", "type": "address[]"},
    {"name": "allocations", "type": "uint256[]"},
    {"name": "totalAllocation", "type": "uint256"},
    {"name": "distributionIncentive", "type": "uint16"},
]

# SplitV2 wallet ABI
SPLIT_V2_ABI = [
    {
        "type": "function",
        "name": "owner",
        "inputs": [],
        "outputs": [{"type": "address"}],
        "stateMutability": "view",
    },
    {
        "type": "function",
        "name": "paused",
        "inputs": [],
        "outputs": [{"type": "bool"}],
        "stateMutability": "view",
    },
    {
        "type": "function",
        "name": "splitHash",
        "inputs": [],
        "outputs": [{"type": "bytes32"}],
        "stateMutability": "view",
    },
    {
        "type": "event",
        "name": "SplitUpdated",
        "inputs": [
            {
                "name": "_split",
                "type": "tuple",
                "indexed": False,
                "components": _SPLIT_PARAMS_COMPONENTS,
            },
        ],
        "anonymous": False,
    },
]

# SplitV2 factory events. The salted variant is emitted by createSplitDeterministic.
SPLIT_V2_FACTORY_ABI = [
    {
        "type": "event",
        "name": "SplitCreated",
        "inputs": [
            {"name": "split", "type": "address", "indexed": True},
            {"name": "splitParams", "type": "tuple", "indexed": False, "components": _SPLIT_PARAMS_COMPONENTS},
            {"name": "owner", "type": "address", "indexed": False},
            {"name": "creator", "type": "address", "indexed": False},
            {"name": "salt", "type": "bytes32", "indexed": False},
        ],
        "anonymous": False,
    },
    {
        "type": "event",
        "name": "SplitCreated",
        "inputs": [
            {"name": "split", "type": "address", "indexed": True},
            {"name": "splitParams", "type": "tuple", "indexed": False, "components": _SPLIT_PARAMS_COMPONENTS},
            {"name": "owner", "type": "address", "indexed": False},
            {"name": "creator", "type": "address", "indexed": False},
        ],
        "anonymous": False,
    },
]

ERC20_ABI = [
    {
        "type": "function",
        "name": "balanceOf",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"type": "uint256"}],
        "stateMutability": "view",
    },
    {
        "type": "function",
        "name": "symbol",
        "inputs": [],
        "outputs": [{"type": "string"}],
        "stateMutability": "view",
    },
    {
        "type": "function",
        "name": "decimals",
        "inputs": [],
        "outputs": [{"type": "uint8"}],
        "stateMutability": "view",
    },
    {
        "type": "event",
        "name": "Transfer",
        "inputs": [
            {"name": "from", "type": "address", "indexed": True},
            {"name": "to", "type": "address", "indexed": True},
            {"name": "value", "type": "uint256", "indexed": False},
        ],
        "anonymous": False,
    },
]

MULTICALL_3_ABI = [
    {
        "type": "function",
        "name": "aggregate3",
        "inputs": [
            {
                "name": "calls",
                "type": "tuple[]",
                "components": [
                    {"name": "target", "type": "address"},
                    {"name": "allowFailure", "type": "bool"},
                    {"name": "callData", "type": "bytes"},
                ],
            }
        ],
        "outputs": [
            {
                "name": "returnData",
                "type": "tuple[]",
                "components": [
                    {"name": "success", "type": "bool"},
                    {"name": "returnData", "type": "bytes"},
                ],
            }
        ],
        "stateMutability": "payable",
    },
    {
        "type": "function",
        "name": "getEthBalance",
        "inputs": [{"name": "addr", "type": "address"}],
        "outputs": [{"name": "balance", "type": "uint256"}],
        "stateMutability": "view",
    },
]

REVERSE_RECORDS_ABI = [
    {
        "type": "function",
        "name": "getNames",
        "inputs": [{"name": "addresses", "type": "address[]"}],
        "outputs": [{"name": "r", "type": "string[]"}],
        "stateMutability": "view",
    },
]

# Event topics (topic0)
SPLIT_CREATED_TOPIC = HexBytes(event_abi_to_log_topic(SPLIT_V2_FACTORY_ABI[0]))
SPLIT_CREATED_UNSALTED_TOPIC = HexBytes(event_abi_to_log_topic(SPLIT_V2_FACTORY_ABI[1]))
SPLIT_UPDATED_TOPIC = HexBytes(event_abi_to_log_topic(SPLIT_V2_ABI[3]))
ERC20_TRANSFER_TOPIC = HexBytes(event_abi_to_log_topic(ERC20_ABI[3]))
