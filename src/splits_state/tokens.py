"""Token metadata resolution."""

import asyncio
import logging

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector
from web3 import AsyncWeb3

from .abi import ERC20_ABI, MULTICALL_3_ABI
from .constants import ADDRESS_ZERO, MULTICALL_3_ADDRESS, NATIVE_TOKEN_DECIMALS, get_native_token_symbol
from .types import TokenData

logger = logging.getLogger(__name__)

SYMBOL_SELECTOR = function_signature_to_4byte_selector("symbol()")
DECIMALS_SELECTOR = function_signature_to_4byte_selector("decimals()")


class TokenDataResolver:
    """
    Resolves symbol and decimals for tokens.

    The zero address stands for the chain's native asset and is answered from
    the chain table; ERC20 metadata is read from the token contract.
    """

    def __init__(self, w3: AsyncWeb3) -> None:
        self.w3 = w3

    async def get_token_data(self, chain_id: int, token: str) -> TokenData:
        """
        Get metadata for one token.

        Raises:
            UnsupportedChainError: If the native asset is requested on an unknown chain
        """
        if token.lower() == ADDRESS_ZERO:
            return TokenData(
                address=ADDRESS_ZERO,
                symbol=get_native_token_symbol(chain_id),
                decimals=NATIVE_TOKEN_DECIMALS,
            )

        address = AsyncWeb3.to_checksum_address(token)
        contract = self.w3.eth.contract(address=address, abi=ERC20_ABI)
        symbol, decimals = await asyncio.gather(
            contract.functions.symbol().call(),
            contract.functions.decimals().call(),
        )
        return TokenData(address=address, symbol=symbol, decimals=decimals)

    async def resolve_many(
        self,
        chain_id: int,
        tokens: list[str],
        known: dict[str, TokenData] | None = None,
    ) -> dict[str, TokenData]:
        """
        Resolve metadata for a set of tokens, each at most once.

        Args:
            chain_id: Chain ID
            tokens: Checksum token addresses
            known: Metadata already available (e.g. from the indexer)

        Returns:
            Mapping of checksum token address to TokenData
        """
        resolved = dict(known or {})
        missing = [token for token in dict.fromkeys(tokens) if token not in resolved]
        if missing:
            logger.debug("Resolving metadata for %d tokens on chain %d", len(missing), chain_id)
            results = await asyncio.gather(*(self.get_token_data(chain_id, token) for token in missing))
            resolved.update(zip(missing, results, strict=True))
        return resolved

    async def fetch_token_data_with_multicall(self, chain_id: int, tokens: list[str]) -> dict[str, TokenData]:
        """
        Read symbol and decimals for many tokens in one Multicall3 aggregate3 call.

        Best effort: tokens whose calls revert or whose return data does not
        decode as an ERC20 string symbol and uint8 decimals (NFTs, bytes32
        symbols, plain contracts) are left out of the result.
        """
        resolved: dict[str, TokenData] = {}
        erc20: list[str] = []
        for token in dict.fromkeys(tokens):
            if token.lower() == ADDRESS_ZERO:
                resolved[token] = await self.get_token_data(chain_id, token)
            else:
                erc20.append(AsyncWeb3.to_checksum_address(token))
        if not erc20:
            return resolved

        calls = []
        for token in erc20:
            calls.append((token, True, SYMBOL_SELECTOR))
            calls.append((token, True, DECIMALS_SELECTOR))
        multicall = self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(MULTICALL_3_ADDRESS),
            abi=MULTICALL_3_ABI,
        )
        results = await multicall.functions.aggregate3(calls).call()

        for i, token in enumerate(erc20):
            (symbol_ok, symbol_data), (decimals_ok, decimals_data) = results[2 * i], results[2 * i + 1]
            if not (symbol_ok and decimals_ok and symbol_data and decimals_data):
                logger.debug("Skipping metadata of %s: call failed", token)
                continue
            try:
                (symbol,) = decode(["string"], symbol_data)
                (decimals,) = decode(["uint8"], decimals_data)
            except (DecodingError, OverflowError) as e:
                logger.debug("Skipping metadata of %s: not an ERC20 (%s)", token, e)
                continue
            resolved[token] = TokenData(address=token, symbol=symbol, decimals=decimals)
        return resolved
