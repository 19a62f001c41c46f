"""Async high-level client for splits-state."""

import logging
import os

from web3 import AsyncWeb3

from ._exceptions import (
    ConfigurationError,
    InconsistentSourceError,
    MissingCollaboratorError,
    NotFoundError,
)
from .accounts import Account, SplitAccount
from .balances import BalanceAggregator, ChainCapabilities
from .constants import SPLITS_API_URL
from .ens import add_ens_names
from .hashing import hash_split_config, hash_split_v2_ordered
from .indexer import GraphQLIndexerClient, SplitsIndexer
from .numbers import get_percent_precision, round_to_decimals
from .reconstruct import SplitReconstructor
from .types import AccountBalances, SplitConfig

logger = logging.getLogger(__name__)


def _allocation_signature(config: SplitConfig) -> tuple:
    """Recipients and fee in a form comparable across allocation scales."""
    precision = get_percent_precision()
    recipients = sorted(
        (r.address.lower(), round_to_decimals(r.percent_allocation, precision)) for r in config.recipients
    )
    return tuple(recipients), config.distributor_fee


class AsyncSplitsDataClient:
    """
    Async client producing a consistent view of splits-protocol accounts.

    Combines the Splits indexer, direct contract reads and event-log replay.
    Either collaborator is optional at construction; operations that need a
    missing one raise MissingCollaboratorError.

    Example:
        >>> import asyncio
        >>> from splits_state import AsyncSplitsDataClient
        >>>
        >>> async def main():
        ...     async with AsyncSplitsDataClient(
        ...         rpc_url="https://mainnet.base.org",
        ...         api_key="...",
        ...     ) as client:
        ...         split = await client.get_split_metadata(8453, "0xSplit...")
        ...         balances = await client.aggregate_balances(8453, "0xSplit...")
        >>>
        >>> asyncio.run(main())
    """

    def __init__(
        self,
        rpc_url: str | None = None,
        w3: AsyncWeb3 | None = None,
        api_key: str | None = None,
        api_url: str | None = None,
        indexer: SplitsIndexer | None = None,
        include_ens_names: bool = False,
        ens_w3: AsyncWeb3 | None = None,
        capabilities: ChainCapabilities | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            rpc_url: RPC endpoint URL (or SPLITS_RPC_URL env var)
            w3: Preconfigured AsyncWeb3 instance, used instead of rpc_url
            api_key: Splits API key (or SPLITS_API_KEY env var)
            api_url: Splits GraphQL endpoint (or SPLITS_API_URL env var)
            indexer: Preconfigured indexer, used instead of api_key
            include_ens_names: Resolve ENS names for split recipients and controllers
            ens_w3: Mainnet AsyncWeb3 for ENS lookups (defaults to the chain accessor)
            capabilities: Override of the RPC endpoint's detected capabilities

        Raises:
            ConfigurationError: If arguments conflict or ENS names are requested
                without any chain accessor
        """
        if rpc_url and w3 is not None:
            raise ConfigurationError("Pass either rpc_url or w3, not both")
        if api_key and indexer is not None:
            raise ConfigurationError("Pass either api_key or indexer, not both")

        rpc_url = rpc_url or os.environ.get("SPLITS_RPC_URL")
        api_key = api_key or os.environ.get("SPLITS_API_KEY")
        api_url = api_url or os.environ.get("SPLITS_API_URL") or SPLITS_API_URL

        self._owns_w3 = w3 is None and bool(rpc_url)
        if w3 is None and rpc_url:
            w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self.w3 = w3

        self._owns_indexer = indexer is None and bool(api_key)
        if indexer is None and api_key:
            indexer = GraphQLIndexerClient(api_key=api_key, server_url=api_url)
        self.indexer = indexer

        if include_ens_names and ens_w3 is None and self.w3 is None:
            raise ConfigurationError("include_ens_names requires an RPC endpoint (rpc_url, w3 or ens_w3)")
        self.include_ens_names = include_ens_names
        self.ens_w3 = ens_w3 or self.w3

        self.reconstructor = SplitReconstructor(self.w3) if self.w3 is not None else None
        self.balances = BalanceAggregator(self.indexer, self.w3, capabilities=capabilities)

    async def close(self) -> None:
        """Close the HTTP sessions this client created."""
        if self._owns_indexer and isinstance(self.indexer, GraphQLIndexerClient):
            await self.indexer.close()
        if self._owns_w3 and self.w3 is not None:
            await self.w3.provider.disconnect()

    async def __aenter__(self) -> "AsyncSplitsDataClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager and close sessions."""
        await self.close()

    def _require_reconstructor(self) -> SplitReconstructor:
        if self.reconstructor is None:
            raise MissingCollaboratorError(
                "A chain accessor is required for this operation; pass rpc_url or w3 to the client"
            )
        return self.reconstructor

    def _require_indexer(self) -> SplitsIndexer:
        if self.indexer is None:
            raise MissingCollaboratorError(
                "An indexer is required for this operation; pass api_key or indexer to the client"
            )
        return self.indexer

    async def _with_ens_names(self, config: SplitConfig) -> SplitConfig:
        if not self.include_ens_names or self.ens_w3 is None:
            return config
        return await add_ens_names(self.ens_w3, config)

    async def reconstruct_split(self, chain_id: int, split_address: str) -> SplitConfig:
        """
        Rebuild a SplitV2 configuration from event logs, ignoring the indexer.

        Raises:
            MissingCollaboratorError: If no chain accessor is configured
            UnsupportedChainError: If the chain has no SplitV2 deployment
            NotFoundError: If no SplitCreated event exists for the address
        """
        config = await self._require_reconstructor().reconstruct_split(chain_id, split_address)
        return await self._with_ens_names(config)

    async def aggregate_balances(
        self,
        chain_id: int,
        address: str,
        include_active: bool = True,
        erc20_token_list: list[str] | None = None,
    ) -> AccountBalances:
        """
        Get withdrawn, distributed and (optionally) active balances of an account.

        See BalanceAggregator.aggregate_balances.
        """
        return await self.balances.aggregate_balances(chain_id, address, include_active, erc20_token_list)

    async def get_account_metadata(self, chain_id: int, address: str) -> Account:
        """
        Get the indexed account record of any kind.

        Raises:
            MissingCollaboratorError: If no indexer is configured
            NotFoundError: If the indexer has no record of the address
        """
        account = await self._require_indexer().load_account(chain_id, address)
        if account is None:
            raise NotFoundError("account", address, chain_id)
        return account

    async def get_split_metadata(self, chain_id: int, split_address: str) -> SplitConfig:
        """
        Get a split's configuration.

        The indexer is consulted first. When it is not configured or does not
        know the address, the configuration is reconstructed from logs if a
        chain accessor is available.

        Raises:
            MissingCollaboratorError: If neither indexer nor chain accessor is configured
            NotFoundError: If the address is not a split in any available source
        """
        if self.indexer is None and self.reconstructor is None:
            raise MissingCollaboratorError("An indexer or a chain accessor is required to load split metadata")

        if self.indexer is not None:
            account = await self.indexer.load_account(chain_id, split_address)
            if account is not None:
                if not isinstance(account, SplitAccount):
                    raise NotFoundError("split", split_address, chain_id)
                return await self._with_ens_names(account.to_split_config())
            if self.reconstructor is None:
                raise NotFoundError("split", split_address, chain_id)
            logger.debug("Split %s not indexed on chain %d, reconstructing from logs", split_address, chain_id)

        return await self.reconstruct_split(chain_id, split_address)

    async def verify_split(self, chain_id: int, split_address: str) -> SplitConfig:
        """
        Reconstruct a split and check it against every other source.

        The reconstructed configuration must hash to the split's on-chain
        splitHash and, when an indexer is configured and knows the split,
        agree with the indexer on recipients, allocations and fee.

        Returns:
            The verified SplitConfig

        Raises:
            InconsistentSourceError: If any source disagrees
        """
        reconstructor = self._require_reconstructor()
        config = await reconstructor.reconstruct_split(chain_id, split_address)
        onchain_hash = (await reconstructor.get_split_hash(split_address)).lower()

        canonical_hash = hash_split_config(config)
        emitted_hash = hash_split_v2_ordered(
            [r.address for r in config.recipients],
            [r.allocation for r in config.recipients],
            config.total_allocation,
            config.distributor_fee,
        )
        if onchain_hash not in (canonical_hash, emitted_hash):
            raise InconsistentSourceError(
                f"Reconstructed configuration of {split_address} does not match its on-chain hash",
                expected=onchain_hash,
                actual=canonical_hash,
            )

        if self.indexer is not None:
            account = await self.indexer.load_account(chain_id, split_address)
            if account is not None:
                if not isinstance(account, SplitAccount):
                    raise InconsistentSourceError(
                        f"Indexer reports {split_address} as a {account.type} account",
                        expected="splitV2",
                        actual=account.type,
                    )
                if _allocation_signature(account.to_split_config()) != _allocation_signature(config):
                    raise InconsistentSourceError(
                        f"Indexer configuration of {split_address} disagrees with its event logs",
                        expected=canonical_hash,
                        actual=account.hash,
                    )

        return await self._with_ens_names(config)
