"""GraphQL client for the Splits indexer API."""

import logging
from typing import Any, Protocol

import httpx

from ._exceptions import IndexerError
from .accounts import Account, parse_account
from .constants import SPLITS_API_URL

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

_TOKEN_BALANCE_FIELDS = """
    id
    amount
    token {
      id
      symbol
      decimals
    }
"""

ACCOUNT_QUERY = f"""
query account($accountId: ID!, $chainId: String!) {{
  account(id: $accountId, chainId: $chainId) {{
    __typename
    id
    type
    chainId
    latestBlock
    internalBalances {{{_TOKEN_BALANCE_FIELDS}}}
    warehouseBalances {{{_TOKEN_BALANCE_FIELDS}}}
    distributions {{{_TOKEN_BALANCE_FIELDS}}}
    withdrawals {{{_TOKEN_BALANCE_FIELDS}}}
    ... on Split {{
      controller {{
        id
      }}
      distributorFee
      distributionsPaused
      createdBlock
      recipients {{
        id
        ownership
      }}
    }}
  }}
}}
"""


class SplitsIndexer(Protocol):
    """Anything that can load an indexed account snapshot."""

    async def load_account(self, chain_id: int, address: str) -> Account | None: ...


class GraphQLIndexerClient:
    """
    Async client for the Splits GraphQL API.

    Example:
        >>> indexer = GraphQLIndexerClient(api_key="...")
        >>> account = await indexer.load_account(1, "0xSplit...")
    """

    def __init__(
        self,
        api_key: str,
        server_url: str = SPLITS_API_URL,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the indexer client.

        Args:
            api_key: Splits API key, sent as a Bearer token
            server_url: GraphQL endpoint
            http_client: Optional preconfigured httpx client (owned by the caller)
        """
        self.server_url = server_url
        self._headers = {"Authorization": f"Bearer {api_key}"}
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._http.aclose()

    async def query(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """
        Run a GraphQL query and return its `data` object.

        Raises:
            httpx.HTTPError: On transport failures and non-2xx responses
            IndexerError: If the response carries GraphQL errors or no data
        """
        response = await self._http.post(
            self.server_url,
            json={"query": query, "variables": variables},
            headers=self._headers,
        )
        response.raise_for_status()
        body = response.json()

        if body.get("errors"):
            messages = "; ".join(str(err.get("message", err)) for err in body["errors"])
            raise IndexerError(f"Indexer returned errors: {messages}")
        if body.get("data") is None:
            raise IndexerError("Indexer response has no data")
        return body["data"]

    async def load_account(self, chain_id: int, address: str) -> Account | None:
        """
        Load an account snapshot.

        Returns:
            The parsed account, or None if the indexer has no record of it
        """
        logger.debug("Loading account %s on chain %d from indexer", address, chain_id)
        data = await self.query(
            ACCOUNT_QUERY,
            {"accountId": address.lower(), "chainId": str(chain_id)},
        )
        account = data.get("account")
        if account is None:
            return None
        return parse_account(account)
