"""Tests for AsyncSplitsDataClient."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from web3 import AsyncWeb3

from splits_state import (
    AsyncSplitsDataClient,
    ConfigurationError,
    GraphQLIndexerClient,
    InconsistentSourceError,
    MissingCollaboratorError,
    NotFoundError,
    SplitAccount,
    SplitConfig,
    SplitRecipient,
    hash_split_config,
    hash_split_v2_ordered,
    parse_account,
)

from conftest import ALICE, BOB, OWNER, SPLIT, checksum, gql_account, gql_split

ENV_VARS = ("SPLITS_RPC_URL", "SPLITS_API_KEY", "SPLITS_API_URL")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _config(recipients: list[tuple[str, int]] = ((ALICE, 60), (BOB, 40))) -> SplitConfig:
    total = sum(allocation for _, allocation in recipients)
    return SplitConfig(
        address=checksum(SPLIT),
        type="splitV2",
        recipients=[
            SplitRecipient(
                address=checksum(address),
                allocation=allocation,
                percent_allocation=allocation * 100 / total,
            )
            for address, allocation in recipients
        ],
        distributor_fee=0,
        total_allocation=total,
        controller=checksum(OWNER),
        created_block=10,
    )


def _mock_reconstructor(config: SplitConfig, onchain_hash: str) -> MagicMock:
    reconstructor = MagicMock()
    reconstructor.reconstruct_split = AsyncMock(return_value=config)
    reconstructor.get_split_hash = AsyncMock(return_value=onchain_hash)
    return reconstructor


class TestClientInit:
    """Tests for client construction."""

    def test_init_without_sources(self) -> None:
        client = AsyncSplitsDataClient()

        assert client.w3 is None
        assert client.indexer is None
        assert client.reconstructor is None

    @pytest.mark.asyncio
    async def test_init_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPLITS_RPC_URL", "https://mainnet.base.org")
        monkeypatch.setenv("SPLITS_API_KEY", "env-key")
        monkeypatch.setenv("SPLITS_API_URL", "https://indexer.test/graphql")

        client = AsyncSplitsDataClient()

        assert isinstance(client.w3, AsyncWeb3)
        assert isinstance(client.indexer, GraphQLIndexerClient)
        assert client.indexer.server_url == "https://indexer.test/graphql"
        assert client.reconstructor is not None
        await client.indexer.close()

    def test_rpc_url_and_w3_conflict(self, mock_w3: MagicMock) -> None:
        with pytest.raises(ConfigurationError, match="rpc_url or w3"):
            AsyncSplitsDataClient(rpc_url="https://mainnet.base.org", w3=mock_w3)

    def test_api_key_and_indexer_conflict(self, mock_indexer: MagicMock) -> None:
        with pytest.raises(ConfigurationError, match="api_key or indexer"):
            AsyncSplitsDataClient(api_key="key", indexer=mock_indexer)

    def test_ens_names_need_a_chain(self, mock_indexer: MagicMock) -> None:
        with pytest.raises(ConfigurationError, match="include_ens_names"):
            AsyncSplitsDataClient(indexer=mock_indexer, include_ens_names=True)

    def test_ens_w3_is_enough_for_ens_names(self, mock_indexer: MagicMock, mock_w3: MagicMock) -> None:
        client = AsyncSplitsDataClient(indexer=mock_indexer, include_ens_names=True, ens_w3=mock_w3)

        assert client.ens_w3 is mock_w3
        assert client.reconstructor is None

    @pytest.mark.asyncio
    async def test_context_manager_closes_owned_indexer(self) -> None:
        with patch.object(GraphQLIndexerClient, "close", new_callable=AsyncMock) as close:
            async with AsyncSplitsDataClient(api_key="key"):
                pass

        close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_context_manager_leaves_injected_indexer(self, mock_indexer: MagicMock) -> None:
        mock_indexer.close = AsyncMock()

        async with AsyncSplitsDataClient(indexer=mock_indexer):
            pass

        mock_indexer.close.assert_not_called()


class TestGetMetadata:
    """Tests for account and split metadata lookups."""

    @pytest.mark.asyncio
    async def test_account_metadata_requires_indexer(self, mock_w3: MagicMock) -> None:
        with pytest.raises(MissingCollaboratorError, match="indexer"):
            await AsyncSplitsDataClient(w3=mock_w3).get_account_metadata(1, ALICE)

    @pytest.mark.asyncio
    async def test_account_metadata_not_found(self, mock_indexer: MagicMock) -> None:
        with pytest.raises(NotFoundError):
            await AsyncSplitsDataClient(indexer=mock_indexer).get_account_metadata(1, ALICE)

    @pytest.mark.asyncio
    async def test_account_metadata_returns_any_kind(self, mock_indexer: MagicMock) -> None:
        mock_indexer.load_account.return_value = parse_account(gql_account("Swapper"))

        account = await AsyncSplitsDataClient(indexer=mock_indexer).get_account_metadata(1, ALICE)

        assert account.type == "swapper"

    @pytest.mark.asyncio
    async def test_split_metadata_needs_a_source(self) -> None:
        with pytest.raises(MissingCollaboratorError):
            await AsyncSplitsDataClient().get_split_metadata(1, SPLIT)

    @pytest.mark.asyncio
    async def test_split_metadata_from_indexer(self, mock_indexer: MagicMock, mock_w3: MagicMock) -> None:
        mock_indexer.load_account.return_value = parse_account(gql_split([(ALICE, 60), (BOB, 40)], distributor_fee=7))
        client = AsyncSplitsDataClient(w3=mock_w3, indexer=mock_indexer)
        client.reconstructor = _mock_reconstructor(_config(), "0x")

        config = await client.get_split_metadata(1, SPLIT)

        assert config.distributor_fee == 7
        assert [r.percent_allocation for r in config.recipients] == [60, 40]
        client.reconstructor.reconstruct_split.assert_not_called()

    @pytest.mark.asyncio
    async def test_split_metadata_rejects_other_kinds(self, mock_indexer: MagicMock) -> None:
        mock_indexer.load_account.return_value = parse_account(gql_account("User"))

        with pytest.raises(NotFoundError):
            await AsyncSplitsDataClient(indexer=mock_indexer).get_split_metadata(1, ALICE)

    @pytest.mark.asyncio
    async def test_split_metadata_falls_back_to_logs(self, mock_indexer: MagicMock, mock_w3: MagicMock) -> None:
        client = AsyncSplitsDataClient(w3=mock_w3, indexer=mock_indexer)
        client.reconstructor = _mock_reconstructor(_config(), "0x")

        config = await client.get_split_metadata(8453, SPLIT)

        assert config == _config()
        client.reconstructor.reconstruct_split.assert_awaited_once_with(8453, SPLIT)

    @pytest.mark.asyncio
    async def test_split_metadata_unindexed_without_chain(self, mock_indexer: MagicMock) -> None:
        with pytest.raises(NotFoundError):
            await AsyncSplitsDataClient(indexer=mock_indexer).get_split_metadata(1, SPLIT)

    @pytest.mark.asyncio
    async def test_reconstruct_requires_chain(self, mock_indexer: MagicMock) -> None:
        with pytest.raises(MissingCollaboratorError, match="chain accessor"):
            await AsyncSplitsDataClient(indexer=mock_indexer).reconstruct_split(1, SPLIT)


class TestVerifySplit:
    """Tests for cross-source split verification."""

    @pytest.mark.asyncio
    async def test_consistent_sources(self, mock_indexer: MagicMock, mock_w3: MagicMock) -> None:
        config = _config()
        mock_indexer.load_account.return_value = parse_account(gql_split([(ALICE, 60), (BOB, 40)]))
        client = AsyncSplitsDataClient(w3=mock_w3, indexer=mock_indexer)
        client.reconstructor = _mock_reconstructor(config, hash_split_config(config).upper().replace("0X", "0x"))

        assert await client.verify_split(1, SPLIT) == config

    @pytest.mark.asyncio
    async def test_emitted_order_hash_is_accepted(self, mock_w3: MagicMock) -> None:
        """SplitV2 hashes recipients in the order they were submitted."""
        config = _config([(BOB, 40), (ALICE, 60)])
        emitted = hash_split_v2_ordered([checksum(BOB), checksum(ALICE)], [40, 60], 100, 0)
        client = AsyncSplitsDataClient(w3=mock_w3)
        client.reconstructor = _mock_reconstructor(config, emitted)

        assert await client.verify_split(1, SPLIT) == config

    @pytest.mark.asyncio
    async def test_hash_mismatch(self, mock_w3: MagicMock) -> None:
        config = _config()
        client = AsyncSplitsDataClient(w3=mock_w3)
        client.reconstructor = _mock_reconstructor(config, "0x" + "00" * 32)

        with pytest.raises(InconsistentSourceError) as exc_info:
            await client.verify_split(1, SPLIT)

        assert exc_info.value.expected == "0x" + "00" * 32
        assert exc_info.value.actual == hash_split_config(config)

    @pytest.mark.asyncio
    async def test_indexer_disagrees(self, mock_indexer: MagicMock, mock_w3: MagicMock) -> None:
        config = _config()
        mock_indexer.load_account.return_value = parse_account(gql_split([(ALICE, 50), (BOB, 50)]))
        client = AsyncSplitsDataClient(w3=mock_w3, indexer=mock_indexer)
        client.reconstructor = _mock_reconstructor(config, hash_split_config(config))

        with pytest.raises(InconsistentSourceError, match="disagrees"):
            await client.verify_split(1, SPLIT)

    @pytest.mark.asyncio
    async def test_indexer_scale_does_not_matter(self, mock_indexer: MagicMock, mock_w3: MagicMock) -> None:
        """Indexer ownerships on another scale compare by percent."""
        config = _config()
        mock_indexer.load_account.return_value = parse_account(gql_split([(BOB, 400_000), (ALICE, 600_000)]))
        client = AsyncSplitsDataClient(w3=mock_w3, indexer=mock_indexer)
        client.reconstructor = _mock_reconstructor(config, hash_split_config(config))

        assert await client.verify_split(1, SPLIT) == config

    @pytest.mark.asyncio
    async def test_indexer_reports_other_kind(self, mock_indexer: MagicMock, mock_w3: MagicMock) -> None:
        config = _config()
        mock_indexer.load_account.return_value = parse_account(gql_account("User", address=SPLIT))
        client = AsyncSplitsDataClient(w3=mock_w3, indexer=mock_indexer)
        client.reconstructor = _mock_reconstructor(config, hash_split_config(config))

        with pytest.raises(InconsistentSourceError) as exc_info:
            await client.verify_split(1, SPLIT)

        assert exc_info.value.actual == "user"


class TestEnsNames:
    """Tests for ENS enrichment through the client."""

    @pytest.mark.asyncio
    async def test_split_metadata_with_ens_names(self, mock_indexer: MagicMock, mock_w3: MagicMock) -> None:
        account = parse_account(gql_split([(ALICE, 1)]))
        assert isinstance(account, SplitAccount)
        mock_indexer.load_account.return_value = account
        mock_w3.eth.contract.return_value.functions.getNames.return_value.call = AsyncMock(
            return_value=["alice.eth", ""]
        )

        client = AsyncSplitsDataClient(w3=mock_w3, indexer=mock_indexer, include_ens_names=True)
        config = await client.get_split_metadata(1, SPLIT)

        assert config.recipients[0].ens_name == "alice.eth"
        assert config.controller == checksum(OWNER)
        assert config.controller_ens_name is None
        names_call = mock_w3.eth.contract.return_value.functions.getNames.call_args
        assert names_call.args[0] == [checksum(ALICE), checksum(OWNER)]
