"""
Indexer account kinds.

The Splits GraphQL API returns one of several account shapes, distinguished by
`__typename`. They are parsed into a tagged union keyed on `type`; every kind
carries its raw per-token ledgers, and split kinds carry their configuration.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field
from web3 import Web3

from ._exceptions import IndexerError
from .constants import ADDRESS_ZERO
from .hashing import hash_split
from .numbers import to_percent
from .types import SplitConfig, SplitRecipient


class LedgerEntry(BaseModel):
    """Raw amount held for one token in one ledger, before the stipend floor."""

    amount: int = Field(ge=0)
    symbol: str | None = None
    decimals: int | None = None

    model_config = {"frozen": True}


# Checksum token address -> entry
Ledger = dict[str, LedgerEntry]


class _AccountBase(BaseModel):
    address: str
    chain_id: int
    distributions: Ledger = Field(default_factory=dict)
    withdrawals: Ledger = Field(default_factory=dict)
    internal_balances: Ledger = Field(default_factory=dict)
    warehouse_balances: Ledger = Field(default_factory=dict)
    latest_block: int | None = None

    model_config = {"frozen": True}


class SplitAccount(_AccountBase):
    """A legacy SplitMain split or a SplitV2 wallet."""

    type: Literal["split", "splitV2"]
    recipients: list[SplitRecipient]
    distributor_fee: int
    total_allocation: int
    controller: str | None = None
    distributions_paused: bool = False
    created_block: int | None = None
    hash: str

    def to_split_config(self) -> SplitConfig:
        return SplitConfig(
            address=self.address,
            type=self.type,
            recipients=self.recipients,
            distributor_fee=self.distributor_fee,
            total_allocation=self.total_allocation,
            controller=self.controller,
            created_block=self.created_block,
            distributions_paused=self.distributions_paused,
        )


class WaterfallAccount(_AccountBase):
    type: Literal["waterfall"]


class LiquidSplitAccount(_AccountBase):
    type: Literal["liquidSplit"]


class SwapperAccount(_AccountBase):
    type: Literal["swapper"]


class VestingAccount(_AccountBase):
    type: Literal["vesting"]


class PassThroughWalletAccount(_AccountBase):
    type: Literal["passThroughWallet"]


class UserAccount(_AccountBase):
    type: Literal["user"]


Account = Annotated[
    SplitAccount
    | WaterfallAccount
    | LiquidSplitAccount
    | SwapperAccount
    | VestingAccount
    | PassThroughWalletAccount
    | UserAccount,
    Field(discriminator="type"),
]

AccountType = Literal[
    "split", "splitV2", "waterfall", "liquidSplit", "swapper", "vesting", "passThroughWallet", "user"
]

# GraphQL __typename -> account type. "Split" is refined by the record's own `type` field.
TYPENAME_TO_ACCOUNT_TYPE: dict[str, AccountType] = {
    "Split": "split",
    "WaterfallModule": "waterfall",
    "LiquidSplit": "liquidSplit",
    "Swapper": "swapper",
    "VestingModule": "vesting",
    "PassThroughWallet": "passThroughWallet",
    "User": "user",
}

_ACCOUNT_MODELS: dict[str, type[_AccountBase]] = {
    "split": SplitAccount,
    "splitV2": SplitAccount,
    "waterfall": WaterfallAccount,
    "liquidSplit": LiquidSplitAccount,
    "swapper": SwapperAccount,
    "vesting": VestingAccount,
    "passThroughWallet": PassThroughWalletAccount,
    "user": UserAccount,
}


def parse_ledger(entries: list[dict[str, Any]] | None) -> Ledger:
    """
    Parse indexer token balances into a ledger keyed by checksum token address.

    Balance ids have the form "<account>-<token>" (sometimes with extra
    segments in front); the token is always the last segment. Amounts for the
    same token are summed.
    """
    ledger: Ledger = {}
    for entry in entries or []:
        token = Web3.to_checksum_address(entry["id"].split("-")[-1])
        amount = int(entry["amount"])
        token_info = entry.get("token") or {}
        decimals = token_info.get("decimals")

        previous = ledger.get(token)
        ledger[token] = LedgerEntry(
            amount=amount + (previous.amount if previous else 0),
            symbol=token_info.get("symbol") or (previous.symbol if previous else None),
            decimals=int(decimals) if decimals is not None else (previous.decimals if previous else None),
        )
    return ledger


def _parse_recipient(raw: dict[str, Any], total: int) -> SplitRecipient:
    # Recipient ids are "<split>-<account>"
    account = Web3.to_checksum_address(raw["id"].split("-")[1])
    ownership = int(raw["ownership"])
    return SplitRecipient(
        address=account,
        allocation=ownership,
        percent_allocation=to_percent(ownership, total) if total else 0.0,
    )


def is_zero_address(address: str | None) -> bool:
    return address is None or address.lower() == ADDRESS_ZERO


def _parse_controller(raw: dict[str, Any] | None) -> str | None:
    if not raw or is_zero_address(raw["id"]):
        return None
    return Web3.to_checksum_address(raw["id"])


def parse_account(data: dict[str, Any]) -> Account:
    """
    Parse an indexer account record into its tagged account kind.

    Raises:
        IndexerError: If the typename is unknown or a split record is malformed
    """
    typename = data.get("__typename")
    account_type = TYPENAME_TO_ACCOUNT_TYPE.get(typename or "")
    if account_type is None:
        raise IndexerError(f"Unknown account typename: {typename!r}")
    if account_type == "split":
        account_type = data.get("type") or "split"

    model = _ACCOUNT_MODELS.get(account_type)
    if model is None:
        raise IndexerError(f"Unknown split type: {account_type!r}")

    fields: dict[str, Any] = {
        "type": account_type,
        "address": Web3.to_checksum_address(data["id"]),
        "chain_id": int(data["chainId"]),
        "distributions": parse_ledger(data.get("distributions")),
        "withdrawals": parse_ledger(data.get("withdrawals")),
        "internal_balances": parse_ledger(data.get("internalBalances")),
        "warehouse_balances": parse_ledger(data.get("warehouseBalances")),
        "latest_block": data.get("latestBlock"),
    }

    if model is SplitAccount:
        try:
            raw_recipients = data["recipients"]
            distributor_fee = int(data["distributorFee"])
        except (KeyError, TypeError, ValueError) as e:
            raise IndexerError(f"Malformed split record for {data['id']}: {e}") from e

        total = sum(int(r["ownership"]) for r in raw_recipients)
        recipients = [_parse_recipient(r, total) for r in raw_recipients]
        version = "v2" if account_type == "splitV2" else "v1"
        fields.update(
            recipients=recipients,
            distributor_fee=distributor_fee,
            total_allocation=total,
            controller=_parse_controller(data.get("controller")),
            distributions_paused=bool(data.get("distributionsPaused")),
            created_block=data.get("createdBlock"),
            hash=hash_split(
                recipients,
                distributor_fee,
                version,
                total_allocation=total if version == "v2" else None,
            ),
        )

    return model(**fields)
