"""Type definitions for splits-state."""

from typing import Literal

from pydantic import BaseModel, Field

from .constants import PERCENTAGE_SCALE


class Recipient(BaseModel):
    """
    A recipient with a human-readable percentage.

    Example:
        Recipient(address="0xAlice...", percent_allocation=7.35)  # 73_500 scaled
    """

    address: str
    percent_allocation: float

    model_config = {"frozen": True}


class SplitRecipient(BaseModel):
    """
    A recipient as stored by the protocol.

    `allocation` is the on-chain integer: a scaled percent for legacy splits,
    a share of `total_allocation` for SplitV2.
    """

    address: str
    allocation: int = Field(ge=0)
    percent_allocation: float
    ens_name: str | None = None

    model_config = {"frozen": True}


SplitType = Literal["split", "splitV2"]
ProtocolVersion = Literal["v1", "v2"]


class SplitConfig(BaseModel):
    """Configuration of a split, from the indexer or reconstructed from logs."""

    address: str
    type: SplitType = "split"
    recipients: list[SplitRecipient]
    distributor_fee: int = Field(ge=0)
    total_allocation: int = PERCENTAGE_SCALE
    controller: str | None = None
    controller_ens_name: str | None = None
    created_block: int | None = None
    distributions_paused: bool = False

    model_config = {"frozen": True}

    @property
    def protocol_version(self) -> ProtocolVersion:
        return "v2" if self.type == "splitV2" else "v1"

    @property
    def distributor_fee_percent(self) -> float:
        return self.distributor_fee * 100 / PERCENTAGE_SCALE


EventType = Literal["created", "updated"]


class EventRecord(BaseModel):
    """A decoded SplitCreated / SplitUpdated log."""

    block_number: int
    log_index: int
    type: EventType
    recipients: list[str]
    allocations: list[int]
    total_allocation: int
    distributor_fee: int
    owner: str | None = None

    model_config = {"frozen": True}


class TokenData(BaseModel):
    """Token metadata."""

    address: str
    symbol: str
    decimals: int = Field(ge=0, le=255)

    model_config = {"frozen": True}


class TokenBalance(BaseModel):
    """A formatted balance of one token."""

    raw_amount: int = Field(ge=0)
    formatted_amount: str
    symbol: str
    decimals: int

    model_config = {"frozen": True}


FormattedTokenBalances = dict[str, TokenBalance]


class AccountBalances(BaseModel):
    """
    Balance sheet for one account.

    active_balances is None when active balances were not requested.
    """

    withdrawn: FormattedTokenBalances
    distributed: FormattedTokenBalances
    active_balances: FormattedTokenBalances | None = None

    model_config = {"frozen": True}
