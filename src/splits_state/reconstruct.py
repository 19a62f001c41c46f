"""
Split state reconstruction from event logs.

When the indexer is unavailable or distrusted, a SplitV2 configuration can be
rebuilt from chain history alone: the factory's SplitCreated log carries the
initial configuration and every SplitUpdated log emitted by the split replaces
it wholesale. The controller and paused flag are not replayed; they are read
live from the split.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from eth_abi import decode
from hexbytes import HexBytes
from web3 import AsyncWeb3

from ._exceptions import NotFoundError, UnsupportedChainError
from .abi import (
    SPLIT_CREATED_TOPIC,
    SPLIT_CREATED_UNSALTED_TOPIC,
    SPLIT_UPDATED_TOPIC,
    SPLIT_V2_ABI,
    SPLIT_V2_PARAMS_TYPE,
)
from .accounts import is_zero_address
from .constants import get_split_v2_deployment
from .numbers import to_percent
from .types import EventRecord, SplitConfig, SplitRecipient

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_RANGE = 10_000
DEFAULT_BATCH_SIZE = 20

LogEntry = Mapping[str, Any]


def get_block_ranges(start_block: int, end_block: int, block_range: int) -> list[tuple[int, int]]:
    """
    Split [start_block, end_block] into inclusive windows of at most block_range blocks.

    Example:
        >>> get_block_ranges(0, 25, 10)
        [(0, 9), (10, 19), (20, 25)]
    """
    if block_range <= 0:
        raise ValueError("block_range must be positive")
    return [
        (from_block, min(from_block + block_range - 1, end_block))
        for from_block in range(start_block, end_block + 1, block_range)
    ]


def address_topic(address: str) -> str:
    """Left-pad an address to a 32-byte log topic."""
    return "0x" + address.lower().removeprefix("0x").rjust(64, "0")


def _split_params(params: tuple) -> dict[str, Any]:
    recipients, allocations, total_allocation, distribution_incentive = params
    return {
        "recipients": [AsyncWeb3.to_checksum_address(r) for r in recipients],
        "allocations": list(allocations),
        "total_allocation": total_allocation,
        "distributor_fee": distribution_incentive,
    }


def decode_split_created_log(log: LogEntry) -> EventRecord:
    """
    Decode a SplitV2 factory SplitCreated log.

    Both the deterministic (salted) and the plain variant are accepted.
    """
    topic0 = HexBytes(log["topics"][0])
    data = HexBytes(log["data"])
    if topic0 == SPLIT_CREATED_TOPIC:
        params, owner, _creator, _salt = decode([SPLIT_V2_PARAMS_TYPE, "address", "address", "bytes32"], data)
    elif topic0 == SPLIT_CREATED_UNSALTED_TOPIC:
        params, owner, _creator = decode([SPLIT_V2_PARAMS_TYPE, "address", "address"], data)
    else:
        raise ValueError(f"Not a SplitCreated log: topic {topic0.hex()}")

    return EventRecord(
        block_number=log["blockNumber"],
        log_index=log["logIndex"],
        type="created",
        owner=None if is_zero_address(owner) else AsyncWeb3.to_checksum_address(owner),
        **_split_params(params),
    )


def decode_split_updated_log(log: LogEntry) -> EventRecord:
    """Decode a SplitUpdated log emitted by a SplitV2 wallet."""
    if HexBytes(log["topics"][0]) != SPLIT_UPDATED_TOPIC:
        raise ValueError("Not a SplitUpdated log")
    (params,) = decode([SPLIT_V2_PARAMS_TYPE], HexBytes(log["data"]))
    return EventRecord(
        block_number=log["blockNumber"],
        log_index=log["logIndex"],
        type="updated",
        **_split_params(params),
    )


def select_latest_event(created: EventRecord, updates: list[EventRecord]) -> EventRecord:
    """
    Pick the event whose configuration is current.

    The update with the highest (block_number, log_index) wins; the creation
    event applies only when the split was never updated.
    """
    if not updates:
        return created
    return max(updates, key=lambda e: (e.block_number, e.log_index))


def config_from_event(
    split_address: str,
    event: EventRecord,
    created_block: int,
    controller: str | None,
    paused: bool,
) -> SplitConfig:
    """Build a SplitConfig from a decoded event, keeping the emitted recipient order."""
    total = event.total_allocation
    recipients = [
        SplitRecipient(
            address=address,
            allocation=allocation,
            percent_allocation=to_percent(allocation, total) if total else 0.0,
        )
        for address, allocation in zip(event.recipients, event.allocations, strict=True)
    ]
    return SplitConfig(
        address=AsyncWeb3.to_checksum_address(split_address),
        type="splitV2",
        recipients=recipients,
        distributor_fee=event.distributor_fee,
        total_allocation=total,
        controller=controller,
        created_block=created_block,
        distributions_paused=paused,
    )


class SplitReconstructor:
    """
    Rebuilds SplitV2 configurations from factory and split event logs.

    Example:
        >>> reconstructor = SplitReconstructor(w3)
        >>> config = await reconstructor.reconstruct_split(8453, "0xSplit...")
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        block_range: int = DEFAULT_BLOCK_RANGE,
        batch_size: int = DEFAULT_BATCH_SIZE,
        deployments: Mapping[int, Mapping[str, Any]] | None = None,
    ) -> None:
        """
        Initialize the reconstructor.

        Args:
            w3: AsyncWeb3 instance for the chain being queried
            block_range: Blocks per eth_getLogs request
            batch_size: getLogs requests issued concurrently per batch
            deployments: Override of SPLIT_V2_DEPLOYMENTS (chain -> start_block, factories)
        """
        self.w3 = w3
        self.block_range = block_range
        self.batch_size = batch_size
        self.deployments = deployments

    def _get_deployment(self, chain_id: int) -> Mapping[str, Any]:
        if self.deployments is None:
            return get_split_v2_deployment(chain_id)
        deployment = self.deployments.get(chain_id)
        if not deployment:
            raise UnsupportedChainError(chain_id, "split reconstruction")
        return deployment

    async def _scan(
        self,
        params: dict[str, Any],
        start_block: int,
        end_block: int,
        decoder: Callable[[LogEntry], EventRecord],
        stop: Callable[[list[EventRecord]], bool] | None = None,
    ) -> list[EventRecord]:
        """Fetch logs over [start_block, end_block] in concurrent batches, oldest first."""
        ranges = get_block_ranges(start_block, end_block, self.block_range)
        events: list[EventRecord] = []

        for i in range(0, len(ranges), self.batch_size):
            batch = ranges[i : i + self.batch_size]
            requests: list[Awaitable[list[LogEntry]]] = [
                self.w3.eth.get_logs({**params, "fromBlock": from_block, "toBlock": to_block})
                for from_block, to_block in batch
            ]
            results = await asyncio.gather(*requests)
            events.extend(decoder(log) for logs in results for log in logs)
            logger.debug("Scanned blocks %d-%d, %d events so far", batch[0][0], batch[-1][1], len(events))
            if stop is not None and stop(events):
                break

        return events

    async def find_created_event(
        self,
        chain_id: int,
        split_address: str,
        end_block: int | None = None,
    ) -> EventRecord:
        """
        Locate the SplitCreated log for a split.

        Raises:
            UnsupportedChainError: If the chain has no SplitV2 deployment
            NotFoundError: If no factory created this split
        """
        deployment = self._get_deployment(chain_id)
        if end_block is None:
            end_block = await self.w3.eth.block_number

        params = {
            "address": [AsyncWeb3.to_checksum_address(f) for f in deployment["factories"]],
            "topics": [
                [SPLIT_CREATED_TOPIC.to_0x_hex(), SPLIT_CREATED_UNSALTED_TOPIC.to_0x_hex()],
                address_topic(split_address),
            ],
        }
        events = await self._scan(
            params,
            int(deployment["start_block"]),
            end_block,
            decode_split_created_log,
            stop=bool,
        )
        if not events:
            raise NotFoundError("split", split_address, chain_id)
        return min(events, key=lambda e: (e.block_number, e.log_index))

    async def fetch_update_events(self, split_address: str, from_block: int, to_block: int) -> list[EventRecord]:
        """Fetch every SplitUpdated log emitted by a split in a block range."""
        params = {
            "address": AsyncWeb3.to_checksum_address(split_address),
            "topics": [SPLIT_UPDATED_TOPIC.to_0x_hex()],
        }
        return await self._scan(params, from_block, to_block, decode_split_updated_log)

    async def reconstruct_split(self, chain_id: int, split_address: str) -> SplitConfig:
        """
        Rebuild the current configuration of a SplitV2 split from its logs.

        Args:
            chain_id: Chain the split lives on
            split_address: Split address

        Returns:
            SplitConfig with type "splitV2"

        Raises:
            UnsupportedChainError: If the chain has no SplitV2 deployment
            NotFoundError: If the split was not created by a known factory
        """
        self._get_deployment(chain_id)
        end_block = await self.w3.eth.block_number

        created = await self.find_created_event(chain_id, split_address, end_block)
        updates = await self.fetch_update_events(split_address, created.block_number, end_block)
        latest = select_latest_event(created, updates)
        logger.debug(
            "Split %s: created at block %d, %d updates, using %s event at block %d",
            split_address,
            created.block_number,
            len(updates),
            latest.type,
            latest.block_number,
        )

        contract = self.w3.eth.contract(address=AsyncWeb3.to_checksum_address(split_address), abi=SPLIT_V2_ABI)
        owner, paused = await asyncio.gather(
            contract.functions.owner().call(),
            contract.functions.paused().call(),
        )
        controller = None if is_zero_address(owner) else AsyncWeb3.to_checksum_address(owner)

        return config_from_event(split_address, latest, created.block_number, controller, paused)

    async def get_split_hash(self, split_address: str) -> str:
        """Read the hash a SplitV2 wallet stores for its current configuration."""
        contract = self.w3.eth.contract(address=AsyncWeb3.to_checksum_address(split_address), abi=SPLIT_V2_ABI)
        digest = await contract.functions.splitHash().call()
        return HexBytes(digest).to_0x_hex()
