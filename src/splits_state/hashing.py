"""Deterministic recipient ordering and split hashing."""

from eth_abi import encode
from web3 import Web3

from .abi import SPLIT_V2_PARAMS_TYPE
from .types import ProtocolVersion, SplitConfig, SplitRecipient


def canonical_order(recipients: list[SplitRecipient]) -> list[SplitRecipient]:
    """
    Sort recipients into the order the contracts require.

    Ascending on the lowercase hex address, so the result does not depend on
    input order or checksum casing.
    """
    return sorted(recipients, key=lambda r: r.address.lower())


def get_sorted_addresses_and_allocations(
    recipients: list[SplitRecipient],
) -> tuple[list[str], list[int]]:
    """Checksummed addresses and their allocations, in canonical order."""
    ordered = canonical_order(recipients)
    addresses = [Web3.to_checksum_address(r.address) for r in ordered]
    allocations = [r.allocation for r in ordered]
    return addresses, allocations


def hash_split_v2_ordered(
    addresses: list[str],
    allocations: list[int],
    total_allocation: int,
    distribution_incentive: int,
) -> str:
    """
    SplitV2 hash of recipients exactly as given, without reordering.

    SplitV2 stores keccak256(abi.encode(split)) of the struct it was called
    with, so a split created with unsorted recipients only matches this form.
    """
    if not 0 <= distribution_incentive < 2**16:
        raise ValueError(f"Distribution incentive {distribution_incentive} does not fit in uint16")
    encoded = encode([SPLIT_V2_PARAMS_TYPE], [(addresses, allocations, total_allocation, distribution_incentive)])
    return Web3.to_hex(Web3.keccak(encoded))


def hash_split(
    recipients: list[SplitRecipient],
    distributor_fee: int,
    protocol_version: ProtocolVersion = "v1",
    total_allocation: int | None = None,
) -> str:
    """
    Compute the hash a split contract stores for its configuration.

    Args:
        recipients: Recipients in any order
        distributor_fee: Scaled fee (v1) or distribution incentive (v2)
        protocol_version: "v1" for SplitMain, "v2" for SplitV2
        total_allocation: SplitV2 total, defaults to the sum of allocations

    Returns:
        0x-prefixed keccak256 digest

    Raises:
        ValueError: If the version is unknown or the fee does not fit its width
    """
    addresses, allocations = get_sorted_addresses_and_allocations(recipients)

    if protocol_version == "v1":
        # SplitMain: keccak256(abi.encodePacked(accounts, percentAllocations, distributorFee))
        digest = Web3.solidity_keccak(
            ["address[]", "uint32[]", "uint32"],
            [addresses, allocations, distributor_fee],
        )
        return Web3.to_hex(digest)

    if protocol_version == "v2":
        total = sum(allocations) if total_allocation is None else total_allocation
        return hash_split_v2_ordered(addresses, allocations, total, distributor_fee)

    raise ValueError(f"Unknown protocol version: {protocol_version}")


def hash_split_config(config: SplitConfig) -> str:
    """Hash a SplitConfig using the encoding implied by its type."""
    return hash_split(
        config.recipients,
        config.distributor_fee,
        config.protocol_version,
        config.total_allocation if config.type == "splitV2" else None,
    )
