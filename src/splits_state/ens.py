"""Best-effort ENS reverse resolution for split recipients and controllers."""

import logging

from ens.exceptions import InvalidName
from ens.utils import normalize_name
from web3 import AsyncWeb3

from .abi import REVERSE_RECORDS_ABI
from .constants import MAINNET_CHAIN_ID, REVERSE_RECORDS_ADDRESS
from .types import SplitConfig

logger = logging.getLogger(__name__)


async def fetch_ens_names(w3: AsyncWeb3, addresses: list[str]) -> list[str | None]:
    """
    Reverse-resolve addresses through the ReverseRecords helper.

    Only mainnet has the helper deployed; any other chain yields all None.
    Names that fail ENS normalisation are dropped.
    """
    if await w3.eth.chain_id != MAINNET_CHAIN_ID:
        return [None] * len(addresses)

    reverse_records = w3.eth.contract(
        address=AsyncWeb3.to_checksum_address(REVERSE_RECORDS_ADDRESS),
        abi=REVERSE_RECORDS_ABI,
    )
    names = await reverse_records.functions.getNames(
        [AsyncWeb3.to_checksum_address(a) for a in addresses]
    ).call()

    result: list[str | None] = []
    for name in names:
        if not name:
            result.append(None)
            continue
        try:
            normalize_name(name)
        except InvalidName:
            logger.debug("Ignoring ENS name that does not normalise: %r", name)
            result.append(None)
            continue
        result.append(name)
    return result


async def add_ens_names(w3: AsyncWeb3, config: SplitConfig) -> SplitConfig:
    """
    Return a copy of `config` with ENS names on recipients and controller.

    Resolution failures are logged and leave the config unchanged.
    """
    addresses = [r.address for r in config.recipients]
    if config.controller:
        addresses.append(config.controller)

    try:
        names = await fetch_ens_names(w3, addresses)
    except Exception as e:
        logger.warning("ENS lookup failed for split %s: %s", config.address, e)
        return config

    recipients = [
        r.model_copy(update={"ens_name": name}) if name else r
        for r, name in zip(config.recipients, names, strict=False)
    ]
    update: dict = {"recipients": recipients}
    if config.controller and names[-1]:
        update["controller_ens_name"] = names[-1]
    return config.model_copy(update=update)
