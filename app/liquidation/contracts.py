"""
Contract instance creation utilities.
"""

import functools
import json
from typing import Any, Dict, List

from web3 import Web3
from web3.contract import Contract

from .config_loader import BotConfig


@functools.lru_cache(maxsize=None)
def load_abi(abi_path: str) -> List[Dict[str, Any]]:
    """Load the `abi` list from a JSON artifact file."""
    with open(abi_path, "r", encoding="utf-8") as file:
        interface = json.load(file)
    return interface["abi"]


def create_contract_instance(address: str, abi_key: str, config: BotConfig) -> Contract:
    """
    Create and return a Web3 contract instance.

    Args:
        address: The address of the contract.
        abi_key: Config key holding the ABI JSON path.
        config: Network configuration containing the Web3 instance.

    Returns:
        Web3 contract instance.
    """
    abi = load_abi(config.abi_path(abi_key))

    return config.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)
