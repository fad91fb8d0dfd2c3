"""
Config Loader module - network config for the liquidation bot
"""

import os
from decimal import Decimal
from typing import Any, Dict, List, Optional

import yaml
from web3 import Web3

from .exceptions import ConfigError

APP_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class Web3Singleton:
    """
    Singleton class to manage w3 object creation per RPC URL
    """

    _instances = {}

    @staticmethod
    def get_instance(rpc_url: Optional[str] = None):
        """
        Set up a Web3 instance using the RPC URL from environment variables or passed parameter.
        Maintains separate instances per unique RPC URL.
        """

        if rpc_url not in Web3Singleton._instances:
            Web3Singleton._instances[rpc_url] = Web3(Web3.HTTPProvider(rpc_url))

        return Web3Singleton._instances[rpc_url]


def setup_w3(rpc_url: Optional[str] = None) -> Web3:
    """
    Get the Web3 instance from the singleton class

    Args:
        rpc_url (Optional[str]): Optional RPC URL to override environment variable

    Returns:
        Web3: Web3 instance.
    """
    return Web3Singleton.get_instance(rpc_url)


class BotConfig:
    """
    Network config object to access config variables.

    Lookups fall through network settings, then contracts, then
    liquidator bot settings, then global settings.
    """

    required_env_vars = [
        "LIQUIDATOR_EOA",
        "LIQUIDATOR_PRIVATE_KEY",
        # "NOTIFICATION_URL",  # Optional
    ]

    required_settings = [
        "POOL_ADDRESS",
        "POOL_DATA_PROVIDER_ADDRESS",
        "ORACLE_ADDRESS",
        "LIQUIDATION_LOGIC_ADDRESS",
        "FLASH_MINT_STABLE_ADDRESS",
        "HEALTH_FACTOR_THRESHOLD",
        "HEALTH_FACTOR_BATCH_SIZE",
        "RESERVE_BATCH_SIZE",
        "PROFITABLE_THRESHOLD_IN_USD",
        "LIQUIDATING_BATCH_SIZE",
        "NOT_PROFITABLE_IGNORE_TTL",
        "ERROR_IGNORE_TTL",
        "MAX_PRIMARY_FAILURES",
        "SCAN_INTERVAL",
    ]

    def __init__(self, network: str, global_config: Dict[str, Any], network_config: Dict[str, Any]):
        self.NETWORK = network
        self.NETWORK_NAME = network_config.get("name", network)
        self._global = global_config
        self._network = network_config

        # validate env
        self.validate()
        self.validate_settings()

        self.LIQUIDATOR_EOA = Web3.to_checksum_address(os.environ["LIQUIDATOR_EOA"])
        self.LIQUIDATOR_EOA_PRIVATE_KEY = os.environ["LIQUIDATOR_PRIVATE_KEY"]
        self.NOTIFICATION_URL = os.environ.get("NOTIFICATION_URL", "")

        slack_ids_raw = os.environ.get("SLACK_MENTION_IDS", "")
        self.SLACK_MENTION_IDS = [s.strip() for s in slack_ids_raw.split(",") if s.strip()]

        rpc_name = self._network["RPC_NAME"]
        self.RPC_URL = os.environ.get(rpc_name, self._network.get("DEFAULT_RPC_URL", ""))
        if not self.RPC_URL:
            raise EnvironmentError(f"Missing RPC URL for {self.NETWORK_NAME}. Env var {rpc_name} not found")

        self.w3 = setup_w3(self.RPC_URL)

        self.LOGS_PATH = f"{self._global['LOGS_PATH']}/{self.NETWORK_NAME}_liquidation_bot.log"
        self.STATE_DIR_PATH = os.path.join(self._global["STATE_DIR"], self.NETWORK_NAME)
        self.USER_STATE_DIR_PATH = os.path.join(self.STATE_DIR_PATH, self._global["USER_STATE_DIR_NAME"])

    def __getattr__(self, name: str) -> Any:
        """Look up config values in network, then contracts, then liquidator bot, then global config."""
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self._network:
            return self._network[name]
        if name in self._network.get("contracts", {}):
            return self._network["contracts"][name]
        if name in self._network.get("liquidator_bot", {}):
            return self._network["liquidator_bot"][name]
        if name in self._global:
            return self._global[name]
        raise AttributeError(f"Config has no attribute '{name}'")

    def get(self, name: str, default: Any = None) -> Any:
        try:
            return getattr(self, name)
        except AttributeError:
            return default

    def abi_path(self, key: str) -> str:
        """Resolve an ABI path setting relative to the app directory."""
        path = getattr(self, key)
        if os.path.isabs(path):
            return path
        return os.path.join(APP_DIR, path)

    def venue_settings(self, venue: str) -> Dict[str, Any]:
        venues = self._network.get("venues", {})
        if venue not in venues:
            raise ConfigError(f"Venue '{venue}' is not configured for {self.NETWORK_NAME}")
        return venues[venue]

    def liquidator_contracts(self, venue: str) -> Dict[str, str]:
        """Flash mint and flash loan liquidator contract addresses for a venue."""
        settings = self.venue_settings(venue)
        contracts = {
            "flash_mint": settings.get("FLASH_MINT_LIQUIDATOR_ADDRESS", ""),
            "flash_loan": settings.get("FLASH_LOAN_LIQUIDATOR_ADDRESS", ""),
        }
        if not contracts["flash_mint"] and not contracts["flash_loan"]:
            raise ConfigError(f"No liquidator contracts configured for venue '{venue}'")
        return contracts

    @property
    def unstake_tokens(self) -> List[str]:
        return [t.lower() for t in self.get("UNSTAKE_TOKENS", []) or []]

    @property
    def proxy_contract_map(self) -> Dict[str, str]:
        return {k.lower(): v for k, v in (self.get("PROXY_CONTRACT_MAP", {}) or {}).items()}

    @property
    def health_factor_threshold_raw(self) -> int:
        """Health factor threshold as an 18-decimal fixed point integer."""
        return int(Decimal(str(self.HEALTH_FACTOR_THRESHOLD)) * 10**18)

    def validate(self) -> None:
        """
        Validates that all required environment variables are set.
        Raises an error if any are missing.
        """
        missing_keys = [key for key in self.required_env_vars if not os.getenv(key)]
        if missing_keys:
            raise EnvironmentError(f"Missing required environment variables: {', '.join(missing_keys)}")

    def validate_settings(self) -> None:
        """
        Validates that all required addresses and thresholds are configured.
        There is no safe default for any of them.
        """
        missing = [key for key in self.required_settings if self.get(key) in (None, "")]
        if missing:
            raise ConfigError(f"Missing required settings for {self.NETWORK_NAME}: {', '.join(missing)}")

        for key in ("HEALTH_FACTOR_BATCH_SIZE", "RESERVE_BATCH_SIZE", "LIQUIDATING_BATCH_SIZE"):
            if int(self.get(key)) < 1:
                raise ConfigError(f"Invalid {key}: {self.get(key)}")

        primary = self.get("PRIMARY_VENUE", "odos")
        secondary = self.get("SECONDARY_VENUE", "curve")
        for venue in (primary, secondary):
            self.venue_settings(venue)


def _expand_env(value: Any) -> Any:
    """Substitute ${VAR} placeholders from the environment. Unset variables become empty strings."""
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    if isinstance(value, str) and "${" in value:
        expanded = os.path.expandvars(value)
        return "" if "${" in expanded else expanded
    return value


def load_bot_config(network: Optional[str] = None, config_path: Optional[str] = None) -> BotConfig:
    network = network or os.environ.get("NETWORK", "localhost")
    config_path = config_path or os.path.join(APP_DIR, "config.yaml")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise FileNotFoundError(f"Config file not found at {config_path}") from exc
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML file: {e}") from e

    if network not in config["networks"]:
        raise ConfigError(f"No configuration found for network {network}")

    return BotConfig(
        network=network,
        global_config=_expand_env(config["global"]),
        network_config=_expand_env(config["networks"][network]),
    )
