"""
Test the config_loader module.
"""

import pytest

from app.liquidation.config_loader import _expand_env, load_bot_config
from app.liquidation.exceptions import ConfigError

from conftest import TEST_LIQUIDATOR_EOA


def test_config_loaded_ok(config):
    """
    Test the load_bot_config function.
    """
    assert config
    assert config.NETWORK == "localhost"
    assert config.CHAIN_ID == 31337
    assert config.LIQUIDATOR_EOA == TEST_LIQUIDATOR_EOA


def test_config_loader_validates(config):
    """
    Test the validate function.
    """
    config.validate()
    config.validate_settings()


def test_lookup_falls_through_sections(config):
    # network
    assert config.PRIMARY_VENUE == "uniswap_v3"
    # contracts
    assert config.POOL_ADDRESS == "0x5FbDB2315678afecb367f032d93F642f64180aa3"
    # liquidator bot settings
    assert config.LIQUIDATING_BATCH_SIZE == 200
    # global
    assert config.ODOS_API_URL == "https://api.odos.xyz"
    assert config.get("NOT_A_SETTING", "default") == "default"
    with pytest.raises(AttributeError):
        config.NOT_A_SETTING


def test_health_factor_threshold_raw(config):
    assert config.health_factor_threshold_raw == 10**18


def test_abi_path_is_absolute(config):
    assert config.abi_path("POOL_ABI_PATH").endswith("abis/Pool.json")


def test_liquidator_contracts(config):
    contracts = config.liquidator_contracts("curve")
    assert contracts["flash_mint"] == "0x2279B7A0a67DB372996a5FaB50D91eAA73d2eBe6"
    assert contracts["flash_loan"] == "0x8A791620dd6260079BF849Dc5567aDC3F2FdC318"

    with pytest.raises(ConfigError):
        config.venue_settings("odos")


def test_missing_env_var(monkeypatch):
    monkeypatch.setenv("LIQUIDATOR_EOA", TEST_LIQUIDATOR_EOA)
    monkeypatch.delenv("LIQUIDATOR_PRIVATE_KEY", raising=False)

    with pytest.raises(EnvironmentError):
        load_bot_config("localhost")


def test_unknown_network(config):
    with pytest.raises(ConfigError):
        load_bot_config("not_a_network")


def test_unresolved_addresses_are_missing(config, monkeypatch):
    monkeypatch.setenv("FRAXTAL_MAINNET_RPC_URL", "http://127.0.0.1:8545")
    monkeypatch.delenv("FRAXTAL_MAINNET_POOL_ADDRESS", raising=False)

    with pytest.raises(ConfigError, match="POOL_ADDRESS"):
        load_bot_config("fraxtal_mainnet")


def test_expand_env(monkeypatch):
    monkeypatch.setenv("TEST_POOL", "0xabc")
    monkeypatch.delenv("TEST_MISSING", raising=False)

    assert _expand_env({"a": ["${TEST_POOL}", 1], "b": "${TEST_MISSING}"}) == {"a": ["0xabc", 1], "b": ""}
