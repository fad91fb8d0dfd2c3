from unittest.mock import MagicMock

import pytest
from dotenv import load_dotenv

from app.liquidation.config_loader import BotConfig, load_bot_config
from app.liquidation.models import LiquidationCandidate, ReserveInfo

TEST_NETWORK = "localhost"
TEST_LIQUIDATOR_EOA = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"

STABLE_ADDRESS = "0xDc64a140Aa3E981100a9becA4E685f962f0cF6C9"
USDC_ADDRESS = "0x1111111111111111111111111111111111111111"
WETH_ADDRESS = "0x2222222222222222222222222222222222222222"
SFRXETH_ADDRESS = "0x3333333333333333333333333333333333333333"
TEST_USER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def config(monkeypatch, tmp_path) -> BotConfig:
    load_dotenv(dotenv_path=".env.example")
    monkeypatch.setenv("LIQUIDATOR_EOA", TEST_LIQUIDATOR_EOA)
    monkeypatch.setenv("LIQUIDATOR_PRIVATE_KEY", TEST_PRIVATE_KEY)
    monkeypatch.setenv("NOTIFICATION_URL", "")
    bot_config = load_bot_config(TEST_NETWORK)
    bot_config.STATE_DIR_PATH = str(tmp_path / "state" / TEST_NETWORK)
    bot_config.USER_STATE_DIR_PATH = str(tmp_path / "state" / TEST_NETWORK / "user-state")
    return bot_config


def make_reserve(
    address: str,
    symbol: str,
    decimals: int = 18,
    price_usd: int = 10**8,
    liquidation_bonus_bps: int = 10500,
    usage_as_collateral_enabled: bool = True,
    borrowing_enabled: bool = True,
) -> ReserveInfo:
    return ReserveInfo(
        address=address,
        symbol=symbol,
        decimals=decimals,
        price_usd=price_usd,
        price_decimals=8,
        liquidation_bonus_bps=liquidation_bonus_bps,
        usage_as_collateral_enabled=usage_as_collateral_enabled,
        borrowing_enabled=borrowing_enabled,
    )


@pytest.fixture()
def weth_reserve() -> ReserveInfo:
    return make_reserve(WETH_ADDRESS, "WETH", decimals=18, price_usd=85_000_000)


@pytest.fixture()
def usdc_reserve() -> ReserveInfo:
    return make_reserve(USDC_ADDRESS, "USDC", decimals=6, price_usd=10**8)


@pytest.fixture()
def stable_reserve() -> ReserveInfo:
    return make_reserve(STABLE_ADDRESS, "dUSD", decimals=18, price_usd=10**8)


@pytest.fixture()
def candidate(weth_reserve, usdc_reserve) -> LiquidationCandidate:
    return LiquidationCandidate(
        user_address=TEST_USER,
        health_factor=903 * 10**15,
        collateral_reserve=weth_reserve,
        debt_reserve=usdc_reserve,
        to_liquidate_amount=800 * 10**6,
    )


@pytest.fixture()
def mock_ledger() -> MagicMock:
    ledger = MagicMock()
    ledger.is_unstake_token.return_value = False
    ledger.get_close_factor_threshold.return_value = 95 * 10**16
    return ledger
