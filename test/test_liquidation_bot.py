"""
Tests for one liquidation cycle and the per-candidate outcomes.
"""

from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest

from app.liquidation.exceptions import (
    ExecutionFailure,
    NoRouteAvailable,
    NotProfitableLiquidation,
    TransientReadFailure,
    ZeroDebtToLiquidate,
)
from app.liquidation.ignore_memory import ShortTermIgnoreMemory
from app.liquidation.liquidation_bot import LiquidationBot, Outcome
from app.liquidation.models import FlashMode, LiquidationCandidate, LiquidationResult, Venue
from app.liquidation.state_store import UserStateStore

from conftest import TEST_LIQUIDATOR_EOA, TEST_USER

RECEIVER = "0x8A791620dd6260079BF849Dc5567aDC3F2FdC318"
HEALTH_FACTOR = 903 * 10**15


@pytest.fixture()
def notifications():
    with patch("app.liquidation.liquidation_bot.post_liquidation_success_notification") as success, patch(
        "app.liquidation.liquidation_bot.post_execution_error_notification"
    ) as execution_error, patch("app.liquidation.liquidation_bot.post_error_notification") as error:
        yield {"success": success, "execution_error": execution_error, "error": error}


@pytest.fixture()
def resolver():
    return MagicMock()


@pytest.fixture()
def bot(config, mock_ledger, candidate, resolver, tmp_path, notifications):
    scanner = MagicMock()
    scanner.build_candidate.return_value = candidate

    executor = MagicMock()
    executor.receiver_for.return_value = RECEIVER
    executor.execute.return_value = LiquidationResult(
        tx_hash="0x" + "ab" * 32,
        seized_collateral_amount=10**18,
        debt_covered=800 * 10**6,
        gas_used=300000,
        flash_mode=FlashMode.FLASH_LOAN,
    )

    liquidation_bot = LiquidationBot(
        config=config,
        ledger=mock_ledger,
        user_directory=MagicMock(),
        scanner=scanner,
        executor=executor,
        state_store=UserStateStore(str(tmp_path / "user-state")),
        not_profitable_memory=ShortTermIgnoreMemory(ttl_seconds=300),
        error_memory=ShortTermIgnoreMemory(ttl_seconds=3600),
        notify=True,
    )
    liquidation_bot._resolvers[Venue.CURVE] = resolver
    return liquidation_bot


def test_successful_liquidation(bot, candidate, resolver, notifications):
    outcome = bot.liquidate_user(TEST_USER, HEALTH_FACTOR, Venue.CURVE)

    assert outcome == Outcome.LIQUIDATED
    context = resolver.resolve.call_args.args[1]
    assert context.liquidator_eoa == TEST_LIQUIDATOR_EOA
    assert context.receiver == RECEIVER
    assert context.is_unstake is False
    bot.executor.execute.assert_called_once_with(candidate, resolver.resolve.return_value, is_unstake=False)
    notifications["success"].assert_called_once()

    record = bot.state_store.load(TEST_USER)
    assert record.success
    assert record.profitable
    assert record.profit_in_usd == 40.0
    assert record.to_liquidate_amount == 800 * 10**6
    assert record.collateral_token == {"address": candidate.collateral_reserve.address, "symbol": "WETH"}
    assert TEST_USER not in bot.not_profitable_memory


def test_profit_uses_collateral_bonus(bot, candidate):
    collateral = replace(candidate.collateral_reserve, liquidation_bonus_bps=11000)
    bot.scanner.build_candidate.return_value = replace(candidate, collateral_reserve=collateral)

    bot.liquidate_user(TEST_USER, HEALTH_FACTOR, Venue.CURVE)

    assert candidate.debt_reserve.liquidation_bonus_bps == 10500
    assert bot.state_store.load(TEST_USER).profit_in_usd == 80.0


def test_unstake_collateral_passed_to_resolver_and_executor(bot, mock_ledger, resolver):
    mock_ledger.is_unstake_token.return_value = True

    bot.liquidate_user(TEST_USER, HEALTH_FACTOR, Venue.CURVE)

    assert resolver.resolve.call_args.args[1].is_unstake is True
    assert bot.executor.execute.call_args.kwargs["is_unstake"] is True


def test_profit_below_threshold(bot, candidate, notifications):
    bot.scanner.build_candidate.return_value = LiquidationCandidate(
        user_address=candidate.user_address,
        health_factor=candidate.health_factor,
        collateral_reserve=candidate.collateral_reserve,
        debt_reserve=candidate.debt_reserve,
        to_liquidate_amount=10 * 10**6,
    )

    outcome = bot.liquidate_user(TEST_USER, HEALTH_FACTOR, Venue.CURVE)

    assert outcome == Outcome.NOT_PROFITABLE
    bot.executor.execute.assert_not_called()
    assert TEST_USER in bot.not_profitable_memory
    record = bot.state_store.load(TEST_USER)
    assert not record.profitable
    assert record.profit_in_usd == 0.5
    assert record.error == "NotProfitableLiquidation"
    notifications["success"].assert_not_called()
    notifications["execution_error"].assert_not_called()


def test_not_profitable_from_scanner(bot):
    bot.scanner.build_candidate.side_effect = NotProfitableLiquidation("no collateral")

    assert bot.liquidate_user(TEST_USER, HEALTH_FACTOR, Venue.CURVE) == Outcome.NOT_PROFITABLE
    assert TEST_USER in bot.not_profitable_memory
    assert bot.state_store.load(TEST_USER).collateral_token is None


def test_not_profitable_from_scanner_keeps_reserves(bot, weth_reserve, usdc_reserve):
    bot.scanner.build_candidate.side_effect = NotProfitableLiquidation(
        "Collateral WETH cannot cover the liquidation bonus for USDC",
        collateral_reserve=weth_reserve,
        debt_reserve=usdc_reserve,
    )

    assert bot.liquidate_user(TEST_USER, HEALTH_FACTOR, Venue.CURVE) == Outcome.NOT_PROFITABLE

    record = bot.state_store.load(TEST_USER)
    assert record.collateral_token == {"address": weth_reserve.address, "symbol": weth_reserve.symbol}
    assert record.debt_token == {"address": usdc_reserve.address, "symbol": usdc_reserve.symbol}
    assert record.error == "NotProfitableLiquidation"


def test_no_route(bot, resolver, notifications):
    resolver.resolve.side_effect = NoRouteAvailable("No defined pools")

    outcome = bot.liquidate_user(TEST_USER, HEALTH_FACTOR, Venue.CURVE)

    assert outcome == Outcome.NO_ROUTE
    assert TEST_USER in bot.not_profitable_memory
    assert TEST_USER not in bot.error_memory
    assert bot.state_store.load(TEST_USER).error == "NoRouteAvailable"
    notifications["execution_error"].assert_not_called()


def test_zero_debt(bot):
    bot.scanner.build_candidate.side_effect = ZeroDebtToLiquidate("nothing to repay")

    assert bot.liquidate_user(TEST_USER, HEALTH_FACTOR, Venue.CURVE) == Outcome.ZERO_DEBT
    assert TEST_USER in bot.not_profitable_memory


def test_health_factor_of_one_is_left_alone(bot):
    bot.scanner.build_candidate.return_value = None

    outcome = bot.liquidate_user(TEST_USER, 10**18, Venue.CURVE)

    assert outcome == Outcome.HEALTHY
    assert len(bot.not_profitable_memory) == 0
    assert len(bot.error_memory) == 0
    assert bot.state_store.load(TEST_USER) is None
    bot.executor.execute.assert_not_called()


def test_transient_read_failure_is_skipped(bot):
    bot.scanner.build_candidate.side_effect = TransientReadFailure("rpc timeout")

    assert bot.liquidate_user(TEST_USER, HEALTH_FACTOR, Venue.CURVE) == Outcome.SKIPPED
    assert len(bot.not_profitable_memory) == 0
    assert bot.state_store.load(TEST_USER) is None


def test_execution_failure(bot, notifications):
    bot.executor.execute.side_effect = ExecutionFailure("liquidate transaction reverted", tx_hash="0xabc")

    outcome = bot.liquidate_user(TEST_USER, HEALTH_FACTOR, Venue.CURVE)

    assert outcome == Outcome.FAILED
    assert TEST_USER in bot.error_memory
    assert TEST_USER not in bot.not_profitable_memory
    notifications["execution_error"].assert_called_once()
    record = bot.state_store.load(TEST_USER)
    assert not record.success
    assert record.profitable
    assert record.error == "ExecutionFailure"
    assert record.error_message == "liquidate transaction reverted"


def test_unexpected_error(bot, resolver, notifications):
    resolver.resolve.side_effect = KeyError("pathId")

    assert bot.liquidate_user(TEST_USER, HEALTH_FACTOR, Venue.CURVE) == Outcome.FAILED
    assert TEST_USER in bot.error_memory
    notifications["error"].assert_called_once()


def test_no_notifications_when_disabled(bot, notifications):
    bot.notify = False

    bot.liquidate_user(TEST_USER, HEALTH_FACTOR, Venue.CURVE)

    notifications["success"].assert_not_called()


def test_run_cycle_tallies_outcomes(bot, resolver):
    users = [TEST_USER, "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC", "0x90F79bf6EB2c4f870365E785982E1f101E93b906"]
    bot.user_directory.get_all_users.return_value = users
    bot.scanner.select_addresses.return_value = users
    bot.scanner.find_below_threshold.return_value = [(users[0], HEALTH_FACTOR), (users[1], HEALTH_FACTOR)]
    resolver.resolve.side_effect = [NoRouteAvailable("no route"), MagicMock()]

    report = bot.run_cycle(7, Venue.CURVE)

    bot.scanner.refresh.assert_called_once()
    assert report.cycle_index == 7
    assert report.venue == Venue.CURVE
    assert report.scanned == 3
    assert report.candidates == 2
    assert report.liquidated == [users[1]]
    assert report.no_route == 1
    assert bot.executor.execute.call_count == 1
    assert users[0] in bot.not_profitable_memory
    assert not report.had_failures


def test_liquidate_users_bypasses_selection(bot):
    bot.scanner.fetch_health_factors.return_value = {TEST_USER: HEALTH_FACTOR}

    report = bot.liquidate_users([TEST_USER.lower()], Venue.CURVE)

    bot.scanner.select_addresses.assert_not_called()
    bot.scanner.fetch_health_factors.assert_called_once_with([TEST_USER])
    assert report.liquidated == [TEST_USER]


def test_resolver_built_once_per_venue(bot):
    with patch("app.liquidation.liquidation_bot.build_resolver") as build:
        first = bot.resolver_for(Venue.ODOS)
        second = bot.resolver_for(Venue.ODOS)

    assert first is second
    build.assert_called_once_with(Venue.ODOS, bot.config, bot.ledger, approver=bot.executor)
