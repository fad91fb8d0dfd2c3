"""
Tests for the Odos client and route resolver.
"""

from unittest.mock import MagicMock, call, patch

import pytest
from web3 import Web3

from app.liquidation.exceptions import NoRouteAvailable, SwapError
from app.liquidation.models import LiquidationCandidate
from app.liquidation.swap_odos import OdosClient
from app.liquidation.venues.base_venue import RouteContext
from app.liquidation.venues.odos_venue import OdosRouteResolver

from conftest import TEST_LIQUIDATOR_EOA, TEST_USER, USDC_ADDRESS, WETH_ADDRESS, make_reserve

ROUTER = "0x56c85a254DD12eE8D9C04049a4ab62769Ce98210"
RECEIVER = "0x0165878A594ca255338adfa4d48449f69242Eb8F"
ODOS_SETTINGS = {
    "FLASH_MINT_LIQUIDATOR_ADDRESS": "0x5FC8d32690cc91D4c39d9d3abcBD16989F875707",
    "FLASH_LOAN_LIQUIDATOR_ADDRESS": RECEIVER,
    "ROUTER_ADDRESS": ROUTER,
}

REVERSE_QUOTE = {"pathId": "reverse", "inAmounts": ["800000000"], "outAmounts": ["1000000000000000000"]}
FORWARD_QUOTE = {"pathId": "forward", "inAmounts": ["1005000000000000000"], "outAmounts": ["801000000"]}
ASSEMBLED = {"transaction": {"data": "0xdeadbeef", "to": ROUTER}}


@pytest.fixture()
def odos_config(config, monkeypatch):
    monkeypatch.setattr(config, "venue_settings", lambda venue: ODOS_SETTINGS)
    return config


def _candidate():
    return LiquidationCandidate(
        user_address=TEST_USER,
        health_factor=9 * 10**17,
        collateral_reserve=make_reserve(WETH_ADDRESS, "WETH"),
        debt_reserve=make_reserve(USDC_ADDRESS, "USDC", decimals=6),
        to_liquidate_amount=800 * 10**6,
    )


@patch("app.liquidation.swap_odos.post_api_request")
def test_get_quote_request(mock_post, config):
    mock_post.return_value = FORWARD_QUOTE
    client = OdosClient(config)

    quote = client.get_quote(WETH_ADDRESS, 10**18, USDC_ADDRESS, TEST_LIQUIDATOR_EOA)

    assert quote["pathId"] == "forward"
    url, payload = mock_post.call_args.args
    assert url == "https://api.odos.xyz/sor/quote/v2"
    assert payload["chainId"] == 31337
    assert payload["inputTokens"] == [{"tokenAddress": WETH_ADDRESS, "amount": str(10**18)}]
    assert payload["slippageLimitPercent"] == 0.5


@patch("app.liquidation.swap_odos.post_api_request")
def test_get_quote_without_path(mock_post, config):
    mock_post.return_value = {"pathId": None, "inAmounts": [], "outAmounts": []}

    with pytest.raises(NoRouteAvailable):
        OdosClient(config).get_quote(WETH_ADDRESS, 10**18, USDC_ADDRESS, TEST_LIQUIDATOR_EOA)


@patch("app.liquidation.swap_odos.post_api_request")
def test_get_quote_request_failure(mock_post, config):
    mock_post.return_value = None

    with pytest.raises(SwapError):
        OdosClient(config).get_quote(WETH_ADDRESS, 10**18, USDC_ADDRESS, TEST_LIQUIDATOR_EOA)


@patch("app.liquidation.swap_odos.post_api_request")
def test_calculate_input_amount_adds_slippage(mock_post, config):
    mock_post.return_value = REVERSE_QUOTE

    amount = OdosClient(config).calculate_input_amount(800 * 10**6, USDC_ADDRESS, WETH_ADDRESS, TEST_LIQUIDATOR_EOA)

    assert amount == 1005 * 10**15
    payload = mock_post.call_args.args[1]
    assert payload["inputTokens"][0]["tokenAddress"] == USDC_ADDRESS


@patch("app.liquidation.swap_odos.post_api_request")
def test_assemble_without_transaction(mock_post, config):
    mock_post.return_value = {"transaction": None}

    with pytest.raises(SwapError):
        OdosClient(config).assemble_transaction("forward", TEST_LIQUIDATOR_EOA, RECEIVER)


@patch("app.liquidation.swap_odos.post_api_request")
def test_resolve_approves_in_order(mock_post, odos_config, mock_ledger):
    mock_post.side_effect = [REVERSE_QUOTE, FORWARD_QUOTE, ASSEMBLED]
    approver = MagicMock()
    resolver = OdosRouteResolver(odos_config, mock_ledger, approver=approver)

    instruction = resolver.resolve(_candidate(), RouteContext(TEST_LIQUIDATOR_EOA, RECEIVER))

    assert instruction.calldata == bytes.fromhex("deadbeef")
    assert instruction.input_amount == 1005 * 10**15
    assert approver.approve_and_wait.call_args_list == [
        call(WETH_ADDRESS, Web3.to_checksum_address(ROUTER), 1005 * 10**15),
        call(WETH_ADDRESS, RECEIVER, 1005 * 10**15),
    ]

    forward_payload = mock_post.call_args_list[1].args[1]
    assert forward_payload["inputTokens"][0]["amount"] == str(1005 * 10**15)
    assemble_payload = mock_post.call_args_list[2].args[1]
    assert assemble_payload["pathId"] == "forward"
    assert assemble_payload["receiver"] == RECEIVER


@patch("app.liquidation.swap_odos.post_api_request")
def test_resolve_without_route_skips_approvals(mock_post, odos_config, mock_ledger):
    mock_post.side_effect = [REVERSE_QUOTE, {"pathId": "", "inAmounts": [], "outAmounts": []}]
    approver = MagicMock()
    resolver = OdosRouteResolver(odos_config, mock_ledger, approver=approver)

    with pytest.raises(NoRouteAvailable):
        resolver.resolve(_candidate(), RouteContext(TEST_LIQUIDATOR_EOA, RECEIVER))

    approver.approve_and_wait.assert_not_called()
