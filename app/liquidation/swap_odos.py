"""
Module for interacting with the Odos smart order router API
"""

from __future__ import annotations

import argparse
import sys
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from app.liquidation.config_loader import BotConfig

from web3 import Web3

from app.liquidation.config_loader import load_bot_config
from app.liquidation.decorators import post_api_request
from app.liquidation.exceptions import NoRouteAvailable, SwapError
from app.liquidation.logging_config import setup_logger

logger = setup_logger()

DEFAULT_SLIPPAGE_LIMIT_PERCENT = 0.5


class OdosClient:
    """
    Client for the Odos quote and assemble endpoints
    """

    def __init__(self, config: "BotConfig", api_base_url: Optional[str] = None) -> None:
        self.config = config
        self.chain_id = config.CHAIN_ID
        self.api_base_url = (api_base_url or config.ODOS_API_URL).rstrip("/")
        self.slippage_limit_percent = float(config.get("ODOS_SLIPPAGE_LIMIT_PERCENT", DEFAULT_SLIPPAGE_LIMIT_PERCENT))
        self.headers = {"Content-Type": "application/json"}

    def get_quote(self, input_token: str, input_amount: int, output_token: str, user_address: str) -> Dict[str, Any]:
        """
        Get a swap quote from the Odos API

        Args:
            input_token (str): Token sold
            input_amount (int): Raw amount of input token
            output_token (str): Token bought
            user_address (str): Address that will sign the swap

        Returns:
            Dict[str, Any]: Quote with pathId, inAmounts and outAmounts

        Raises:
            SwapError: the request failed
            NoRouteAvailable: Odos returned no path
        """
        request = {
            "chainId": self.chain_id,
            "inputTokens": [{"tokenAddress": Web3.to_checksum_address(input_token), "amount": str(input_amount)}],
            "outputTokens": [{"tokenAddress": Web3.to_checksum_address(output_token), "proportion": 1}],
            "userAddr": Web3.to_checksum_address(user_address),
            "slippageLimitPercent": self.slippage_limit_percent,
        }
        logger.info("==Odos Quote Request== %s", request)

        response = post_api_request(f"{self.api_base_url}/sor/quote/v2", request, headers=self.headers)

        if response is None:
            raise SwapError(f"Odos quote request failed for {input_token} -> {output_token}")

        if not response.get("pathId") or not response.get("outAmounts") or not response.get("inAmounts"):
            raise NoRouteAvailable(f"Odos returned no route for {input_token} -> {output_token}")

        logger.info(
            "Odos quote: pathId %s, in %s, out %s", response["pathId"], response["inAmounts"], response["outAmounts"]
        )
        return response

    def assemble_transaction(self, path_id: str, user_address: str, receiver: str) -> Dict[str, Any]:
        """
        Assemble router calldata for a quoted path

        Args:
            path_id (str): pathId from get_quote
            user_address (str): Address that signed the quote
            receiver (str): Address receiving the output tokens

        Returns:
            Dict[str, Any]: Assembled response with a `transaction` entry
        """
        request = {
            "chainId": self.chain_id,
            "pathId": path_id,
            "userAddr": Web3.to_checksum_address(user_address),
            "simulate": False,
            "receiver": Web3.to_checksum_address(receiver),
        }
        response = post_api_request(f"{self.api_base_url}/sor/assemble", request, headers=self.headers)

        if response is None:
            raise SwapError(f"Odos assemble request failed for path {path_id}")

        transaction = response.get("transaction")
        if not transaction or not transaction.get("data"):
            raise SwapError(f"No transaction data in Odos assemble response for path {path_id}")

        return response

    def calculate_input_amount(
        self, output_amount: int, output_token: str, input_token: str, user_address: str
    ) -> int:
        """
        Amount of input token needed to receive `output_amount` of output token.

        Quotes the reverse direction and inflates the result by the slippage limit.
        """
        reverse_quote = self.get_quote(output_token, output_amount, input_token, user_address)
        quoted_input = int(reverse_quote["outAmounts"][0])
        buffer = Decimal(1) + Decimal(str(self.slippage_limit_percent)) / Decimal(100)
        return int(Decimal(quoted_input) * buffer)


def main():
    """
    Print an Odos quote for a token pair
    """
    parser = argparse.ArgumentParser(description="Quote a swap on Odos")
    parser.add_argument("--network", type=str, default="fraxtal_mainnet", help="Network name from config.yaml")
    parser.add_argument("--src-token", type=str, required=True, help="Source token address")
    parser.add_argument("--dst-token", type=str, required=True, help="Destination token address")
    parser.add_argument("--amount-wei", type=int, required=True, help="Raw amount of source token")

    args = parser.parse_args()

    config = load_bot_config(args.network)
    client = OdosClient(config)

    try:
        quote = client.get_quote(args.src_token, args.amount_wei, args.dst_token, config.LIQUIDATOR_EOA)
    except SwapError as ex:
        logger.error("Quote failed: %s", ex)
        return 1

    print(f"pathId: {quote['pathId']}")
    print(f"inAmounts: {quote['inAmounts']}")
    print(f"outAmounts: {quote['outAmounts']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
