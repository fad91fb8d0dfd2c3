"""
UniswapV3 routes: a direct pool, or two hops through the quote stablecoin.
"""

from typing import List, Optional, Sequence, Tuple

from eth_abi.packed import encode_packed
from web3 import Web3

from app.liquidation.contracts import create_contract_instance
from app.liquidation.exceptions import NoRouteAvailable
from app.liquidation.logging_config import setup_logger
from app.liquidation.models import ZERO_ADDRESS, LiquidationCandidate, UniswapV3SwapInstruction, Venue
from app.liquidation.venues.base_venue import BaseRouteResolver, RouteContext

logger = setup_logger()

DEFAULT_FEE_TIERS = [10000, 3000, 500, 100]


def convert_to_swap_path(tokens: Sequence[str], fees: Sequence[int], is_exact_input: bool) -> bytes:
    """
    Pack a token/fee path as token, uint24 fee, token[, fee, token].
    The order is reversed for exact input swaps.
    """
    if len(tokens) < 2:
        raise ValueError(f"Token path must have at least 2 tokens: {tokens}")
    if len(tokens) != len(fees) + 1:
        raise ValueError(f"Token path must have one more token than fee path: {tokens} vs {fees}")

    types: List[str] = ["address"]
    values: List = [Web3.to_checksum_address(tokens[0])]
    for fee, token in zip(fees, tokens[1:]):
        types += ["uint24", "address"]
        values += [int(fee), Web3.to_checksum_address(token)]

    if is_exact_input:
        types.reverse()
        values.reverse()

    return encode_packed(types, values)


class UniswapV3RouteResolver(BaseRouteResolver):
    venue = Venue.UNISWAP_V3

    def __init__(self, config, ledger, approver=None, factory=None):
        super().__init__(config, ledger, approver)
        self.factory = factory or create_contract_instance(
            self.settings["FACTORY_ADDRESS"], "UNISWAP_V3_FACTORY_ABI_PATH", config
        )
        self.quote_token = Web3.to_checksum_address(self.settings["QUOTE_TOKEN_ADDRESS"])
        self.fee_tiers = [int(fee) for fee in self.settings.get("FEE_TIERS", DEFAULT_FEE_TIERS)]

    def find_pool(self, token_a: str, token_b: str) -> Tuple[str, Optional[int]]:
        """First pool found over the configured fee tiers, or the zero address."""
        for fee in self.fee_tiers:
            pool = self.factory.functions.getPool(
                Web3.to_checksum_address(token_a), Web3.to_checksum_address(token_b), fee
            ).call()
            if pool and pool != ZERO_ADDRESS:
                return pool, fee
        return ZERO_ADDRESS, None

    def swap_path(self, input_token: str, output_token: str, is_exact_input: bool = False) -> bytes:
        pool, fee = self.find_pool(output_token, input_token)
        if pool != ZERO_ADDRESS:
            return convert_to_swap_path([input_token, output_token], [fee], is_exact_input)

        first_pool, first_fee = self.find_pool(input_token, self.quote_token)
        second_pool, second_fee = self.find_pool(self.quote_token, output_token)
        if first_pool == ZERO_ADDRESS or second_pool == ZERO_ADDRESS:
            raise NoRouteAvailable(f"No defined pools between {input_token} and {output_token}")

        return convert_to_swap_path(
            [input_token, self.quote_token, output_token], [first_fee, second_fee], is_exact_input
        )

    def resolve(self, candidate: LiquidationCandidate, context: RouteContext) -> UniswapV3SwapInstruction:
        # UniswapV3 liquidator contracts never unstake, the seized token is swapped as is
        collateral = candidate.collateral_reserve.address
        debt = candidate.debt_reserve.address

        if self.same_token(collateral, debt):
            return UniswapV3SwapInstruction(path_bytes=b"")

        path = self.swap_path(collateral, debt, is_exact_input=False)
        logger.info(
            "UniswapV3RouteResolver: %s -> %s path 0x%s",
            candidate.collateral_reserve.symbol, candidate.debt_reserve.symbol, path.hex(),
        )
        return UniswapV3SwapInstruction(path_bytes=path)
