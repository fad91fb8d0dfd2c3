"""
Odos routes: quote, approve the router, assemble, approve the liquidator contract.
"""

from web3 import Web3

from app.liquidation.logging_config import setup_logger
from app.liquidation.models import LiquidationCandidate, OdosSwapInstruction, Venue
from app.liquidation.swap_odos import OdosClient
from app.liquidation.venues.base_venue import BaseRouteResolver, RouteContext

logger = setup_logger()


class OdosRouteResolver(BaseRouteResolver):
    venue = Venue.ODOS

    def __init__(self, config, ledger, approver=None, client: OdosClient = None):
        super().__init__(config, ledger, approver)
        self.client = client or OdosClient(config)
        self.router = Web3.to_checksum_address(self.settings["ROUTER_ADDRESS"])

    def resolve(self, candidate: LiquidationCandidate, context: RouteContext) -> OdosSwapInstruction:
        collateral = candidate.collateral_reserve.address
        debt = candidate.debt_reserve.address
        swap_input = self.effective_collateral(candidate, context)

        if self.same_token(swap_input, debt):
            return OdosSwapInstruction(calldata=b"", input_amount=0, approval_target=self.router)

        # size the input so the swap still covers the repay amount after slippage
        input_amount = self.client.calculate_input_amount(
            candidate.to_liquidate_amount, debt, swap_input, context.liquidator_eoa
        )
        quote = self.client.get_quote(swap_input, input_amount, debt, context.liquidator_eoa)
        approve_amount = int(quote["inAmounts"][0])

        # approvals are made on the seized collateral token and confirmed in order
        self.approver.approve_and_wait(collateral, self.router, approve_amount)
        assembled = self.client.assemble_transaction(quote["pathId"], context.liquidator_eoa, context.receiver)
        self.approver.approve_and_wait(collateral, context.receiver, approve_amount)

        logger.info(
            "OdosRouteResolver: %s -> %s, input %s, pathId %s",
            candidate.collateral_reserve.symbol, candidate.debt_reserve.symbol, approve_amount, quote["pathId"],
        )
        return OdosSwapInstruction(
            calldata=Web3.to_bytes(hexstr=assembled["transaction"]["data"]),
            input_amount=approve_amount,
            approval_target=self.router,
        )
