"""
Curve router routes from the static route table in config.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from web3 import Web3

from app.liquidation.exceptions import ConfigError, NoRouteAvailable
from app.liquidation.logging_config import setup_logger
from app.liquidation.models import (
    CURVE_ROUTE_LENGTH,
    CURVE_SWAP_PARAMS_SHAPE,
    ZERO_ADDRESS,
    CurveSwapInstruction,
    LiquidationCandidate,
    Venue,
)
from app.liquidation.venues.base_venue import BaseRouteResolver, RouteContext

logger = setup_logger()


def pad_route(route: Sequence[str]) -> Tuple[str, ...]:
    if len(route) > CURVE_ROUTE_LENGTH:
        raise ConfigError(f"Curve route has {len(route)} entries, at most {CURVE_ROUTE_LENGTH} allowed")
    padded = [Web3.to_checksum_address(address) for address in route]
    padded += [ZERO_ADDRESS] * (CURVE_ROUTE_LENGTH - len(padded))
    return tuple(padded)


def pad_swap_params(swap_params: Sequence[Sequence[int]]) -> Tuple[Tuple[int, ...], ...]:
    rows, cols = CURVE_SWAP_PARAMS_SHAPE
    if len(swap_params) > rows or any(len(row) != cols for row in swap_params):
        raise ConfigError(f"Curve swap params must have at most {rows} rows of {cols} values")
    padded = [tuple(int(v) for v in row) for row in swap_params]
    padded += [(0,) * cols] * (rows - len(padded))
    return tuple(padded)


def empty_instruction() -> CurveSwapInstruction:
    rows, cols = CURVE_SWAP_PARAMS_SHAPE
    return CurveSwapInstruction(
        route=(ZERO_ADDRESS,) * CURVE_ROUTE_LENGTH,
        swap_params=((0,) * cols,) * rows,
        slippage_buffer_bps=0,
    )


@dataclass(frozen=True)
class CurveRouteEntry:
    """One row of the route table. `reverse` swaps output_token back into input_token."""

    input_token: str
    output_token: str
    forward: CurveSwapInstruction
    reverse: Optional[CurveSwapInstruction] = None

    def covers(self, token: str) -> bool:
        token = token.lower()
        return any(address.lower() == token for address in self.forward.route)


def _parse_extra_params(data: Dict[str, Any], default_slippage_bps: int) -> CurveSwapInstruction:
    return CurveSwapInstruction(
        route=pad_route(data["route"]),
        swap_params=pad_swap_params(data["swap_params"]),
        slippage_buffer_bps=int(data.get("swap_slippage_buffer_bps", default_slippage_bps)),
    )


def parse_route_table(entries: List[Dict[str, Any]], default_slippage_bps: int) -> List[CurveRouteEntry]:
    table = []
    for entry in entries or []:
        reverse = entry.get("reverse_swap_extra_params")
        table.append(
            CurveRouteEntry(
                input_token=entry["input_token"].lower(),
                output_token=entry["output_token"].lower(),
                forward=_parse_extra_params(entry["swap_extra_params"], default_slippage_bps),
                reverse=_parse_extra_params(reverse, default_slippage_bps) if reverse else None,
            )
        )
    return table


class CurveRouteResolver(BaseRouteResolver):
    venue = Venue.CURVE

    def __init__(self, config, ledger, approver=None):
        super().__init__(config, ledger, approver)
        self.default_slippage_bps = int(self.settings.get("DEFAULT_SWAP_SLIPPAGE_BUFFER_BPS", 0))
        self.route_table = parse_route_table(self.settings.get("DEFAULT_SWAP_PARAMS_LIST", []), self.default_slippage_bps)

    def lookup(self, input_token: str, output_token: str) -> CurveSwapInstruction:
        """Route swapping input_token into output_token, matched case-insensitively in either table direction."""
        input_token, output_token = input_token.lower(), output_token.lower()
        for entry in self.route_table:
            if entry.input_token == input_token and entry.output_token == output_token:
                return entry.forward
            if entry.reverse and entry.input_token == output_token and entry.output_token == input_token:
                return entry.reverse

        raise NoRouteAvailable(f"No Curve route from {input_token} to {output_token}")

    def resolve(self, candidate: LiquidationCandidate, context: RouteContext) -> CurveSwapInstruction:
        collateral = candidate.collateral_reserve.address
        debt = candidate.debt_reserve.address

        if context.is_unstake:
            collateral = self.effective_collateral(candidate, context)
            if not any(entry.covers(collateral) for entry in self.route_table):
                raise NoRouteAvailable(f"No Curve route covers unstake collateral {collateral}")

        if self.same_token(collateral, debt):
            return empty_instruction()

        instruction = self.lookup(collateral, debt)
        logger.info(
            "CurveRouteResolver: %s -> %s via %s",
            candidate.collateral_reserve.symbol,
            candidate.debt_reserve.symbol,
            [address for address in instruction.route if address != ZERO_ADDRESS],
        )
        return instruction
