"""
Base class for swap route resolvers.

A resolver turns a liquidation candidate into the venue-specific swap payload
the liquidator contract uses to convert seized collateral back into the debt
asset.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Union

from app.liquidation.config_loader import BotConfig
from app.liquidation.ledger import PositionLedger
from app.liquidation.logging_config import setup_logger
from app.liquidation.models import (
    CurveSwapInstruction,
    LiquidationCandidate,
    OdosSwapInstruction,
    UniswapV3SwapInstruction,
    Venue,
)

logger = setup_logger()

SwapInstruction = Union[CurveSwapInstruction, OdosSwapInstruction, UniswapV3SwapInstruction]


@dataclass(frozen=True)
class RouteContext:
    """Addresses a resolver needs besides the candidate itself."""

    liquidator_eoa: str
    receiver: str
    is_unstake: bool = False


class BaseRouteResolver(ABC):
    """
    Abstract base class for venue route resolvers (Curve, Odos, UniswapV3).
    """

    venue: Venue

    def __init__(self, config: BotConfig, ledger: PositionLedger, approver=None):
        self.config = config
        self.ledger = ledger
        self.approver = approver
        self.settings = config.venue_settings(self.venue.value)

    @abstractmethod
    def resolve(self, candidate: LiquidationCandidate, context: RouteContext) -> SwapInstruction:
        """Build the swap instruction for a candidate. Raises NoRouteAvailable when none exists."""

    def effective_collateral(self, candidate: LiquidationCandidate, context: RouteContext) -> str:
        """The token actually swapped: the ERC-4626 underlying for unstake collateral."""
        collateral = candidate.collateral_reserve.address
        if not context.is_unstake:
            return collateral

        underlying = self.ledger.get_erc4626_asset(collateral)
        logger.info("%s: Unstake collateral %s resolves to %s", self.venue.value, collateral, underlying)
        return underlying

    @staticmethod
    def same_token(token_a: str, token_b: str) -> bool:
        return token_a.lower() == token_b.lower()
