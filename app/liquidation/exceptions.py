"""
Custom exceptions for the liquidation bot.
"""


class LiquidationBotError(Exception):
    """Base exception for all liquidation bot errors."""


class ConfigError(LiquidationBotError):
    """Raised for configuration-related errors. Fatal at startup."""


class TransientReadFailure(LiquidationBotError):
    """Raised when a single ledger read fails. The address is retried next cycle."""


class NotProfitableLiquidation(LiquidationBotError):
    """Raised when a position cannot be liquidated at a profit."""

    def __init__(self, message: str, collateral_reserve=None, debt_reserve=None):
        super().__init__(message)
        self.collateral_reserve = collateral_reserve
        self.debt_reserve = debt_reserve


class ZeroDebtToLiquidate(LiquidationBotError):
    """Raised when a position is below threshold but the repay amount is zero."""


class LiquidationError(LiquidationBotError):
    """Raised for errors during liquidation execution."""


class ExecutionFailure(LiquidationError):
    """Raised when a liquidation or approval transaction reverts or times out."""

    def __init__(self, message: str, tx_hash: str = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class TransactionBuildError(LiquidationError):
    """Raised when building a liquidation transaction fails."""


class SwapError(LiquidationBotError):
    """Raised for errors while resolving a swap route."""


class NoRouteAvailable(SwapError):
    """Raised when a venue has no route between the collateral and debt asset."""
