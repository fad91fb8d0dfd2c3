"""
Liquidation amount and profit calculations.

All amounts are raw integers in each token's smallest unit. Prices are the
oracle's fixed point integers (``price_decimals`` decimals). Health factors are
18-decimal fixed point integers. Every multiplication happens before any
division, and each token is scaled by its own decimals.
"""

from typing import Optional

from .exceptions import NotProfitableLiquidation
from .models import ReserveInfo

BASE_BPS = 10000
HEALTH_FACTOR_ONE = 10**18


def max_liquidation_amount(
    collateral_reserve: ReserveInfo,
    total_collateral: int,
    debt_reserve: ReserveInfo,
    total_debt: int,
    health_factor: int,
    close_factor_threshold: int,
) -> int:
    """
    Maximum amount of debt (debt token smallest unit) that can be repaid.

    Half the debt is repaid by default, the full debt once the health factor
    drops below the close factor threshold. The amount is capped so that its
    USD value inflated by the collateral liquidation bonus never exceeds the
    borrower's collateral in the chosen reserve.

    Raises:
        NotProfitableLiquidation: the bonus does not exceed par, or the capped
            amount collapses to zero while debt is outstanding.
    """
    if health_factor >= HEALTH_FACTOR_ONE:
        return 0

    bonus = collateral_reserve.liquidation_bonus_bps
    if bonus <= BASE_BPS:
        raise NotProfitableLiquidation(
            f"Liquidation bonus {bonus} of {collateral_reserve.symbol} does not exceed {BASE_BPS}",
            collateral_reserve=collateral_reserve,
            debt_reserve=debt_reserve,
        )

    to_liquidate = total_debt // 2
    if health_factor < close_factor_threshold:
        to_liquidate = total_debt

    debt_scale = 10**debt_reserve.decimals
    collateral_scale = 10**collateral_reserve.decimals

    # USD(to_liquidate) * bonus > USD(collateral) * BASE, cross multiplied by both token scales
    inflated_debt_value = to_liquidate * debt_reserve.price_usd * bonus * collateral_scale
    collateral_value = total_collateral * collateral_reserve.price_usd * BASE_BPS * debt_scale

    if inflated_debt_value > collateral_value:
        denominator = collateral_scale * bonus * debt_reserve.price_usd
        if denominator == 0:
            raise NotProfitableLiquidation(
                f"Debt token {debt_reserve.symbol} has no price",
                collateral_reserve=collateral_reserve,
                debt_reserve=debt_reserve,
            )
        to_liquidate = collateral_value // denominator

        if to_liquidate == 0 and total_debt > 0:
            raise NotProfitableLiquidation(
                f"Collateral {collateral_reserve.symbol} cannot cover the liquidation bonus for {debt_reserve.symbol}",
                collateral_reserve=collateral_reserve,
                debt_reserve=debt_reserve,
            )

    return to_liquidate


def liquidation_profit_usd(
    debt_reserve: ReserveInfo,
    debt_price_usd: int,
    repay_amount: int,
    liquidation_bonus_bps: Optional[int] = None,
) -> float:
    """
    Expected profit in USD of repaying ``repay_amount`` of debt.

    ``liquidation_bonus_bps`` defaults to the debt reserve's bonus. The bot
    passes the collateral reserve's bonus, which is what is actually paid out.
    """
    bonus = debt_reserve.liquidation_bonus_bps if liquidation_bonus_bps is None else liquidation_bonus_bps
    profit_fixed_point = repay_amount * debt_price_usd * (bonus - BASE_BPS) // (BASE_BPS * 10**debt_reserve.decimals)
    return profit_fixed_point / 10**debt_reserve.price_decimals


def is_profitable(profit_usd: float, threshold_usd: float) -> bool:
    return profit_usd >= threshold_usd
