"""
Data classes for structured returns in the liquidation bot.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from eth_abi import encode

CURVE_ROUTE_LENGTH = 11
CURVE_SWAP_PARAMS_SHAPE = (5, 4)
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Venue(str, enum.Enum):
    """Swap venue used to convert seized collateral back into the debt asset."""

    ODOS = "odos"
    CURVE = "curve"
    UNISWAP_V3 = "uniswap_v3"


class FlashMode(str, enum.Enum):
    FLASH_MINT = "flash_mint"
    FLASH_LOAN = "flash_loan"


@dataclass
class ReserveInfo:
    """Reserve snapshot refreshed on every scan."""

    address: str
    symbol: str
    decimals: int
    price_usd: int
    price_decimals: int
    liquidation_bonus_bps: int
    usage_as_collateral_enabled: bool
    borrowing_enabled: bool


@dataclass
class UserReserveInfo:
    """A user's supply and debt balances on one reserve."""

    user_address: str
    reserve: ReserveInfo
    total_supply: int
    total_debt: int


@dataclass
class Position:
    user_address: str
    health_factor: int
    per_reserve_balances: Dict[str, UserReserveInfo] = field(default_factory=dict)


@dataclass(frozen=True)
class LiquidationCandidate:
    """A position below threshold with the reserves and amount chosen for liquidation."""

    user_address: str
    health_factor: int
    collateral_reserve: ReserveInfo
    debt_reserve: ReserveInfo
    to_liquidate_amount: int


@dataclass(frozen=True)
class CurveSwapInstruction:
    """Static Curve router route: 11 addresses, 5x4 swap params and a slippage buffer."""

    venue: ClassVar[Venue] = Venue.CURVE

    route: Tuple[str, ...]
    swap_params: Tuple[Tuple[int, ...], ...]
    slippage_buffer_bps: int

    def __post_init__(self):
        if len(self.route) != CURVE_ROUTE_LENGTH:
            raise ValueError(f"Curve route must have {CURVE_ROUTE_LENGTH} addresses, got {len(self.route)}")
        rows, cols = CURVE_SWAP_PARAMS_SHAPE
        if len(self.swap_params) != rows or any(len(row) != cols for row in self.swap_params):
            raise ValueError(f"Curve swap params must be a {rows}x{cols} matrix")

    def encode(self) -> bytes:
        return encode(
            ["address[11]", "uint256[4][5]", "uint256"],
            [list(self.route), [list(row) for row in self.swap_params], self.slippage_buffer_bps],
        )


@dataclass(frozen=True)
class OdosSwapInstruction:
    """Assembled Odos router calldata."""

    venue: ClassVar[Venue] = Venue.ODOS

    calldata: bytes
    input_amount: int
    approval_target: str

    def encode(self) -> bytes:
        return self.calldata


@dataclass(frozen=True)
class UniswapV3SwapInstruction:
    venue: ClassVar[Venue] = Venue.UNISWAP_V3

    path_bytes: bytes

    def encode(self) -> bytes:
        return self.path_bytes


@dataclass
class IgnoreEntry:
    user_address: str
    expires_at: float


@dataclass
class UserStateRecord:
    """Latest liquidation attempt for one borrower, persisted as camelCase JSON."""

    health_factor: float
    to_liquidate_amount: int
    collateral_token: Optional[Dict[str, str]] = None
    debt_token: Optional[Dict[str, str]] = None
    last_trial_timestamp: int = 0
    success: bool = False
    profit_in_usd: float = 0.0
    profitable: bool = False
    error: str = ""
    error_message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "healthFactor": self.health_factor,
            "toLiquidateAmount": str(self.to_liquidate_amount),
            "collateralToken": self.collateral_token,
            "debtToken": self.debt_token,
            "lastTrial": self.last_trial_timestamp,
            "success": self.success,
            "profitInUSD": self.profit_in_usd,
            "profitable": self.profitable,
            "error": self.error,
            "errorMessage": self.error_message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserStateRecord":
        return cls(
            health_factor=float(data.get("healthFactor", 0)),
            to_liquidate_amount=int(data.get("toLiquidateAmount", 0) or 0),
            collateral_token=data.get("collateralToken"),
            debt_token=data.get("debtToken"),
            last_trial_timestamp=int(data.get("lastTrial", 0)),
            success=bool(data.get("success", False)),
            profit_in_usd=float(data.get("profitInUSD", 0.0)),
            profitable=bool(data.get("profitable", False)),
            error=str(data.get("error", "")),
            error_message=str(data.get("errorMessage", "")),
        )


@dataclass
class LiquidationResult:
    """Outcome of a confirmed liquidation transaction."""

    tx_hash: str
    seized_collateral_amount: int
    debt_covered: int
    gas_used: int
    flash_mode: FlashMode


@dataclass
class CycleReport:
    """Counters for one bot cycle on one venue."""

    cycle_index: int
    venue: Venue
    scanned: int = 0
    candidates: int = 0
    liquidated: List[str] = field(default_factory=list)
    not_profitable: int = 0
    no_route: int = 0
    zero_debt: int = 0
    failed: int = 0

    @property
    def had_failures(self) -> bool:
        return self.failed > 0


@dataclass
class ReportSummary:
    report_path: str
    successful: int
    failed_profitable: int
    not_profitable: int
    total: int
