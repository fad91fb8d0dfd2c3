"""
Batch Scanner: finds positions below the health factor threshold and derives
the reserves and amount to liquidate for each of them.
"""

import random
from typing import Dict, List, Optional, Sequence, Tuple

from .batching import run_in_batches
from .config_loader import BotConfig
from .exceptions import NotProfitableLiquidation, TransientReadFailure, ZeroDebtToLiquidate
from .ignore_memory import ShortTermIgnoreMemory
from .ledger import PositionLedger
from .logging_config import setup_logger
from .models import LiquidationCandidate, Position, ReserveInfo, UserReserveInfo
from .profitability import HEALTH_FACTOR_ONE, max_liquidation_amount

logger = setup_logger()


class BatchScanner:
    """
    Reads health factors and reserve balances in bounded concurrent batches.
    Addresses held by any of the ignore memories are skipped before any RPC call.
    """

    def __init__(
        self,
        config: BotConfig,
        ledger: PositionLedger,
        ignore_memories: Sequence[ShortTermIgnoreMemory] = (),
        rng: Optional[random.Random] = None,
    ):
        self.config = config
        self.ledger = ledger
        self.ignore_memories = list(ignore_memories)
        self.rng = rng or random.Random()

        self.health_factor_threshold = config.health_factor_threshold_raw
        self.health_factor_batch_size = int(config.HEALTH_FACTOR_BATCH_SIZE)
        self.reserve_batch_size = int(config.RESERVE_BATCH_SIZE)
        self.liquidating_batch_size = int(config.LIQUIDATING_BATCH_SIZE)

        self._reserves: Optional[List[ReserveInfo]] = None
        self._close_factor_threshold: Optional[int] = None

    def is_ignored(self, address: str) -> bool:
        return any(memory.is_ignored(address) for memory in self.ignore_memories)

    def select_addresses(self, all_addresses: Sequence[str]) -> List[str]:
        """Drop ignored addresses, shuffle the rest and cap to the liquidating batch size."""
        selected = [address for address in all_addresses if not self.is_ignored(address)]
        skipped = len(all_addresses) - len(selected)
        if skipped:
            logger.info("BatchScanner: Skipping %s ignored addresses", skipped)

        self.rng.shuffle(selected)
        return selected[: self.liquidating_batch_size]

    def _read_health_factor(self, address: str) -> Optional[int]:
        try:
            return self.ledger.get_health_factor(address)
        except TransientReadFailure as ex:
            logger.warning("BatchScanner: %s", ex)
            return None

    def fetch_health_factors(self, addresses: Sequence[str]) -> Dict[str, int]:
        health_factors = run_in_batches(self._read_health_factor, addresses, self.health_factor_batch_size)
        return {
            address: health_factor
            for address, health_factor in zip(addresses, health_factors)
            if health_factor is not None
        }

    def find_below_threshold(self, addresses: Sequence[str]) -> List[Tuple[str, int]]:
        health_factors = self.fetch_health_factors(addresses)
        below = [
            (address, health_factor)
            for address, health_factor in health_factors.items()
            if health_factor < self.health_factor_threshold
        ]
        logger.info(
            "BatchScanner: %s of %s addresses below health factor threshold %s",
            len(below), len(addresses), self.config.HEALTH_FACTOR_THRESHOLD,
        )
        return below

    def scan(self, all_addresses: Sequence[str]) -> List[Tuple[str, int]]:
        return self.find_below_threshold(self.select_addresses(all_addresses))

    def refresh(self) -> None:
        """Forget the reserve snapshot and close factor threshold of the previous cycle."""
        self._reserves = None
        self._close_factor_threshold = None

    def get_reserves(self) -> List[ReserveInfo]:
        if self._reserves is None:
            reserve_addresses = self.ledger.get_reserves_list()
            self._reserves = run_in_batches(self.ledger.get_reserve_info, reserve_addresses, self.reserve_batch_size)
        return self._reserves

    def get_close_factor_threshold(self) -> int:
        if self._close_factor_threshold is None:
            self._close_factor_threshold = self.ledger.get_close_factor_threshold()
        return self._close_factor_threshold

    def build_position(self, user: str, health_factor: int) -> Position:
        rows: List[UserReserveInfo] = run_in_batches(
            lambda reserve: self.ledger.get_user_reserve_info(user, reserve),
            self.get_reserves(),
            self.reserve_batch_size,
        )
        return Position(
            user_address=user,
            health_factor=health_factor,
            per_reserve_balances={row.reserve.address: row for row in rows},
        )

    def build_candidate(self, user: str, health_factor: int) -> Optional[LiquidationCandidate]:
        """
        Pick the largest debt and the largest collateral of the position and
        compute the amount of debt to repay.

        Returns None when the position is not liquidatable (health factor of
        at least 1.0).

        Raises:
            NotProfitableLiquidation: no eligible debt or collateral reserve
            ZeroDebtToLiquidate: liquidatable position with nothing to repay
            TransientReadFailure: a reserve balance could not be read
        """
        position = self.build_position(user, health_factor)
        rows = list(position.per_reserve_balances.values())

        debt_rows = [row for row in rows if row.reserve.borrowing_enabled and row.total_debt > 0]
        collateral_rows = [
            row
            for row in rows
            if row.reserve.usage_as_collateral_enabled
            and row.reserve.liquidation_bonus_bps > 0
            and row.total_supply > 0
        ]
        if not debt_rows or not collateral_rows:
            raise NotProfitableLiquidation(f"No eligible collateral and debt reserves for {user}")

        debt = max(debt_rows, key=lambda row: row.total_debt)
        collateral = max(collateral_rows, key=lambda row: row.total_supply)

        to_liquidate_amount = max_liquidation_amount(
            collateral.reserve,
            collateral.total_supply,
            debt.reserve,
            debt.total_debt,
            health_factor,
            self.get_close_factor_threshold(),
        )

        if to_liquidate_amount == 0:
            if health_factor >= HEALTH_FACTOR_ONE:
                return None
            raise ZeroDebtToLiquidate(f"Nothing to liquidate for {user} with health factor {health_factor}")

        return LiquidationCandidate(
            user_address=user,
            health_factor=health_factor,
            collateral_reserve=collateral.reserve,
            debt_reserve=debt.reserve,
            to_liquidate_amount=to_liquidate_amount,
        )
