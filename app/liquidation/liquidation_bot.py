"""
One liquidation cycle on one swap venue: scan, size, route, execute, record.
"""

import enum
import time
from typing import Dict, Optional, Sequence

from web3 import Web3

from .config_loader import BotConfig
from .exceptions import (
    LiquidationError,
    NoRouteAvailable,
    NotProfitableLiquidation,
    SwapError,
    TransientReadFailure,
    ZeroDebtToLiquidate,
)
from .executor import LiquidationExecutor
from .ignore_memory import ShortTermIgnoreMemory
from .ledger import PositionLedger
from .logging_config import cycle_logger
from .models import CycleReport, UserStateRecord, Venue
from .notifications import post_error_notification, post_execution_error_notification, post_liquidation_success_notification
from .profitability import is_profitable, liquidation_profit_usd
from .scanner import BatchScanner
from .state_store import UserStateStore
from .user_directory import UserDirectory
from .venues.base_venue import BaseRouteResolver, RouteContext
from .venues.registry import build_resolver


class Outcome(str, enum.Enum):
    LIQUIDATED = "liquidated"
    HEALTHY = "healthy"
    NOT_PROFITABLE = "not_profitable"
    NO_ROUTE = "no_route"
    ZERO_DEBT = "zero_debt"
    SKIPPED = "skipped"
    FAILED = "failed"


class LiquidationBot:
    """
    Runs one cycle at a time for a given venue. Candidates are processed
    sequentially, so a borrower is never liquidated twice concurrently.

    Unprofitable, unroutable and zero debt candidates go to the short ignore
    memory. Execution errors go to the long one and are alerted.
    """

    def __init__(
        self,
        config: BotConfig,
        ledger: PositionLedger,
        user_directory: UserDirectory,
        scanner: BatchScanner,
        executor: LiquidationExecutor,
        state_store: UserStateStore,
        not_profitable_memory: ShortTermIgnoreMemory,
        error_memory: ShortTermIgnoreMemory,
        notify: bool = True,
    ):
        self.config = config
        self.ledger = ledger
        self.user_directory = user_directory
        self.scanner = scanner
        self.executor = executor
        self.state_store = state_store
        self.not_profitable_memory = not_profitable_memory
        self.error_memory = error_memory
        self.notify = notify
        self.profitable_threshold_usd = float(config.PROFITABLE_THRESHOLD_IN_USD)

        self._resolvers: Dict[Venue, BaseRouteResolver] = {}

    def resolver_for(self, venue: Venue) -> BaseRouteResolver:
        if venue not in self._resolvers:
            self._resolvers[venue] = build_resolver(venue, self.config, self.ledger, approver=self.executor)
        return self._resolvers[venue]

    def run_cycle(self, cycle_index: int, venue: Venue) -> CycleReport:
        log = cycle_logger(cycle_index)
        report = CycleReport(cycle_index=cycle_index, venue=venue)
        log.info("LiquidationBot: Starting cycle on %s", venue.value)

        self.scanner.refresh()
        all_users = self.user_directory.get_all_users()
        addresses = self.scanner.select_addresses(all_users)
        report.scanned = len(addresses)

        candidates = self.scanner.find_below_threshold(addresses)
        report.candidates = len(candidates)
        log.info("LiquidationBot: %s of %s users below threshold", report.candidates, report.scanned)

        for user, health_factor in candidates:
            outcome = self.liquidate_user(user, health_factor, venue, cycle_index)
            self._tally(report, user, outcome)

        log.info(
            "LiquidationBot: Cycle done on %s. Liquidated: %s, not profitable: %s, no route: %s, "
            "zero debt: %s, failed: %s",
            venue.value, len(report.liquidated), report.not_profitable, report.no_route,
            report.zero_debt, report.failed,
        )
        return report

    def liquidate_users(self, addresses: Sequence[str], venue: Venue, cycle_index: int = 0) -> CycleReport:
        """Attempt the given users directly, ignoring the ignore memories and the batch cap."""
        log = cycle_logger(cycle_index)
        report = CycleReport(cycle_index=cycle_index, venue=venue)

        self.scanner.refresh()
        addresses = [Web3.to_checksum_address(address) for address in addresses]
        report.scanned = len(addresses)

        health_factors = self.scanner.fetch_health_factors(addresses)
        report.candidates = len(health_factors)
        for user, health_factor in health_factors.items():
            log.info("LiquidationBot: %s has health factor %s", user, health_factor / 10**18)
            outcome = self.liquidate_user(user, health_factor, venue, cycle_index)
            self._tally(report, user, outcome)
        return report

    @staticmethod
    def _tally(report: CycleReport, user: str, outcome: Outcome) -> None:
        if outcome == Outcome.LIQUIDATED:
            report.liquidated.append(user)
        elif outcome == Outcome.NOT_PROFITABLE:
            report.not_profitable += 1
        elif outcome == Outcome.NO_ROUTE:
            report.no_route += 1
        elif outcome == Outcome.ZERO_DEBT:
            report.zero_debt += 1
        elif outcome == Outcome.FAILED:
            report.failed += 1

    def liquidate_user(self, user: str, health_factor: int, venue: Venue, cycle_index: int = 0) -> Outcome:
        log = cycle_logger(cycle_index)
        record = UserStateRecord(
            health_factor=health_factor / 10**18,
            to_liquidate_amount=0,
            last_trial_timestamp=int(time.time() * 1000),
        )
        candidate = None

        try:
            candidate = self.scanner.build_candidate(user, health_factor)
            if candidate is None:
                log.info("LiquidationBot: %s is not liquidatable with health factor %s", user, record.health_factor)
                return Outcome.HEALTHY

            collateral = candidate.collateral_reserve
            debt = candidate.debt_reserve
            record.to_liquidate_amount = candidate.to_liquidate_amount
            record.collateral_token = {"address": collateral.address, "symbol": collateral.symbol}
            record.debt_token = {"address": debt.address, "symbol": debt.symbol}

            record.profit_in_usd = liquidation_profit_usd(
                debt, debt.price_usd, candidate.to_liquidate_amount, collateral.liquidation_bonus_bps
            )
            record.profitable = is_profitable(record.profit_in_usd, self.profitable_threshold_usd)
            if not record.profitable:
                raise NotProfitableLiquidation(
                    f"Profit ${record.profit_in_usd} is below threshold ${self.profitable_threshold_usd}",
                    collateral_reserve=collateral,
                    debt_reserve=debt,
                )

            log.info(
                "LiquidationBot: Liquidating %s: repay %s %s against %s, expected profit $%s",
                user, candidate.to_liquidate_amount, debt.symbol, collateral.symbol, record.profit_in_usd,
            )

            is_unstake = self.ledger.is_unstake_token(collateral.address)
            context = RouteContext(
                liquidator_eoa=self.config.LIQUIDATOR_EOA,
                receiver=self.executor.receiver_for(venue, candidate),
                is_unstake=is_unstake,
            )
            instruction = self.resolver_for(venue).resolve(candidate, context)
            result = self.executor.execute(candidate, instruction, is_unstake=is_unstake)

            record.success = True
            log.info("LiquidationBot: Liquidated %s in %s", user, result.tx_hash)
            if self.notify:
                post_liquidation_success_notification(candidate, result, record.profit_in_usd, venue, self.config)
            outcome = Outcome.LIQUIDATED

        except TransientReadFailure as ex:
            log.warning("LiquidationBot: Skipping %s this cycle: %s", user, ex)
            return Outcome.SKIPPED

        except NotProfitableLiquidation as ex:
            log.info("LiquidationBot: Not profitable to liquidate %s: %s", user, ex)
            self._record_error(record, ex)
            if ex.collateral_reserve is not None:
                record.collateral_token = {"address": ex.collateral_reserve.address, "symbol": ex.collateral_reserve.symbol}
            if ex.debt_reserve is not None:
                record.debt_token = {"address": ex.debt_reserve.address, "symbol": ex.debt_reserve.symbol}
            self.not_profitable_memory.put(user)
            outcome = Outcome.NOT_PROFITABLE

        except NoRouteAvailable as ex:
            log.warning("LiquidationBot: No %s route for %s: %s", venue.value, user, ex)
            self._record_error(record, ex)
            self.not_profitable_memory.put(user)
            outcome = Outcome.NO_ROUTE

        except ZeroDebtToLiquidate as ex:
            log.info("LiquidationBot: %s", ex)
            self._record_error(record, ex)
            self.not_profitable_memory.put(user)
            outcome = Outcome.ZERO_DEBT

        except (LiquidationError, SwapError) as ex:
            log.error("LiquidationBot: Failed to liquidate %s: %s", user, ex, exc_info=True)
            self._record_error(record, ex)
            self.error_memory.put(user)
            if self.notify and candidate is not None:
                post_execution_error_notification(candidate, ex, venue, self.config)
            outcome = Outcome.FAILED

        except Exception as ex:
            log.error("LiquidationBot: Unexpected error liquidating %s: %s", user, ex, exc_info=True)
            self._record_error(record, ex)
            self.error_memory.put(user)
            if self.notify:
                post_error_notification(f"Unexpected error liquidating `{user}`: {ex}", self.config)
            outcome = Outcome.FAILED

        self.state_store.save(user, record)
        return outcome

    @staticmethod
    def _record_error(record: UserStateRecord, error: Optional[Exception]) -> None:
        record.success = False
        record.error = type(error).__name__
        record.error_message = str(error)
