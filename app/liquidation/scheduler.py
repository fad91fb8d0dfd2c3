"""
Venue fallback: run cycles on the primary venue and fall back to the
secondary one after too many consecutive primary failures.
"""

import enum
import threading
import time
from typing import Any, Dict, Optional

from .exceptions import NoRouteAvailable
from .logging_config import setup_logger
from .models import CycleReport, Venue

logger = setup_logger()


class SchedulerState(str, enum.Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class VenueFallbackStateMachine:
    """
    PRIMARY: every cycle runs on the primary venue. Each failure increments
    the consecutive failure counter, and reaching ``max_failures`` switches
    to SECONDARY. A success resets the counter.

    SECONDARY: cycles run on the secondary venue regardless of their outcome.
    Every ``probe_interval`` cycles the primary venue is tried instead, and a
    primary success resets the counter and returns to PRIMARY. A
    ``probe_interval`` of 0 disables probing.

    Benign outcomes leave the counter untouched.
    """

    def __init__(self, primary: Venue, secondary: Venue, max_failures: int, probe_interval: int = 0):
        if max_failures < 1:
            raise ValueError(f"max_failures must be at least 1, got {max_failures}")
        self.primary = Venue(primary)
        self.secondary = Venue(secondary)
        self.max_failures = max_failures
        self.probe_interval = probe_interval
        self.failure_count = 0
        self.state = SchedulerState.PRIMARY
        self._cycles_in_secondary = 0

    def next_venue(self, cycle_index: int) -> Venue:
        if self.state == SchedulerState.PRIMARY:
            return self.primary

        self._cycles_in_secondary += 1
        if self.probe_interval and self._cycles_in_secondary % self.probe_interval == 0:
            logger.info("VenueFallbackStateMachine: Cycle %s probes primary venue %s", cycle_index, self.primary.value)
            return self.primary
        return self.secondary

    def record_success(self, venue: Venue) -> None:
        if venue != self.primary:
            return

        if self.state == SchedulerState.SECONDARY:
            logger.info("VenueFallbackStateMachine: Primary venue %s recovered", self.primary.value)
        self.failure_count = 0
        self.state = SchedulerState.PRIMARY
        self._cycles_in_secondary = 0

    def record_failure(self, venue: Venue) -> None:
        if venue != self.primary or self.state == SchedulerState.SECONDARY:
            return

        self.failure_count += 1
        logger.warning(
            "VenueFallbackStateMachine: Primary venue %s failed %s/%s times",
            self.primary.value, self.failure_count, self.max_failures,
        )
        if self.failure_count >= self.max_failures:
            logger.warning(
                "VenueFallbackStateMachine: Falling back to secondary venue %s", self.secondary.value
            )
            self.state = SchedulerState.SECONDARY
            self._cycles_in_secondary = 0

    def record_benign(self, venue: Venue) -> None:
        logger.info("VenueFallbackStateMachine: Benign outcome on %s, counter stays at %s", venue.value, self.failure_count)


class VenueFallbackScheduler:
    """Drives the bot cycle after cycle until the stop event is set."""

    def __init__(self, bot, machine: VenueFallbackStateMachine, interval: float, stop_event: Optional[threading.Event] = None):
        self.bot = bot
        self.machine = machine
        self.interval = interval
        self.stop_event = stop_event or threading.Event()
        self.cycle_index = 0
        self.last_report: Optional[CycleReport] = None
        self.last_error: Optional[str] = None
        self.last_cycle_at: Optional[float] = None

    def run_once(self) -> Optional[CycleReport]:
        """
        Run one cycle on the venue chosen by the state machine.

        Any exception escaping the cycle counts as a failure of that venue,
        except NoRouteAvailable, which is logged and leaves the counter as is.
        LiquidationBot.run_cycle records no-route outcomes per user and never
        lets one escape, so that branch only guards cycles of other bots.
        """
        self.cycle_index += 1
        venue = self.machine.next_venue(self.cycle_index)
        self.last_cycle_at = time.time()

        try:
            report = self.bot.run_cycle(self.cycle_index, venue)
        except NoRouteAvailable as ex:
            logger.info("VenueFallbackScheduler: Cycle %s on %s: %s", self.cycle_index, venue.value, ex)
            self.machine.record_benign(venue)
            return None
        except Exception as ex:
            logger.error(
                "VenueFallbackScheduler: Cycle %s on %s failed: %s", self.cycle_index, venue.value, ex, exc_info=True
            )
            self.last_error = f"{type(ex).__name__}: {ex}"
            self.machine.record_failure(venue)
            return None

        self.last_report = report
        self.last_error = None
        self.machine.record_success(venue)
        return report

    def run_forever(self) -> None:
        logger.info(
            "VenueFallbackScheduler: Starting with primary %s, secondary %s, interval %ss",
            self.machine.primary.value, self.machine.secondary.value, self.interval,
        )
        while not self.stop_event.is_set():
            self.run_once()
            self.stop_event.wait(self.interval)
        logger.info("VenueFallbackScheduler: Stopped after %s cycles", self.cycle_index)

    def stop(self) -> None:
        self.stop_event.set()

    def status(self) -> Dict[str, Any]:
        report = self.last_report
        return {
            "running": not self.stop_event.is_set(),
            "state": self.machine.state.value,
            "failure_count": self.machine.failure_count,
            "max_failures": self.machine.max_failures,
            "primary_venue": self.machine.primary.value,
            "secondary_venue": self.machine.secondary.value,
            "cycle_index": self.cycle_index,
            "last_cycle_at": self.last_cycle_at,
            "last_error": self.last_error,
            "last_report": None if report is None else {
                "cycle_index": report.cycle_index,
                "venue": report.venue.value,
                "scanned": report.scanned,
                "candidates": report.candidates,
                "liquidated": report.liquidated,
                "not_profitable": report.not_profitable,
                "no_route": report.no_route,
                "zero_debt": report.zero_debt,
                "failed": report.failed,
            },
        }
