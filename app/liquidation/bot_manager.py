import threading
from typing import Optional

from .config_loader import BotConfig, load_bot_config
from .executor import LiquidationExecutor
from .ignore_memory import ShortTermIgnoreMemory
from .ledger import PositionLedger
from .liquidation_bot import LiquidationBot
from .logging_config import setup_logger
from .models import Venue
from .scanner import BatchScanner
from .scheduler import VenueFallbackScheduler, VenueFallbackStateMachine
from .state_store import UserStateStore
from .user_directory import UserDirectory

logger = setup_logger()


def build_bot(config: BotConfig, notify: bool = True) -> LiquidationBot:
    """Wire the ledger, scanner, executor and persisted state of one network."""
    ledger = PositionLedger(config)

    not_profitable_memory = ShortTermIgnoreMemory(
        ttl_seconds=float(config.NOT_PROFITABLE_IGNORE_TTL),
        state_dir=config.STATE_DIR_PATH,
        file_name=config.NOT_PROFITABLE_IGNORE_FILE,
    )
    error_memory = ShortTermIgnoreMemory(
        ttl_seconds=float(config.ERROR_IGNORE_TTL),
        state_dir=config.STATE_DIR_PATH,
        file_name=config.ERROR_IGNORE_FILE,
    )

    return LiquidationBot(
        config=config,
        ledger=ledger,
        user_directory=UserDirectory(config),
        scanner=BatchScanner(config, ledger, [not_profitable_memory, error_memory]),
        executor=LiquidationExecutor(config, ledger),
        state_store=UserStateStore(config.USER_STATE_DIR_PATH),
        not_profitable_memory=not_profitable_memory,
        error_memory=error_memory,
        notify=notify,
    )


class BotManager:
    """Manages the liquidation bot of one network"""

    def __init__(self, network: Optional[str] = None, notify: bool = True, config: Optional[BotConfig] = None):
        self.config = config or load_bot_config(network)
        self.network = self.config.NETWORK
        self.notify = notify
        self.stop_event = threading.Event()

        logger.info("Initializing liquidation bot for %s", self.config.NETWORK_NAME)
        self.bot = build_bot(self.config, notify=notify)
        self.machine = VenueFallbackStateMachine(
            primary=Venue(self.config.PRIMARY_VENUE),
            secondary=Venue(self.config.SECONDARY_VENUE),
            max_failures=int(self.config.MAX_PRIMARY_FAILURES),
            probe_interval=int(self.config.get("PRIMARY_PROBE_INTERVAL", 0)),
        )
        self.scheduler = VenueFallbackScheduler(
            self.bot, self.machine, float(self.config.SCAN_INTERVAL), self.stop_event
        )

    def start(self):
        """Run the scheduler until stopped"""
        try:
            self.scheduler.run_forever()
        except Exception as e:
            logger.error("Liquidation bot for %s failed: %s", self.config.NETWORK_NAME, e, exc_info=True)
            raise

    def stop(self):
        self.scheduler.stop()

    def status(self):
        status = self.scheduler.status()
        status["network"] = self.config.NETWORK_NAME
        return status
