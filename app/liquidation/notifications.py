"""
Slack notification functions for the liquidation bot.
"""

import time
from typing import Optional

from apprise import Apprise

from .config_loader import BotConfig
from .logging_config import setup_logger
from .models import LiquidationCandidate, LiquidationResult, ReportSummary, Venue

logger = setup_logger()


def setup_apprise_notification_object(config: BotConfig) -> Apprise:
    """Set up the Apprise notification engine."""
    apprise = Apprise()
    if config.NOTIFICATION_URL:
        apprise.add(config.NOTIFICATION_URL)
    return apprise


def get_tx_link(tx_hash: str, config: BotConfig) -> str:
    explorer_url = config.get("EXPLORER_URL")
    if not explorer_url:
        return f"`{tx_hash}`"
    return f"<{explorer_url}/tx/{tx_hash}|View Transaction on Explorer>"


def _slack_mentions(config: BotConfig) -> str:
    """Build Slack mention string from config."""
    mention_ids = getattr(config, "SLACK_MENTION_IDS", [])
    return " ".join(f"<@{uid}>" for uid in mention_ids)


def _send(config: BotConfig, body: str, title: str, attach: Optional[str] = None) -> bool:
    """Alerts are best effort, a failing sink never interrupts the bot."""
    try:
        apprise = setup_apprise_notification_object(config)
        if attach:
            return apprise.notify(body=body, title=title, attach=attach)
        return apprise.notify(body=body, title=title)
    except Exception as ex:
        logger.error("Failed to send %s notification: %s", title, ex, exc_info=True)
        return False


def post_liquidation_success_notification(
    candidate: LiquidationCandidate,
    result: LiquidationResult,
    profit_in_usd: float,
    venue: Venue,
    config: BotConfig,
) -> bool:
    """Post a Slack notification about a completed liquidation."""
    debt = candidate.debt_reserve
    collateral = candidate.collateral_reserve
    message = (
        ":moneybag: *Liquidation Completed* :moneybag:\n\n"
        f"*User*: `{candidate.user_address}`\n\n"
        f"*Liquidation Details:*\n"
        f"• Health Factor: `{candidate.health_factor / 10**18:.4f}`\n"
        f"• Debt Covered: `{result.debt_covered / 10**debt.decimals}` {debt.symbol}\n"
        f"• Collateral Seized: `{result.seized_collateral_amount / 10**collateral.decimals}` {collateral.symbol}\n"
        f"• Expected Profit: `${profit_in_usd:.4f}`\n"
        f"• Venue: `{venue.value}` ({result.flash_mode.value})\n"
        f"• Gas Used: `{result.gas_used}`\n"
        f"• Liquidation Transaction: {get_tx_link(result.tx_hash, config)}\n"
        f"Time of liquidation: {time.strftime('%Y-%m-%d %H:%M:%S')}\n\n"
        f"Network: `{config.NETWORK_NAME}` {_slack_mentions(config)}"
    )
    logger.info("Liquidation success notification:\n%s", message)

    return _send(config, message, "Liquidation Completed")


def post_execution_error_notification(
    candidate: LiquidationCandidate, error: Exception, venue: Venue, config: BotConfig
) -> bool:
    """Post a Slack notification about a liquidation that was submitted but failed."""
    message = (
        ":x: *Liquidation Failed* :x:\n\n"
        f"*User*: `{candidate.user_address}`\n"
        f"*Health Factor*: `{candidate.health_factor / 10**18:.4f}`\n"
        f"*Pair*: `{candidate.collateral_reserve.symbol}` -> `{candidate.debt_reserve.symbol}`\n"
        f"*Venue*: `{venue.value}`\n"
        f"*Error*: `{type(error).__name__}: {error}`\n"
    )
    tx_hash = getattr(error, "tx_hash", None)
    if tx_hash:
        message += f"*Transaction*: {get_tx_link(tx_hash, config)}\n"
    message += (
        f"Time: {time.strftime('%Y-%m-%d %H:%M:%S')}\n\n"
        f"Network: `{config.NETWORK_NAME}` {_slack_mentions(config)}"
    )
    logger.info("Execution error notification:\n%s", message)

    return _send(config, message, "Liquidation Failed")


def post_state_report_notification(summary: ReportSummary, config: BotConfig) -> bool:
    """Post the user state summary with the CSV report attached."""
    message = (
        "*Liquidation State Report*\n\n"
        f"• Successful: `{summary.successful}`\n"
        f"• Failed profitable: `{summary.failed_profitable}`\n"
        f"• Non-profitable: `{summary.not_profitable}`\n"
        f"• Total: `{summary.total}`\n"
        f"\nTime of report: `{time.strftime('%Y-%m-%d %H:%M:%S')}`"
        f"\nNetwork: `{config.NETWORK_NAME}`"
    )
    logger.info("State report notification:\n%s", message)

    return _send(config, message, "Liquidation State Report", attach=summary.report_path)


def post_error_notification(message: str, config: BotConfig = None) -> bool:
    """Post an error notification to Slack."""
    error_message = f":rotating_light: *Error Notification* :rotating_light:\n\n{message}\n\n"
    error_message += f"Time: {time.strftime('%Y-%m-%d %H:%M:%S')}\n"
    if config:
        error_message += f"Network: `{config.NETWORK_NAME}` {_slack_mentions(config)}"

    logger.info("Error notification:\n%s", error_message)

    if config is None:
        return False
    return _send(config, error_message, "Error Notification")
