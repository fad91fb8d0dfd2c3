"""
Liquidate a given list of users once on one venue, bypassing the scanner's
ignore memories and batch cap.

    python liquidate_specific_users.py --network fraxtal_mainnet --venue curve --users 0xabc,0xdef
"""
import argparse
import sys

from dotenv import load_dotenv

load_dotenv()

from app.liquidation.bot_manager import build_bot
from app.liquidation.config_loader import load_bot_config
from app.liquidation.logging_config import setup_logger
from app.liquidation.models import Venue

logger = setup_logger()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Liquidate specific users")
    parser.add_argument("--network", type=str, default=None, help="Network name from app/config.yaml")
    parser.add_argument("--venue", type=str, default=None, choices=[venue.value for venue in Venue],
                        help="Swap venue, defaults to the network's primary venue")
    parser.add_argument("--users", type=str, required=True, help="Comma separated user addresses")
    parser.add_argument("--no-notify", action="store_true", help="Do not send notifications")
    args = parser.parse_args(argv)

    users = [user.strip() for user in args.users.split(",") if user.strip()]
    if not users:
        parser.error("No users given")

    config = load_bot_config(args.network)
    venue = Venue(args.venue or config.PRIMARY_VENUE)
    bot = build_bot(config, notify=not args.no_notify)

    logger.info("Liquidating %s users on %s with %s", len(users), config.NETWORK_NAME, venue.value)
    report = bot.liquidate_users(users, venue)

    print(f"Liquidated     : {len(report.liquidated)}")
    print(f"Not profitable : {report.not_profitable}")
    print(f"No route       : {report.no_route}")
    print(f"Zero debt      : {report.zero_debt}")
    print(f"Failed         : {report.failed}")
    return 0 if not report.had_failures else 1


if __name__ == "__main__":
    sys.exit(main())
