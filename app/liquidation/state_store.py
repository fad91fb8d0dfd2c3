"""
Per-user liquidation state files and the CSV report built from them.

Layout::

    <state-dir>/<network>/user-state/<user-address>.json
    <state-dir>/<network>/ignoreMemory.json
"""

import argparse
import csv
import json
import os
import sys
import time
from typing import Dict, List, Optional

from dotenv import load_dotenv

from .config_loader import load_bot_config
from .logging_config import setup_logger
from .models import ReportSummary, UserStateRecord
from .notifications import post_state_report_notification

logger = setup_logger()

USER_STATE_DIR_NAME = "user-state"

REPORT_COLUMNS = [
    ("userAddress", "User Address"),
    ("healthFactor", "Health Factor"),
    ("toLiquidateAmount", "To Liquidate Amount"),
    ("profitInUSD", "Profit In USD"),
    ("collateralTokenSymbol", "Collateral Token Symbol"),
    ("collateralTokenAddress", "Collateral Token Address"),
    ("debtTokenSymbol", "Debt Token Symbol"),
    ("debtTokenAddress", "Debt Token Address"),
    ("lastTrial", "Last Trial"),
    ("profitable", "Profitable"),
    ("success", "Success"),
    ("errorMessage", "Error Message"),
]


class UserStateStore:
    """Reads and overwrites the latest attempt for each borrower."""

    def __init__(self, user_state_dir: str):
        self.user_state_dir = user_state_dir

    def _path(self, user_address: str) -> str:
        return os.path.join(self.user_state_dir, f"{user_address.lower()}.json")

    def save(self, user_address: str, record: UserStateRecord) -> None:
        os.makedirs(self.user_state_dir, exist_ok=True)
        with open(self._path(user_address), "w", encoding="utf-8") as f:
            json.dump(record.to_dict(), f, indent=2)

    def load(self, user_address: str) -> Optional[UserStateRecord]:
        path = self._path(user_address)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return UserStateRecord.from_dict(json.load(f))

    def load_all(self) -> Dict[str, UserStateRecord]:
        if not os.path.isdir(self.user_state_dir):
            return {}

        records = {}
        for file_name in sorted(os.listdir(self.user_state_dir)):
            if not file_name.endswith(".json"):
                continue
            user_address = file_name[: -len(".json")]
            try:
                with open(os.path.join(self.user_state_dir, file_name), "r", encoding="utf-8") as f:
                    records[user_address] = UserStateRecord.from_dict(json.load(f))
            except (json.JSONDecodeError, IOError) as ex:
                logger.error("UserStateStore: Skipping corrupt state file %s: %s", file_name, ex)
        return records


def _to_report_row(user_address: str, record: UserStateRecord) -> Dict[str, str]:
    collateral = record.collateral_token or {}
    debt = record.debt_token or {}
    return {
        "userAddress": user_address,
        "healthFactor": str(record.health_factor),
        "toLiquidateAmount": str(record.to_liquidate_amount),
        "profitInUSD": str(record.profit_in_usd),
        "collateralTokenSymbol": collateral.get("symbol", ""),
        "collateralTokenAddress": collateral.get("address", ""),
        "debtTokenSymbol": debt.get("symbol", ""),
        "debtTokenAddress": debt.get("address", ""),
        "lastTrial": time.strftime("%Y-%m-%d %H:%M:%S", time.gmtime(record.last_trial_timestamp / 1000)),
        "profitable": str(record.profitable).lower(),
        "success": str(record.success).lower(),
        "errorMessage": record.error_message,
    }


def write_state_report(records: Dict[str, UserStateRecord], report_path: str) -> ReportSummary:
    with open(report_path, "w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=[key for key, _ in REPORT_COLUMNS])
        writer.writerow({key: title for key, title in REPORT_COLUMNS})
        for user_address, record in records.items():
            writer.writerow(_to_report_row(user_address, record))

    values = list(records.values())
    return ReportSummary(
        report_path=report_path,
        successful=sum(1 for r in values if r.success),
        failed_profitable=sum(1 for r in values if not r.success and r.profitable),
        not_profitable=sum(1 for r in values if not r.success and not r.profitable),
        total=len(values),
    )


def generate_state_report(state_path: str) -> ReportSummary:
    """
    Build ``<parent>/<state-dir-name>-report.csv`` from every user state file
    under ``<state_path>/user-state``.
    """
    if not os.path.exists(state_path):
        raise FileNotFoundError(f"State path does not exist: {state_path}")

    user_state_dir = os.path.join(state_path, USER_STATE_DIR_NAME)
    if not os.path.exists(user_state_dir):
        raise FileNotFoundError(f"User state files directory does not exist: {user_state_dir}")

    records = UserStateStore(user_state_dir).load_all()
    logger.info("Found %s user state logs", len(records))

    normalized = os.path.normpath(state_path)
    report_path = os.path.join(os.path.dirname(normalized), f"{os.path.basename(normalized)}-report.csv")

    summary = write_state_report(records, report_path)
    logger.info(
        "State report written to %s. Successful: %s, Failed profitable: %s, Non-profitable: %s, Total: %s",
        summary.report_path, summary.successful, summary.failed_profitable, summary.not_profitable, summary.total,
    )
    return summary


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Generate a CSV report from liquidation bot user state files")
    parser.add_argument("state_path", type=str, help="State directory of one network, e.g. state/fraxtal_mainnet")
    parser.add_argument(
        "--notify",
        metavar="NETWORK",
        help="Post the summary and the CSV to the notification channel of this network",
    )
    args = parser.parse_args(argv)

    try:
        summary = generate_state_report(args.state_path)
    except FileNotFoundError as ex:
        logger.error("%s", ex)
        return 1

    print("Summary")
    print("-------")
    print(f" - Successful        : {summary.successful}")
    print(f" - Failed profitable : {summary.failed_profitable}")
    print(f" - Non-profitable    : {summary.not_profitable}")
    print(f" - Total             : {summary.total}")

    if args.notify:
        load_dotenv()
        config = load_bot_config(args.notify)
        if not post_state_report_notification(summary, config):
            logger.error("Failed to send the state report for %s", config.NETWORK_NAME)
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
