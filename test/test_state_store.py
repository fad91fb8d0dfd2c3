"""
Tests for the user state files and the CSV report.
"""

import csv
from unittest.mock import patch

import pytest

from app.liquidation.models import UserStateRecord
from app.liquidation.state_store import UserStateStore, generate_state_report, main

USER_A = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
USER_B = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"
USER_C = "0x90F79bf6EB2c4f870365E785982E1f101E93b906"


def _record(**kwargs):
    defaults = {
        "health_factor": 0.9,
        "to_liquidate_amount": 800 * 10**6,
        "collateral_token": {"address": "0x2222222222222222222222222222222222222222", "symbol": "WETH"},
        "debt_token": {"address": "0x1111111111111111111111111111111111111111", "symbol": "USDC"},
        "last_trial_timestamp": 1_700_000_000_000,
    }
    defaults.update(kwargs)
    return UserStateRecord(**defaults)


@pytest.fixture()
def state_path(tmp_path):
    path = tmp_path / "localhost"
    store = UserStateStore(str(path / "user-state"))
    store.save(USER_A, _record(success=True, profitable=True, profit_in_usd=40.0))
    store.save(USER_B, _record(profitable=True, error="ExecutionFailure", error_message="reverted"))
    store.save(USER_C, _record(profit_in_usd=0.1, error="NotProfitableLiquidation"))
    return path


def test_save_overwrites_latest_attempt(tmp_path):
    store = UserStateStore(str(tmp_path))
    store.save(USER_A, _record(error="NoRouteAvailable"))
    store.save(USER_A, _record(success=True))

    record = store.load(USER_A)
    assert record.success
    assert record.error == ""
    assert (tmp_path / f"{USER_A.lower()}.json").exists()


def test_json_uses_camel_case(tmp_path):
    record = _record()
    data = record.to_dict()

    assert data["toLiquidateAmount"] == "800000000"
    assert data["lastTrial"] == 1_700_000_000_000
    assert UserStateRecord.from_dict(data) == record


def test_load_all_skips_corrupt_files(state_path):
    (state_path / "user-state" / "0xbad.json").write_text("{not json", encoding="utf-8")

    records = UserStateStore(str(state_path / "user-state")).load_all()

    assert set(records) == {USER_A.lower(), USER_B.lower(), USER_C.lower()}


def test_generate_state_report(state_path):
    summary = generate_state_report(str(state_path))

    assert summary.report_path == str(state_path.parent / "localhost-report.csv")
    assert (summary.successful, summary.failed_profitable, summary.not_profitable, summary.total) == (1, 1, 1, 3)

    with open(summary.report_path, "r", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows[0][0] == "User Address"
    assert len(rows) == 4
    assert "2023-11-14 22:13:20" in [row[8] for row in rows[1:]]


def test_generate_state_report_missing_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        generate_state_report(str(tmp_path / "missing"))

    (tmp_path / "empty").mkdir()
    with pytest.raises(FileNotFoundError):
        generate_state_report(str(tmp_path / "empty"))


def test_main(state_path, capsys):
    assert main([str(state_path)]) == 0
    assert "Total             : 3" in capsys.readouterr().out
    assert main([str(state_path / "missing")]) == 1


@patch("app.liquidation.state_store.post_state_report_notification", return_value=True)
@patch("app.liquidation.state_store.load_bot_config")
def test_main_notify_posts_report(mock_load_config, mock_post, state_path):
    assert main([str(state_path), "--notify", "localhost"]) == 0

    mock_load_config.assert_called_once_with("localhost")
    summary, config = mock_post.call_args.args
    assert summary.total == 3
    assert summary.report_path.endswith("-report.csv")
    assert config is mock_load_config.return_value


@patch("app.liquidation.state_store.post_state_report_notification", return_value=False)
@patch("app.liquidation.state_store.load_bot_config")
def test_main_notify_failure(mock_load_config, mock_post, state_path):
    assert main([str(state_path), "--notify", "localhost"]) == 1


@patch("app.liquidation.state_store.post_state_report_notification")
def test_main_without_notify_sends_nothing(mock_post, state_path):
    assert main([str(state_path)]) == 0

    mock_post.assert_not_called()
