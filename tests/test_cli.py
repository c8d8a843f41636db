"""Smoke tests for the command-line interface."""

from datetime import datetime

import pytest
from typer.testing import CliRunner

from splitledger.cli import app
from splitledger.ui import end_of_day

runner = CliRunner()

ALICE = "alice@x.com"


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point the CLI at a temporary database and a default acting user."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SPLITLEDGER_DATABASE_PATH", str(tmp_path / "cli.db"))
    monkeypatch.setenv("SPLITLEDGER_USER_EMAIL", ALICE)


def invoke(*args):
    return runner.invoke(app, list(args))


class TestSplitCommands:
    def test_expense_flow(self):
        result = invoke(
            "split", "create-group", "Trip", "-m", "bob@x.com", "-m", "carol@x.com"
        )
        assert result.exit_code == 0, result.output
        assert "Created group 1" in result.output

        result = invoke("split", "add-expense", "1", "90", "-d", "Cabin")
        assert result.exit_code == 0, result.output

        result = invoke("split", "summary", "1", "--as", "bob@x.com")
        assert result.exit_code == 0, result.output
        assert "Suggested Transfers" in result.output
        assert "30.00" in result.output

    def test_weighted_participants(self):
        invoke("split", "create-group", "Flat")

        result = invoke(
            "split",
            "add-expense",
            "1",
            "100",
            "--split",
            "exact",
            "-p",
            "alice@x.com=40",
            "-p",
            "bob@x.com=60",
        )

        assert result.exit_code == 0, result.output
        assert "60.00" in result.output

    def test_invalid_split_exits_non_zero(self):
        invoke("split", "create-group", "Flat")

        result = invoke(
            "split",
            "add-expense",
            "1",
            "100",
            "--split",
            "exact",
            "-p",
            "alice@x.com=40",
            "-p",
            "bob@x.com=59.99",
        )

        assert result.exit_code == 1
        assert "Exact amounts must match" in result.output

    def test_partial_values_rejected(self):
        invoke("split", "create-group", "Flat")

        result = invoke(
            "split", "add-expense", "1", "10", "-p", "alice@x.com=4", "-p", "bob@x.com"
        )

        assert result.exit_code == 1

    def test_non_member_rejected(self):
        invoke("split", "create-group", "Flat")

        result = invoke("split", "expenses", "1", "--as", "eve@x.com")

        assert result.exit_code == 1
        assert "Not a member" in result.output

    def test_settle_and_list(self):
        invoke("split", "create-group", "Flat", "-m", "bob@x.com")

        result = invoke(
            "split", "settle", "1", "--from", "bob@x.com", "--to", ALICE, "--amount", "5"
        )
        assert result.exit_code == 0, result.output

        result = invoke("split", "settlements", "1")
        assert result.exit_code == 0, result.output
        assert "bob@x.com" in result.output

    def test_date_only_upper_bound_covers_whole_day(self):
        invoke("split", "create-group", "Trip", "-m", "bob@x.com")
        invoke("split", "add-expense", "1", "90", "--date", "2026-01-31 18:00:00")

        result = invoke("split", "summary", "1", "--to", "2026-01-31")
        assert result.exit_code == 0, result.output
        assert "45.00" in result.output

        result = invoke("split", "summary", "1", "--to", "2026-01-30")
        assert result.exit_code == 0, result.output
        assert "Everyone is settled up" in result.output

    def test_delete_group_with_yes(self):
        invoke("split", "create-group", "Flat")

        result = invoke("split", "delete-group", "1", "--yes")
        assert result.exit_code == 0, result.output

        result = invoke("split", "groups")
        assert "No groups found" in result.output


class TestMealCommands:
    def test_meal_flow(self):
        assert invoke("meal", "create-group", "Kitchen", "-m", "bob@x.com").exit_code == 0
        assert invoke("meal", "add-item", "1", "Groceries").exit_code == 0

        result = invoke("meal", "purchase", "1", "1", "90", "--date", "2025-01-10")
        assert result.exit_code == 0, result.output

        result = invoke(
            "meal",
            "record-meal",
            "1",
            "dinner",
            "-e",
            "alice@x.com=15",
            "-e",
            "bob@x.com=15",
            "--date",
            "2025-01-10",
        )
        assert result.exit_code == 0, result.output

        result = invoke("meal", "summary", "1")
        assert result.exit_code == 0, result.output
        assert "Cost per serving" in result.output
        assert "3.00" in result.output

    def test_duty_conflict(self):
        invoke("meal", "create-group", "Kitchen", "-m", "bob@x.com")
        assert invoke("meal", "assign-duty", "1", "2025-01-10", "bob@x.com").exit_code == 0

        result = invoke("meal", "assign-duty", "1", "2025-01-10", ALICE, "--no-replace")

        assert result.exit_code == 1

        result = invoke("meal", "duties", "1")
        assert "bob@x.com" in result.output


class TestFundCommands:
    def test_fund_flow(self):
        result = invoke("fund", "setup", "amount", "--amount", "1000")
        assert result.exit_code == 0, result.output

        assert invoke("fund", "contribute", "300").exit_code == 0

        result = invoke("fund", "summary")
        assert result.exit_code == 0, result.output
        assert "seedling" in result.output

        result = invoke("fund", "withdraw", "500")
        assert result.exit_code == 1
        assert "Insufficient balance" in result.output

        result = invoke("fund", "transactions")
        assert result.exit_code == 0, result.output
        assert "deposit" in result.output

    def test_summary_without_fund(self):
        result = invoke("fund", "summary")

        assert result.exit_code == 1
        assert "No emergency fund set up yet" in result.output


class TestEndOfDay:
    def test_date_only_extends_to_end_of_day(self):
        assert end_of_day(datetime(2026, 1, 31)) == datetime(
            2026, 1, 31, 23, 59, 59, 999999
        )

    def test_explicit_time_kept(self):
        moment = datetime(2026, 1, 31, 18, 30)

        assert end_of_day(moment) == moment

    def test_none_passes_through(self):
        assert end_of_day(None) is None
