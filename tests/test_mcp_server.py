"""Tests for the MCP tools."""

import pytest

from splitledger import mcp_server
from splitledger.mcp_server import (
    SessionState,
    fund_summary,
    group_summary,
    list_groups,
    meal_summary,
    plan_transfers,
)


@pytest.fixture(autouse=True)
def fresh_state(tmp_path, monkeypatch):
    """Give every test its own database and session."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SPLITLEDGER_DATABASE_PATH", str(tmp_path / "mcp.db"))
    monkeypatch.setenv("SPLITLEDGER_USER_EMAIL", "alice@x.com")
    state = SessionState()
    monkeypatch.setattr(mcp_server, "_state", state)
    yield state
    if state.db is not None:
        state.db.close()


class TestPlanTransfers:
    def test_plan(self):
        result = plan_transfers('{"a": -30, "b": -10, "c": 40}')

        assert result.splitlines() == [
            "Suggested transfers:",
            "  a -> c: $30.00",
            "  b -> c: $10.00",
        ]

    def test_settled(self):
        assert "Everyone is settled up" in plan_transfers('{"a": 0}')

    def test_invalid_json(self):
        assert plan_transfers("not json").startswith("Error: Invalid JSON")

    def test_not_an_object(self):
        assert plan_transfers("[1, 2]") == "Error: Balances must be a JSON object"

    def test_bad_number(self):
        assert plan_transfers('{"a": "lots"}').startswith("Error: Invalid balance")


class TestLedgerTools:
    def test_group_summary(self, fresh_state):
        state = mcp_server._ensure_services()
        group = state.split.create_group("alice@x.com", "Trip", ["bob@x.com"])
        state.split.add_expense("alice@x.com", group.id, "50")

        result = group_summary(group.id)

        assert "Trip balances:" in result
        assert "bob@x.com -> alice@x.com: $25.00" in result

    def test_list_groups(self):
        state = mcp_server._ensure_services()
        state.split.create_group("alice@x.com", "Trip")
        state.meals.create_group("alice@x.com", "Kitchen")

        result = list_groups()

        assert "Trip (split, 1 member(s))" in result
        assert "Kitchen (meal, 1 member(s))" in result

    def test_errors_are_reported(self):
        assert group_summary(42) == "Error: Group not found"
        assert fund_summary() == "Error: No emergency fund set up yet."

    def test_meal_summary_of_empty_group(self):
        state = mcp_server._ensure_services()
        group = state.meals.create_group("alice@x.com", "Kitchen")

        result = meal_summary(group.id)

        assert "Cost per serving: $0.00" in result
