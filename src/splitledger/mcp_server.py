"""MCP server for splitledger: read-only ledger queries as tools."""

import json
import logging
from dataclasses import dataclass

from mcp.server.fastmcp import FastMCP

from .config import Settings, load_settings
from .db import Database
from .exceptions import InvalidInputError, SplitLedgerError
from .fund.service import FundService
from .meals.service import MealService
from .models import Transfer
from .split.planner import plan_settlements
from .split.service import SplitService

logger = logging.getLogger(__name__)

mcp_app = FastMCP("splitledger")

# ---------------------------------------------------------------------------
# Session state: one MCP server process shares one database connection
# ---------------------------------------------------------------------------


@dataclass
class SessionState:
    """Services shared between MCP tool calls."""

    settings: Settings | None = None
    db: Database | None = None
    split: SplitService | None = None
    meals: MealService | None = None
    fund: FundService | None = None


_state = SessionState()


def _ensure_services() -> SessionState:
    """Lazily load settings and open the database."""
    if _state.db is None:
        settings = load_settings()
        _state.settings = settings
        _state.db = Database(settings.database_path)
        _state.split = SplitService(settings, _state.db)
        _state.meals = MealService(settings, _state.db)
        _state.fund = FundService(settings, _state.db)
    return _state


def _actor(email: str | None) -> str:
    assert _state.settings is not None
    return email or _state.settings.user_email


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _format_amount(amount) -> str:
    """Format an amount as an accounting-style dollar string."""
    if amount < 0:
        return f"(${abs(amount):,.2f})"
    return f"${amount:,.2f}"


def _format_balances(balances) -> list[str]:
    return [f"  {email}: {_format_amount(b)}" for email, b in balances.items()]


def _format_transfers(transfers: list[Transfer]) -> list[str]:
    if not transfers:
        return ["  Everyone is settled up."]
    return [
        f"  {t.from_email} -> {t.to_email}: {_format_amount(t.amount)}"
        for t in transfers
    ]


# ---------------------------------------------------------------------------
# MCP Tools
# ---------------------------------------------------------------------------


@mcp_app.tool()
def list_groups(email: str | None = None) -> str:
    """List the split and meal groups a member belongs to.

    Args:
        email: Member email (defaults to the configured user).
    """
    try:
        state = _ensure_services()
        actor = _actor(email)
        assert state.split is not None and state.meals is not None
        found = state.split.list_groups(actor) + state.meals.list_groups(actor)

        if not found:
            return f"No groups found for {actor}."

        lines = [f"Groups for {actor}:"]
        for g in found:
            lines.append(
                f"[{g.id}] {g.name} ({g.kind.value}, {len(g.members)} member(s))"
            )
        return "\n".join(lines)
    except SplitLedgerError as e:
        return f"Error: {e}"


@mcp_app.tool()
def group_summary(group_id: int, email: str | None = None) -> str:
    """Show balances and suggested transfers for an expense-splitting group.

    Args:
        group_id: Group ID from list_groups.
        email: Acting member email (defaults to the configured user).
    """
    try:
        state = _ensure_services()
        assert state.split is not None
        result = state.split.group_summary(_actor(email), group_id)

        lines = [f"{result.group.name} balances:"]
        lines.extend(_format_balances(result.balances))
        lines.append("Suggested transfers:")
        lines.extend(_format_transfers(result.suggestions))
        return "\n".join(lines)
    except SplitLedgerError as e:
        return f"Error: {e}"


@mcp_app.tool()
def meal_summary(group_id: int, email: str | None = None) -> str:
    """Show cost per serving, balances and transfers for a meal group.

    Args:
        group_id: Meal group ID from list_groups.
        email: Acting member email (defaults to the configured user).
    """
    try:
        state = _ensure_services()
        assert state.meals is not None
        result = state.meals.summary(_actor(email), group_id)

        lines = [
            "Meal summary:",
            f"  Total spend: {_format_amount(result.total_spend)}",
            f"  Total servings: {result.total_servings}",
            f"  Cost per serving: {_format_amount(result.cost_per_serving)}",
            "Balances:",
        ]
        lines.extend(_format_balances(result.balances))
        lines.append("Suggested transfers:")
        lines.extend(_format_transfers(result.suggestions))
        return "\n".join(lines)
    except SplitLedgerError as e:
        return f"Error: {e}"


@mcp_app.tool()
def fund_summary(email: str | None = None) -> str:
    """Show emergency fund progress.

    Args:
        email: Fund owner email (defaults to the configured user).
    """
    try:
        state = _ensure_services()
        assert state.fund is not None
        progress = state.fund.summary(_actor(email))
        fund = progress.fund

        return "\n".join(
            [
                "Emergency fund:",
                f"  Balance: {_format_amount(fund.current_balance)}",
                f"  Target: {_format_amount(fund.target_amount)}",
                f"  Progress: {progress.percent}% ({progress.band})",
                f"  Next milestone: {progress.next_milestone_pct}% "
                f"({_format_amount(progress.next_milestone_needed)} to go)",
                f"  Monthly plan: {_format_amount(fund.monthly_plan)}",
                f"  Badges: {', '.join(fund.badges) or 'none yet'}",
            ]
        )
    except SplitLedgerError as e:
        return f"Error: {e}"


@mcp_app.tool()
def plan_transfers(balances_json: str) -> str:
    """Suggest transfers that settle a set of net balances.

    Args:
        balances_json: JSON object of member -> balance; negative owes,
            positive is owed. Example: {"a@x.com": -30, "b@x.com": 30}
    """
    try:
        try:
            raw = json.loads(balances_json)
        except json.JSONDecodeError as e:
            raise InvalidInputError(f"Invalid JSON: {e}") from e
        if not isinstance(raw, dict):
            raise InvalidInputError("Balances must be a JSON object")

        balances = {str(k): str(v) for k, v in raw.items()}
        try:
            transfers = plan_settlements(balances)
        except ArithmeticError as e:
            raise InvalidInputError(f"Invalid balance: {e}") from e

        lines = ["Suggested transfers:"]
        lines.extend(_format_transfers(transfers))
        return "\n".join(lines)
    except SplitLedgerError as e:
        return f"Error: {e}"


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def run_server():
    """Start the MCP server (stdio transport)."""
    mcp_app.run(transport="stdio")
