"""CLI for splitledger."""

import typer

from .fund.cli import app as fund_app
from .mcp_server import run_server
from .meals.cli import app as meal_app
from .split.cli import app as split_app

app = typer.Typer(
    name="splitledger",
    help="Shared expenses, meal cost sharing and an emergency fund",
)

app.add_typer(split_app, name="split", help="Expense-splitting groups")
app.add_typer(meal_app, name="meal", help="Meal groups and grocery cost sharing")
app.add_typer(fund_app, name="fund", help="Personal emergency fund")


@app.command()
def mcp():
    """Start the MCP server."""
    run_server()


if __name__ == "__main__":
    app()
