"""CLI commands for the personal emergency fund."""

from datetime import datetime

import typer
from rich.table import Table

from ..models import FundTransactionType
from ..ui import console, format_money, open_database
from .service import FundService

app = typer.Typer(
    name="fund",
    help="Build an emergency fund towards a goal",
)

ACTOR_HELP = "Act as this owner (defaults to SPLITLEDGER_USER_EMAIL)"

BAND_STYLES = {"secure": "green", "steady": "yellow", "seedling": "red"}


def display_fund(fund):
    """Display a fund's goal and balance."""
    console.print("\n[bold]Emergency Fund:[/bold]")
    console.print(f"  Balance: {format_money(fund.current_balance)}")
    console.print(f"  Target: {format_money(fund.target_amount)}")
    if fund.target_months:
        console.print(f"  Months covered: {fund.target_months}")
    if fund.target_date:
        console.print(f"  Target date: {fund.target_date.date()}")
    console.print(f"  Monthly plan: {format_money(fund.monthly_plan)}")
    console.print(f"  Streak: {fund.streak_count} month(s)")
    if fund.badges:
        console.print(f"  Badges: {', '.join(fund.badges)}")


@app.command()
def setup(
    method: str = typer.Argument(..., help='"months" or "amount"'),
    months: int | None = typer.Option(None, "--months", help="Months to cover"),
    amount: str | None = typer.Option(None, "--amount", help="Target amount"),
    essential_monthly: str | None = typer.Option(
        None, "--essential-monthly", help="Average essential spend per month"
    ),
    by: datetime | None = typer.Option(
        None, "--by", formats=["%Y-%m-%d"], help="Reach the target by this date"
    ),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Configure the fund's goal."""
    with open_database(verbose) as (settings, db):
        service = FundService(settings, db)
        fund = service.setup(
            actor or settings.user_email,
            method,
            target_months=months,
            target_amount=amount,
            target_date=by,
            essential_monthly=essential_monthly,
        )
        console.print("[bold green]✓ Emergency fund configured[/bold green]")
        display_fund(fund)


@app.command()
def summary(
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show progress towards the goal."""
    with open_database(verbose) as (settings, db):
        service = FundService(settings, db)
        progress = service.summary(actor or settings.user_email)

        display_fund(progress.fund)
        style = BAND_STYLES[progress.band]
        console.print(
            f"  Progress: {progress.percent}% [{style}]{progress.band}[/{style}]"
        )
        console.print(
            f"  Next milestone: {progress.next_milestone_pct}% "
            f"({format_money(progress.next_milestone_needed)} to go)"
        )


@app.command()
def contribute(
    amount: str = typer.Argument(..., help="Amount to deposit"),
    note: str | None = typer.Option(None, "--note"),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Deposit into the fund."""
    with open_database(verbose) as (settings, db):
        service = FundService(settings, db)
        fund, tx = service.contribute(actor or settings.user_email, amount, note)
        console.print(
            f"[bold green]✓ Contribution added:[/bold green] {format_money(tx.amount)}"
        )
        display_fund(fund)


@app.command()
def withdraw(
    amount: str = typer.Argument(..., help="Amount to withdraw"),
    note: str | None = typer.Option(None, "--note"),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Withdraw from the fund."""
    with open_database(verbose) as (settings, db):
        service = FundService(settings, db)
        fund, tx = service.withdraw(actor or settings.user_email, amount, note)
        console.print(
            f"[bold green]✓ Withdrawal recorded:[/bold green] {format_money(tx.amount)}"
        )
        display_fund(fund)


@app.command()
def transactions(
    page: int = typer.Option(1, "--page"),
    limit: int | None = typer.Option(None, "--limit", help="Page size (max 100)"),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List deposits and withdrawals, newest first."""
    with open_database(verbose) as (settings, db):
        service = FundService(settings, db)
        result = service.list_transactions(actor or settings.user_email, page, limit)
        if not result.items:
            console.print("[yellow]No transactions found.[/yellow]")
            return

        table = Table(
            title=f"Transactions (page {result.page}, {result.total} total)",
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("Date", style="dim")
        table.add_column("Type")
        table.add_column("Amount", justify="right", width=14)
        table.add_column("Note")
        for tx in result.items:
            signed = -tx.amount if tx.type == FundTransactionType.WITHDRAWAL else tx.amount
            table.add_row(
                tx.created_at.strftime("%Y-%m-%d %H:%M"),
                tx.type.value,
                format_money(signed),
                tx.note or "",
            )
        console.print(table)


@app.command("update-goal")
def update_goal(
    amount: str | None = typer.Option(None, "--amount", help="New target amount"),
    months: int | None = typer.Option(None, "--months", help="Months to cover"),
    by: datetime | None = typer.Option(
        None, "--by", formats=["%Y-%m-%d"], help="Reach the target by this date"
    ),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Change the fund's goal and recompute the monthly plan."""
    with open_database(verbose) as (settings, db):
        service = FundService(settings, db)
        fund = service.update_goal(
            actor or settings.user_email,
            target_amount=amount,
            target_months=months,
            target_date=by,
        )
        console.print("[bold green]✓ Goal updated[/bold green]")
        display_fund(fund)
