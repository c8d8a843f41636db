"""CLI commands for expense-splitting groups."""

from datetime import datetime

import typer
from rich.table import Table

from ..models import Role, SplitType, TimeRange
from ..ui import (
    console,
    display_balances,
    display_transfers,
    end_of_day,
    format_money,
    open_database,
    parse_pairs,
)
from .service import SplitService

app = typer.Typer(
    name="split",
    help="Share expenses within a group and settle up",
)

ACTOR_HELP = "Act as this member (defaults to SPLITLEDGER_USER_EMAIL)"
DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]


@app.command("create-group")
def create_group(
    name: str = typer.Argument(..., help="Group name"),
    member: list[str] | None = typer.Option(
        None, "--member", "-m", help="Member as email or email=Name (repeatable)"
    ),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Create a group with yourself as admin."""
    with open_database(verbose) as (settings, db):
        service = SplitService(settings, db)
        group = service.create_group(actor or settings.user_email, name, member or [])
        console.print(
            f"[bold green]✓ Created group {group.id}:[/bold green] {group.name} "
            f"({len(group.members)} member(s))"
        )


@app.command()
def groups(
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List your groups."""
    with open_database(verbose) as (settings, db):
        service = SplitService(settings, db)
        found = service.list_groups(actor or settings.user_email)
        if not found:
            console.print("[yellow]No groups found.[/yellow]")
            return

        table = Table(title="Groups", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim", width=6)
        table.add_column("Name", style="cyan")
        table.add_column("Members")
        table.add_column("Updated", style="dim")
        for g in found:
            table.add_row(
                str(g.id),
                g.name,
                ", ".join(
                    f"{m.email} (admin)" if m.role == Role.ADMIN else m.email
                    for m in g.members
                ),
                g.updated_at.strftime("%Y-%m-%d %H:%M"),
            )
        console.print(table)


@app.command("add-members")
def add_members(
    group_id: int = typer.Argument(..., help="Group ID"),
    member: list[str] = typer.Option(
        ..., "--member", "-m", help="Member as email or email=Name (repeatable)"
    ),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Add members to a group (admin only)."""
    with open_database(verbose) as (settings, db):
        service = SplitService(settings, db)
        group = service.add_members(actor or settings.user_email, group_id, member)
        console.print(
            f"[green]✓ Group {group.id} now has {len(group.members)} member(s)[/green]"
        )


@app.command("delete-group")
def delete_group(
    group_id: int = typer.Argument(..., help="Group ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete a group with all its expenses and settlements (admin only)."""
    if not yes and not typer.confirm(f"Delete group {group_id} and all its records?"):
        console.print("[yellow]Cancelled.[/yellow]")
        return

    with open_database(verbose) as (settings, db):
        service = SplitService(settings, db)
        service.delete_group(actor or settings.user_email, group_id)
        console.print(f"[green]✓ Deleted group {group_id}[/green]")


@app.command("add-expense")
def add_expense(
    group_id: int = typer.Argument(..., help="Group ID"),
    amount: str = typer.Argument(..., help="Expense total, e.g. 42.50"),
    split: SplitType | None = typer.Option(
        None, "--split", "-s", help="equal, shares, percent or exact"
    ),
    participant: list[str] | None = typer.Option(
        None,
        "--participant",
        "-p",
        help="Participant as email or email=value (weight, percent or amount)",
    ),
    paid_by: str | None = typer.Option(None, "--paid-by", help="Payer email"),
    description: str | None = typer.Option(None, "--description", "-d"),
    category: str | None = typer.Option(None, "--category"),
    date: datetime | None = typer.Option(None, "--date", formats=DATE_FORMATS),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Record an expense.

    Without --participant the expense is split across every member.
    """
    with open_database(verbose) as (settings, db):
        service = SplitService(settings, db)
        emails, weights = parse_pairs(participant)
        expense = service.add_expense(
            actor or settings.user_email,
            group_id,
            amount,
            split_type=split,
            participants=emails or None,
            weights=weights,
            paid_by=paid_by,
            description=description,
            category=category,
            date=date,
        )

        console.print(
            f"[bold green]✓ Recorded expense {expense.id}:[/bold green] "
            f"{format_money(expense.amount)} paid by {expense.paid_by}"
        )
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Participant", style="cyan")
        table.add_column("Share", justify="right", width=14)
        for p in expense.participants:
            table.add_row(p.email, format_money(p.share))
        console.print(table)


@app.command()
def expenses(
    group_id: int = typer.Argument(..., help="Group ID"),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List a group's expenses, newest first."""
    with open_database(verbose) as (settings, db):
        service = SplitService(settings, db)
        found = service.list_expenses(actor or settings.user_email, group_id)
        if not found:
            console.print("[yellow]No expenses found.[/yellow]")
            return

        table = Table(title="Expenses", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim", width=6)
        table.add_column("Date", style="dim")
        table.add_column("Description", style="cyan", width=30)
        table.add_column("Paid by")
        table.add_column("Split")
        table.add_column("Amount", justify="right", width=14)
        for e in found:
            desc = e.description or ""
            table.add_row(
                str(e.id),
                e.date.strftime("%Y-%m-%d"),
                desc[:30] + "..." if len(desc) > 30 else desc,
                e.paid_by,
                e.split_type.value,
                format_money(e.amount),
            )
        console.print(table)


@app.command("delete-expense")
def delete_expense(
    group_id: int = typer.Argument(..., help="Group ID"),
    expense_id: int = typer.Argument(..., help="Expense ID"),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete an expense."""
    with open_database(verbose) as (settings, db):
        service = SplitService(settings, db)
        service.delete_expense(actor or settings.user_email, group_id, expense_id)
        console.print(f"[green]✓ Deleted expense {expense_id}[/green]")


@app.command()
def settle(
    group_id: int = typer.Argument(..., help="Group ID"),
    from_email: str = typer.Option(..., "--from", help="Who paid"),
    to_email: str = typer.Option(..., "--to", help="Who received"),
    amount: str = typer.Option(..., "--amount", help="Amount paid"),
    note: str | None = typer.Option(None, "--note"),
    date: datetime | None = typer.Option(None, "--date", formats=DATE_FORMATS),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Record a payment from one member to another."""
    with open_database(verbose) as (settings, db):
        service = SplitService(settings, db)
        settlement = service.record_settlement(
            actor or settings.user_email,
            group_id,
            from_email,
            to_email,
            amount,
            note=note,
            date=date,
        )
        console.print(
            f"[bold green]✓ Recorded settlement {settlement.id}:[/bold green] "
            f"{settlement.from_email} → {settlement.to_email} "
            f"{format_money(settlement.amount)}"
        )


@app.command()
def settlements(
    group_id: int = typer.Argument(..., help="Group ID"),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List a group's settlements, newest first."""
    with open_database(verbose) as (settings, db):
        service = SplitService(settings, db)
        found = service.list_settlements(actor or settings.user_email, group_id)
        if not found:
            console.print("[yellow]No settlements found.[/yellow]")
            return

        table = Table(
            title="Settlements", show_header=True, header_style="bold magenta"
        )
        table.add_column("ID", style="dim", width=6)
        table.add_column("Date", style="dim")
        table.add_column("From", style="cyan")
        table.add_column("To", style="cyan")
        table.add_column("Amount", justify="right", width=14)
        table.add_column("Note")
        for s in found:
            table.add_row(
                str(s.id),
                s.date.strftime("%Y-%m-%d"),
                s.from_email,
                s.to_email,
                format_money(s.amount),
                s.note or "",
            )
        console.print(table)


@app.command()
def summary(
    group_id: int = typer.Argument(..., help="Group ID"),
    start: datetime | None = typer.Option(None, "--from", formats=DATE_FORMATS),
    end: datetime | None = typer.Option(
        None, "--to", formats=DATE_FORMATS, callback=end_of_day
    ),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show balances and the transfers that settle everyone up."""
    with open_database(verbose) as (settings, db):
        service = SplitService(settings, db)
        time_range = TimeRange(start=start, end=end) if (start or end) else None
        result = service.group_summary(
            actor or settings.user_email, group_id, time_range
        )

        console.print(f"\n[bold]{result.group.name}[/bold]")
        display_balances(result.balances)
        display_transfers(result.suggestions)
