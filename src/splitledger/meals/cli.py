"""CLI commands for meal groups: groceries, shopping duty and servings."""

from datetime import datetime

import typer
from rich.table import Table

from ..models import MealSlot
from ..ui import (
    console,
    display_balances,
    display_transfers,
    end_of_day,
    format_money,
    open_database,
    parse_pairs,
)
from .service import MealService

app = typer.Typer(
    name="meal",
    help="Share grocery costs by the servings each member eats",
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
    """Create a meal group with yourself as admin."""
    with open_database(verbose) as (settings, db):
        service = MealService(settings, db)
        group = service.create_group(actor or settings.user_email, name, member or [])
        console.print(
            f"[bold green]✓ Created meal group {group.id}:[/bold green] {group.name}"
        )


@app.command()
def groups(
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List your meal groups."""
    with open_database(verbose) as (settings, db):
        service = MealService(settings, db)
        found = service.list_groups(actor or settings.user_email)
        if not found:
            console.print("[yellow]No meal groups found.[/yellow]")
            return

        table = Table(title="Meal Groups", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim", width=6)
        table.add_column("Name", style="cyan")
        table.add_column("Members")
        for g in found:
            table.add_row(str(g.id), g.name, ", ".join(g.member_keys))
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
    """Add members to a meal group (admin only)."""
    with open_database(verbose) as (settings, db):
        service = MealService(settings, db)
        group = service.add_members(actor or settings.user_email, group_id, member)
        console.print(
            f"[green]✓ Group {group.id} now has {len(group.members)} member(s)[/green]"
        )


@app.command("add-item")
def add_item(
    group_id: int = typer.Argument(..., help="Group ID"),
    name: str = typer.Argument(..., help="Item name"),
    quantity: str = typer.Option("1", "--quantity", "-q"),
    unit: str | None = typer.Option(None, "--unit"),
    needed_for: datetime | None = typer.Option(
        None, "--for-date", formats=DATE_FORMATS, help="Day the item is needed"
    ),
    meal: MealSlot | None = typer.Option(None, "--meal", help="Meal it is for"),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Put an item on the shopping list."""
    with open_database(verbose) as (settings, db):
        service = MealService(settings, db)
        item = service.add_item(
            actor or settings.user_email,
            group_id,
            name,
            quantity=quantity,
            unit=unit,
            needed_for_date=needed_for,
            needed_for_meal=meal,
        )
        console.print(f"[green]✓ Added item {item.id}: {item.name}[/green]")


@app.command()
def items(
    group_id: int = typer.Argument(..., help="Group ID"),
    pending: bool = typer.Option(False, "--pending", help="Only unpurchased items"),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show the shopping list."""
    with open_database(verbose) as (settings, db):
        service = MealService(settings, db)
        found = service.list_items(
            actor or settings.user_email, group_id, purchased=False if pending else None
        )
        if not found:
            console.print("[yellow]No items found.[/yellow]")
            return

        table = Table(title="Shopping List", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim", width=6)
        table.add_column("Item", style="cyan")
        table.add_column("Qty", justify="right")
        table.add_column("Status")
        table.add_column("Paid by")
        table.add_column("Amount", justify="right", width=14)
        for i in found:
            qty = f"{i.quantity.normalize():f} {i.unit or ''}".strip()
            table.add_row(
                str(i.id),
                i.name,
                qty,
                "[green]bought[/green]" if i.purchased else "[yellow]pending[/yellow]",
                i.paid_by or "",
                format_money(i.amount) if i.amount is not None else "",
            )
        console.print(table)


@app.command()
def purchase(
    group_id: int = typer.Argument(..., help="Group ID"),
    item_id: int = typer.Argument(..., help="Item ID"),
    amount: str = typer.Argument(..., help="Amount paid"),
    paid_by: str | None = typer.Option(
        None, "--paid-by", help="Payer (defaults to the day's shopper, then you)"
    ),
    when: datetime | None = typer.Option(None, "--date", formats=DATE_FORMATS),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Mark an item as purchased."""
    with open_database(verbose) as (settings, db):
        service = MealService(settings, db)
        item = service.purchase_item(
            actor or settings.user_email,
            group_id,
            item_id,
            amount,
            paid_by=paid_by,
            purchased_at=when,
        )
        console.print(
            f"[bold green]✓ {item.name} bought by {item.paid_by}[/bold green] "
            f"{format_money(item.amount)}"
        )


@app.command("assign-duty")
def assign_duty(
    group_id: int = typer.Argument(..., help="Group ID"),
    day: datetime = typer.Argument(..., formats=["%Y-%m-%d"], help="Day (YYYY-MM-DD)"),
    email: str = typer.Argument(..., help="Member doing the shopping"),
    note: str = typer.Option("", "--note"),
    replace: bool = typer.Option(
        True, "--replace/--no-replace", help="Overwrite an existing assignee"
    ),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Assign shopping duty for a day (admin only)."""
    with open_database(verbose) as (settings, db):
        service = MealService(settings, db)
        saved = service.assign_duties(
            actor or settings.user_email,
            group_id,
            [{"date": day.date(), "email": email, "note": note}],
            replace=replace,
        )
        for duty in saved:
            console.print(f"[green]✓ {duty.date}: {duty.email} is shopping[/green]")


@app.command()
def duties(
    group_id: int = typer.Argument(..., help="Group ID"),
    start: datetime | None = typer.Option(None, "--from", formats=["%Y-%m-%d"]),
    end: datetime | None = typer.Option(None, "--to", formats=["%Y-%m-%d"]),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show the shopping duty calendar."""
    with open_database(verbose) as (settings, db):
        service = MealService(settings, db)
        found = service.list_duties(
            actor or settings.user_email,
            group_id,
            start.date() if start else None,
            end.date() if end else None,
        )
        if not found:
            console.print("[yellow]No shopping duties found.[/yellow]")
            return

        table = Table(title="Shopping Duty", show_header=True, header_style="bold magenta")
        table.add_column("Date", style="dim")
        table.add_column("Shopper", style="cyan")
        table.add_column("Note")
        for d in found:
            table.add_row(d.date.isoformat(), d.email, d.note)
        console.print(table)


@app.command("record-meal")
def record_meal(
    group_id: int = typer.Argument(..., help="Group ID"),
    meal: MealSlot = typer.Argument(..., help="breakfast, lunch, dinner or other"),
    eater: list[str] = typer.Option(
        ..., "--eater", "-e", help="Eater as email or email=servings (repeatable)"
    ),
    when: datetime | None = typer.Option(None, "--date", formats=DATE_FORMATS),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Record who ate a meal and how many servings."""
    with open_database(verbose) as (settings, db):
        service = MealService(settings, db)
        emails, servings = parse_pairs(eater)
        moment = when or datetime.now()
        entries = [
            {
                "email": email,
                "date": moment,
                "meal": meal,
                "servings": servings[i] if servings else 1,
            }
            for i, email in enumerate(emails)
        ]
        saved = service.record_meals(actor or settings.user_email, group_id, entries)
        console.print(f"[green]✓ Recorded {len(saved)} meal entr(ies)[/green]")


@app.command()
def meals(
    group_id: int = typer.Argument(..., help="Group ID"),
    start: datetime | None = typer.Option(None, "--from", formats=DATE_FORMATS),
    end: datetime | None = typer.Option(
        None, "--to", formats=DATE_FORMATS, callback=end_of_day
    ),
    email: str | None = typer.Option(None, "--email", help="Only this member"),
    actor: str | None = typer.Option(None, "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List meal entries, newest first."""
    with open_database(verbose) as (settings, db):
        service = MealService(settings, db)
        found = service.list_meals(
            actor or settings.user_email, group_id, start, end, email
        )
        if not found:
            console.print("[yellow]No meals found.[/yellow]")
            return

        table = Table(title="Meals", show_header=True, header_style="bold magenta")
        table.add_column("Date", style="dim")
        table.add_column("Meal")
        table.add_column("Member", style="cyan")
        table.add_column("Servings", justify="right")
        for m in found:
            table.add_row(
                m.date.strftime("%Y-%m-%d"), m.meal.value, m.email, str(m.servings)
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
    """Show cost per serving, balances and suggested transfers."""
    with open_database(verbose) as (settings, db):
        service = MealService(settings, db)
        result = service.summary(actor or settings.user_email, group_id, start, end)

        console.print("\n[bold]Meal Summary:[/bold]")
        console.print(f"  Total spend: {format_money(result.total_spend)}")
        console.print(f"  Total servings: {result.total_servings}")
        console.print(f"  Cost per serving: {format_money(result.cost_per_serving)}")
        console.print()
        display_balances(result.balances)
        display_transfers(result.suggestions)
