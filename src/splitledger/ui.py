"""Console output and command plumbing shared by the CLI sub-apps."""

import logging
import sys
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime, time
from decimal import Decimal

from rich.console import Console
from rich.table import Table

from .config import Settings, load_settings
from .db import Database
from .exceptions import InvalidInputError, SplitLedgerError
from .models import Transfer

console = Console()


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


@contextmanager
def open_database(verbose: bool = False) -> Iterator[tuple[Settings, Database]]:
    """
    Load settings and open the database for one command.

    Errors raised by the library are printed and turn into exit code 1;
    with --verbose they propagate with their traceback.
    """
    setup_logging(verbose)
    db = None
    try:
        settings = load_settings()
        db = Database(settings.database_path)
        yield settings, db
    except SplitLedgerError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if db is not None:
            db.close()


def end_of_day(value: datetime | None) -> datetime | None:
    """Treat a date-only upper bound as the last moment of that day."""
    if value is not None and value.time() == time.min:
        return datetime.combine(value.date(), time.max)
    return value


def parse_pairs(entries: Sequence[str] | None) -> tuple[list[str], list[str] | None]:
    """
    Split repeated ``email[=value]`` options into keys and values.

    Returns:
        The keys, and the values (None when no entry carries one)

    Raises:
        InvalidInputError: If only some entries carry a value
    """
    keys: list[str] = []
    values: list[str] = []
    for entry in entries or []:
        key, sep, value = entry.partition("=")
        keys.append(key.strip())
        if sep:
            values.append(value.strip())

    if not values:
        return keys, None
    if len(values) != len(keys):
        raise InvalidInputError("Give a value for every participant or for none")
    return keys, values


def format_money(amount: Decimal | float, use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: ($85.02)
    Positive amounts have spaces:      $85.02
    """
    abs_amount = abs(amount)
    if amount < 0:
        if use_color:
            return f"($[red]{abs_amount:,.2f}[/red])"
        return f"(${abs_amount:,.2f})"
    if use_color:
        return f" [green]${abs_amount:,.2f}[/green] "
    return f" ${abs_amount:,.2f} "


def display_balances(balances: Mapping[str, Decimal], title: str = "Balances"):
    """Print member balances; positive means the group owes the member."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Member", style="cyan")
    table.add_column("Balance", justify="right", width=14)
    for email, balance in balances.items():
        table.add_row(email, format_money(balance))
    console.print(table)


def display_transfers(transfers: Sequence[Transfer]):
    """Print suggested settlement transfers."""
    if not transfers:
        console.print("[green]✓ Everyone is settled up[/green]")
        return

    table = Table(
        title="Suggested Transfers", show_header=True, header_style="bold magenta"
    )
    table.add_column("From", style="cyan")
    table.add_column("To", style="cyan")
    table.add_column("Amount", justify="right", width=14)
    for t in transfers:
        table.add_row(t.from_email, t.to_email, format_money(t.amount))
    console.print(table)
