"""SQLite database operations for splitledger."""

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path

from .exceptions import ConflictError, InternalError
from .models import (
    EmergencyFund,
    EventType,
    Expense,
    FinancialEvent,
    FundTransaction,
    GroceryItem,
    Group,
    GroupKind,
    MealEntry,
    Settlement,
    ShoppingDuty,
    TimeRange,
)

logger = logging.getLogger(__name__)


def _iso(value: datetime | date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _str(value) -> str | None:
    return str(value) if value is not None else None


class Database:
    """SQLite database manager.

    Acts as the persistence collaborator of the ledger: it hands out
    point-to-point snapshots of groups and events and never computes balances.
    """

    def __init__(self, db_path: Path | str):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._write_depth = 0
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS groups (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                kind TEXT NOT NULL,
                name TEXT NOT NULL,
                created_by TEXT NOT NULL,
                members TEXT NOT NULL,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expenses (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                group_id INTEGER NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
                paid_by TEXT NOT NULL,
                amount TEXT NOT NULL,
                description TEXT,
                category TEXT,
                date TIMESTAMP NOT NULL,
                split_type TEXT NOT NULL,
                participants TEXT NOT NULL,
                created_at TIMESTAMP NOT NULL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS settlements (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                group_id INTEGER NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
                from_email TEXT NOT NULL,
                to_email TEXT NOT NULL,
                amount TEXT NOT NULL,
                note TEXT,
                date TIMESTAMP NOT NULL,
                created_at TIMESTAMP NOT NULL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS grocery_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                group_id INTEGER NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
                name TEXT NOT NULL,
                quantity TEXT NOT NULL,
                unit TEXT,
                needed_for_date TIMESTAMP,
                needed_for_meal TEXT,
                purchased INTEGER NOT NULL DEFAULT 0,
                amount TEXT,
                paid_by TEXT,
                purchased_at TIMESTAMP,
                duty_id INTEGER,
                created_at TIMESTAMP NOT NULL
            )
        """
        )

        # One assignee per day per group
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS shopping_duties (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                group_id INTEGER NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
                date DATE NOT NULL,
                email TEXT NOT NULL,
                note TEXT NOT NULL DEFAULT '',
                UNIQUE (group_id, date)
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS meal_entries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                group_id INTEGER NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
                email TEXT NOT NULL,
                date TIMESTAMP NOT NULL,
                meal TEXT NOT NULL,
                servings TEXT NOT NULL,
                created_at TIMESTAMP NOT NULL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS emergency_funds (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                owner TEXT NOT NULL UNIQUE,
                target_amount TEXT NOT NULL,
                target_months INTEGER NOT NULL,
                target_date TIMESTAMP,
                current_balance TEXT NOT NULL,
                monthly_plan TEXT NOT NULL,
                badges TEXT NOT NULL,
                streak_count INTEGER NOT NULL,
                last_contribution_at TIMESTAMP,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS fund_transactions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                fund_id INTEGER NOT NULL REFERENCES emergency_funds(id) ON DELETE CASCADE,
                owner TEXT NOT NULL,
                type TEXT NOT NULL,
                amount TEXT NOT NULL,
                note TEXT,
                created_at TIMESTAMP NOT NULL
            )
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    @contextmanager
    def _writing(self) -> Iterator[sqlite3.Cursor]:
        """
        Run writes in one transaction, translating sqlite errors.

        Nested uses join the outermost transaction, which commits or rolls
        back everything at once.
        """
        if self._write_depth:
            yield self.conn.cursor()
            return

        self._write_depth += 1
        try:
            with self.conn:
                yield self.conn.cursor()
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"Duplicate record: {e}") from e
        except sqlite3.Error as e:
            logger.error(f"Database write failed: {e}")
            raise InternalError("Internal server error.") from e
        finally:
            self._write_depth -= 1

    def transaction(self):
        """Group several writes (e.g. a membership change and its event) atomically."""
        return self._writing()

    # ========================================================================
    # Group operations
    # ========================================================================

    @staticmethod
    def _row_to_group(row: sqlite3.Row) -> Group:
        return Group.model_validate(
            {
                "id": row["id"],
                "kind": row["kind"],
                "name": row["name"],
                "created_by": row["created_by"],
                "members": json.loads(row["members"]),
                "created_at": row["created_at"],
                "updated_at": row["updated_at"],
            }
        )

    def get_group(self, group_id: int) -> Group | None:
        """Get a group by ID."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM groups WHERE id = ?", (group_id,))
        row = cursor.fetchone()
        return self._row_to_group(row) if row else None

    def list_groups(self, member_key: str, kind: GroupKind) -> list[Group]:
        """List groups of a kind that include a member, most recently updated first."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM groups WHERE kind = ? ORDER BY updated_at DESC, id DESC",
            (kind.value,),
        )
        groups = [self._row_to_group(row) for row in cursor.fetchall()]
        return [g for g in groups if g.is_member(member_key)]

    def save_group(self, group: Group) -> Group:
        """Insert or update a group; returns it with its ID set."""
        members = json.dumps([m.model_dump(mode="json") for m in group.members])
        updated_at = datetime.now()

        with self._writing() as cursor:
            if group.id is None:
                cursor.execute(
                    """
                    INSERT INTO groups (
                        kind, name, created_by, members, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        group.kind.value,
                        group.name,
                        group.created_by,
                        members,
                        group.created_at.isoformat(),
                        updated_at.isoformat(),
                    ),
                )
                group_id = cursor.lastrowid
            else:
                cursor.execute(
                    """
                    UPDATE groups SET name = ?, members = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (group.name, members, updated_at.isoformat(), group.id),
                )
                group_id = group.id

        if group_id is None:
            raise InternalError("Failed to insert group record")
        return group.model_copy(update={"id": group_id, "updated_at": updated_at})

    def delete_group(self, group_id: int) -> bool:
        """Delete a group; its events are removed by cascade."""
        with self._writing() as cursor:
            cursor.execute("DELETE FROM groups WHERE id = ?", (group_id,))
            return cursor.rowcount > 0

    # ========================================================================
    # Event operations
    # ========================================================================

    def append_event(self, event: FinancialEvent | FundTransaction):
        """
        Persist a new event.

        Args:
            event: Expense, Settlement, MealEntry, GroceryItem or FundTransaction

        Returns:
            The event with its ID set
        """
        with self._writing() as cursor:
            if isinstance(event, Expense):
                cursor.execute(
                    """
                    INSERT INTO expenses (
                        group_id, paid_by, amount, description, category, date,
                        split_type, participants, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        event.group_id,
                        event.paid_by,
                        str(event.amount),
                        event.description,
                        event.category,
                        event.date.isoformat(),
                        event.split_type.value,
                        json.dumps(
                            [p.model_dump(mode="json") for p in event.participants]
                        ),
                        event.created_at.isoformat(),
                    ),
                )
            elif isinstance(event, Settlement):
                cursor.execute(
                    """
                    INSERT INTO settlements (
                        group_id, from_email, to_email, amount, note, date, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        event.group_id,
                        event.from_email,
                        event.to_email,
                        str(event.amount),
                        event.note,
                        event.date.isoformat(),
                        event.created_at.isoformat(),
                    ),
                )
            elif isinstance(event, MealEntry):
                cursor.execute(
                    """
                    INSERT INTO meal_entries (
                        group_id, email, date, meal, servings, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        event.group_id,
                        event.email,
                        event.date.isoformat(),
                        event.meal.value,
                        str(event.servings),
                        event.created_at.isoformat(),
                    ),
                )
            elif isinstance(event, GroceryItem):
                cursor.execute(
                    """
                    INSERT INTO grocery_items (
                        group_id, name, quantity, unit, needed_for_date,
                        needed_for_meal, purchased, amount, paid_by,
                        purchased_at, duty_id, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        event.group_id,
                        event.name,
                        str(event.quantity),
                        event.unit,
                        _iso(event.needed_for_date),
                        event.needed_for_meal.value if event.needed_for_meal else None,
                        int(event.purchased),
                        _str(event.amount),
                        event.paid_by,
                        _iso(event.purchased_at),
                        event.duty_id,
                        event.created_at.isoformat(),
                    ),
                )
            elif isinstance(event, FundTransaction):
                cursor.execute(
                    """
                    INSERT INTO fund_transactions (
                        fund_id, owner, type, amount, note, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        event.fund_id,
                        event.owner,
                        event.type.value,
                        str(event.amount),
                        event.note,
                        event.created_at.isoformat(),
                    ),
                )
            else:
                raise TypeError(f"Unsupported event type: {type(event).__name__}")
            row_id = cursor.lastrowid

        if row_id is None:
            raise InternalError("Failed to insert event record")
        return event.model_copy(update={"id": row_id})

    @staticmethod
    def _row_to_expense(row: sqlite3.Row) -> Expense:
        data = dict(row)
        data["participants"] = json.loads(data["participants"])
        return Expense.model_validate(data)

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> GroceryItem:
        data = dict(row)
        data["purchased"] = bool(data["purchased"])
        return GroceryItem.model_validate(data)

    def list_events(
        self,
        group_id: int,
        event_type: EventType | None = None,
        date_range: TimeRange | None = None,
    ) -> list[FinancialEvent]:
        """
        List a group's events, newest first.

        Args:
            group_id: Group ID
            event_type: Only this kind of event (all kinds if None)
            date_range: Only events whose own timestamp falls in this window

        Returns:
            Expenses, settlements, purchased grocery items and meal entries
        """
        cursor = self.conn.cursor()
        events: list[FinancialEvent] = []

        if event_type in (None, EventType.EXPENSE):
            cursor.execute("SELECT * FROM expenses WHERE group_id = ?", (group_id,))
            events.extend(self._row_to_expense(row) for row in cursor.fetchall())

        if event_type in (None, EventType.SETTLEMENT):
            cursor.execute("SELECT * FROM settlements WHERE group_id = ?", (group_id,))
            events.extend(
                Settlement.model_validate(dict(row)) for row in cursor.fetchall()
            )

        if event_type in (None, EventType.PURCHASE):
            cursor.execute(
                "SELECT * FROM grocery_items WHERE group_id = ? AND purchased = 1",
                (group_id,),
            )
            events.extend(self._row_to_item(row) for row in cursor.fetchall())

        if event_type in (None, EventType.MEAL):
            cursor.execute("SELECT * FROM meal_entries WHERE group_id = ?", (group_id,))
            events.extend(
                MealEntry.model_validate(dict(row)) for row in cursor.fetchall()
            )

        if date_range is not None:
            events = [e for e in events if date_range.contains(e.timestamp)]

        events.sort(key=lambda e: (e.timestamp or datetime.min, e.id or 0), reverse=True)
        return events

    def delete_expense(self, group_id: int, expense_id: int) -> bool:
        """Delete an expense of a group. Returns False if it did not exist."""
        with self._writing() as cursor:
            cursor.execute(
                "DELETE FROM expenses WHERE id = ? AND group_id = ?",
                (expense_id, group_id),
            )
            return cursor.rowcount > 0

    # ========================================================================
    # Grocery item operations
    # ========================================================================

    def get_item(self, group_id: int, item_id: int) -> GroceryItem | None:
        """Get a grocery item of a group."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM grocery_items WHERE id = ? AND group_id = ?",
            (item_id, group_id),
        )
        row = cursor.fetchone()
        return self._row_to_item(row) if row else None

    def list_items(
        self, group_id: int, purchased: bool | None = None
    ) -> list[GroceryItem]:
        """List grocery items, newest first, optionally by purchase state."""
        cursor = self.conn.cursor()
        if purchased is None:
            cursor.execute(
                "SELECT * FROM grocery_items WHERE group_id = ? "
                "ORDER BY created_at DESC, id DESC",
                (group_id,),
            )
        else:
            cursor.execute(
                "SELECT * FROM grocery_items WHERE group_id = ? AND purchased = ? "
                "ORDER BY created_at DESC, id DESC",
                (group_id, int(purchased)),
            )
        return [self._row_to_item(row) for row in cursor.fetchall()]

    def mark_item_purchased(self, item: GroceryItem) -> bool:
        """
        Record the purchase of a still-pending item.

        Returns:
            False if the item does not exist or was already purchased
        """
        with self._writing() as cursor:
            cursor.execute(
                """
                UPDATE grocery_items
                SET purchased = 1, amount = ?, paid_by = ?, purchased_at = ?,
                    duty_id = ?
                WHERE id = ? AND group_id = ? AND purchased = 0
                """,
                (
                    _str(item.amount),
                    item.paid_by,
                    _iso(item.purchased_at),
                    item.duty_id,
                    item.id,
                    item.group_id,
                ),
            )
            return cursor.rowcount > 0

    # ========================================================================
    # Shopping duty operations
    # ========================================================================

    def get_duty(self, group_id: int, day: date) -> ShoppingDuty | None:
        """Get the shopping duty of a group for a day."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM shopping_duties WHERE group_id = ? AND date = ?",
            (group_id, day.isoformat()),
        )
        row = cursor.fetchone()
        return ShoppingDuty.model_validate(dict(row)) if row else None

    def insert_duty(self, duty: ShoppingDuty) -> ShoppingDuty:
        """Insert a duty; raises ConflictError if the day is already assigned."""
        with self._writing() as cursor:
            cursor.execute(
                "INSERT INTO shopping_duties (group_id, date, email, note) "
                "VALUES (?, ?, ?, ?)",
                (duty.group_id, duty.date.isoformat(), duty.email, duty.note),
            )
            row_id = cursor.lastrowid
        return duty.model_copy(update={"id": row_id})

    def upsert_duty(self, duty: ShoppingDuty) -> ShoppingDuty:
        """Assign a day's duty, replacing any previous assignee."""
        with self._writing() as cursor:
            cursor.execute(
                """
                INSERT INTO shopping_duties (group_id, date, email, note)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(group_id, date) DO UPDATE SET
                    email = excluded.email,
                    note = excluded.note
                """,
                (duty.group_id, duty.date.isoformat(), duty.email, duty.note),
            )
        saved = self.get_duty(duty.group_id, duty.date)
        if saved is None:
            raise InternalError("Failed to save shopping duty")
        return saved

    def list_duties(
        self, group_id: int, start: date | None = None, end: date | None = None
    ) -> list[ShoppingDuty]:
        """List duties in date order, optionally within an inclusive day range."""
        query = "SELECT * FROM shopping_duties WHERE group_id = ?"
        params: list = [group_id]
        if start is not None:
            query += " AND date >= ?"
            params.append(start.isoformat())
        if end is not None:
            query += " AND date <= ?"
            params.append(end.isoformat())
        query += " ORDER BY date ASC"

        cursor = self.conn.cursor()
        cursor.execute(query, params)
        return [ShoppingDuty.model_validate(dict(row)) for row in cursor.fetchall()]

    # ========================================================================
    # Emergency fund operations
    # ========================================================================

    def get_fund(self, owner: str) -> EmergencyFund | None:
        """Get the emergency fund of an owner."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM emergency_funds WHERE owner = ?", (owner,))
        row = cursor.fetchone()
        if not row:
            return None
        data = dict(row)
        data["badges"] = json.loads(data["badges"])
        return EmergencyFund.model_validate(data)

    def save_fund(self, fund: EmergencyFund) -> EmergencyFund:
        """Insert or update an emergency fund."""
        updated_at = datetime.now()
        values = (
            str(fund.target_amount),
            fund.target_months,
            _iso(fund.target_date),
            str(fund.current_balance),
            str(fund.monthly_plan),
            json.dumps(fund.badges),
            fund.streak_count,
            _iso(fund.last_contribution_at),
            updated_at.isoformat(),
        )

        with self._writing() as cursor:
            if fund.id is None:
                cursor.execute(
                    """
                    INSERT INTO emergency_funds (
                        target_amount, target_months, target_date,
                        current_balance, monthly_plan, badges, streak_count,
                        last_contribution_at, updated_at, owner, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    values + (fund.owner, fund.created_at.isoformat()),
                )
                fund_id = cursor.lastrowid
            else:
                cursor.execute(
                    """
                    UPDATE emergency_funds SET
                        target_amount = ?, target_months = ?, target_date = ?,
                        current_balance = ?, monthly_plan = ?, badges = ?,
                        streak_count = ?, last_contribution_at = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    values + (fund.id,),
                )
                fund_id = fund.id

        return fund.model_copy(update={"id": fund_id, "updated_at": updated_at})

    def save_fund_with_transaction(
        self, fund: EmergencyFund, transaction: FundTransaction
    ) -> tuple[EmergencyFund, FundTransaction]:
        """Update a fund's balance and log its transaction atomically."""
        with self._writing():
            saved_fund = self.save_fund(fund)
            saved_tx = self.append_event(
                transaction.model_copy(update={"fund_id": saved_fund.id})
            )
        return saved_fund, saved_tx

    def list_fund_transactions(
        self, fund_id: int, limit: int = 20, offset: int = 0
    ) -> list[FundTransaction]:
        """List a fund's transactions, newest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT * FROM fund_transactions WHERE fund_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            (fund_id, limit, offset),
        )
        return [FundTransaction.model_validate(dict(row)) for row in cursor.fetchall()]

    def count_fund_transactions(self, fund_id: int) -> int:
        """Count a fund's transactions."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT COUNT(*) AS n FROM fund_transactions WHERE fund_id = ?",
            (fund_id,),
        )
        return int(cursor.fetchone()["n"])
