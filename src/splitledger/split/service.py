"""Service layer for expense-splitting groups.

Composes the access guard, the allocator, the balance ledger and the
settlement planner on top of the database.
"""

import logging
from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal

from ..exceptions import NotFoundError
from ..groups import GroupService
from ..guard import ensure_members
from ..models import (
    EventType,
    Expense,
    GroupKind,
    GroupSummary,
    Settlement,
    SplitType,
    TimeRange,
    build,
    normalize_key,
)
from .allocator import allocate
from .ledger import compute_balances
from .planner import plan_settlements

logger = logging.getLogger(__name__)


class SplitService(GroupService):
    """Service for recording shared expenses and settling up."""

    kind = GroupKind.SPLIT

    def delete_group(self, actor: str, group_id: int) -> None:
        """Delete a group and all of its expenses and settlements (admin only)."""
        group = self.get_group(actor, group_id, require_admin=True)
        self.db.delete_group(group.id)
        logger.info(f"Deleted group {group.id} and related records")

    def add_expense(
        self,
        actor: str,
        group_id: int,
        amount: Decimal | int | float | str,
        split_type: SplitType | str | None = None,
        participants: Sequence[str] | None = None,
        weights: Sequence[Decimal | int | float | str] | None = None,
        paid_by: str | None = None,
        description: str | None = None,
        category: str | None = None,
        date: datetime | None = None,
    ) -> Expense:
        """
        Record an expense, splitting it across participants.

        Participants default to every group member and the payer defaults to
        the actor. Anyone referenced who is not yet a member joins the group.

        Args:
            actor: Acting member's email
            group_id: Group ID
            amount: Expense total (> 0)
            split_type: equal (default), shares, percent or exact
            participants: Participant emails
            weights: Weights, percents or exact amounts matching participants
            paid_by: Payer email
            description: Free text
            category: Free text
            date: When the expense happened (defaults to now)

        Returns:
            The saved expense
        """
        group = self.get_group(actor, group_id)
        payer = normalize_key(paid_by) or normalize_key(actor)
        emails = list(participants) if participants else group.member_keys

        shares = allocate(
            amount,
            split_type or self.settings.default_split_type,
            emails,
            weights,
        )

        expense = build(
            Expense,
            group_id=group.id,
            paid_by=payer,
            amount=sum((s.share for s in shares), Decimal("0.00")),
            description=description,
            category=category,
            date=date or datetime.now(),
            split_type=split_type or self.settings.default_split_type,
            participants=shares,
        )

        updated = ensure_members(group, [s.email for s in shares] + [payer])
        with self.db.transaction():
            self._save_membership(group, updated)
            saved = self.db.append_event(expense)

        logger.info(
            f"Recorded expense {saved.id} of {saved.amount} in group {group.id} "
            f"paid by {payer} ({saved.split_type.value} split, "
            f"{len(shares)} participant(s))"
        )
        return saved

    def list_expenses(self, actor: str, group_id: int) -> list[Expense]:
        """List a group's expenses, newest first."""
        group = self.get_group(actor, group_id)
        return self.db.list_events(group.id, EventType.EXPENSE)

    def delete_expense(self, actor: str, group_id: int, expense_id: int) -> None:
        """Remove an expense entirely."""
        group = self.get_group(actor, group_id)
        if not self.db.delete_expense(group.id, expense_id):
            raise NotFoundError("Expense", "Expense not found")
        logger.info(f"Deleted expense {expense_id} from group {group.id}")

    def record_settlement(
        self,
        actor: str,
        group_id: int,
        from_email: str,
        to_email: str,
        amount: Decimal | int | float | str,
        note: str | None = None,
        date: datetime | None = None,
    ) -> Settlement:
        """
        Record a direct payment from one member to another.

        Args:
            actor: Acting member's email
            group_id: Group ID
            from_email: Who paid
            to_email: Who received
            amount: Amount paid (> 0)
            note: Optional note
            date: When it was paid (defaults to now)

        Returns:
            The saved settlement
        """
        group = self.get_group(actor, group_id)
        settlement = build(
            Settlement,
            group_id=group.id,
            from_email=from_email,
            to_email=to_email,
            amount=amount,
            note=note,
            date=date or datetime.now(),
        )

        updated = ensure_members(group, [settlement.from_email, settlement.to_email])
        with self.db.transaction():
            self._save_membership(group, updated)
            saved = self.db.append_event(settlement)

        logger.info(
            f"Recorded settlement {saved.id} in group {group.id}: "
            f"{saved.from_email} -> {saved.to_email} {saved.amount}"
        )
        return saved

    def list_settlements(self, actor: str, group_id: int) -> list[Settlement]:
        """List a group's settlements, newest first."""
        group = self.get_group(actor, group_id)
        return self.db.list_events(group.id, EventType.SETTLEMENT)

    def group_summary(
        self, actor: str, group_id: int, time_range: TimeRange | None = None
    ) -> GroupSummary:
        """
        Compute balances and suggested transfers for a group.

        Args:
            actor: Acting member's email
            group_id: Group ID
            time_range: Only fold events dated within this window

        Returns:
            The group, each member's balance and the settlement plan
        """
        group = self.get_group(actor, group_id)
        events = self.db.list_events(group.id)
        balances = compute_balances(group.member_keys, events, time_range)
        suggestions = plan_settlements(balances)

        logger.info(
            f"Summary for group {group.id}: {len(events)} event(s), "
            f"{len(suggestions)} suggested transfer(s)"
        )
        return GroupSummary(group=group, balances=balances, suggestions=suggestions)
