"""Service layer for meal groups.

Members log grocery purchases and the servings they eat; the summary spreads
grocery spend by consumption and suggests transfers with the same planner the
expense groups use.
"""

import logging
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal

from ..exceptions import ConflictError, InvalidInputError, NotFoundError
from ..groups import GroupService
from ..guard import ensure_members
from ..models import (
    EventType,
    GroceryItem,
    GroupKind,
    MealEntry,
    MealSlot,
    MealSummary,
    ShoppingDuty,
    TimeRange,
    build,
    normalize_key,
)
from ..money import round_money
from ..split.ledger import apportion_meal_costs, compute_balances
from ..split.planner import plan_settlements

logger = logging.getLogger(__name__)


class MealService(GroupService):
    """Service for shared groceries, shopping duties and meal servings."""

    kind = GroupKind.MEAL

    # ========================================================================
    # Grocery items
    # ========================================================================

    def add_item(
        self,
        actor: str,
        group_id: int,
        name: str,
        quantity: Decimal | int | float | str = 1,
        unit: str | None = None,
        needed_for_date: datetime | None = None,
        needed_for_meal: MealSlot | str | None = None,
    ) -> GroceryItem:
        """Add an item to the group's shopping list."""
        group = self.get_group(actor, group_id)
        item = build(
            GroceryItem,
            group_id=group.id,
            name=name or "",
            quantity=quantity or 1,
            unit=unit,
            needed_for_date=needed_for_date,
            needed_for_meal=needed_for_meal or None,
        )
        saved = self.db.append_event(item)
        logger.info(f"Added item {saved.id} '{saved.name}' to group {group.id}")
        return saved

    def list_items(
        self, actor: str, group_id: int, purchased: bool | None = None
    ) -> list[GroceryItem]:
        """List shopping-list items, optionally only (un)purchased ones."""
        group = self.get_group(actor, group_id)
        return self.db.list_items(group.id, purchased)

    def purchase_item(
        self,
        actor: str,
        group_id: int,
        item_id: int,
        amount: Decimal | int | float | str,
        paid_by: str | None = None,
        purchased_at: datetime | None = None,
    ) -> GroceryItem:
        """
        Record the purchase of a shopping-list item.

        The payer is, in order of preference: the given email, the member on
        shopping duty that day, the actor.

        Raises:
            NotFoundError: If the item does not exist in this group
            ConflictError: If the item was already purchased
        """
        group = self.get_group(actor, group_id)
        if amount is None or amount == "":
            raise InvalidInputError("Amount is required")
        when = purchased_at or datetime.now()

        item = self.db.get_item(group.id, item_id)
        if item is None:
            raise NotFoundError("Item", "Item not found")
        if item.purchased:
            raise ConflictError("Item already purchased")

        payer = normalize_key(paid_by)
        duty_id = None
        if not payer:
            duty = self.db.get_duty(group.id, when.date())
            if duty is not None:
                payer, duty_id = duty.email, duty.id
            else:
                payer = normalize_key(actor)

        purchased = build(
            GroceryItem,
            **{
                **item.model_dump(),
                "purchased": True,
                "amount": amount,
                "paid_by": payer,
                "purchased_at": when,
                "duty_id": duty_id,
            },
        )

        updated = ensure_members(group, [payer])
        with self.db.transaction():
            self._save_membership(group, updated)
            if not self.db.mark_item_purchased(purchased):
                raise ConflictError("Item already purchased")

        logger.info(
            f"Item {item.id} purchased for {purchased.amount} by {payer} "
            f"in group {group.id}"
        )
        return purchased

    # ========================================================================
    # Shopping duty
    # ========================================================================

    def assign_duties(
        self,
        actor: str,
        group_id: int,
        duties: Sequence[Mapping],
        replace: bool = True,
    ) -> list[ShoppingDuty]:
        """
        Assign shopping duty for one or more days (creator/admin only).

        Args:
            actor: Acting admin's email
            group_id: Group ID
            duties: Mappings with ``date``, ``email`` and optional ``note``
            replace: Overwrite an existing assignee for the day; when False a
                     day that is already taken raises ConflictError

        Returns:
            The saved duties
        """
        group = self.get_group(actor, group_id, require_admin=True)
        if not duties:
            raise InvalidInputError("At least one duty is required")

        parsed = [
            build(
                ShoppingDuty,
                group_id=group.id,
                date=d.get("date"),
                email=d.get("email"),
                note=d.get("note") or "",
            )
            for d in duties
        ]
        if any(not d.email for d in parsed):
            raise InvalidInputError("Each duty needs an email")

        updated = ensure_members(group, [d.email for d in parsed])
        results = []
        with self.db.transaction():
            self._save_membership(group, updated)
            for duty in parsed:
                if replace:
                    results.append(self.db.upsert_duty(duty))
                else:
                    results.append(self.db.insert_duty(duty))

        logger.info(f"Assigned {len(results)} shopping duty day(s) in group {group.id}")
        return results

    def list_duties(
        self,
        actor: str,
        group_id: int,
        start: date | None = None,
        end: date | None = None,
    ) -> list[ShoppingDuty]:
        """List shopping duties in date order."""
        group = self.get_group(actor, group_id)
        return self.db.list_duties(group.id, start, end)

    # ========================================================================
    # Meal entries
    # ========================================================================

    def record_meals(
        self, actor: str, group_id: int, entries: Sequence[Mapping]
    ) -> list[MealEntry]:
        """
        Record who ate how many servings at which meal.

        Args:
            actor: Acting member's email
            group_id: Group ID
            entries: Mappings with ``email``, ``date``, ``meal`` and optional
                     ``servings`` (default 1)

        Returns:
            The saved entries
        """
        group = self.get_group(actor, group_id)
        if not entries:
            raise InvalidInputError("At least one meal entry is required")

        parsed = [
            build(
                MealEntry,
                group_id=group.id,
                email=e.get("email"),
                date=e.get("date"),
                meal=e.get("meal"),
                servings=e.get("servings") or 1,
            )
            for e in entries
        ]
        if any(not e.email for e in parsed):
            raise InvalidInputError("Each meal entry needs an email")

        updated = ensure_members(group, [e.email for e in parsed])
        with self.db.transaction():
            self._save_membership(group, updated)
            saved = [self.db.append_event(e) for e in parsed]

        logger.info(f"Recorded {len(saved)} meal entr(ies) in group {group.id}")
        return saved

    def list_meals(
        self,
        actor: str,
        group_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
        email: str | None = None,
    ) -> list[MealEntry]:
        """List meal entries, newest first, optionally for one member."""
        group = self.get_group(actor, group_id)
        time_range = TimeRange(start=start, end=end) if (start or end) else None
        entries = self.db.list_events(group.id, EventType.MEAL, time_range)
        key = normalize_key(email)
        if key:
            entries = [e for e in entries if e.email == key]
        return entries

    # ========================================================================
    # Summary
    # ========================================================================

    def summary(
        self,
        actor: str,
        group_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> MealSummary:
        """
        Compute cost per serving, balances and suggested transfers.

        Purchases are filtered on their purchase time and meals on their meal
        date.

        Returns:
            Spend, servings, cost per serving, balances and transfers
        """
        group = self.get_group(actor, group_id)
        time_range = TimeRange(start=start, end=end) if (start or end) else None

        purchases = self.db.list_events(group.id, EventType.PURCHASE, time_range)
        meals = self.db.list_events(group.id, EventType.MEAL, time_range)

        apportionment = apportion_meal_costs(purchases, meals)
        balances = compute_balances(group.member_keys, purchases + meals)
        suggestions = plan_settlements(balances)

        logger.info(
            f"Meal summary for group {group.id}: spend {apportionment.total_spend}, "
            f"{apportionment.total_servings} serving(s), "
            f"cost per serving {apportionment.cost_per_serving}"
        )
        return MealSummary(
            start=start,
            end=end,
            total_spend=apportionment.total_spend,
            total_servings=round_money(apportionment.total_servings),
            cost_per_serving=apportionment.cost_per_serving,
            spend_by=apportionment.spend_by,
            servings_by=apportionment.servings_by,
            balances=balances,
            suggestions=suggestions,
        )
