"""Folding financial events into per-member net balances.

Positive balance: the group owes the member. Negative: the member owes the
group. Sums are accumulated in integer cents so repeated folds never drift.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable
from decimal import Decimal

from ..models import (
    Expense,
    FinancialEvent,
    FundTransaction,
    FundTransactionType,
    GroceryItem,
    MealApportionment,
    MealEntry,
    Settlement,
    TimeRange,
)
from ..money import ZERO, from_cents, round_money, to_cents

logger = logging.getLogger(__name__)


def _in_range(event: FinancialEvent, time_range: TimeRange | None) -> bool:
    if time_range is None:
        return True
    return time_range.contains(event.timestamp)


def apportion_meal_costs(
    purchases: Iterable[GroceryItem], meals: Iterable[MealEntry]
) -> MealApportionment:
    """
    Apportion grocery spend by servings eaten.

    Each eater owes ``round(total_spend * servings / total_servings, 2)``;
    ``cost_per_serving`` is the rounded per-serving price reported alongside.
    With no servings recorded the cost is 0 and nobody owes anything.

    Args:
        purchases: Grocery items (only purchased items with amount > 0 count)
        meals: Meal entries (only positive servings count)

    Returns:
        Spend and servings breakdown plus the amount owed per eater
    """
    spend_cents: dict[str, int] = defaultdict(int)
    for item in purchases:
        if not item.purchased or item.amount is None or item.amount <= 0:
            continue
        spend_cents[item.paid_by or ""] += to_cents(item.amount)

    servings_by: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for entry in meals:
        if entry.servings > 0:
            servings_by[entry.email] += entry.servings

    total_spend_cents = sum(spend_cents.values())
    total_servings = sum(servings_by.values(), ZERO)
    total_spend = from_cents(total_spend_cents)

    owed_by: dict[str, Decimal] = {}
    if total_servings > 0:
        cost_per_serving = round_money(total_spend / total_servings)
        for email, servings in servings_by.items():
            owed_by[email] = round_money(total_spend * servings / total_servings)
    else:
        cost_per_serving = ZERO
        if total_spend_cents > 0:
            logger.warning(
                f"Grocery spend of {total_spend} has no recorded servings; "
                f"cost per serving defaults to 0"
            )

    return MealApportionment(
        total_spend=total_spend,
        total_servings=round_money(total_servings),
        cost_per_serving=cost_per_serving,
        spend_by={k: from_cents(v) for k, v in spend_cents.items()},
        servings_by={k: round_money(v) for k, v in servings_by.items()},
        owed_by=owed_by,
    )


def compute_balances(
    members: Iterable[str],
    events: Iterable[FinancialEvent],
    time_range: TimeRange | None = None,
) -> dict[str, Decimal]:
    """
    Compute each member's net balance from a stream of events.

    Events may come in any order. When a time range is given each event is
    filtered on its own timestamp before folding.

    Args:
        members: Current member keys; each appears in the result even
                 without events
        events: Expenses, settlements, grocery purchases and meal entries
        time_range: Optional inclusive window

    Returns:
        Mapping of member key to 2-decimal balance, members first in the
        given order followed by any other key the events reference
    """
    cents: dict[str, int] = {key: 0 for key in members}
    purchases: list[GroceryItem] = []
    meals: list[MealEntry] = []

    for event in events:
        if not _in_range(event, time_range):
            continue

        if isinstance(event, Expense):
            cents[event.paid_by] = cents.get(event.paid_by, 0) + to_cents(event.amount)
            for p in event.participants:
                cents[p.email] = cents.get(p.email, 0) - to_cents(p.share)
        elif isinstance(event, Settlement):
            amount = to_cents(event.amount)
            cents[event.from_email] = cents.get(event.from_email, 0) + amount
            cents[event.to_email] = cents.get(event.to_email, 0) - amount
        elif isinstance(event, GroceryItem):
            purchases.append(event)
        elif isinstance(event, MealEntry):
            meals.append(event)
        else:
            raise TypeError(f"Unsupported event type: {type(event).__name__}")

    if purchases or meals:
        apportionment = apportion_meal_costs(purchases, meals)
        for email, spend in apportionment.spend_by.items():
            cents[email] = cents.get(email, 0) + to_cents(spend)
        for email, owed in apportionment.owed_by.items():
            cents[email] = cents.get(email, 0) - to_cents(owed)

    balances = {key: from_cents(value) for key, value in cents.items()}
    logger.debug(f"Computed balances for {len(balances)} member(s): {balances}")
    return balances


def compute_fund_balance(transactions: Iterable[FundTransaction]) -> Decimal:
    """
    Sum a fund's transaction history into its current balance.

    Deposits add, withdrawals subtract.
    """
    total = 0
    for tx in transactions:
        if tx.type == FundTransactionType.WITHDRAWAL:
            total -= to_cents(tx.amount)
        else:
            total += to_cents(tx.amount)
    return from_cents(total)
