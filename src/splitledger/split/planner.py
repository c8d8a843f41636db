"""Settlement planning: turn net balances into point-to-point transfers."""

import logging
from collections.abc import Mapping
from decimal import Decimal

from ..models import Transfer
from ..money import from_cents, to_cents, to_decimal

logger = logging.getLogger(__name__)

SETTLED_THRESHOLD = Decimal("0.009")


def plan_settlements(balances: Mapping[str, Decimal]) -> list[Transfer]:
    """
    Suggest transfers that clear every balance.

    Greedy debt simplification: the largest debtor pays the largest creditor
    the smaller of the two remaining amounts, until one side runs out. Both
    sides are sorted by magnitude with a stable sort, so ties keep the
    mapping's iteration order and the plan is deterministic.

    This is a heuristic. It yields at most ``debtors + creditors - 1``
    transfers and is optimal for the simple two-sided cases, but it does not
    always find the global minimum number of transfers.

    Args:
        balances: Member key -> net balance (negative owes, positive is owed)

    Returns:
        Transfers with strictly positive 2-decimal amounts
    """
    debtors: list[list] = []
    creditors: list[list] = []
    for email, balance in balances.items():
        value = to_decimal(balance)
        # anything within 0.009 of zero is settled
        if value < -SETTLED_THRESHOLD:
            debtors.append([email, to_cents(-value)])
        elif value > SETTLED_THRESHOLD:
            creditors.append([email, to_cents(value)])

    debtors.sort(key=lambda d: d[1], reverse=True)
    creditors.sort(key=lambda c: c[1], reverse=True)

    transfers = []
    i = j = 0
    while i < len(debtors) and j < len(creditors):
        pay = min(debtors[i][1], creditors[j][1])
        transfers.append(
            Transfer(
                from_email=debtors[i][0],
                to_email=creditors[j][0],
                amount=from_cents(pay),
            )
        )
        debtors[i][1] -= pay
        creditors[j][1] -= pay
        if debtors[i][1] <= 0:
            i += 1
        if creditors[j][1] <= 0:
            j += 1

    logger.debug(
        f"Planned {len(transfers)} transfer(s) for {len(debtors)} debtor(s) "
        f"and {len(creditors)} creditor(s)"
    )
    return transfers
