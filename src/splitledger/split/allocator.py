"""Allocation of an expense total across participants.

Every strategy works in integer cents and guarantees that the returned shares
add up to the total exactly.
"""

import logging
from collections.abc import Sequence
from decimal import ROUND_FLOOR, Decimal, InvalidOperation

from ..exceptions import InvalidInputError, RoundingError
from ..models import ParticipantShare, SplitType, normalize_key
from ..money import from_cents, round_money, to_cents, to_decimal

logger = logging.getLogger(__name__)

PERCENT_TOLERANCE = Decimal("0.01")


def normalize_participants(participants: Sequence[str]) -> list[str]:
    """Normalize emails, dropping blanks and later duplicates."""
    seen: set[str] = set()
    out = []
    for raw in participants:
        key = normalize_key(raw)
        if key and key not in seen:
            seen.add(key)
            out.append(key)
    return out


def compute_equal_shares(total_cents: int, n: int) -> list[int]:
    """
    Split cents evenly; the first ``remainder`` participants get one extra cent.

    Example:
        10000 over 3 -> [3334, 3333, 3333]
    """
    base, remainder = divmod(total_cents, n)
    return [base + 1 if i < remainder else base for i in range(n)]


def apportion_cents(exact: Sequence[Decimal], total_cents: int) -> list[int]:
    """
    Round exact cent amounts so they add up to the total (largest remainder).

    Every share starts at the floor of its exact value. The cents still
    missing go one at a time to the shares with the largest fractional parts,
    ties in input order, so no share moves more than a cent from its exact
    value.

    Example:
        [Decimal("1.5")] * 4 over 6 cents -> [2, 2, 1, 1]

    Raises:
        RoundingError: If the exact values do not account for the total
    """
    floors = [int(c.to_integral_value(rounding=ROUND_FLOOR)) for c in exact]
    residual = total_cents - sum(floors)
    if residual < 0 or residual > len(floors):
        raise RoundingError(
            f"Total mismatch exceeds safety threshold:\n"
            f"  Expected: {from_cents(total_cents)}\n"
            f"  Actual:   {from_cents(sum(floors))}\n"
            f"  Residual: {from_cents(residual)}"
        )

    by_remainder = sorted(
        range(len(floors)), key=lambda i: exact[i] - floors[i], reverse=True
    )
    for i in by_remainder[:residual]:
        floors[i] += 1
    if residual:
        logger.debug(f"Distributed {residual} rounding cent(s) by largest remainder")
    return floors


def _as_decimals(values: Sequence, label: str) -> list[Decimal]:
    try:
        return [to_decimal(v) for v in values]
    except (InvalidOperation, TypeError, ValueError) as e:
        raise InvalidInputError(f"Invalid {label}: {e}") from e


def allocate(
    total: Decimal | int | float | str,
    split_type: SplitType | str,
    participants: Sequence[str],
    weights: Sequence[Decimal | int | float | str] | None = None,
) -> list[ParticipantShare]:
    """
    Allocate a total across participants.

    Args:
        total: Expense amount (> 0)
        split_type: equal, shares, percent or exact
        participants: Participant emails in input order
        weights: Per-participant weights (shares), percents (percent) or
                 amounts (exact); ignored for equal

    Returns:
        One ParticipantShare per participant, summing exactly to the total

    Raises:
        InvalidInputError: If the total, participants or weights are invalid
    """
    try:
        split_type = SplitType(split_type)
    except ValueError as e:
        raise InvalidInputError("Invalid splitType") from e

    try:
        amount = round_money(total)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise InvalidInputError("Amount must be > 0") from e
    if not amount.is_finite() or amount <= 0:
        raise InvalidInputError("Amount must be > 0")
    total_cents = to_cents(amount)

    emails = normalize_participants(participants)
    if not emails:
        raise InvalidInputError("No participants provided or found in group")
    if len(emails) != len(participants):
        # Weights are positional, so they cannot be matched after de-duplication
        if weights is not None and split_type != SplitType.EQUAL:
            raise InvalidInputError("Participants must be unique")

    if split_type == SplitType.EQUAL:
        cents = compute_equal_shares(total_cents, len(emails))

    elif split_type == SplitType.SHARES:
        if weights is None:
            raise InvalidInputError(
                'For "shares", provide participants with positive weights'
            )
        values = _as_decimals(weights, "weights")
        if len(values) != len(emails) or any(w <= 0 for w in values):
            raise InvalidInputError("Weights must match participants and sum > 0")
        weight_sum = sum(values)
        if weight_sum <= 0:
            raise InvalidInputError("Weights must match participants and sum > 0")
        cents = apportion_cents(
            [total_cents * w / weight_sum for w in values], total_cents
        )

    elif split_type == SplitType.PERCENT:
        if weights is None:
            raise InvalidInputError('For "percent", provide percents summing to 100')
        values = _as_decimals(weights, "percents")
        if (
            len(values) != len(emails)
            or any(p < 0 for p in values)
            or abs(sum(values) - 100) > PERCENT_TOLERANCE
        ):
            raise InvalidInputError("Percents must match participants and sum to 100")
        # percents within tolerance of 100 are scaled to cover the whole total
        percent_sum = sum(values)
        cents = apportion_cents(
            [total_cents * p / percent_sum for p in values], total_cents
        )

    else:
        if weights is None:
            raise InvalidInputError(
                'For "exact", provide participants with explicit amounts'
            )
        values = _as_decimals(weights, "amounts")
        if len(values) != len(emails) or any(a < 0 for a in values):
            raise InvalidInputError(
                "Exact amounts must match participants and sum to total"
            )
        cents = [to_cents(a) for a in values]
        if sum(cents) != total_cents:
            raise InvalidInputError(
                "Exact amounts must match participants and sum to total"
            )

    if any(c < 0 for c in cents):
        raise RoundingError("Allocation produced a negative share")

    return [
        ParticipantShare(email=email, share=from_cents(c))
        for email, c in zip(emails, cents, strict=True)
    ]
