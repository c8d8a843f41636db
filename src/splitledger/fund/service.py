"""Service layer for the personal emergency-savings fund."""

import logging
import math
from datetime import datetime
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal, InvalidOperation

from ..config import Settings
from ..db import Database
from ..exceptions import InvalidInputError, NotFoundError
from ..models import (
    EmergencyFund,
    FundProgress,
    FundTransaction,
    FundTransactionType,
    TransactionPage,
    build,
    normalize_key,
)
from ..money import ZERO, round_money, to_decimal
from ..split.ledger import compute_fund_balance

logger = logging.getLogger(__name__)

MILESTONES = (10, 25, 50, 75, 100)
DEFAULT_PLAN_MONTHS = 6
MAX_PAGE_SIZE = 100


def month_diff(start: datetime, end: datetime) -> int:
    """Whole 30-day months from start to end, at least 1."""
    days = (end - start).total_seconds() / 86400
    return max(1, math.ceil(days / 30))


def safety_band(ratio: Decimal) -> str:
    if ratio >= 1:
        return "secure"
    if ratio >= Decimal("0.5"):
        return "steady"
    return "seedling"


def _ceil_whole(value: Decimal) -> Decimal:
    return round_money(value.to_integral_value(rounding=ROUND_CEILING))


def monthly_plan(fund: EmergencyFund, now: datetime) -> Decimal:
    """
    Monthly contribution needed to reach the target, rounded up to a whole unit.

    Spread over the months left until ``target_date`` if there is one,
    otherwise over ``target_months`` (6 when unset).
    """
    remaining = max(ZERO, fund.target_amount - fund.current_balance)
    if fund.target_date is not None:
        months = month_diff(now, fund.target_date)
    else:
        months = max(1, fund.target_months or DEFAULT_PLAN_MONTHS)
    return _ceil_whole(remaining / months)


def _progress_ratio(fund: EmergencyFund) -> Decimal:
    if fund.target_amount <= 0:
        return ZERO
    return fund.current_balance / fund.target_amount


def _positive_amount(amount) -> Decimal:
    try:
        value = round_money(amount)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise InvalidInputError("Amount must be > 0") from e
    if not value.is_finite() or value <= 0:
        raise InvalidInputError("Amount must be > 0")
    return value


def _award_badges(fund: EmergencyFund) -> list[str]:
    """Return the fund's badges plus any newly earned ones, in award order."""
    badges = list(fund.badges)
    ratio = _progress_ratio(fund)
    months = fund.target_months

    earned = [f"{pct}%" for pct in MILESTONES if ratio * 100 >= pct]
    for span in (3, 6, 12):
        if months >= span and ratio >= Decimal(span) / months:
            earned.append(f"{span}mo")
    for streak in (3, 6, 12):
        if fund.streak_count >= streak:
            earned.append(f"Streak{streak}")

    for badge in earned:
        if badge not in badges:
            badges.append(badge)
    return badges


class FundService:
    """Set goals for, contribute to and withdraw from an emergency fund."""

    def __init__(self, settings: Settings, database: Database):
        """Initialize the fund service."""
        self.settings = settings
        self.db = database

    def _get_fund(self, actor: str) -> EmergencyFund:
        fund = self.db.get_fund(normalize_key(actor))
        if fund is None:
            raise NotFoundError("Emergency fund", "No emergency fund set up yet.")
        return fund

    def setup(
        self,
        actor: str,
        method: str,
        target_months: int | None = None,
        target_amount: Decimal | int | float | str | None = None,
        target_date: datetime | None = None,
        essential_monthly: Decimal | int | float | str | None = None,
        now: datetime | None = None,
    ) -> EmergencyFund:
        """
        Create or reconfigure the actor's emergency fund.

        Args:
            actor: Fund owner's email
            method: "months" (a number of months of essential spending) or
                    "amount" (an explicit target)
            target_months: Months to cover for the months method (default 3)
            target_amount: Explicit target for the amount method
            target_date: Optional date to reach the target by
            essential_monthly: Average essential monthly spend, required for
                               the months method
            now: Current time (defaults to now)

        Returns:
            The saved fund with its monthly plan
        """
        now = now or datetime.now()
        owner = normalize_key(actor)
        if not owner:
            raise InvalidInputError("An owner email is required.")

        months_plan = 0
        if method == "months":
            months_plan = int(target_months or 3)
            try:
                avg = to_decimal(essential_monthly or 0)
            except (InvalidOperation, TypeError, ValueError) as e:
                raise InvalidInputError("Invalid essential monthly spend") from e
            if avg <= 0:
                raise InvalidInputError(
                    'Cannot infer essential expenses. Use method="amount".'
                )
            goal = (avg * months_plan).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        elif method == "amount":
            try:
                goal = to_decimal(target_amount or 0)
            except (InvalidOperation, TypeError, ValueError) as e:
                raise InvalidInputError("Invalid target amount") from e
        else:
            raise InvalidInputError('method must be "months" or "amount".')

        existing = self.db.get_fund(owner)
        fund = build(
            EmergencyFund,
            **{
                **(existing.model_dump() if existing else {"owner": owner}),
                "target_amount": goal,
                "target_months": months_plan
                or (existing.target_months if existing else 0),
                "target_date": target_date
                or (existing.target_date if existing else None),
            },
        )
        fund = fund.model_copy(update={"monthly_plan": monthly_plan(fund, now)})
        saved = self.db.save_fund(fund)

        logger.info(
            f"Configured emergency fund for {owner}: target {saved.target_amount}, "
            f"plan {saved.monthly_plan}/month"
        )
        return saved

    def summary(self, actor: str) -> FundProgress:
        """
        Report progress towards the fund's target.

        The next milestone is the first of 10/25/50/75/100% not yet reached;
        the amount still needed for it is rounded up to a whole unit. The
        balance is also recomputed from the transaction history.
        """
        fund = self._get_fund(actor)
        history = self.db.list_fund_transactions(
            fund.id, self.db.count_fund_transactions(fund.id)
        )
        ledger_balance = compute_fund_balance(history)
        if ledger_balance != fund.current_balance:
            logger.warning(
                f"Fund of {fund.owner} holds {fund.current_balance} but its "
                f"transactions add up to {ledger_balance}"
            )

        ratio = _progress_ratio(fund)
        next_pct = next((pct for pct in MILESTONES if ratio * 100 < pct), 100)
        needed = _ceil_whole(fund.target_amount * next_pct / 100 - fund.current_balance)

        return FundProgress(
            fund=fund,
            percent=round_money(ratio * 100),
            band=safety_band(ratio),
            next_milestone_pct=next_pct,
            next_milestone_needed=max(ZERO, needed),
            ledger_balance=ledger_balance,
        )

    def contribute(
        self,
        actor: str,
        amount: Decimal | int | float | str,
        note: str | None = None,
        now: datetime | None = None,
    ) -> tuple[EmergencyFund, FundTransaction]:
        """
        Deposit into the fund.

        A deposit in a new calendar month extends the streak; badges are
        awarded once and never removed. The monthly plan is recomputed when
        the fund has a target date.

        Returns:
            The updated fund and the recorded deposit
        """
        value = _positive_amount(amount)
        fund = self._get_fund(actor)
        now = now or datetime.now()

        last = fund.last_contribution_at
        new_month = last is None or (last.year, last.month) != (now.year, now.month)

        fund = fund.model_copy(
            update={
                "current_balance": fund.current_balance + value,
                "streak_count": fund.streak_count + (1 if new_month else 0),
                "last_contribution_at": now,
            }
        )
        fund = fund.model_copy(update={"badges": _award_badges(fund)})
        if fund.target_date is not None:
            fund = fund.model_copy(update={"monthly_plan": monthly_plan(fund, now)})

        tx = build(
            FundTransaction,
            fund_id=fund.id,
            owner=fund.owner,
            type=FundTransactionType.DEPOSIT,
            amount=value,
            note=note,
            created_at=now,
        )
        saved_fund, saved_tx = self.db.save_fund_with_transaction(fund, tx)

        logger.info(
            f"Contribution of {value} to fund of {fund.owner}; "
            f"balance {saved_fund.current_balance}, streak {saved_fund.streak_count}"
        )
        return saved_fund, saved_tx

    def withdraw(
        self,
        actor: str,
        amount: Decimal | int | float | str,
        note: str | None = None,
        now: datetime | None = None,
    ) -> tuple[EmergencyFund, FundTransaction]:
        """
        Withdraw from the fund.

        Raises:
            InvalidInputError: If the amount is not positive or exceeds the
                               balance (the balance is left unchanged)
        """
        value = _positive_amount(amount)
        fund = self._get_fund(actor)
        if value > fund.current_balance:
            raise InvalidInputError("Insufficient balance.")

        fund = fund.model_copy(update={"current_balance": fund.current_balance - value})
        tx = build(
            FundTransaction,
            fund_id=fund.id,
            owner=fund.owner,
            type=FundTransactionType.WITHDRAWAL,
            amount=value,
            note=note,
            created_at=now or datetime.now(),
        )
        saved_fund, saved_tx = self.db.save_fund_with_transaction(fund, tx)

        logger.info(
            f"Withdrawal of {value} from fund of {fund.owner}; "
            f"balance {saved_fund.current_balance}"
        )
        return saved_fund, saved_tx

    def list_transactions(
        self, actor: str, page: int = 1, limit: int | None = None
    ) -> TransactionPage:
        """List the fund's transactions, newest first, one page at a time."""
        fund = self._get_fund(actor)
        page = max(1, int(page or 1))
        limit = min(
            MAX_PAGE_SIZE, max(1, int(limit or self.settings.transactions_page_size))
        )

        items = self.db.list_fund_transactions(fund.id, limit, (page - 1) * limit)
        total = self.db.count_fund_transactions(fund.id)
        return TransactionPage(page=page, limit=limit, total=total, items=items)

    def update_goal(
        self,
        actor: str,
        target_amount: Decimal | int | float | str | None = None,
        target_months: int | None = None,
        target_date: datetime | None = None,
        now: datetime | None = None,
    ) -> EmergencyFund:
        """Change the fund's target and recompute the monthly plan."""
        fund = self._get_fund(actor)
        changes: dict = {}
        if target_amount is not None:
            changes["target_amount"] = target_amount
        if target_months is not None:
            changes["target_months"] = target_months
        if target_date is not None:
            changes["target_date"] = target_date

        fund = build(EmergencyFund, **{**fund.model_dump(), **changes})
        fund = fund.model_copy(
            update={"monthly_plan": monthly_plan(fund, now or datetime.now())}
        )
        saved = self.db.save_fund(fund)

        logger.info(
            f"Updated goal for fund of {saved.owner}: target {saved.target_amount}, "
            f"plan {saved.monthly_plan}/month"
        )
        return saved
