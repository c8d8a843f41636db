"""Pydantic domain models for splitledger."""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Literal, TypeVar

from pydantic import (
    BaseModel,
    BeforeValidator,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .exceptions import InvalidInputError
from .money import round_money, to_cents


def normalize_key(value: Any) -> str:
    """Normalize a participant key (email): lowercase and trimmed."""
    return str(value or "").lower().strip()


def _money(value: Any) -> Decimal:
    try:
        return round_money(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Invalid amount: {value!r}") from e


Money = Annotated[Decimal, BeforeValidator(_money)]
# Servings and quantities keep 2 fractional digits, like money
Quantity = Annotated[Decimal, BeforeValidator(_money)]
Email = Annotated[str, BeforeValidator(normalize_key)]

ModelT = TypeVar("ModelT", bound=BaseModel)


# ============================================================================
# Enums
# ============================================================================


class Role(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"


class GroupKind(str, Enum):
    """Expense-splitting groups and meal groups share membership rules."""

    SPLIT = "split"
    MEAL = "meal"


class SplitType(str, Enum):
    EQUAL = "equal"
    SHARES = "shares"
    PERCENT = "percent"
    EXACT = "exact"


class MealSlot(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    OTHER = "other"


class EventType(str, Enum):
    EXPENSE = "expense"
    SETTLEMENT = "settlement"
    PURCHASE = "purchase"
    MEAL = "meal"


class FundTransactionType(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


# ============================================================================
# Groups
# ============================================================================


class Member(BaseModel):
    """A participant of a group, identified by normalized email."""

    email: Email
    name: str = ""
    role: Role = Role.MEMBER
    joined_at: datetime = Field(default_factory=datetime.now)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: Any) -> str:
        return str(v or "").strip()


class Group(BaseModel):
    """A split or meal group.

    Members are normalized on every construction: blank emails are dropped,
    duplicates collapse onto their first occurrence, and a group without an
    admin promotes its creator (or, failing that, its first member).
    """

    id: int | None = None
    kind: GroupKind = GroupKind.SPLIT
    name: str
    created_by: Email
    members: list[Member]
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Group name is required.")
        return v

    @model_validator(mode="after")
    def normalize_members(self) -> "Group":
        seen: set[str] = set()
        members: list[Member] = []
        for member in self.members:
            if not member.email or member.email in seen:
                continue
            seen.add(member.email)
            members.append(member)

        if not members:
            raise ValueError("Members must be non-empty and have unique emails.")

        if not any(m.role == Role.ADMIN for m in members):
            idx = next(
                (i for i, m in enumerate(members) if m.email == self.created_by), 0
            )
            members[idx] = members[idx].model_copy(update={"role": Role.ADMIN})

        self.members = members
        return self

    def get_member(self, email: str) -> Member | None:
        key = normalize_key(email)
        for member in self.members:
            if member.email == key:
                return member
        return None

    def is_member(self, email: str) -> bool:
        return self.get_member(email) is not None

    def is_admin(self, email: str) -> bool:
        member = self.get_member(email)
        return member is not None and member.role == Role.ADMIN

    @property
    def member_keys(self) -> list[str]:
        return [m.email for m in self.members]


class TimeRange(BaseModel):
    """Inclusive time window; either bound may be open."""

    start: datetime | None = None
    end: datetime | None = None

    def contains(self, moment: datetime | None) -> bool:
        if moment is None:
            return False
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment > self.end:
            return False
        return True


# ============================================================================
# Financial events
# ============================================================================


class ParticipantShare(BaseModel):
    """Portion of an expense assigned to one participant."""

    email: Email
    share: Money = Field(ge=0)


class Expense(BaseModel):
    """A shared expense paid by one member and split across participants."""

    id: int | None = None
    group_id: int | None = None
    paid_by: Email
    amount: Money = Field(ge=Decimal("0.01"))
    description: str | None = None
    category: str | None = None
    date: datetime = Field(default_factory=datetime.now)
    split_type: SplitType = SplitType.EQUAL
    participants: list[ParticipantShare]
    created_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def validate_participants(self) -> "Expense":
        if not self.participants:
            raise ValueError(
                "Participants must be unique, non-empty, non-negative, "
                "and sum to the expense amount."
            )
        emails = [p.email for p in self.participants]
        if any(not e for e in emails) or len(set(emails)) != len(emails):
            raise ValueError(
                "Participants must be unique, non-empty, non-negative, "
                "and sum to the expense amount."
            )
        total = sum(to_cents(p.share) for p in self.participants)
        if abs(total - to_cents(self.amount)) > 1:
            raise ValueError(
                f"Participant shares sum to {total / 100:.2f}, "
                f"expected {self.amount}."
            )
        return self

    @property
    def timestamp(self) -> datetime:
        return self.date


class Settlement(BaseModel):
    """A direct transfer between two members that reduces their balances."""

    id: int | None = None
    group_id: int | None = None
    from_email: Email
    to_email: Email
    amount: Money = Field(ge=Decimal("0.01"))
    note: str | None = None
    date: datetime = Field(default_factory=datetime.now)
    created_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def no_self_transfer(self) -> "Settlement":
        if not self.from_email or not self.to_email:
            raise ValueError("from, to and a positive amount are required")
        if self.from_email == self.to_email:
            raise ValueError("from and to must be different members")
        return self

    @property
    def timestamp(self) -> datetime:
        return self.date


class GroceryItem(BaseModel):
    """A shopping-list item; once purchased it is a Purchase event."""

    id: int | None = None
    group_id: int | None = None
    name: str
    quantity: Quantity = Decimal("1.00")
    unit: str | None = None
    needed_for_date: datetime | None = None
    needed_for_meal: MealSlot | None = None
    purchased: bool = False
    amount: Money | None = Field(default=None, ge=0)
    paid_by: Email | None = None
    purchased_at: datetime | None = None
    duty_id: int | None = None
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Item name is required")
        return v

    @property
    def timestamp(self) -> datetime | None:
        return self.purchased_at


class ShoppingDuty(BaseModel):
    """The member responsible for shopping on a given day."""

    id: int | None = None
    group_id: int | None = None
    date: date
    email: Email
    note: str = ""


class MealEntry(BaseModel):
    """Servings one member ate at a meal."""

    id: int | None = None
    group_id: int | None = None
    email: Email
    date: datetime
    meal: MealSlot
    servings: Quantity = Field(default=Decimal("1.00"), ge=Decimal("0.1"))
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def timestamp(self) -> datetime:
        return self.date


class EmergencyFund(BaseModel):
    """A member's personal emergency-savings fund."""

    id: int | None = None
    owner: Email
    target_amount: Money = Field(default=Decimal("0.00"), ge=0)
    target_months: int = Field(default=0, ge=0)
    target_date: datetime | None = None
    current_balance: Money = Field(default=Decimal("0.00"), ge=0)
    monthly_plan: Money = Field(default=Decimal("0.00"), ge=0)
    badges: list[str] = Field(default_factory=list)
    streak_count: int = 0
    last_contribution_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class FundTransaction(BaseModel):
    """A contribution to or withdrawal from an emergency fund."""

    id: int | None = None
    fund_id: int
    owner: Email
    type: FundTransactionType
    amount: Money = Field(ge=Decimal("0.01"))
    note: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def timestamp(self) -> datetime:
        return self.created_at


FinancialEvent = Expense | Settlement | GroceryItem | MealEntry


# ============================================================================
# Derived results
# ============================================================================


class Transfer(BaseModel):
    """One suggested point-to-point payment."""

    from_email: str
    to_email: str
    amount: Decimal


class MealApportionment(BaseModel):
    """Cost-per-serving breakdown of shared grocery spend."""

    total_spend: Decimal
    total_servings: Decimal
    cost_per_serving: Decimal
    spend_by: dict[str, Decimal]
    servings_by: dict[str, Decimal]
    owed_by: dict[str, Decimal]


class GroupSummary(BaseModel):
    group: Group
    balances: dict[str, Decimal]
    suggestions: list[Transfer]


class MealSummary(BaseModel):
    start: datetime | None = None
    end: datetime | None = None
    total_spend: Decimal
    total_servings: Decimal
    cost_per_serving: Decimal
    spend_by: dict[str, Decimal]
    servings_by: dict[str, Decimal]
    balances: dict[str, Decimal]
    suggestions: list[Transfer]


class FundProgress(BaseModel):
    fund: EmergencyFund
    percent: Decimal
    band: Literal["secure", "steady", "seedling"]
    next_milestone_pct: int
    next_milestone_needed: Decimal
    ledger_balance: Decimal


class TransactionPage(BaseModel):
    page: int
    limit: int
    total: int
    items: list[FundTransaction]


def build(model: type[ModelT], **data: Any) -> ModelT:
    """
    Construct a domain model, reporting validation failures as InvalidInputError.

    Keeps pydantic's ValidationError from leaking past the service layer.
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        message = str(first.get("msg", e)).removeprefix("Value error, ")
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise InvalidInputError(f"{field}: {message}" if field else message) from e
