"""splitledger - Shared-expense groups, meal cost sharing and an emergency fund."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .db import Database
from .fund.service import FundService
from .meals.service import MealService
from .models import (
    Expense,
    GroceryItem,
    Group,
    MealEntry,
    Member,
    ParticipantShare,
    Settlement,
    SplitType,
    Transfer,
)
from .split.allocator import allocate
from .split.ledger import compute_balances
from .split.planner import plan_settlements
from .split.service import SplitService

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "Expense",
    "GroceryItem",
    "Group",
    "MealEntry",
    "Member",
    "ParticipantShare",
    "Settlement",
    "SplitType",
    "Transfer",
    "allocate",
    "compute_balances",
    "plan_settlements",
    "FundService",
    "MealService",
    "SplitService",
]
