"""Tests for the meal group service layer."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from splitledger.config import Settings
from splitledger.db import Database
from splitledger.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from splitledger.meals.service import MealService
from splitledger.models import GroupKind

ALICE = "alice@x.com"
BOB = "bob@x.com"
CAROL = "carol@x.com"


@pytest.fixture
def mock_settings(tmp_path):
    """Create settings pointing at a temporary database."""
    return Settings(database_path=tmp_path / "test.db")


@pytest.fixture
def mock_db(mock_settings):
    """Create a temporary database."""
    db = Database(mock_settings.database_path)
    yield db
    db.close()


@pytest.fixture
def service(mock_settings, mock_db):
    """Create a MealService instance."""
    return MealService(mock_settings, mock_db)


@pytest.fixture
def group(service):
    """A meal group run by Alice with Bob and Carol."""
    return service.create_group(ALICE, "Kitchen", [BOB, CAROL])


def dinner(email, servings, day=10):
    return {
        "email": email,
        "date": datetime(2025, 1, day, 19),
        "meal": "dinner",
        "servings": servings,
    }


class TestItems:
    def test_group_kind(self, group):
        assert group.kind == GroupKind.MEAL

    def test_add_and_list_items(self, service, group):
        item = service.add_item(BOB, group.id, "Rice", quantity="2", unit="kg")

        [listed] = service.list_items(ALICE, group.id)
        assert listed.id == item.id
        assert listed.quantity == Decimal("2.00")
        assert listed.unit == "kg"
        assert listed.purchased is False

    def test_item_name_required(self, service, group):
        with pytest.raises(InvalidInputError, match="Item name is required"):
            service.add_item(ALICE, group.id, "")

    def test_purchase_defaults_to_actor(self, service, group):
        item = service.add_item(ALICE, group.id, "Milk")

        bought = service.purchase_item(
            BOB, group.id, item.id, "3.50", purchased_at=datetime(2025, 1, 10, 9)
        )

        assert bought.purchased is True
        assert bought.paid_by == BOB
        assert bought.amount == Decimal("3.50")
        assert bought.duty_id is None

    def test_purchase_defaults_to_shopper_on_duty(self, service, group):
        [duty] = service.assign_duties(
            ALICE, group.id, [{"date": date(2025, 1, 10), "email": CAROL}]
        )
        item = service.add_item(ALICE, group.id, "Eggs")

        bought = service.purchase_item(
            ALICE, group.id, item.id, "6", purchased_at=datetime(2025, 1, 10, 18)
        )

        assert bought.paid_by == CAROL
        assert bought.duty_id == duty.id

    def test_explicit_payer_wins(self, service, group):
        service.assign_duties(
            ALICE, group.id, [{"date": date(2025, 1, 10), "email": CAROL}]
        )
        item = service.add_item(ALICE, group.id, "Eggs")

        bought = service.purchase_item(
            ALICE,
            group.id,
            item.id,
            "6",
            paid_by=BOB,
            purchased_at=datetime(2025, 1, 10, 18),
        )

        assert bought.paid_by == BOB

    def test_purchase_twice_conflicts(self, service, group):
        item = service.add_item(ALICE, group.id, "Bread")
        service.purchase_item(ALICE, group.id, item.id, "2")

        with pytest.raises(ConflictError, match="already purchased"):
            service.purchase_item(ALICE, group.id, item.id, "2")

    def test_purchase_missing_item(self, service, group):
        with pytest.raises(NotFoundError, match="Item not found"):
            service.purchase_item(ALICE, group.id, 999, "2")

    def test_negative_amount_rejected(self, service, group):
        item = service.add_item(ALICE, group.id, "Bread")

        with pytest.raises(InvalidInputError):
            service.purchase_item(ALICE, group.id, item.id, "-1")

        assert service.list_items(ALICE, group.id, purchased=False)[0].id == item.id


class TestDuties:
    def test_assign_admin_only(self, service, group):
        with pytest.raises(ForbiddenError):
            service.assign_duties(
                BOB, group.id, [{"date": date(2025, 1, 1), "email": BOB}]
            )

    def test_empty_duties_rejected(self, service, group):
        with pytest.raises(InvalidInputError):
            service.assign_duties(ALICE, group.id, [])

    def test_reassign_replaces(self, service, group):
        day = date(2025, 1, 1)
        service.assign_duties(ALICE, group.id, [{"date": day, "email": BOB}])
        service.assign_duties(ALICE, group.id, [{"date": day, "email": CAROL}])

        [duty] = service.list_duties(BOB, group.id)
        assert duty.email == CAROL

    def test_no_replace_conflicts(self, service, group):
        day = date(2025, 1, 1)
        service.assign_duties(ALICE, group.id, [{"date": day, "email": BOB}])

        with pytest.raises(ConflictError):
            service.assign_duties(
                ALICE, group.id, [{"date": day, "email": CAROL}], replace=False
            )

    def test_new_shopper_joins_group(self, service, group):
        service.assign_duties(
            ALICE, group.id, [{"date": "2025-01-02", "email": "dave@x.com"}]
        )

        assert "dave@x.com" in service.get_group(ALICE, group.id).member_keys

    def test_list_range(self, service, group):
        service.assign_duties(
            ALICE,
            group.id,
            [
                {"date": date(2025, 1, 1), "email": BOB},
                {"date": date(2025, 1, 5), "email": CAROL},
                {"date": date(2025, 1, 9), "email": ALICE},
            ],
        )

        duties = service.list_duties(ALICE, group.id, date(2025, 1, 2), date(2025, 1, 9))
        assert [d.email for d in duties] == [CAROL, ALICE]


class TestMeals:
    def test_record_and_list(self, service, group):
        service.record_meals(BOB, group.id, [dinner(BOB, 2), dinner(CAROL, "0.5")])

        meals = service.list_meals(ALICE, group.id)
        assert {m.email: m.servings for m in meals} == {
            BOB: Decimal("2.00"),
            CAROL: Decimal("0.50"),
        }
        assert [m.email for m in service.list_meals(ALICE, group.id, email=BOB)] == [BOB]

    def test_empty_entries_rejected(self, service, group):
        with pytest.raises(InvalidInputError):
            service.record_meals(ALICE, group.id, [])

    def test_servings_default_to_one(self, service, group):
        [entry] = service.record_meals(
            ALICE,
            group.id,
            [{"email": ALICE, "date": datetime(2025, 1, 1), "meal": "lunch"}],
        )

        assert entry.servings == Decimal("1.00")

    def test_invalid_entry_rejected_without_writes(self, service, group):
        with pytest.raises(InvalidInputError):
            service.record_meals(
                ALICE, group.id, [dinner(BOB, 1), dinner(CAROL, 1) | {"meal": "brunch"}]
            )

        assert service.list_meals(ALICE, group.id) == []


class TestSummary:
    def test_cost_per_serving_and_transfers(self, service, group):
        """90.00 spent over 30 servings: each 10-serving eater owes 30.00."""
        item = service.add_item(ALICE, group.id, "Groceries")
        service.purchase_item(
            ALICE, group.id, item.id, "90", purchased_at=datetime(2025, 1, 10, 9)
        )
        service.record_meals(
            ALICE, group.id, [dinner(ALICE, 10), dinner(BOB, 10), dinner(CAROL, 10)]
        )

        summary = service.summary(BOB, group.id)

        assert summary.total_spend == Decimal("90.00")
        assert summary.total_servings == Decimal("30.00")
        assert summary.cost_per_serving == Decimal("3.00")
        assert summary.balances == {
            ALICE: Decimal("60.00"),
            BOB: Decimal("-30.00"),
            CAROL: Decimal("-30.00"),
        }
        assert [(t.from_email, t.amount) for t in summary.suggestions] == [
            (BOB, Decimal("30.00")),
            (CAROL, Decimal("30.00")),
        ]

    def test_summary_window(self, service, group):
        old = service.add_item(ALICE, group.id, "Old")
        service.purchase_item(
            ALICE, group.id, old.id, "50", purchased_at=datetime(2024, 12, 1)
        )
        new = service.add_item(ALICE, group.id, "New")
        service.purchase_item(
            BOB, group.id, new.id, "20", purchased_at=datetime(2025, 1, 10)
        )
        service.record_meals(ALICE, group.id, [dinner(ALICE, 1), dinner(BOB, 1)])

        summary = service.summary(
            ALICE, group.id, start=datetime(2025, 1, 1), end=datetime(2025, 1, 31)
        )

        assert summary.total_spend == Decimal("20.00")
        assert summary.balances[BOB] == Decimal("10.00")
        assert summary.balances[ALICE] == Decimal("-10.00")

    def test_no_servings(self, service, group):
        item = service.add_item(ALICE, group.id, "Snacks")
        service.purchase_item(ALICE, group.id, item.id, "12")

        summary = service.summary(ALICE, group.id)

        assert summary.cost_per_serving == Decimal("0.00")
        assert summary.total_servings == Decimal("0.00")
