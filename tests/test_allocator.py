"""Tests for splitting an expense total across participants."""

from decimal import Decimal

import pytest

from splitledger.exceptions import InvalidInputError, RoundingError
from splitledger.models import SplitType
from splitledger.split.allocator import (
    allocate,
    apportion_cents,
    compute_equal_shares,
    normalize_participants,
)


def shares_of(result) -> list[Decimal]:
    return [p.share for p in result]


class TestEqualSplit:
    """Equal split with the remainder handed out a cent at a time."""

    def test_hundred_over_three(self):
        """100.00 over three participants gives the extra cent to the first."""
        result = allocate("100.00", "equal", ["a@x.com", "b@x.com", "c@x.com"])

        assert shares_of(result) == [
            Decimal("33.34"),
            Decimal("33.33"),
            Decimal("33.33"),
        ]
        assert [p.email for p in result] == ["a@x.com", "b@x.com", "c@x.com"]

    def test_remainder_goes_in_input_order(self):
        """10.00 over 6 leaves 4 cents for the first four participants."""
        result = allocate(10, SplitType.EQUAL, [f"p{i}@x.com" for i in range(6)])

        assert shares_of(result) == [Decimal("1.67")] * 4 + [Decimal("1.66")] * 2

    @pytest.mark.parametrize(
        "total,n",
        [("0.01", 1), ("0.01", 3), ("1.00", 7), ("99.99", 4), ("1234.57", 11)],
    )
    def test_sum_exact_and_shares_within_a_cent(self, total, n):
        """Shares add up to the cent and differ by at most one cent."""
        result = shares_of(allocate(total, "equal", [f"p{i}@x.com" for i in range(n)]))

        assert sum(result) == Decimal(total)
        assert max(result) - min(result) <= Decimal("0.01")
        assert all(s >= 0 for s in result)

    def test_compute_equal_shares_in_cents(self):
        assert compute_equal_shares(10000, 3) == [3334, 3333, 3333]
        assert compute_equal_shares(2, 3) == [1, 1, 0]

    def test_duplicate_participants_collapse(self):
        """Emails are normalized; repeats count once for an equal split."""
        result = allocate("20.00", "equal", ["A@x.com", " a@x.com", "b@x.com"])

        assert [p.email for p in result] == ["a@x.com", "b@x.com"]
        assert shares_of(result) == [Decimal("10.00"), Decimal("10.00")]


class TestSharesSplit:
    """Weighted split."""

    def test_weights_apportion_total(self):
        result = allocate("100", "shares", ["a", "b", "c"], [1, 2, 1])

        assert shares_of(result) == [
            Decimal("25.00"),
            Decimal("50.00"),
            Decimal("25.00"),
        ]

    def test_leftover_cent_on_tie_goes_first(self):
        """Three equal weights over 100.00 leave one cent; the first share takes it."""
        result = allocate("100", "shares", ["a", "b", "c"], [1, 1, 1])

        assert sum(shares_of(result)) == Decimal("100.00")
        assert shares_of(result)[0] == Decimal("33.34")

    def test_fractional_weights(self):
        result = allocate("10", "shares", ["a", "b"], ["0.5", "1.5"])

        assert shares_of(result) == [Decimal("2.50"), Decimal("7.50")]

    @pytest.mark.parametrize("weights", [[1, 0], [1, -2], [1], [1, 2, 3]])
    def test_invalid_weights_rejected(self, weights):
        with pytest.raises(InvalidInputError, match="Weights must match"):
            allocate("10", "shares", ["a", "b"], weights)

    def test_missing_weights_rejected(self):
        with pytest.raises(InvalidInputError, match='For "shares"'):
            allocate("10", "shares", ["a", "b"])

    def test_duplicate_participants_with_weights_rejected(self):
        with pytest.raises(InvalidInputError, match="Participants must be unique"):
            allocate("10", "shares", ["a", "A"], [1, 1])


class TestPercentSplit:
    """Percentages of the total."""

    def test_percentages(self):
        result = allocate("80", "percent", ["a", "b", "c"], [50, 25, 25])

        assert shares_of(result) == [
            Decimal("40.00"),
            Decimal("20.00"),
            Decimal("20.00"),
        ]

    def test_thirds_sum_exactly(self):
        result = allocate("100", "percent", ["a", "b", "c"], ["33.33", "33.33", "33.34"])

        assert sum(shares_of(result)) == Decimal("100.00")

    def test_sum_within_tolerance_accepted(self):
        """Percents summing to 99.99 are within the 0.01 tolerance."""
        result = allocate("50", "percent", ["a", "b"], ["49.99", "50"])

        assert sum(shares_of(result)) == Decimal("50.00")

    @pytest.mark.parametrize("percents", [[50, 49], [60, 50], [100], [-10, 110]])
    def test_invalid_percents_rejected(self, percents):
        with pytest.raises(InvalidInputError, match="Percents must match"):
            allocate("10", "percent", ["a", "b"], percents)


class TestExactSplit:
    """Caller-supplied amounts."""

    def test_exact_amounts(self):
        result = allocate("100", "exact", ["a", "b"], ["40", "60"])

        assert shares_of(result) == [Decimal("40.00"), Decimal("60.00")]

    def test_exact_amounts_one_cent_short_rejected(self):
        """40.00 + 59.99 does not cover 100.00."""
        with pytest.raises(InvalidInputError, match="Exact amounts must match"):
            allocate("100", "exact", ["a", "b"], ["40", "59.99"])

    def test_exact_count_mismatch_rejected(self):
        with pytest.raises(InvalidInputError, match="Exact amounts must match"):
            allocate("100", "exact", ["a", "b"], ["100"])

    def test_zero_share_allowed(self):
        result = allocate("25", "exact", ["a", "b"], ["25", "0"])

        assert shares_of(result) == [Decimal("25.00"), Decimal("0.00")]


class TestAllocateValidation:
    """Input checks common to every strategy."""

    @pytest.mark.parametrize("total", [0, "-5", "abc", None])
    def test_non_positive_or_garbage_total(self, total):
        with pytest.raises(InvalidInputError, match="Amount must be > 0"):
            allocate(total, "equal", ["a"])

    def test_unknown_split_type(self):
        with pytest.raises(InvalidInputError, match="Invalid splitType"):
            allocate("10", "thirds", ["a"])

    def test_no_participants(self):
        with pytest.raises(InvalidInputError, match="No participants"):
            allocate("10", "equal", [])

    def test_blank_participants_only(self):
        with pytest.raises(InvalidInputError, match="No participants"):
            allocate("10", "equal", ["", "  "])

    def test_thousands_separator_accepted(self):
        result = allocate("1,000.00", "equal", ["a", "b"])

        assert shares_of(result) == [Decimal("500.00"), Decimal("500.00")]


class TestLargestRemainder:
    """Rounding cents handed out one at a time."""

    def test_exact_values_unchanged(self):
        assert apportion_cents([Decimal(500), Decimal(500)], 1000) == [500, 500]

    def test_cents_go_to_largest_fractions(self):
        exact = [Decimal("3333.2"), Decimal("3333.5"), Decimal("3333.3")]

        assert apportion_cents(exact, 10000) == [3333, 3334, 3333]

    def test_ties_in_input_order(self):
        assert apportion_cents([Decimal("1.5")] * 4, 6) == [2, 2, 1, 1]

    def test_mismatch_beyond_threshold_raises(self):
        with pytest.raises(RoundingError, match="exceeds safety threshold"):
            apportion_cents([Decimal(100)], 105)

    def test_normalize_participants(self):
        assert normalize_participants([" B@X.com", "b@x.com", "", "c@x.com"]) == [
            "b@x.com",
            "c@x.com",
        ]


class TestManyParticipants:
    """Small totals spread over large groups."""

    @pytest.mark.parametrize(
        "total,n",
        [("0.06", 4), ("0.10", 20), ("1.50", 100), ("0.01", 7), ("99.99", 37)],
    )
    def test_shares_equal_weights(self, total, n):
        result = shares_of(
            allocate(total, "shares", [f"p{i}@x.com" for i in range(n)], [1] * n)
        )

        assert sum(result) == Decimal(total)
        assert all(s >= 0 for s in result)
        assert max(result) - min(result) <= Decimal("0.01")

    @pytest.mark.parametrize(
        "total,n", [("0.10", 20), ("0.06", 4), ("1.00", 50), ("0.99", 25)]
    )
    def test_percent_equal_parts(self, total, n):
        percent = Decimal(100) / n
        result = shares_of(
            allocate(total, "percent", [f"p{i}@x.com" for i in range(n)], [percent] * n)
        )

        assert sum(result) == Decimal(total)
        assert all(s >= 0 for s in result)
        assert max(result) - min(result) <= Decimal("0.01")

    def test_small_total_spread_evenly(self):
        """0.06 over four equal weights is 0.02, 0.02, 0.01, 0.01."""
        result = allocate("0.06", "shares", ["a", "b", "c", "d"], [1, 1, 1, 1])

        assert shares_of(result) == [
            Decimal("0.02"),
            Decimal("0.02"),
            Decimal("0.01"),
            Decimal("0.01"),
        ]

    def test_uneven_weights_stay_within_a_cent(self):
        weights = [3, 1, 1, 1, 1, 1, 1, 1]
        result = shares_of(
            allocate("0.10", "shares", [f"p{i}@x.com" for i in range(8)], weights)
        )

        assert sum(result) == Decimal("0.10")
        for share, weight in zip(result, weights, strict=True):
            assert abs(share - Decimal("0.10") * weight / 10) < Decimal("0.01")
