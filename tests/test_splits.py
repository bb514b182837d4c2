from decimal import Decimal

import pytest

from splitease.models import ExpenseValidationError, SplitType
from splitease.splits import (
    build_expense_splits,
    compute_splits,
    split_total,
    validate_contributions,
    validate_settlement,
    validate_split_total,
)


def amounts(splits):
    return [s.amount for s in splits]


def test_equal_split_gives_remainder_to_first_member():
    splits = compute_splits(Decimal("100.00"), SplitType.EQUAL, ["m1", "m2", "m3"])
    assert [s.member for s in splits] == ["m1", "m2", "m3"]
    assert amounts(splits) == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]
    assert split_total(splits) == Decimal("100.00")


def test_equal_split_negative_remainder():
    # 0.05 / 3 rounds up to 0.02 each, so the first member absorbs -0.01
    splits = compute_splits("0.05", "EQUAL", ["a", "b", "c"])
    assert amounts(splits) == [Decimal("0.01"), Decimal("0.02"), Decimal("0.02")]
    assert split_total(splits) == Decimal("0.05")


def test_equal_split_accepts_floats():
    splits = compute_splits(10.0, "equal", ["a", "b", "c", "d"])
    assert amounts(splits) == [Decimal("2.50")] * 4


def test_unequal_split_is_not_normalized():
    params = {"A": {"amount": 70}, "B": {"amount": "20"}}
    splits = compute_splits(100, SplitType.UNEQUAL, ["A", "B"], params)
    assert amounts(splits) == [Decimal("70"), Decimal("20")]
    assert split_total(splits) == Decimal("90")


def test_unequal_split_missing_amount_is_zero():
    splits = compute_splits(50, SplitType.UNEQUAL, ["A", "B"], {"A": {"amount": 50}})
    assert amounts(splits) == [Decimal("50"), Decimal("0")]


def test_shares_split():
    params = {"A": {"shares": 2}, "B": {"shares": 1}, "C": {"shares": 1}}
    splits = compute_splits(100, SplitType.SHARES, ["A", "B", "C"], params)
    assert amounts(splits) == [Decimal("50.00"), Decimal("25.00"), Decimal("25.00")]
    assert splits[0].shares == Decimal("2")


def test_shares_default_to_one():
    splits = compute_splits(100, SplitType.SHARES, ["A", "B"], {"A": {"shares": 3}})
    assert amounts(splits) == [Decimal("75.00"), Decimal("25.00")]


def test_zero_total_shares_yields_empty():
    params = {"A": {"shares": 0}, "B": {"shares": 0}}
    assert compute_splits(100, SplitType.SHARES, ["A", "B"], params) == []


def test_percentage_split_is_independent_per_member():
    params = {"A": {"percentage": 50}, "B": {"percentage": 25}}
    splits = compute_splits(200, SplitType.PERCENTAGE, ["A", "B"], params)
    assert amounts(splits) == [Decimal("100.00"), Decimal("50.00")]
    assert splits[1].percentage == Decimal("25")


def test_percentage_rounds_half_up():
    splits = compute_splits("0.15", SplitType.PERCENTAGE, ["A"], {"A": {"percentage": 50}})
    assert amounts(splits) == [Decimal("0.08")]


def test_no_participants_yields_empty():
    for split_type in SplitType:
        assert compute_splits(100, split_type, []) == []


def test_unknown_split_type_yields_empty():
    assert compute_splits(100, "BOGUS", ["A", "B"]) == []


def test_non_numeric_amount_yields_empty():
    assert compute_splits("abc", "EQUAL", ["A", "B"]) == []
    assert compute_splits("abc", SplitType.SHARES, ["A", "B"]) == []


def test_repeated_participant_gets_one_entry_per_listing():
    shares = compute_splits(90, SplitType.SHARES, ["A", "A", "B"])
    equal = compute_splits(90, SplitType.EQUAL, ["A", "A", "B"])
    assert [s.member for s in shares] == ["A", "A", "B"]
    assert amounts(shares) == [Decimal("30.00")] * 3
    assert len(shares) == len(equal)


def test_compute_splits_is_deterministic():
    params = {"A": {"shares": 1}, "B": {"shares": 2}}
    first = compute_splits(10, SplitType.SHARES, ["A", "B"], params)
    second = compute_splits(10, SplitType.SHARES, ["A", "B"], params)
    assert first == second


def test_build_expense_splits_rejects_bad_percentages():
    params = {"A": {"percentage": 50}, "B": {"percentage": 40}}
    with pytest.raises(ExpenseValidationError, match="do not equal total"):
        build_expense_splits(100, SplitType.PERCENTAGE, ["A", "B"], params)


def test_build_expense_splits_rejects_zero_shares():
    with pytest.raises(ExpenseValidationError, match="Total shares"):
        build_expense_splits(100, SplitType.SHARES, ["A"], {"A": {"shares": 0}})


def test_build_expense_splits_rejects_empty_input():
    with pytest.raises(ExpenseValidationError):
        build_expense_splits(100, SplitType.EQUAL, [])
    with pytest.raises(ExpenseValidationError):
        build_expense_splits(0, SplitType.EQUAL, ["A"])


def test_validate_split_total_tolerance():
    splits = compute_splits(100, SplitType.UNEQUAL, ["A", "B"], {"A": {"amount": 50}, "B": {"amount": "49.99"}})
    validate_split_total(100, splits)
    with pytest.raises(ExpenseValidationError):
        validate_split_total("100.02", splits)


def test_validate_contributions():
    validate_contributions(90, {"A": 60, "B": 30})
    with pytest.raises(ExpenseValidationError, match="Contributions do not equal total"):
        validate_contributions(90, {"A": 60, "B": 20})
    with pytest.raises(ExpenseValidationError, match="negative"):
        validate_contributions(90, {"A": 100, "B": -10})
    with pytest.raises(ExpenseValidationError):
        validate_contributions(90, {})


def test_validate_settlement():
    validate_settlement("A", "B", 10)
    with pytest.raises(ExpenseValidationError):
        validate_settlement("A", "A", 10)
    with pytest.raises(ExpenseValidationError):
        validate_settlement("A", "B", 0)
