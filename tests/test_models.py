from decimal import Decimal

import pytest

from splitease.models import (
    Expense,
    ExpenseValidationError,
    MultiPayer,
    Settlement,
    SinglePayer,
    SplitType,
    round_money,
    to_money,
)


def record(**overrides):
    d = {
        "id": "e1",
        "groupId": "g1",
        "description": "Dinner",
        "amount": 90.0,
        "splitType": "EQUAL",
        "splits": [
            {"userId": "A", "amount": 30},
            {"userId": "B", "amount": 30},
            {"userId": "C", "amount": 30},
        ],
    }
    d.update(overrides)
    return d


def test_money_helpers():
    assert to_money(0.1) == Decimal("0.1")
    assert to_money(None) == 0
    assert round_money("2.675") == Decimal("2.68")
    assert round_money("2.665") == Decimal("2.67")


def test_expense_from_contributors_record():
    e = Expense.from_dict(record(contributors={"A": 60.0, "B": 30.0}))
    assert isinstance(e.payer, MultiPayer)
    assert e.contributions() == {"A": Decimal("60.0"), "B": Decimal("30.0")}
    assert e.split_type is SplitType.EQUAL
    assert [s.member for s in e.splits] == ["A", "B", "C"]

    d = e.to_dict()
    assert "paidBy" not in d
    assert d["contributors"] == {"A": "60.0", "B": "30.0"}


def test_expense_from_legacy_record():
    e = Expense.from_dict(record(paidBy="A"))
    assert e.payer == SinglePayer("A")
    assert e.contributions() == {"A": Decimal("90.0")}
    d = e.to_dict()
    assert d["paidBy"] == "A"
    assert "contributors" not in d


def test_contributors_win_over_paid_by():
    e = Expense.from_dict(record(contributors={"B": 90}, paidBy="A"))
    assert e.contributions() == {"B": Decimal("90")}


def test_expense_without_payer_is_rejected():
    with pytest.raises(ExpenseValidationError):
        Expense.from_dict(record())


def test_expense_record_survives_reload():
    e = Expense.from_dict(record(contributors={"A": "45.50", "B": "44.50"}, splitType="SHARES"))
    assert Expense.from_dict(e.to_dict()) == e


def test_settlement_from_record():
    s = Settlement.from_dict({"fromUser": "B", "toUser": "A", "amount": 20, "date": "2025-01-02"})
    assert (s.from_user, s.to_user, s.amount) == ("B", "A", Decimal("20"))
    assert s.to_dict()["fromUser"] == "B"
