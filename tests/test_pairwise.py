from decimal import Decimal

from splitease.models import Expense, MultiPayer, Settlement, SinglePayer, Split, Transaction
from splitease.pairwise import (
    compute_pairwise_debts,
    debts_owed_by,
    debts_owed_to,
    net_pairwise_balances,
    suggested_payments,
)

D = Decimal


def splits(*pairs):
    return tuple(Split(member=m, amount=D(str(a))) for m, a in pairs)


def legacy(payer, amount, *pairs):
    return Expense(amount=D(str(amount)), payer=SinglePayer(payer), splits=splits(*pairs))


def test_share_is_apportioned_across_contributors():
    expense = Expense(
        amount=D("90"),
        payer=MultiPayer.of({"A": 60, "B": 30}),
        splits=splits(("A", 30), ("B", 30), ("C", 30)),
    )
    debts = compute_pairwise_debts([expense], [])
    assert debts_owed_by(debts, "C") == {"A": D("20.00"), "B": D("10.00")}
    assert debts_owed_by(debts, "A") == {"B": D("10.00")}
    assert debts_owed_by(debts, "B") == {"A": D("20.00")}
    assert debts_owed_to(debts, "A") == {"C": D("20.00"), "B": D("20.00")}


def test_zero_contribution_is_ignored():
    expense = Expense(
        amount=D("90"),
        payer=MultiPayer.of({"A": 90, "B": 0}),
        splits=splits(("A", 30), ("B", 30), ("C", 30)),
    )
    debts = compute_pairwise_debts([expense], [])
    assert debts_owed_to(debts, "B") == {}
    assert debts_owed_to(debts, "A") == {"B": D("30.00"), "C": D("30.00")}


def test_zero_amount_expense_is_skipped():
    expense = Expense(amount=D("0"), payer=MultiPayer.of({"A": 0}), splits=splits(("B", 0)))
    assert compute_pairwise_debts([expense], []) == {}


def test_legacy_expense_owes_payer_directly():
    debts = compute_pairwise_debts([legacy("A", 60, ("A", 20), ("B", 20), ("C", 20))], [])
    assert debts == {"B": {"A": D("20")}, "C": {"A": D("20")}}


def test_settlement_clears_debt():
    expense = legacy("A", 60, ("A", 20), ("B", 20), ("C", 20))
    debts = compute_pairwise_debts([expense], [Settlement("B", "A", D("20"))])
    assert debts["B"]["A"] == 0
    assert debts_owed_by(debts, "B") == {}
    assert net_pairwise_balances(debts, "B") == {}


def test_overpaying_settlement_flips_direction_at_read_time():
    expense = legacy("A", 60, ("A", 20), ("B", 20), ("C", 20))
    debts = compute_pairwise_debts([expense], [Settlement("B", "A", D("30"))])
    # the raw cell keeps the negative value
    assert debts["B"]["A"] == D("-10")
    assert debts_owed_by(debts, "B") == {}
    assert net_pairwise_balances(debts, "B") == {"A": D("10.00")}
    assert net_pairwise_balances(debts, "A") == {"B": D("-10.00"), "C": D("20.00")}
    assert suggested_payments(debts, "A") == [Transaction("A", "B", D("10.00"))]


def test_views_are_not_netted_but_net_view_is():
    expenses = [
        legacy("A", 40, ("A", 20), ("B", 20)),
        legacy("B", 30, ("A", 15), ("B", 15)),
    ]
    debts = compute_pairwise_debts(expenses, [])
    assert debts_owed_by(debts, "A") == {"B": D("15.00")}
    assert debts_owed_to(debts, "A") == {"B": D("20.00")}
    assert net_pairwise_balances(debts, "A") == {"B": D("5.00")}
    assert net_pairwise_balances(debts, "B") == {"A": D("-5.00")}
    assert suggested_payments(debts, "B") == [Transaction("B", "A", D("5.00"))]
    assert suggested_payments(debts, "A") == []


def test_suggested_payments_largest_first():
    expenses = [
        legacy("B", 20, ("A", 10), ("B", 10)),
        legacy("C", 60, ("A", 30), ("C", 30)),
    ]
    debts = compute_pairwise_debts(expenses, [])
    assert suggested_payments(debts, "A") == [
        Transaction("A", "C", D("30.00")),
        Transaction("A", "B", D("10.00")),
    ]


def test_pairwise_debts_are_deterministic():
    expenses = [
        Expense(
            amount=D("90"),
            payer=MultiPayer.of({"A": 60, "B": 30}),
            splits=splits(("A", 30), ("B", 30), ("C", 30)),
        ),
        legacy("C", 45, ("A", 15), ("B", 15), ("C", 15)),
    ]
    settlements = [Settlement("C", "A", D("5"))]
    first = compute_pairwise_debts(expenses, settlements)
    second = compute_pairwise_debts(expenses, settlements)
    assert first == second
    assert suggested_payments(first, "C") == suggested_payments(second, "C")
