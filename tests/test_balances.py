from decimal import Decimal

from splitease.balances import (
    GlobalBalance,
    balance_sum,
    compute_global_balances,
    compute_group_balances,
    member_spending,
)
from splitease.models import Expense, MultiPayer, Settlement, SinglePayer, Split

D = Decimal


def even_splits(*pairs):
    return tuple(Split(member=m, amount=D(str(a))) for m, a in pairs)


def multi_payer_expense():
    return Expense(
        amount=D("90"),
        payer=MultiPayer.of({"A": 90}),
        splits=even_splits(("A", 30), ("B", 30), ("C", 30)),
    )


def legacy_expense():
    return Expense(
        amount=D("60"),
        payer=SinglePayer("A"),
        splits=even_splits(("A", 20), ("B", 20), ("C", 20)),
    )


def test_contributor_nets_own_share():
    balances = compute_group_balances([multi_payer_expense()], [], ["A", "B", "C"])
    assert balances == {"A": D("60"), "B": D("-30"), "C": D("-30")}


def test_legacy_payer_share_is_excluded():
    balances = compute_group_balances([legacy_expense()], [], ["A", "B", "C"])
    assert balances == {"A": D("40"), "B": D("-20"), "C": D("-20")}


def test_settlement_reduces_debt():
    settlement = Settlement(from_user="B", to_user="A", amount=D("20"))
    balances = compute_group_balances([legacy_expense()], [settlement], ["A", "B", "C"])
    assert balances["B"] == 0
    assert balances["A"] == D("20")
    assert balances["C"] == D("-20")


def test_inactive_members_are_present():
    balances = compute_group_balances([], [], ["A", "B"])
    assert balances == {"A": 0, "B": 0}


def test_unlisted_members_are_added():
    balances = compute_group_balances([legacy_expense()], [], ["A"])
    assert set(balances) == {"A", "B", "C"}


def test_multiple_contributors_zero_sum():
    expense = Expense(
        amount=D("90"),
        payer=MultiPayer.of({"A": 50, "B": 40}),
        splits=even_splits(("A", 30), ("B", 30), ("C", 30)),
    )
    balances = compute_group_balances([expense], [], ["A", "B", "C"])
    assert balances == {"A": D("20"), "B": D("10"), "C": D("-30")}
    assert balance_sum(balances) == 0


def test_order_independent():
    expenses = [multi_payer_expense(), legacy_expense()]
    settlements = [Settlement("B", "A", D("5")), Settlement("C", "B", D("12.5"))]
    forward = compute_group_balances(expenses, settlements, ["A", "B", "C"])
    backward = compute_group_balances(expenses[::-1], settlements[::-1], ["A", "B", "C"])
    assert forward == backward
    assert balance_sum(forward) == 0


def test_global_balances():
    groups = [
        {"A": D("10"), "B": D("-10")},
        {"A": D("-5"), "C": D("5")},
        {"B": D("3"), "C": D("-3")},
        {"A": D("0"), "B": D("0")},
    ]
    assert compute_global_balances(groups, "A") == GlobalBalance(total_owed=D("10"), total_owes=D("5"))
    assert compute_global_balances([], "A") == GlobalBalance()


def test_member_spending():
    spending = member_spending([legacy_expense(), multi_payer_expense()], ["A", "B", "C"])
    assert spending["A"] == {"paid": D("150"), "share": D("50"), "net": D("100")}
    assert spending["B"] == {"paid": D("0"), "share": D("50"), "net": D("-50")}
