"""
simplify.py - settle-up suggestions from net balances

Greedy debtor/creditor matching: the most indebted member pays the most
owed member until one of them is square, then the sweep moves on. Not a
globally minimal matching, but groups are small and the output is stable.
"""

from decimal import Decimal
from typing import List, Mapping

from splitease.models import EPSILON, ZERO, Member, Transaction, round_money


def simplify_debts(balances: Mapping[Member, Decimal]) -> List[Transaction]:
    """
    Reduce a balance map to a list of Transaction(from_user, to_user, amount).

    Members within 0.01 of zero are treated as settled. Debtors are taken most
    negative first and creditors most positive first; ties keep the input
    order. Each emitted amount is rounded to cents.
    """
    debtors = [[m, v] for m, v in balances.items() if v < -EPSILON]
    creditors = [[m, v] for m, v in balances.items() if v > EPSILON]
    debtors.sort(key=lambda x: x[1])
    creditors.sort(key=lambda x: x[1], reverse=True)

    transactions: List[Transaction] = []
    i = j = 0
    while i < len(debtors) and j < len(creditors):
        debtor = debtors[i]
        creditor = creditors[j]
        amount = min(-debtor[1], creditor[1])
        rounded = round_money(amount)
        if rounded > ZERO:
            transactions.append(Transaction(from_user=debtor[0], to_user=creditor[0], amount=rounded))
        debtor[1] += amount
        creditor[1] -= amount
        if abs(debtor[1]) < EPSILON:
            i += 1
        if abs(creditor[1]) < EPSILON:
            j += 1
    return transactions


def apply_transactions(
    balances: Mapping[Member, Decimal],
    transactions: List[Transaction],
) -> dict:
    """Replay suggested payments onto balances; a full settle-up leaves every member near zero."""
    out = dict(balances)
    for t in transactions:
        out[t.from_user] = out.get(t.from_user, ZERO) + t.amount
        out[t.to_user] = out.get(t.to_user, ZERO) - t.amount
    return out
