"""
pairwise.py - who owes whom, directly

Net balances lose counterparty identity, so this module rebuilds a
directional ledger debt[debtor][creditor] from the raw history:

  - multi-payer expense: each split member's share is apportioned across the
    contributors in proportion to what each contributed
  - legacy single-payer expense: every other split member owes the payer
    their split amount
  - settlement: debt[from][to] -= amount (the cell may go negative)

compute_pairwise_debts keeps the raw, un-netted cells. The read helpers
below net both directions per counterparty at query time.
"""

from decimal import Decimal
from typing import Dict, Iterable, List, Set

from splitease.models import (
    EPSILON,
    ZERO,
    Expense,
    Member,
    MultiPayer,
    Settlement,
    SinglePayer,
    Transaction,
    round_money,
)

PairwiseDebts = Dict[Member, Dict[Member, Decimal]]


def compute_pairwise_debts(
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
) -> PairwiseDebts:
    """
    Returns { debtor: { creditor: amount } } with unrounded Decimal cells.
    Expenses with a non-positive amount cannot be apportioned and are skipped.
    """
    debts: PairwiseDebts = {}

    def add(debtor: Member, creditor: Member, amount: Decimal) -> None:
        row = debts.setdefault(debtor, {})
        row[creditor] = row.get(creditor, ZERO) + amount

    for e in expenses:
        payer = e.payer
        if isinstance(payer, MultiPayer):
            if e.amount <= ZERO:
                continue
            for s in e.splits:
                for contributor, contributed in payer.contributions:
                    if contributed <= ZERO or contributor == s.member:
                        continue
                    add(s.member, contributor, contributed / e.amount * s.amount)
        elif isinstance(payer, SinglePayer):
            for s in e.splits:
                if s.member != payer.payer:
                    add(s.member, payer.payer, s.amount)
        else:
            raise TypeError(f"unknown payer variant: {payer!r}")

    for st in settlements:
        add(st.from_user, st.to_user, -st.amount)

    return debts


def debts_owed_by(debts: PairwiseDebts, member: Member) -> Dict[Member, Decimal]:
    """What member owes others: { creditor: amount } for cells above 0.01, not netted."""
    return {
        creditor: round_money(amount)
        for creditor, amount in debts.get(member, {}).items()
        if amount > EPSILON
    }


def debts_owed_to(debts: PairwiseDebts, member: Member) -> Dict[Member, Decimal]:
    """What others owe member: { debtor: amount } for cells above 0.01, not netted."""
    out: Dict[Member, Decimal] = {}
    for debtor, row in debts.items():
        if debtor == member:
            continue
        amount = row.get(member, ZERO)
        if amount > EPSILON:
            out[debtor] = round_money(amount)
    return out


def net_pairwise_balances(debts: PairwiseDebts, member: Member) -> Dict[Member, Decimal]:
    """
    One signed number per counterparty: debt[other][member] - debt[member][other].
    Positive means the counterparty owes member. Near-zero pairs are dropped.
    """
    counterparties: List[Member] = []
    seen: Set[Member] = set()
    for other in list(debts.get(member, {})) + [d for d, row in debts.items() if member in row]:
        if other != member and other not in seen:
            seen.add(other)
            counterparties.append(other)

    own = debts.get(member, {})
    out: Dict[Member, Decimal] = {}
    for other in counterparties:
        net = debts.get(other, {}).get(member, ZERO) - own.get(other, ZERO)
        if abs(net) > EPSILON:
            out[other] = round_money(net)
    return out


def suggested_payments(debts: PairwiseDebts, member: Member) -> List[Transaction]:
    """Payments member should make to square each pair, largest first."""
    owed = [
        Transaction(from_user=member, to_user=other, amount=-net)
        for other, net in net_pairwise_balances(debts, member).items()
        if net < ZERO
    ]
    owed.sort(key=lambda t: t.amount, reverse=True)
    return owed
