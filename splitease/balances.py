"""
balances.py - net balance per member

compute_group_balances folds a group's full expense and settlement history
into one signed Decimal per member (positive: the group owes them; negative:
they owe the group). Nothing is rounded here: inputs are already cent-rounded
and Decimal sums are exact.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, Mapping

from splitease.models import (
    ZERO,
    Expense,
    Member,
    MultiPayer,
    Settlement,
    SinglePayer,
)


@dataclass(frozen=True)
class GlobalBalance:
    """One member's position summed across groups (no cross-group netting)."""
    total_owed: Decimal = ZERO
    total_owes: Decimal = ZERO


def compute_group_balances(
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
    members: Iterable[Member],
) -> Dict[Member, Decimal]:
    """
    Returns { member: balance }. Every listed member appears, even with no
    activity; members only seen in history are added as encountered.

    Legacy single-payer expenses skip the payer's own split entry, while a
    contributor who also has a split simply nets out.
    """
    balances: Dict[Member, Decimal] = {m: ZERO for m in members}

    def credit(member: Member, amount: Decimal) -> None:
        balances[member] = balances.get(member, ZERO) + amount

    for e in expenses:
        payer = e.payer
        if isinstance(payer, MultiPayer):
            for member, paid in payer.contributions:
                credit(member, paid)
            for s in e.splits:
                credit(s.member, -s.amount)
        elif isinstance(payer, SinglePayer):
            for s in e.splits:
                if s.member == payer.payer:
                    continue
                credit(payer.payer, s.amount)
                credit(s.member, -s.amount)
        else:
            raise TypeError(f"unknown payer variant: {payer!r}")

    for st in settlements:
        # the payer's debt shrinks, the recipient is owed less
        credit(st.from_user, st.amount)
        credit(st.to_user, -st.amount)

    return balances


def compute_global_balances(
    group_balances: Iterable[Mapping[Member, Decimal]],
    member: Member,
) -> GlobalBalance:
    """Sum a member's positive balances into total_owed and negative ones into total_owes."""
    owed = ZERO
    owes = ZERO
    for balances in group_balances:
        amount = balances.get(member)
        if amount is None:
            continue
        if amount > ZERO:
            owed += amount
        elif amount < ZERO:
            owes += -amount
    return GlobalBalance(total_owed=owed, total_owes=owes)


def member_spending(
    expenses: Iterable[Expense],
    members: Iterable[Member],
) -> Dict[Member, Dict[str, Decimal]]:
    """
    Per-member spending summary.
    Output: { member: {"paid": ..., "share": ..., "net": paid - share}, ... }
    Settlements are not included; this is gross spending, not a balance.
    """
    paid: Dict[Member, Decimal] = {m: ZERO for m in members}
    share: Dict[Member, Decimal] = {m: ZERO for m in paid}
    for e in expenses:
        for m, amount in e.contributions().items():
            paid[m] = paid.get(m, ZERO) + amount
            share.setdefault(m, ZERO)
        for s in e.splits:
            share[s.member] = share.get(s.member, ZERO) + s.amount
            paid.setdefault(s.member, ZERO)
    return {m: {"paid": paid[m], "share": share[m], "net": paid[m] - share[m]} for m in paid}


def balance_sum(balances: Mapping[Member, Decimal]) -> Decimal:
    """Zero for any consistent history; handy as a sanity check in views and tests."""
    return sum(balances.values(), ZERO)
