"""
splits.py - split calculator and caller-side expense validation

compute_splits turns (amount, split type, participants, per-member params)
into a list of Split records. It never raises: degenerate input (no
participants, zero total shares, an unknown split type or an amount that is
not a number) yields an empty list, and it is up to the
code creating/updating an expense to run the validate_* helpers below before
persisting anything.
"""

import logging
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from splitease.models import (
    EPSILON,
    ZERO,
    Expense,
    ExpenseValidationError,
    Member,
    MultiPayer,
    SinglePayer,
    Split,
    SplitType,
    round_money,
    to_money,
)

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")

# params: member -> {"amount": ..., "shares": ..., "percentage": ...}
SplitParams = Mapping[Member, Mapping[str, Any]]


def _param(params: Optional[SplitParams], member: Member, key: str, default: Any = None) -> Any:
    if not params:
        return default
    value = (params.get(member) or {}).get(key)
    return default if value is None or value == "" else value


def compute_splits(
    amount: Any,
    split_type: Any,
    participants: Sequence[Member],
    params: Optional[SplitParams] = None,
) -> List[Split]:
    """
    Compute each participant's owed amount.

      - EQUAL: amount / n rounded to cents; the rounding remainder goes to the
        first participant so the splits sum exactly to amount.
      - UNEQUAL: params[member]["amount"] taken as-is (no normalization).
      - SHARES: amount * shares / total_shares, shares defaulting to 1.
      - PERCENTAGE: amount * percentage / 100, independently per member.

    Participant order matters for EQUAL; callers pass a deterministic order.
    """
    try:
        split_type = SplitType.parse(split_type)
    except ValueError:
        logger.debug("compute_splits: unknown split type %r", split_type)
        return []
    try:
        total = to_money(amount)
    except (ArithmeticError, ValueError):
        logger.debug("compute_splits: amount %r is not a number", amount)
        return []
    members = list(participants)
    if not members:
        logger.debug("compute_splits called with no participants")
        return []

    if split_type is SplitType.EQUAL:
        share = round_money(total / len(members))
        remainder = total - share * len(members)
        out = [Split(member=m, amount=share) for m in members]
        out[0] = Split(member=members[0], amount=round_money(share + remainder))
        return out

    if split_type is SplitType.UNEQUAL:
        return [
            Split(member=m, amount=to_money(_param(params, m, "amount", ZERO)))
            for m in members
        ]

    if split_type is SplitType.SHARES:
        # one weight per participant entry, duplicates included
        weights = [(m, to_money(_param(params, m, "shares", 1))) for m in members]
        total_shares = sum((w for _, w in weights), ZERO)
        if total_shares == ZERO:
            logger.debug("compute_splits: total shares is zero")
            return []
        return [
            Split(member=m, amount=round_money(total * w / total_shares), shares=w)
            for m, w in weights
        ]

    # PERCENTAGE
    out = []
    for m in members:
        pct = to_money(_param(params, m, "percentage", ZERO))
        out.append(Split(member=m, amount=round_money(total * pct / HUNDRED), percentage=pct))
    return out


def split_total(splits: Iterable[Split]) -> Decimal:
    return sum((s.amount for s in splits), ZERO)


def validate_split_total(amount: Any, splits: Sequence[Split]) -> None:
    """Reject splits that are empty or do not add up to amount (0.01 tolerance)."""
    if not splits:
        raise ExpenseValidationError("At least one participant is required")
    total = to_money(amount)
    got = split_total(splits)
    if abs(got - total) > EPSILON:
        raise ExpenseValidationError(
            f"Split amounts do not equal total: {got:.2f} vs {total:.2f}"
        )


def validate_contributions(amount: Any, contributions: Mapping[Member, Any]) -> None:
    """Reject contributor maps that are empty, negative, or off the expense total."""
    if not contributions:
        raise ExpenseValidationError("At least one contributor is required")
    values = {m: to_money(v) for m, v in contributions.items()}
    negative = [m for m, v in values.items() if v < ZERO]
    if negative:
        raise ExpenseValidationError(f"Contributions must not be negative: {', '.join(negative)}")
    total = to_money(amount)
    got = sum(values.values(), ZERO)
    if abs(got - total) > EPSILON:
        raise ExpenseValidationError(
            f"Contributions do not equal total: {got:.2f} vs {total:.2f}"
        )


def validate_settlement(from_user: Member, to_user: Member, amount: Any) -> None:
    if not from_user or not to_user:
        raise ExpenseValidationError("Settlement needs both a payer and a recipient")
    if from_user == to_user:
        raise ExpenseValidationError("Cannot settle with yourself")
    if to_money(amount) <= ZERO:
        raise ExpenseValidationError("Settlement amount must be greater than 0")


def validate_expense(expense: Expense) -> None:
    """Full pre-persist check for an expense record."""
    if expense.amount <= ZERO:
        raise ExpenseValidationError("Amount must be greater than 0")
    validate_split_total(expense.amount, expense.splits)
    payer = expense.payer
    if isinstance(payer, MultiPayer):
        validate_contributions(expense.amount, payer.as_dict())
    elif isinstance(payer, SinglePayer):
        if not payer.payer:
            raise ExpenseValidationError("Payer is required")
    else:
        raise TypeError(f"unknown payer variant: {payer!r}")


def build_expense_splits(
    amount: Any,
    split_type: Any,
    participants: Sequence[Member],
    params: Optional[SplitParams] = None,
) -> List[Split]:
    """
    Form helper: compute the splits and reject degenerate or inconsistent
    results, e.g. percentages that do not add to 100.
    """
    if to_money(amount) <= ZERO:
        raise ExpenseValidationError("Amount must be greater than 0")
    if not participants:
        raise ExpenseValidationError("At least one participant is required")
    splits = compute_splits(amount, split_type, participants, params)
    if not splits:
        raise ExpenseValidationError("Total shares must be greater than 0")
    validate_split_total(amount, splits)
    return splits
