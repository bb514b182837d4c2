"""
models.py - Data model definitions

This file defines the records shared by the split calculator, the balance
aggregator, the debt simplifier and the storage layer. Records are converted
to/from plain dicts so they can be persisted as JSON (or sheet rows) by
splitease.storage.

Money is always a Decimal rounded half-up to 2 places at defined boundaries.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

# a member is an opaque identifier owned by the external user/group store
Member = str

CENT = Decimal("0.01")
EPSILON = Decimal("0.01")
ZERO = Decimal("0")


class ExpenseValidationError(ValueError):
    """Raised by the caller-side checks when an expense or settlement is rejected."""


def to_money(value: Any) -> Decimal:
    """
    Convert int/float/str/Decimal to Decimal without binary float noise.
    None and empty strings become 0.
    """
    if isinstance(value, Decimal):
        return value
    if value is None or value == "":
        return ZERO
    return Decimal(str(value).strip())


def round_money(value: Any) -> Decimal:
    """Standard half-up rounding to 2 decimal places."""
    return to_money(value).quantize(CENT, rounding=ROUND_HALF_UP)


class SplitType(str, Enum):
    EQUAL = "EQUAL"
    UNEQUAL = "UNEQUAL"
    SHARES = "SHARES"
    PERCENTAGE = "PERCENTAGE"

    @classmethod
    def parse(cls, value: Any) -> "SplitType":
        if isinstance(value, cls):
            return value
        return cls(str(value or "EQUAL").strip().upper())


@dataclass(frozen=True)
class Split:
    """
    A participant's computed share of an expense.

    Fields:
      - member: who owes
      - amount: what they owe toward the expense
      - shares / percentage: the rule parameter the amount was derived from (if any)
    """
    member: Member
    amount: Decimal
    shares: Optional[Decimal] = None
    percentage: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"userId": self.member, "amount": str(self.amount)}
        if self.shares is not None:
            d["shares"] = str(self.shares)
        if self.percentage is not None:
            d["percentage"] = str(self.percentage)
        return d

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Split":
        shares = d.get("shares")
        percentage = d.get("percentage")
        return Split(
            member=str(d.get("userId", d.get("member", ""))),
            amount=to_money(d.get("amount", 0)),
            shares=to_money(shares) if shares not in (None, "") else None,
            percentage=to_money(percentage) if percentage not in (None, "") else None,
        )


@dataclass(frozen=True)
class MultiPayer:
    """Preferred payer form: member -> amount they paid toward the expense."""
    contributions: Tuple[Tuple[Member, Decimal], ...]

    @staticmethod
    def of(contributions: Dict[Member, Any]) -> "MultiPayer":
        return MultiPayer(tuple((m, to_money(v)) for m, v in contributions.items()))

    def as_dict(self) -> Dict[Member, Decimal]:
        return dict(self.contributions)


@dataclass(frozen=True)
class SinglePayer:
    """Legacy payer form: one member paid the full amount."""
    payer: Member


Payer = Union[MultiPayer, SinglePayer]


@dataclass(frozen=True)
class Expense:
    """
    A shared expense inside a group.

    Exactly one payer form is carried (see MultiPayer / SinglePayer); every
    consumer matches on the variant rather than probing for fields.
    """
    amount: Decimal
    payer: Payer
    splits: Tuple[Split, ...]
    split_type: SplitType = SplitType.EQUAL
    id: str = ""
    group_id: str = ""
    description: str = ""
    date: str = ""  # ISO "YYYY-MM-DD"
    created_by: str = ""
    note: str = ""

    def contributions(self) -> Dict[Member, Decimal]:
        """Who paid how much, normalizing the legacy form to a single entry."""
        if isinstance(self.payer, MultiPayer):
            return self.payer.as_dict()
        if isinstance(self.payer, SinglePayer):
            return {self.payer.payer: self.amount}
        raise TypeError(f"unknown payer variant: {self.payer!r}")

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "groupId": self.group_id,
            "description": self.description,
            "amount": str(self.amount),
            "splitType": self.split_type.value,
            "splits": [s.to_dict() for s in self.splits],
            "date": self.date,
            "createdBy": self.created_by,
            "note": self.note,
        }
        if isinstance(self.payer, MultiPayer):
            d["contributors"] = {m: str(v) for m, v in self.payer.contributions}
        else:
            d["paidBy"] = self.payer.payer
        return d

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Expense":
        """
        Construct an Expense from an external record.
        Accepts camelCase (contributors/paidBy/splitType) or snake_case keys.
        When both payer forms are present the contributors map wins.
        """
        contributors = d.get("contributors")
        paid_by = d.get("paidBy", d.get("paid_by"))
        if contributors:
            payer: Payer = MultiPayer.of(contributors)
        elif paid_by:
            payer = SinglePayer(str(paid_by))
        else:
            raise ExpenseValidationError(
                f"Expense {d.get('id', '')!r} has neither contributors nor paidBy"
            )
        return Expense(
            id=str(d.get("id", "") or ""),
            group_id=str(d.get("groupId", d.get("group_id", "")) or ""),
            description=str(d.get("description", "") or ""),
            amount=to_money(d.get("amount", 0)),
            payer=payer,
            split_type=SplitType.parse(d.get("splitType", d.get("split_type"))),
            splits=tuple(Split.from_dict(s) for s in d.get("splits", []) or []),
            date=str(d.get("date", "") or ""),
            created_by=str(d.get("createdBy", d.get("created_by", "")) or ""),
            note=str(d.get("note", "") or ""),
        )


@dataclass(frozen=True)
class Settlement:
    """fromUser transferred amount to toUser, reducing fromUser's debt to toUser."""
    from_user: Member
    to_user: Member
    amount: Decimal
    date: str = ""
    id: str = ""
    group_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "groupId": self.group_id,
            "fromUser": self.from_user,
            "toUser": self.to_user,
            "amount": str(self.amount),
            "date": self.date,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Settlement":
        return Settlement(
            id=str(d.get("id", "") or ""),
            group_id=str(d.get("groupId", d.get("group_id", "")) or ""),
            from_user=str(d.get("fromUser", d.get("from_user", ""))),
            to_user=str(d.get("toUser", d.get("to_user", ""))),
            amount=to_money(d.get("amount", 0)),
            date=str(d.get("date", "") or ""),
        )


@dataclass(frozen=True)
class Transaction:
    """A suggested payment: from_user pays to_user amount."""
    from_user: Member
    to_user: Member
    amount: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {"from": self.from_user, "to": self.to_user, "amount": str(self.amount)}


@dataclass
class Group:
    """
    A group of members sharing expenses. Persisted by the storage layer;
    the computation core only ever sees its member list.
    """
    id: str
    name: str
    created_by: Member
    members: list = field(default_factory=list)
    description: str = ""
    created_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "members": list(self.members),
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Group":
        return Group(
            id=str(d.get("id", "")),
            name=str(d.get("name", "")),
            description=str(d.get("description", "") or ""),
            created_by=str(d.get("createdBy", d.get("created_by", ""))),
            created_at=str(d.get("createdAt", d.get("created_at", "")) or ""),
            members=[str(m) for m in d.get("members", []) or []],
        )
