"""
components.py - reusable Streamlit components / forms / displays

This module contains pure-UI helpers used by the dashboard:
 - display_expense_form(on_submit, members, me, expense=None), add or edit
 - display_edit_expense(store, group, me)
 - display_settle_form(on_submit, members, me, suggestions)
 - display_group_balances / member balances / global balances / expense list

Forms do the light checks a user can fix on the spot (amount > 0, at least
one participant, contributor amounts filled in); the split and contributor
totals are validated again by LedgerStore before anything is persisted.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional
from io import BytesIO
import datetime

import altair as alt
import pandas as pd
import streamlit as st

from splitease.balances import GlobalBalance
from splitease.models import Expense, Member, MultiPayer, SinglePayer, SplitType, Transaction

SPLIT_LABELS = {
    "Equally": SplitType.EQUAL,
    "Exact amounts": SplitType.UNEQUAL,
    "By shares": SplitType.SHARES,
    "By percentage": SplitType.PERCENTAGE,
}


def trigger_rerun():
    # st.rerun replaced experimental_rerun in newer Streamlit releases
    if hasattr(st, "rerun"):
        st.rerun()
    elif hasattr(st, "experimental_rerun"):
        st.experimental_rerun()


def _money(value: Any) -> str:
    return f"₹{Decimal(value):.2f}"


@dataclass
class ExpenseInput:
    """Lightweight container passed to the on_submit callback."""
    amount: float
    paid_by: Any  # member id, or {member: amount} for several contributors
    participants: List[Member]
    split_type: SplitType
    params: Dict[Member, Dict[str, float]] = field(default_factory=dict)
    description: str = ""
    date: str = ""  # ISO date string
    note: str = ""


@dataclass
class SettlementInput:
    from_user: Member
    to_user: Member
    amount: float
    date: str = ""


def _form_date(value: str) -> datetime.date:
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        return datetime.date.today()


def display_expense_form(
    on_submit: Callable[[ExpenseInput], None],
    members: List[Member],
    me: Member,
    expense: Optional[Expense] = None,
):
    """
    Display the 'Add Expense' form, or the 'Edit Expense' form when an
    existing expense is passed in to prefill it.

    Parameters:
      - on_submit: callback invoked with ExpenseInput when the form validates;
        it may raise ValueError or LookupError, which is shown to the user
      - members: group members, in group order (EQUAL splits give the
        rounding remainder to the first selected participant)
      - me: the acting member, preselected as payer
      - expense: the expense being edited, if any
    """
    editing = expense is not None
    st.header("Edit Expense" if editing else "Add Expense")
    prefix = f"edit_{expense.id}_" if editing else ""
    current = {s.member: s for s in expense.splits} if editing else {}
    paid = expense.contributions() if editing else {}
    default_payer = me
    if editing and isinstance(expense.payer, SinglePayer) and expense.payer.payer in members:
        default_payer = expense.payer.payer
    split_types = list(SPLIT_LABELS.values())

    with st.form(key=f"{prefix}expense_form"):
        description = st.text_input("Description", value=expense.description if editing else "")
        amount = st.number_input("Amount", min_value=0.0, value=float(expense.amount) if editing else 0.0, format="%.2f")
        date_val = st.date_input("Date", value=_form_date(expense.date) if editing else datetime.date.today())

        multi = st.checkbox("Paid by several people", value=editing and isinstance(expense.payer, MultiPayer))
        contributions: Dict[Member, float] = {}
        payer = me
        if multi:
            st.write("Enter how much each person paid (must sum to total amount):")
            for m in members:
                contributions[m] = st.number_input(
                    f"Paid by {m}", min_value=0.0, value=float(paid.get(m, 0)), format="%.2f", key=f"{prefix}paid_{m}"
                )
        else:
            payer = st.selectbox("Paid by", options=members, index=members.index(default_payer) if default_payer in members else 0)

        chosen = [m for m in members if m in current] if editing else members
        participants = st.multiselect("Split between", options=members, default=chosen)
        split_label = st.radio(
            "Split", options=list(SPLIT_LABELS), index=split_types.index(expense.split_type) if editing else 0
        )
        split_type = SPLIT_LABELS[split_label]

        params: Dict[Member, Dict[str, float]] = {}
        for p in participants:
            s = current.get(p)
            if split_type is SplitType.UNEQUAL:
                params[p] = {"amount": st.number_input(
                    f"Amount for {p}", min_value=0.0, value=float(s.amount) if s else 0.0,
                    format="%.2f", key=f"{prefix}amt_{p}")}
            elif split_type is SplitType.SHARES:
                params[p] = {"shares": st.number_input(
                    f"Shares for {p}", min_value=0.0, value=float(s.shares) if s and s.shares is not None else 1.0,
                    key=f"{prefix}shares_{p}")}
            elif split_type is SplitType.PERCENTAGE:
                params[p] = {"percentage": st.number_input(
                    f"% for {p}", min_value=0.0, max_value=100.0,
                    value=min(float(s.percentage), 100.0) if s and s.percentage is not None else 0.0,
                    key=f"{prefix}pct_{p}")}

        note = st.text_input("Note (optional)", value=expense.note if editing else "")
        submit_button = st.form_submit_button("Save changes" if editing else "Add Expense")

    if not submit_button:
        return
    if amount <= 0:
        st.error("Amount must be greater than 0.")
        return
    if not description.strip():
        st.error("Description is required.")
        return
    if not participants:
        st.error("At least one participant is required.")
        return
    # keep participants in group order so the equal-split remainder is deterministic
    ordered = [m for m in members if m in participants]
    paid_by: Any = payer
    if multi:
        paid_by = {m: round(v, 2) for m, v in contributions.items() if v > 0}
        if not paid_by:
            st.error("Enter at least one contribution.")
            return

    submitted = ExpenseInput(
        amount=round(amount, 2),
        paid_by=paid_by,
        participants=ordered,
        split_type=split_type,
        params=params,
        description=description.strip(),
        date=date_val.isoformat(),
        note=note.strip(),
    )
    try:
        on_submit(submitted)
    except (ValueError, LookupError) as exc:
        st.error(str(exc))
        return
    st.success("Expense updated." if editing else "Expense added.")


def display_settle_form(
    on_submit: Callable[[SettlementInput], None],
    members: List[Member],
    me: Member,
    suggestions: List[Transaction],
):
    """Record a repayment, prefilled with the first suggested payment."""
    st.header("Settle Up")
    if suggestions:
        st.markdown("**You owe**")
        for t in suggestions:
            st.write(f"  {t.to_user}: {_money(t.amount)}")
    else:
        st.info("You don't owe anyone in this group.")

    others = [m for m in members if m != me]
    if not others:
        st.write("No other members to settle with.")
        return
    first = suggestions[0] if suggestions and suggestions[0].to_user in members else None
    default_to = first.to_user if first else others[0]
    default_amount = float(first.amount) if first else 0.0

    with st.form(key="settle_form"):
        from_user = st.selectbox("Payer", options=members, index=members.index(me) if me in members else 0)
        to_user = st.selectbox("Recipient", options=members, index=members.index(default_to))
        amount = st.number_input("Amount", min_value=0.0, value=default_amount, format="%.2f")
        date_val = st.date_input("Date", value=datetime.date.today())
        submit_button = st.form_submit_button("Record payment")

    if not submit_button:
        return
    try:
        on_submit(SettlementInput(from_user=from_user, to_user=to_user, amount=round(amount, 2), date=date_val.isoformat()))
    except ValueError as exc:
        st.error(str(exc))
        return
    st.success("Payment recorded.")


def display_group_balances(
    balances: Dict[Member, Decimal],
    transactions: List[Transaction],
    spending: Optional[Dict[Member, Dict[str, Decimal]]] = None,
):
    """Net balance per member with a bar chart, then the simplified payments."""
    st.header("Balances")
    if not balances:
        st.write("No balances to display.")
        return

    df = pd.DataFrame(
        [{"member": m, "balance": float(v)} for m, v in balances.items()],
        columns=["member", "balance"],
    )
    chart = alt.Chart(df).mark_bar().encode(
        x=alt.X("member:N", title="Member", sort=None),
        y=alt.Y("balance:Q", title="Net balance"),
        color=alt.condition(alt.datum.balance >= 0, alt.value("#2ca02c"), alt.value("#d62728")),
        tooltip=[
            alt.Tooltip("member:N", title="Member"),
            alt.Tooltip("balance:Q", title="Balance", format=".2f"),
        ],
    ).properties(height=300)
    st.altair_chart(chart, use_container_width=True)

    st.markdown("**Suggested payments**")
    if not transactions:
        st.write("All settled up!")
    for t in transactions:
        st.write(f"  {t.from_user} owes {t.to_user} {_money(t.amount)}")

    if spending:
        st.markdown("**Member spending**")
        rows = [
            {"member": m, "paid": float(s["paid"]), "share": float(s["share"]), "net": float(s["net"])}
            for m, s in spending.items()
        ]
        st.dataframe(
            pd.DataFrame(rows).style.format({"paid": "{:.2f}", "share": "{:.2f}", "net": "{:+.2f}"}),
            use_container_width=True,
        )


def display_member_balances(net: Dict[Member, Decimal]):
    """Per-counterparty position of the acting member (positive: they owe you)."""
    st.header("Your balances with members")
    if not net:
        st.write("You're all settled up in this group.")
        return
    for other, amount in net.items():
        if amount > 0:
            st.write(f"  {other} owes you {_money(amount)}")
        else:
            st.write(f"  You owe {other} {_money(-amount)}")


def display_global_balances(member: Member, total: GlobalBalance):
    st.header(f"Overview for {member}")
    col1, col2 = st.columns(2)
    col1.metric("You are owed", _money(total.total_owed))
    col2.metric("You owe", _money(total.total_owes))


def _expense_rows(expenses: List[Expense], group_names: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
    rows = []
    for e in expenses:
        paid = ", ".join(f"{m} {v:.2f}" for m, v in e.contributions().items())
        row = {
            "id": e.id,
            "date": e.date,
            "description": e.description,
            "amount": float(e.amount),
            "paid_by": paid,
            "split_type": e.split_type.value,
            "splits": ", ".join(f"{s.member} {s.amount:.2f}" for s in e.splits),
            "note": e.note,
        }
        if group_names is not None:
            row["group"] = group_names.get(e.group_id, e.group_id)
        rows.append(row)
    return rows


def display_expense_list(expenses: List[Expense], group_names: Optional[Dict[str, str]] = None):
    """
    Render expenses as an interactive table and provide an XLSX export button.

    The exported spreadsheet contains columns:
      id, date, description, amount, paid_by, split_type, splits, note
    plus a leading group column when group_names (group id -> name) is given,
    which is how the cross-group "All Expenses" view calls it.
    """
    st.header("All Expenses" if group_names is not None else "Expenses")
    if not expenses:
        st.write("No expenses recorded.")
        return

    columns = ["id", "date", "description", "amount", "paid_by", "split_type", "splits", "note"]
    if group_names is not None:
        columns.insert(0, "group")
    df = pd.DataFrame(_expense_rows(expenses, group_names), columns=columns)
    st.dataframe(df.style.format({"amount": "{:.2f}"}), use_container_width=True)
    st.markdown(f"**Total: {_money(sum(e.amount for e in expenses))}**")

    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="expenses")
    buffer.seek(0)

    st.download_button(
        label="Download as XLSX",
        data=buffer.getvalue(),
        file_name="expenses.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


def display_edit_expense(store, group, me: Member):
    """Pick an expense of the group and edit it through LedgerStore.update_expense."""
    expenses = store.list_expenses(group.id)
    if not expenses:
        st.header("Edit Expense")
        st.write("No expenses recorded.")
        return
    options = {f"{e.date} {e.description} {e.amount:.2f} ({e.id[:6]})": e for e in expenses}
    selected = options[st.selectbox("Expense", options=list(options))]

    def on_submit(exp_input: ExpenseInput):
        store.update_expense(
            selected.id,
            amount=exp_input.amount,
            paid_by=exp_input.paid_by,
            participants=exp_input.participants,
            split_type=exp_input.split_type,
            params=exp_input.params,
            description=exp_input.description,
            date=exp_input.date,
            note=exp_input.note,
        )

    display_expense_form(on_submit, store.list_members(group.id), me, expense=selected)


def display_manage_group(store, group, me: Member):
    """
    Add/remove members, delete expenses and (owner only) delete the group.
    Expects a LedgerStore; ownership checks are enforced by the store and
    surfaced here as errors.
    """
    st.header(f"Manage {group.name}")
    st.write("Members: " + ", ".join(group.members))

    new_member = st.text_input("Add member (user id)")
    if st.button("Add member"):
        try:
            added = store.add_member(group.id, new_member)
        except (ValueError, LookupError) as exc:
            st.error(str(exc))
        else:
            if added:
                st.success(f"{new_member} added.")
                trigger_rerun()
            else:
                st.info(f"{new_member} is already a member.")

    removable = [m for m in group.members if m != group.created_by]
    if removable:
        to_remove = st.selectbox("Remove member", options=removable)
        if st.button("Remove member"):
            try:
                store.remove_member(group.id, to_remove, me)
            except (LookupError, PermissionError) as exc:
                st.error(str(exc))
            else:
                st.success(f"{to_remove} removed.")
                trigger_rerun()

    st.markdown("---")
    expenses = store.list_expenses(group.id)
    if expenses:
        options = {f"{e.date} {e.description} {e.amount:.2f}": e.id for e in expenses}
        sel_label = st.selectbox("Delete expense", options=list(options))
        delete_confirm = st.checkbox("I confirm I want to delete this expense")
        if st.button("Delete expense") and delete_confirm:
            try:
                store.delete_expense(options[sel_label], me)
            except (LookupError, PermissionError) as exc:
                st.error(str(exc))
            else:
                st.success("Expense deleted.")
                trigger_rerun()

    if me == group.created_by:
        st.markdown("---")
        st.subheader("Delete group")
        st.write("Removes the group with all of its expenses and settlements.")
        group_confirm = st.checkbox(f"I confirm I want to delete {group.name}")
        if st.button("Delete group") and group_confirm:
            try:
                store.delete_group(group.id, me)
            except (LookupError, PermissionError) as exc:
                st.error(str(exc))
            else:
                st.success(f"Group '{group.name}' deleted.")
                trigger_rerun()
