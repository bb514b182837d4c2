"""
dashboard.py - Streamlit UI entrypoint and orchestration

This module wires the UI components (splitease.ui.components) with the store
(splitease.storage). The main() function builds the sidebar menu and routes
actions to components and store methods.

Design notes:
 - Keep the dashboard responsible only for UI orchestration and presentation.
 - Persistence and validation live in splitease.storage; balance math lives
   in splitease.balances / simplify / pairwise.
 - Components return lightweight data objects (ExpenseInput, SettlementInput).
"""

import streamlit as st

from splitease.balances import member_spending
from splitease.pairwise import net_pairwise_balances, suggested_payments
from splitease.storage import LedgerStore
from splitease.ui import components


def _select_group(store: LedgerStore, me: str):
    groups = store.list_user_groups(me)
    if not groups:
        return None
    labels = {f"{g.name} ({g.id[:6]})": g for g in groups}
    label = st.sidebar.selectbox("Group", options=list(labels))
    return labels[label]


def _create_group_form(store: LedgerStore, me: str):
    with st.sidebar.expander("New group"):
        name = st.text_input("Group name", key="new_group_name")
        description = st.text_input("Description", key="new_group_description")
        if st.button("Create group"):
            try:
                group = store.create_group(name, me, description)
            except ValueError as exc:
                st.error(str(exc))
            else:
                st.success(f"Group '{group.name}' created.")
                components.trigger_rerun()


def main():
    """
    Streamlit page: sidebar picks the acting member and group, menu controls
    which view is shown.
    Actions:
      - Dashboard: totals owed / owing across all groups
      - Group Balances: net balances, simplified payments, member spending
      - Your Balances: direct who-owes-whom for the acting member
      - Add Expense / Settle Up: forms, validated and persisted via the store
      - Edit Expense: prefilled expense form, saved via update_expense
      - Expenses: table with XLSX export
      - All Expenses: expenses across every group of the acting member
      - Manage Group: members, expense deletion, group deletion (owner)
    """
    st.title("SplitEase")
    store = LedgerStore()
    backend_name, backend_msg = store.storage_status()
    if backend_name == "google_sheets":
        st.sidebar.success(backend_msg)
    else:
        st.sidebar.warning(backend_msg)
        st.sidebar.caption(
            "For indefinite cloud persistence, set GOOGLE_SHEET_ID and "
            "GOOGLE_SERVICE_ACCOUNT_JSON in Streamlit app Secrets."
        )

    me = st.sidebar.text_input("Acting as (user id)", value=st.session_state.get("me", "")).strip()
    if not me:
        st.info("Enter your user id in the sidebar to get started.")
        return
    st.session_state["me"] = me

    _create_group_form(store, me)
    menu = [
        "Dashboard",
        "Group Balances",
        "Your Balances",
        "Add Expense",
        "Settle Up",
        "Edit Expense",
        "Expenses",
        "All Expenses",
        "Manage Group",
    ]
    choice = st.sidebar.selectbox("Select an option", menu)

    if choice == "Dashboard":
        components.display_global_balances(me, store.global_balances(me))
        return
    if choice == "All Expenses":
        pairs = store.list_user_expenses(me)
        components.display_expense_list([e for _, e in pairs], {g.id: g.name for g in store.list_user_groups(me)})
        return

    group = _select_group(store, me)
    if group is None:
        st.info("You are not in any group yet. Create one from the sidebar.")
        return
    members = store.list_members(group.id)

    if choice == "Group Balances":
        components.display_group_balances(
            store.group_balances(group.id),
            store.group_transactions(group.id),
            member_spending(store.list_expenses(group.id), members),
        )

    elif choice == "Your Balances":
        components.display_member_balances(net_pairwise_balances(store.group_pairwise(group.id), me))

    elif choice == "Add Expense":
        def on_submit(exp_input: components.ExpenseInput):
            store.add_expense(
                group_id=group.id,
                amount=exp_input.amount,
                paid_by=exp_input.paid_by,
                participants=exp_input.participants,
                split_type=exp_input.split_type,
                params=exp_input.params,
                description=exp_input.description,
                date=exp_input.date,
                created_by=me,
                note=exp_input.note,
            )

        components.display_expense_form(on_submit, members, me)

    elif choice == "Settle Up":
        def on_settle(s: components.SettlementInput):
            store.record_settlement(group.id, s.from_user, s.to_user, s.amount, date=s.date)

        components.display_settle_form(
            on_settle,
            members,
            me,
            suggested_payments(store.group_pairwise(group.id), me),
        )

    elif choice == "Edit Expense":
        components.display_edit_expense(store, group, me)

    elif choice == "Expenses":
        components.display_expense_list(store.list_expenses(group.id))

    elif choice == "Manage Group":
        components.display_manage_group(store, group, me)


if __name__ == "__main__":
    main()
