"""
storage.py - group/expense/settlement store and persistence

Responsibilities:
 - keep groups, expenses and settlements in memory
 - persist/load them to Google Sheets (preferred) or a local JSON fallback
 - expose the read interface the balance engine consumes:
     list_expenses(group_id), list_settlements(group_id), list_members(group_id)
 - validate writes (split totals, contributor totals, settlements) before
   anything is persisted
 - compose the pipeline for the UI: group_balances, group_transactions,
   group_pairwise, global_balances
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
import ast
import datetime
import json
import logging
import os
import shutil
import tempfile
import uuid

from splitease.balances import GlobalBalance, compute_global_balances, compute_group_balances
from splitease.models import (
    Expense,
    ExpenseValidationError,
    Group,
    Member,
    MultiPayer,
    Settlement,
    SinglePayer,
    SplitType,
    Transaction,
    to_money,
)
from splitease.pairwise import PairwiseDebts, compute_pairwise_debts
from splitease.simplify import simplify_debts
from splitease.splits import build_expense_splits, validate_expense, validate_settlement

# Optional Google Sheets backend imports are lazy/optional; we try to use them
try:
    import gspread
    from google.oauth2.service_account import Credentials
except Exception:
    gspread = None
    Credentials = None

# location of the JSON persistence file (repo root /data)
DEFAULT_DATA_FILE = os.path.join(os.path.dirname(__file__), "..", "data", "ledger.json")

COLLECTIONS = ("groups", "expenses", "settlements")

# ensure a logger is available
logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(os.getenv("SPLITEASE_LOG_LEVEL", "INFO").upper())


class NotFoundError(LookupError):
    """Unknown group or expense id."""


class GoogleSheetsBackend:
    """
    Google Sheets persistence backend.

    Data layout: one worksheet per collection ("groups", "expenses",
    "settlements"), each row holding the record id, its group id and the
    full record as JSON.
    """

    HEADERS = ["id", "group_id", "record_json"]
    SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

    def __init__(self):
        self.available = False
        self.reason = ""
        self.sheet_id = (os.getenv("GOOGLE_SHEET_ID") or "").strip()
        self._spreadsheet = None
        self._worksheets: Dict[str, Any] = {}

        if not self.sheet_id:
            self.reason = "GOOGLE_SHEET_ID is not set"
            return
        if gspread is None or Credentials is None:
            self.reason = "Google Sheets dependencies are unavailable"
            return

        try:
            creds = self._build_credentials()
            client = gspread.authorize(creds)
            self._spreadsheet = client.open_by_key(self.sheet_id)
            for name in COLLECTIONS:
                self._worksheets[name] = self._get_or_create_worksheet(name, rows=1000, cols=len(self.HEADERS))
            self._ensure_headers()
            self.available = True
        except Exception as exc:
            self.available = False
            self.reason = f"Google Sheets init failed ({exc.__class__.__name__})"
            logger.warning("Google Sheets backend unavailable: %s", self.reason)

    def _build_credentials(self):
        service_account_json = (os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON") or "").strip()
        service_account_file = (os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE") or "").strip()

        if service_account_json:
            try:
                info = json.loads(service_account_json)
            except ValueError:
                # tolerate Python-dict style strings often used by mistake in env vars
                info = ast.literal_eval(service_account_json)
            if not isinstance(info, dict):
                raise ValueError("GOOGLE_SERVICE_ACCOUNT_JSON must decode to an object")
            return Credentials.from_service_account_info(info, scopes=self.SCOPES)

        if service_account_file:
            return Credentials.from_service_account_file(service_account_file, scopes=self.SCOPES)

        # Fallback to application default credentials if available.
        import google.auth
        creds, _ = google.auth.default(scopes=self.SCOPES)
        return creds

    def _get_or_create_worksheet(self, title: str, rows: int, cols: int):
        try:
            return self._spreadsheet.worksheet(title)
        except gspread.exceptions.WorksheetNotFound:
            return self._spreadsheet.add_worksheet(title=title, rows=rows, cols=cols)

    @staticmethod
    def _ensure_sheet_size(ws, min_rows: int, min_cols: int):
        new_rows = max(ws.row_count, min_rows)
        new_cols = max(ws.col_count, min_cols)
        if new_rows != ws.row_count or new_cols != ws.col_count:
            ws.resize(rows=new_rows, cols=new_cols)

    def _ensure_headers(self):
        for ws in self._worksheets.values():
            first = ws.row_values(1) or []
            if [x.strip() for x in first] != self.HEADERS:
                self._ensure_sheet_size(ws, 2, len(self.HEADERS))
                ws.update(range_name="A1", values=[self.HEADERS], value_input_option="RAW")

    def save_state(self, data: Dict[str, Any]) -> bool:
        if not self.available:
            return False

        try:
            self._ensure_headers()
            for name in COLLECTIONS:
                ws = self._worksheets[name]
                rows = [self.HEADERS]
                for record in data.get(name, []) or []:
                    rows.append([
                        str(record.get("id", "")),
                        str(record.get("groupId", "")),
                        json.dumps(record, ensure_ascii=False),
                    ])
                self._ensure_sheet_size(ws, len(rows) + 10, len(self.HEADERS))
                # Use RAW to store user content as plain values (not spreadsheet formulas).
                ws.clear()
                ws.update(range_name="A1", values=rows, value_input_option="RAW")
            return True
        except Exception:
            logger.exception("Failed to save ledger state to Google Sheets")
            return False

    def load_state(self) -> Dict[str, Any]:
        if not self.available:
            return {}

        try:
            self._ensure_headers()
            data: Dict[str, Any] = {}
            for name in COLLECTIONS:
                records = []
                for row in (self._worksheets[name].get_all_values() or [])[1:]:
                    if len(row) < 3 or not str(row[2]).strip():
                        continue
                    try:
                        records.append(json.loads(row[2]))
                    except ValueError:
                        logger.warning("Skipping unreadable %s row id=%r", name, row[0])
                data[name] = records
            return data
        except Exception:
            logger.exception("Failed to load ledger state from Google Sheets")
            return {}


PaidBy = Union[Member, Mapping[Member, Any]]


def _payer_from(paid_by: PaidBy):
    if isinstance(paid_by, Mapping):
        return MultiPayer.of(paid_by)
    return SinglePayer(str(paid_by))


def _new_id() -> str:
    return uuid.uuid4().hex[:16]


class LedgerStore:
    """
    Single-instance style store. The UI creates one LedgerStore() and uses its
    methods to read/write data; balances are always recomputed from the full
    history on each call, never cached.
    """

    def __init__(self, data_file: Optional[str] = None, sheets_backend: Optional[GoogleSheetsBackend] = None):
        self.data_file = data_file or os.getenv("SPLITEASE_DATA_FILE") or DEFAULT_DATA_FILE
        self.groups: Dict[str, Group] = {}
        self.expenses: List[Expense] = []
        self.settlements: List[Settlement] = []
        self._gs_backend = sheets_backend if sheets_backend is not None else GoogleSheetsBackend()
        self.load()

    def uses_google_sheets(self) -> bool:
        """True when the durable Google Sheets backend is active."""
        return bool(self._gs_backend and self._gs_backend.available)

    def storage_status(self) -> Tuple[str, str]:
        """Return current storage backend and a short diagnostic message for the UI."""
        if self.uses_google_sheets():
            return "google_sheets", "Persistent storage active (Google Sheets)."
        reason = getattr(self._gs_backend, "reason", "Google Sheets not configured")
        return "local_json", f"Using local file fallback: {reason}."

    # -----------------------
    # Persistence
    # -----------------------
    def _state(self) -> Dict[str, Any]:
        return {
            "groups": [g.to_dict() for g in self.groups.values()],
            "expenses": [e.to_dict() for e in self.expenses],
            "settlements": [s.to_dict() for s in self.settlements],
        }

    def save(self):
        """
        Persist state to Google Sheets when available, otherwise write the
        local JSON file atomically (temp file then move).
        """
        data = self._state()
        if self.uses_google_sheets():
            logger.info("Saving ledger to Google Sheets (expenses=%d)", len(self.expenses))
            if self._gs_backend.save_state(data):
                return
            logger.warning("Google Sheets save failed, falling back to local JSON")

        target = os.path.abspath(self.data_file)
        dirn = os.path.dirname(target)
        os.makedirs(dirn, exist_ok=True)
        logger.info("Saving ledger to %s (expenses=%d)", target, len(self.expenses))
        fd, tmp_path = tempfile.mkstemp(prefix="tmp_ledger_", dir=dirn, text=True)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            shutil.move(tmp_path, target)
        except Exception:
            logger.exception("Failed to save data file")
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def load(self):
        """
        Load state from Google Sheets when configured, otherwise local JSON.
        Records that fail to parse are logged and skipped.
        """
        data = None
        if self.uses_google_sheets():
            logger.info("Loading ledger from Google Sheets")
            data = self._gs_backend.load_state() or None

        if not data:
            if not os.path.exists(self.data_file):
                return
            with open(self.data_file, "r", encoding="utf-8") as f:
                data = json.load(f)

        self.groups = {}
        for d in data.get("groups", []) or []:
            g = Group.from_dict(d)
            self.groups[g.id] = g
        self.expenses = []
        for d in data.get("expenses", []) or []:
            try:
                self.expenses.append(Expense.from_dict(d))
            except (ValueError, ArithmeticError):
                logger.warning("Skipping malformed expense record id=%r", d.get("id"))
        self.settlements = []
        for d in data.get("settlements", []) or []:
            try:
                self.settlements.append(Settlement.from_dict(d))
            except (ValueError, ArithmeticError):
                logger.warning("Skipping malformed settlement record id=%r", d.get("id"))

    def _refresh(self):
        # Refresh from remote before mutating to reduce stale-session overwrites.
        if self.uses_google_sheets():
            self.load()

    # -----------------------
    # Groups and members
    # -----------------------
    def create_group(self, name: str, created_by: Member, description: str = "") -> Group:
        self._refresh()
        name = (name or "").strip()
        if not name:
            raise ExpenseValidationError("Group name is required")
        group = Group(
            id=_new_id(),
            name=name,
            description=description.strip(),
            created_by=created_by,
            created_at=datetime.date.today().isoformat(),
            members=[created_by],
        )
        self.groups[group.id] = group
        self.save()
        logger.info("Created group id=%s name=%r", group.id, group.name)
        return group

    def get_group(self, group_id: str) -> Group:
        group = self.groups.get(group_id)
        if group is None:
            raise NotFoundError(f"Group not found: {group_id}")
        return group

    def list_user_groups(self, member: Member) -> List[Group]:
        return [g for g in self.groups.values() if member in g.members]

    def add_member(self, group_id: str, member: Member) -> bool:
        """Returns True when the member was added, False if already present."""
        self._refresh()
        group = self.get_group(group_id)
        member = (member or "").strip()
        if not member:
            raise ExpenseValidationError("Member id is required")
        if member in group.members:
            return False
        group.members.append(member)
        self.save()
        return True

    def remove_member(self, group_id: str, member: Member, requesting_user: Member) -> None:
        self._refresh()
        group = self.get_group(group_id)
        if requesting_user != group.created_by:
            raise PermissionError("Only the group owner can remove members")
        if member == group.created_by:
            raise PermissionError("Cannot remove the group owner")
        if member not in group.members:
            raise NotFoundError(f"{member} is not a member of this group")
        group.members.remove(member)
        self.save()

    def delete_group(self, group_id: str, requesting_user: Member) -> None:
        """Delete the group together with its expenses and settlements."""
        self._refresh()
        group = self.get_group(group_id)
        if requesting_user != group.created_by:
            raise PermissionError("Only the group owner can delete this group")
        del self.groups[group_id]
        self.expenses = [e for e in self.expenses if e.group_id != group_id]
        self.settlements = [s for s in self.settlements if s.group_id != group_id]
        self.save()
        logger.info("Deleted group id=%s", group_id)

    # -----------------------
    # Read interface consumed by the balance engine
    # -----------------------
    def list_members(self, group_id: str) -> List[Member]:
        return list(self.get_group(group_id).members)

    def list_expenses(self, group_id: str) -> List[Expense]:
        return [e for e in self.expenses if e.group_id == group_id]

    def list_settlements(self, group_id: str) -> List[Settlement]:
        return [s for s in self.settlements if s.group_id == group_id]

    def list_user_expenses(self, member: Member) -> List[Tuple[Group, Expense]]:
        """Expenses of every group the member belongs to, paired with their group."""
        return [(g, e) for g in self.list_user_groups(member) for e in self.list_expenses(g.id)]

    def get_expense(self, expense_id: str) -> Expense:
        for e in self.expenses:
            if e.id == expense_id:
                return e
        raise NotFoundError(f"Expense not found: {expense_id}")

    # -----------------------
    # Expenses and settlements
    # -----------------------
    def _check_members(self, group: Group, members) -> None:
        outsiders = sorted({m for m in members if m not in group.members})
        if outsiders:
            raise ExpenseValidationError(f"Not members of this group: {', '.join(outsiders)}")

    def _build_expense(self, group: Group, expense_id: str, amount: Any, paid_by: PaidBy,
                       participants: Sequence[Member], split_type: Any, params, **fields) -> Expense:
        splits = build_expense_splits(amount, split_type, participants, params)
        expense = Expense(
            id=expense_id,
            group_id=group.id,
            amount=to_money(amount),
            payer=_payer_from(paid_by),
            split_type=SplitType.parse(split_type),
            splits=tuple(splits),
            **fields,
        )
        validate_expense(expense)
        self._check_members(group, list(participants) + list(expense.contributions()))
        return expense

    def add_expense(
        self,
        group_id: str,
        amount: Any,
        paid_by: PaidBy,
        participants: Sequence[Member],
        split_type: Any = SplitType.EQUAL,
        params: Optional[Mapping[Member, Mapping[str, Any]]] = None,
        description: str = "",
        date: str = "",
        created_by: Member = "",
        note: str = "",
    ) -> Expense:
        """
        Compute splits, validate totals and persist a new expense.
        paid_by: a member id (single payer) or { member: amount } (contributors).
        """
        self._refresh()
        group = self.get_group(group_id)
        try:
            expense = self._build_expense(
                group, _new_id(), amount, paid_by, participants, split_type, params,
                description=(description or "").strip(),
                date=date or datetime.date.today().isoformat(),
                created_by=created_by,
                note=(note or "").strip(),
            )
        except ExpenseValidationError as exc:
            logger.info("Rejected expense for group=%s: %s", group_id, exc)
            raise
        self.expenses.append(expense)
        self.save()
        return expense

    def update_expense(self, expense_id: str, **kwargs) -> Expense:
        """
        Replace fields of an existing expense and recompute its splits.
        Supported kwargs: amount, paid_by, participants, split_type, params,
        description, date, note. Unspecified fields keep their current value.
        """
        self._refresh()
        current = self.get_expense(expense_id)
        group = self.get_group(current.group_id)
        participants = kwargs.get("participants", [s.member for s in current.splits])
        params = kwargs.get("params")
        if params is None:
            params = {
                s.member: {"amount": s.amount, "shares": s.shares, "percentage": s.percentage}
                for s in current.splits
            }
        paid_by = kwargs.get("paid_by")
        if paid_by is None:
            paid_by = current.payer.as_dict() if isinstance(current.payer, MultiPayer) else current.payer.payer
        updated = self._build_expense(
            group, current.id,
            kwargs.get("amount", current.amount),
            paid_by,
            participants,
            kwargs.get("split_type", current.split_type),
            params,
            description=kwargs.get("description", current.description),
            date=kwargs.get("date", current.date),
            created_by=current.created_by,
            note=kwargs.get("note", current.note),
        )
        self.expenses = [updated if e.id == expense_id else e for e in self.expenses]
        self.save()
        return updated

    def delete_expense(self, expense_id: str, requesting_user: Member) -> None:
        self._refresh()
        expense = self.get_expense(expense_id)
        group = self.get_group(expense.group_id)
        if requesting_user != group.created_by:
            raise PermissionError("Only the group owner can delete expenses")
        self.expenses = [e for e in self.expenses if e.id != expense_id]
        self.save()
        logger.info("Deleted expense id=%s (amount=%s)", expense_id, expense.amount)

    def record_settlement(self, group_id: str, from_user: Member, to_user: Member,
                          amount: Any, date: str = "") -> Settlement:
        self._refresh()
        group = self.get_group(group_id)
        validate_settlement(from_user, to_user, amount)
        self._check_members(group, [from_user, to_user])
        settlement = Settlement(
            id=_new_id(),
            group_id=group_id,
            from_user=from_user,
            to_user=to_user,
            amount=to_money(amount),
            date=date or datetime.date.today().isoformat(),
        )
        self.settlements.append(settlement)
        self.save()
        return settlement

    # -----------------------
    # Computed views
    # -----------------------
    def group_balances(self, group_id: str):
        return compute_group_balances(
            self.list_expenses(group_id),
            self.list_settlements(group_id),
            self.list_members(group_id),
        )

    def group_transactions(self, group_id: str) -> List[Transaction]:
        return simplify_debts(self.group_balances(group_id))

    def group_pairwise(self, group_id: str) -> PairwiseDebts:
        return compute_pairwise_debts(self.list_expenses(group_id), self.list_settlements(group_id))

    def global_balances(self, member: Member) -> GlobalBalance:
        return compute_global_balances(
            (self.group_balances(g.id) for g in self.list_user_groups(member)),
            member,
        )
