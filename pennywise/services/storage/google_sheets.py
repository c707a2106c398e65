"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the hosted storage backend because:
1. Users can view their own data directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (fine for personal finance)
- No transactions: reconciliation recomputes from scratch, so a lost
  update heals on the next mutation
- Limited query capabilities (we filter in Python)

Each entity lives in its own worksheet, one record per row, with the
model's field names as the header row.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Generic, Optional, TypeVar
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from pydantic import BaseModel
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pennywise.config import get_settings
from pennywise.errors import NotFoundError
from pennywise.models.audit import AuditEvent, AuditEventType, AuditSeverity
from pennywise.models.finance import Budget, Expense, Goal, Income
from pennywise.services.storage.filters import (
    budget_matches,
    expense_matches,
    income_matches,
)
from pennywise.services.storage.interface import (
    AuditStorageInterface,
    FinanceStorageInterface,
    StorageConnectionError,
    StorageError,
)


EXPENSE_COLUMNS = list(Expense.model_fields)
BUDGET_COLUMNS = list(Budget.model_fields)
GOAL_COLUMNS = list(Goal.model_fields)
INCOME_COLUMNS = list(Income.model_fields)

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "owner_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

RecordT = TypeVar("RecordT", bound=BaseModel)

write_retry = retry(
    retry=retry_if_exception_type(StorageError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def record_to_row(record: BaseModel, columns: list[str]) -> list[str]:
    """Serialize a record to cell values in column order. None becomes ''."""
    data = record.model_dump(mode="json")
    row = []
    for column in columns:
        value = data.get(column)
        if value is None:
            row.append("")
        elif isinstance(value, bool):
            row.append("true" if value else "false")
        else:
            row.append(str(value))
    return row


def row_to_record(model: type[RecordT], columns: list[str], row: list) -> RecordT:
    """Parse cell values back into a record. Empty cells fall back to defaults."""
    data = {
        column: row[index]
        for index, column in enumerate(columns)
        if index < len(row) and row[index] != ""
    }
    return model.model_validate(data)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet whose first row holds the column names."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.expenses_sheet_name, EXPENSE_COLUMNS)

    def get_budgets_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.budgets_sheet_name, BUDGET_COLUMNS)

    def get_goals_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.goals_sheet_name, GOAL_COLUMNS)

    def get_incomes_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.incomes_sheet_name, INCOME_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


class RecordSheet(Generic[RecordT]):
    """
    One worksheet holding one record type, keyed by the `id` column.
    """

    def __init__(self, get_sheet, model: type[RecordT], columns: list[str], entity_type: str):
        self._get_sheet = get_sheet
        self._model = model
        self._columns = columns
        self._entity_type = entity_type

    def _rows(self) -> list[list]:
        # Skip header
        return self._get_sheet().get_all_values()[1:]

    @write_retry
    async def append(self, record: RecordT) -> bool:
        try:
            sheet = self._get_sheet()
            sheet.append_row(record_to_row(record, self._columns), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save {self._entity_type}: {e}")

    async def find(self, record_id: UUID) -> Optional[RecordT]:
        try:
            for row in self._rows():
                if row and row[0] == str(record_id):
                    return row_to_record(self._model, self._columns, row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get {self._entity_type}: {e}")

    @write_retry
    async def replace(self, record: RecordT) -> bool:
        try:
            sheet = self._get_sheet()
            # Start from 2 (row 1 is header)
            for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
                if row and row[0] == str(record.id):
                    sheet.update(
                        range_name=f"A{idx}",
                        values=[record_to_row(record, self._columns)],
                        value_input_option="RAW",
                    )
                    return True
        except Exception as e:
            raise StorageError(f"Failed to update {self._entity_type}: {e}")
        raise NotFoundError(self._entity_type, record.id)

    async def remove(self, record_id: UUID) -> bool:
        try:
            sheet = self._get_sheet()
            for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
                if row and row[0] == str(record_id):
                    sheet.delete_rows(idx)
                    return True
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete {self._entity_type}: {e}")

    async def all(self) -> list[RecordT]:
        try:
            rows = self._rows()
        except Exception as e:
            raise StorageError(f"Failed to list {self._entity_type}s: {e}")

        records = []
        for row in rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                records.append(row_to_record(self._model, self._columns, row))
            except Exception:
                continue  # Skip malformed rows
        return records


class GoogleSheetsFinanceStorage(FinanceStorageInterface):
    """
    Google Sheets implementation of finance storage.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._expenses = RecordSheet(self._client.get_expenses_sheet, Expense, EXPENSE_COLUMNS, "expense")
        self._budgets = RecordSheet(self._client.get_budgets_sheet, Budget, BUDGET_COLUMNS, "budget")
        self._goals = RecordSheet(self._client.get_goals_sheet, Goal, GOAL_COLUMNS, "goal")
        self._incomes = RecordSheet(self._client.get_incomes_sheet, Income, INCOME_COLUMNS, "income")

    # Expenses

    async def save_expense(self, expense: Expense) -> bool:
        return await self._expenses.append(expense)

    async def get_expense_by_id(self, expense_id: UUID) -> Optional[Expense]:
        return await self._expenses.find(expense_id)

    async def update_expense(self, expense: Expense) -> bool:
        return await self._expenses.replace(expense)

    async def delete_expense(self, expense_id: UUID) -> bool:
        return await self._expenses.remove(expense_id)

    async def list_expenses(
        self,
        owner_id: str,
        category: Optional[str] = None,
        goal_id: Optional[UUID] = None,
        active: Optional[bool] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        due_from: Optional[datetime] = None,
        due_to: Optional[datetime] = None,
    ) -> list[Expense]:
        return [
            expense
            for expense in await self._expenses.all()
            if expense_matches(
                expense,
                owner_id,
                category=category,
                goal_id=goal_id,
                active=active,
                date_from=date_from,
                date_to=date_to,
                due_from=due_from,
                due_to=due_to,
            )
        ]

    async def sum_expenses(
        self,
        owner_id: str,
        category: Optional[str] = None,
        goal_id: Optional[UUID] = None,
        active: Optional[bool] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Decimal:
        expenses = await self.list_expenses(
            owner_id,
            category=category,
            goal_id=goal_id,
            active=active,
            date_from=date_from,
            date_to=date_to,
        )
        return sum((expense.amount for expense in expenses), Decimal("0"))

    async def unlink_goal(self, owner_id: str, goal_id: UUID) -> int:
        linked = await self.list_expenses(owner_id, goal_id=goal_id)
        for expense in linked:
            expense.goal_id = None
            await self._expenses.replace(expense)
        return len(linked)

    # Budgets

    async def save_budget(self, budget: Budget) -> bool:
        return await self._budgets.append(budget)

    async def get_budget_by_id(self, budget_id: UUID) -> Optional[Budget]:
        return await self._budgets.find(budget_id)

    async def update_budget(self, budget: Budget) -> bool:
        return await self._budgets.replace(budget)

    async def delete_budget(self, budget_id: UUID) -> bool:
        return await self._budgets.remove(budget_id)

    async def list_budgets(
        self,
        owner_id: str,
        category: Optional[str] = None,
        rollover: Optional[bool] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[Budget]:
        return [
            budget
            for budget in await self._budgets.all()
            if budget_matches(
                budget,
                owner_id,
                category=category,
                rollover=rollover,
                date_from=date_from,
                date_to=date_to,
            )
        ]

    # Goals

    async def save_goal(self, goal: Goal) -> bool:
        return await self._goals.append(goal)

    async def get_goal_by_id(self, goal_id: UUID) -> Optional[Goal]:
        return await self._goals.find(goal_id)

    async def update_goal(self, goal: Goal) -> bool:
        return await self._goals.replace(goal)

    async def delete_goal(self, goal_id: UUID) -> bool:
        return await self._goals.remove(goal_id)

    async def list_goals(self, owner_id: str) -> list[Goal]:
        return [goal for goal in await self._goals.all() if goal.owner_id == owner_id]

    # Incomes

    async def save_income(self, income: Income) -> bool:
        return await self._incomes.append(income)

    async def get_income_by_id(self, income_id: UUID) -> Optional[Income]:
        return await self._incomes.find(income_id)

    async def update_income(self, income: Income) -> bool:
        return await self._incomes.replace(income)

    async def delete_income(self, income_id: UUID) -> bool:
        return await self._incomes.remove(income_id)

    async def list_incomes(
        self,
        owner_id: str,
        active: Optional[bool] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[Income]:
        return [
            income
            for income in await self._incomes.all()
            if income_matches(
                income,
                owner_id,
                active=active,
                date_from=date_from,
                date_to=date_to,
            )
        ]


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            owner_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=UUID(safe_get(6)) if safe_get(6) else None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    @write_retry
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def _all_events(self) -> list[AuditEvent]:
        try:
            all_rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = [e for e in await self._all_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        events = [
            e for e in await self._all_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = await self._all_events()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
