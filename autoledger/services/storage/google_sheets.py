"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as an alternative to the local
JSON file because:
1. Users can view and share their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (we handle this with careful ordering)
- Limited query capabilities (we filter in Python)

Row order mirrors ledger order: row 2 holds the most recent transaction.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from autoledger.config import get_settings
from autoledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from autoledger.models.category import Category, TransactionType
from autoledger.models.transaction import Transaction
from autoledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)


# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "type",
    "amount",
    "merchant",
    "category",
    "date",
    "note",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def transaction_to_row(transaction: Transaction) -> list:
    """Convert a Transaction to a spreadsheet row."""
    return [
        transaction.id,
        transaction.type.value,
        str(transaction.amount),
        transaction.merchant,
        transaction.category.value,
        transaction.date.isoformat(),
        transaction.note or "",
    ]


def row_to_transaction(row: list) -> Transaction:
    """Convert a spreadsheet row to a Transaction."""
    return Transaction(
        id=_safe_get(row, 0),
        type=TransactionType(_safe_get(row, 1)),
        amount=Decimal(_safe_get(row, 2)),
        merchant=_safe_get(row, 3),
        category=Category(_safe_get(row, 4)),
        date=date.fromisoformat(_safe_get(row, 5)),
        note=_safe_get(row, 6) or None,
    )


def event_to_row(event: AuditEvent) -> list:
    """Convert an AuditEvent to a spreadsheet row."""
    return event.to_sheets_row()


def row_to_event(row: list) -> AuditEvent:
    """Convert a spreadsheet row to an AuditEvent."""
    details_json = _safe_get(row, 8)
    correlation_id = _safe_get(row, 6)
    return AuditEvent(
        event_id=UUID(_safe_get(row, 0)),
        timestamp=datetime.fromisoformat(_safe_get(row, 1)),
        event_type=AuditEventType(_safe_get(row, 2)),
        severity=AuditSeverity(_safe_get(row, 3)),
        entity_type=_safe_get(row, 4) or None,
        entity_id=_safe_get(row, 5) or None,
        correlation_id=UUID(correlation_id) if correlation_id else None,
        description=_safe_get(row, 7),
        details=json.loads(details_json) if details_json else {},
        error_message=_safe_get(row, 9) or None,
        is_user_action=_safe_get(row, 10).lower() == "true",
    )


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
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

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
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
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

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of transaction storage.

    One transaction per row, newest at the top (row 2).
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _data_rows(self, sheet: gspread.Worksheet) -> list[list]:
        # Skip header
        return sheet.get_all_values()[1:]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def add_transaction(self, transaction: Transaction) -> bool:
        """Insert a transaction directly below the header row."""
        try:
            sheet = self._client.get_transactions_sheet()
            sheet.insert_row(
                transaction_to_row(transaction), index=2, value_input_option="RAW"
            )
            return True
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            for row in self._data_rows(sheet):
                if row and row[0] == transaction_id:
                    return row_to_transaction(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

    async def replace_transaction(self, transaction: Transaction) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            for idx, row in enumerate(self._data_rows(sheet), start=2):
                if row and row[0] == transaction.id:
                    new_row = transaction_to_row(transaction)
                    for col_idx, value in enumerate(new_row, start=1):
                        sheet.update_cell(idx, col_idx, value)
                    return True
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")

    async def delete_transaction(self, transaction_id: str) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            for idx, row in enumerate(self._data_rows(sheet), start=2):
                if row and row[0] == transaction_id:
                    sheet.delete_rows(idx)
                    return True
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")

    async def list_transactions(self) -> list[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            rows = self._data_rows(sheet)
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

        transactions = []
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                transactions.append(row_to_transaction(row))
            except (ValueError, ArithmeticError) as e:
                logger.warning("malformed_transaction_row", row_id=row[0], error=str(e))
        return transactions

    async def replace_all(self, transactions: list[Transaction]) -> None:
        try:
            sheet = self._client.get_transactions_sheet()
            sheet.clear()
            sheet.append_rows(
                [TRANSACTION_COLUMNS] + [transaction_to_row(t) for t in transactions],
                value_input_option="RAW",
            )
        except Exception as e:
            raise StorageError(f"Failed to replace transactions: {e}")

    async def clear(self) -> int:
        try:
            sheet = self._client.get_transactions_sheet()
            count = len([row for row in self._data_rows(sheet) if row and row[0]])
            sheet.clear()
            sheet.append_row(TRANSACTION_COLUMNS)
            return count
        except Exception as e:
            raise StorageError(f"Failed to clear transactions: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Failures are logged, never raised."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event_to_row(event), value_input_option="RAW")
            return True
        except Exception as e:
            logger.warning(
                "audit_sheet_write_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    def _all_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                events.append(row_to_event(row))
            except (ValueError, KeyError):
                continue
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._all_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = self._all_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
