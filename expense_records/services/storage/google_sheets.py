"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a storage backend because:
1. Users can look at their saved records directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: the version column gives optimistic concurrency,
  but the check-then-write is not atomic across processes
- Limited query capabilities (we filter in Python)

One record per row. The item list is stored as a JSON column so that
source_item_id, categories and image references round-trip exactly.
"""

import json
from datetime import date, datetime, tzinfo
from typing import Iterable, Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expense_records.config import get_settings
from expense_records.models.audit import AuditEvent, AuditEventType, AuditSeverity
from expense_records.models.record import LineItem, Record
from expense_records.reconciliation.days import local_zone, to_day
from expense_records.services.storage.interface import (
    AuditStorageInterface,
    ConcurrentModificationError,
    DuplicateError,
    NotFoundError,
    RecordStorageInterface,
    StorageConnectionError,
    StorageError,
    prepare_restored_records,
    sort_newest_masters_first,
)


# Column mappings for Records sheet
RECORD_COLUMNS = [
    "id",
    "record_date",
    "timestamp",
    "is_master_save",
    "version",
    "total_sum",
    "checked_items_count",
    "checked_items_sum",
    "items_json",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "record_id",
    "record_day",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]

# Don't retry errors that another attempt cannot fix
_NOT_RETRYABLE = (ConcurrentModificationError, NotFoundError, DuplicateError)


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

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_records_sheet(self) -> gspread.Worksheet:
        """Get or create the Records worksheet."""
        return self._get_or_create_sheet(
            self._settings.records_sheet_name, RECORD_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


def record_to_row(record: Record) -> list:
    """Convert a Record to a spreadsheet row."""
    return [
        str(record.id) if record.id is not None else "",
        record.record_date.isoformat(),
        str(record.timestamp),
        str(record.is_master_save),
        str(record.version),
        repr(record.total_sum),
        str(record.checked_items_count),
        repr(record.checked_items_sum),
        json.dumps([item.model_dump() for item in record.items]),
    ]


def row_to_record(row: list) -> Record:
    """Convert a spreadsheet row to a Record."""
    # Handle missing columns gracefully
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default

    items = []
    items_json = safe_get(8)
    if items_json:
        items = [LineItem(**item) for item in json.loads(items_json)]

    return Record(
        id=int(safe_get(0)),
        record_date=datetime.fromisoformat(safe_get(1)),
        timestamp=int(safe_get(2, "0")),
        is_master_save=safe_get(3).lower() == "true",
        version=int(safe_get(4, "0")),
        total_sum=float(safe_get(5, "0")),
        checked_items_count=int(safe_get(6, "0")),
        checked_items_sum=float(safe_get(7, "0")),
        items=items,
    )


class GoogleSheetsRecordStorage(RecordStorageInterface):
    """
    Google Sheets implementation of record storage.

    Ids are assigned as max(existing id) + 1.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        tz: Optional[tzinfo] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._tz = tz or local_zone()

    def _read_rows(self) -> list[tuple[int, list]]:
        """(sheet_row_number, row) for every non-empty data row."""
        sheet = self._client.get_records_sheet()
        all_rows = sheet.get_all_values()
        return [
            (idx, row)
            for idx, row in enumerate(all_rows[1:], start=2)  # Row 1 is header
            if row and row[0]
        ]

    def _read_records(self) -> list[Record]:
        records = []
        for _, row in self._read_rows():
            try:
                records.append(row_to_record(row))
            except (ValueError, TypeError):
                continue  # Skip malformed rows
        return records

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(_NOT_RETRYABLE),
        reraise=True,
    )
    async def insert_record(self, record: Record) -> Record:
        """Append a record row."""
        try:
            records = self._read_records()
            existing_ids = {r.id for r in records}
            if record.id is not None and record.id in existing_ids:
                raise DuplicateError(f"Record already exists: {record.id}")

            record_id = record.id
            if record_id is None:
                record_id = max(existing_ids, default=0) + 1

            stored = record.model_copy(update={"id": record_id, "version": 1})
            sheet = self._client.get_records_sheet()
            sheet.append_row(record_to_row(stored), value_input_option="RAW")
            return stored
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert record: {e}")

    async def get_record(self, record_id: int) -> Optional[Record]:
        try:
            for _, row in self._read_rows():
                if row[0] == str(record_id):
                    return row_to_record(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get record: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(_NOT_RETRYABLE),
        reraise=True,
    )
    async def update_record(self, record: Record) -> Record:
        """Rewrite a record row if its version still matches."""
        try:
            sheet = self._client.get_records_sheet()
            for idx, row in self._read_rows():
                if row[0] != str(record.id):
                    continue

                current = row_to_record(row)
                if current.version != record.version:
                    raise ConcurrentModificationError(
                        record.id, record.version, current.version
                    )

                stored = record.model_copy(update={"version": current.version + 1})
                for col_idx, value in enumerate(record_to_row(stored), start=1):
                    sheet.update_cell(idx, col_idx, value)
                return stored

            raise NotFoundError(f"Record not found: {record.id}")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update record: {e}")

    async def delete_record(self, record_id: int) -> bool:
        try:
            sheet = self._client.get_records_sheet()
            for idx, row in self._read_rows():
                if row[0] == str(record_id):
                    sheet.delete_rows(idx)
                    return True
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete record: {e}")

    async def list_records_for_day(
        self,
        day: date,
        is_master_save: Optional[bool] = None,
    ) -> list[Record]:
        try:
            records = [
                r for r in self._read_records()
                if to_day(r.record_date, self._tz) == day
                and (is_master_save is None or r.is_master_save == is_master_save)
            ]
            return sort_newest_masters_first(records)
        except Exception as e:
            raise StorageError(f"Failed to list records: {e}")

    async def get_master_record(self, day: date) -> Optional[Record]:
        masters = await self.list_records_for_day(day, is_master_save=True)
        return masters[0] if masters else None

    async def list_master_records(self, date_from: date, date_to: date) -> list[Record]:
        try:
            records = [
                r for r in self._read_records()
                if r.is_master_save
                and date_from <= to_day(r.record_date, self._tz) <= date_to
            ]
            records.sort(key=lambda r: (r.record_date, -r.timestamp))
            return records
        except Exception as e:
            raise StorageError(f"Failed to list master records: {e}")

    async def list_all_records(self) -> list[Record]:
        try:
            return sort_newest_masters_first(self._read_records())
        except Exception as e:
            raise StorageError(f"Failed to list records: {e}")

    async def replace_all(self, records: Iterable[Record]) -> int:
        # Rows are built before the sheet is cleared
        rows = [record_to_row(record) for record in prepare_restored_records(records)]
        try:
            sheet = self._client.get_records_sheet()
            sheet.clear()
            sheet.append_row(RECORD_COLUMNS)
            if rows:
                sheet.append_rows(rows, value_input_option="RAW")
            return len(rows)
        except Exception as e:
            raise StorageError(f"Failed to replace records: {e}")


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
            record_id=int(safe_get(4)) if safe_get(4) else None,
            record_day=date.fromisoformat(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        sheet = self._client.get_audit_sheet()
        sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
        return True

    def _read_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError:
                continue
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._read_events() if e.correlation_id == correlation_id]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        try:
            events = sorted(self._read_events(), key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
