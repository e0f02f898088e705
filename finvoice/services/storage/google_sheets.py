"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the remote store because:
1. Users can view their expenses and budgets directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: unique keys are enforced in Python under a lock,
  which protects against races inside one process only
- Limited query capabilities (we filter in Python)

Each collection (expenses, budgets, profiles) is one worksheet with a
header row. gspread is synchronous, so every call runs in a worker
thread to keep the event loop (and the caller's timeout) responsive.
"""

import asyncio
import json
import threading
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from finvoice.config import GoogleSheetsSettings, get_settings
from finvoice.models.audit import AuditEvent, AuditEventType, AuditSeverity
from finvoice.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    Filters,
    NotFoundError,
    Record,
    RemoteStore,
    StorageError,
)


# Column layout for each collection
COLLECTION_COLUMNS: dict[str, list[str]] = {
    "expenses": [
        "id",
        "user_id",
        "amount",
        "description",
        "category",
        "voice_input",
        "date",
        "created_at",
        "updated_at",
    ],
    "budgets": [
        "id",
        "user_id",
        "month_year",
        "total_amount",
        "categories",
        "created_at",
        "updated_at",
    ],
    "profiles": [
        "id",
        "firebase_uid",
        "name",
        "phone",
        "language",
        "currency",
        "theme",
        "created_at",
        "updated_at",
    ],
}

# Columns holding JSON-serialized structures
JSON_COLUMNS = {"categories"}

# Unique constraints, checked on insert and update
UNIQUE_KEYS: dict[str, tuple[str, ...]] = {
    "profiles": ("phone",),
    "budgets": ("user_id", "month_year"),
}

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


def to_cell(value: Any) -> str:
    """Serialize a value the way it is written to (and compared in) a cell."""
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (list, dict)):
        return json.dumps(value, default=str)
    return str(value)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

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
            except FileNotFoundError as e:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound as e:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
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

    def get_collection_sheet(self, collection: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a collection."""
        if collection not in COLLECTION_COLUMNS:
            raise StorageError(f"Unknown collection: {collection}")
        return self._get_or_create_sheet(
            self._settings.sheet_name_for(collection),
            COLLECTION_COLUMNS[collection],
            rows=1000,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsRemoteStore(RemoteStore):
    """
    Google Sheets implementation of the remote store.

    Records are stored as rows, one record per row, in the column order
    of COLLECTION_COLUMNS. Values read back are strings except for JSON
    columns; models coerce them at the edges.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Row mapping
    # -------------------------------------------------------------------------

    @staticmethod
    def _record_to_row(collection: str, record: Record) -> list[str]:
        return [to_cell(record.get(col)) for col in COLLECTION_COLUMNS[collection]]

    @staticmethod
    def _row_to_record(collection: str, row: list) -> Record:
        record: Record = {}
        for idx, col in enumerate(COLLECTION_COLUMNS[collection]):
            value = row[idx] if idx < len(row) else ""
            if col in JSON_COLUMNS:
                record[col] = json.loads(value) if value else []
            else:
                record[col] = value if value != "" else None
        return record

    @staticmethod
    def _matches(record: Record, filters: Filters) -> bool:
        return all(
            to_cell(record.get(key)) == to_cell(value)
            for key, value in filters.items()
        )

    def _find(
        self,
        collection: str,
        filters: Filters,
    ) -> tuple[gspread.Worksheet, list[tuple[int, Record]]]:
        """Return the sheet and (row_number, record) for every match."""
        sheet = self._client.get_collection_sheet(collection)
        all_rows = sheet.get_all_values()
        matches = []
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
            if not row or not row[0]:
                continue
            record = self._row_to_record(collection, row)
            if self._matches(record, filters):
                matches.append((idx, record))
        return sheet, matches

    def _check_unique(
        self,
        collection: str,
        record: Record,
        ignore_id: Optional[str] = None,
    ) -> None:
        keys = UNIQUE_KEYS.get(collection)
        if not keys:
            return
        key_filter = {key: record.get(key) for key in keys}
        _, matches = self._find(collection, key_filter)
        for _, existing in matches:
            if existing.get("id") != ignore_id:
                raise DuplicateError(
                    f"{collection} already has a record with "
                    + ", ".join(f"{k}={v}" for k, v in key_filter.items())
                )

    # -------------------------------------------------------------------------
    # Synchronous operations (run in a worker thread)
    # -------------------------------------------------------------------------

    def _append_record(self, collection: str, payload: Record) -> Record:
        """Insert without taking the lock. Caller holds it."""
        now = datetime.utcnow()
        record = {
            **payload,
            "id": str(uuid4()),
            "created_at": payload.get("created_at") or now,
            "updated_at": payload.get("updated_at") or now,
        }
        self._check_unique(collection, record)
        sheet = self._client.get_collection_sheet(collection)
        row = self._record_to_row(collection, record)
        sheet.append_row(row, value_input_option="RAW")
        return self._row_to_record(collection, row)

    def _rewrite_record(
        self,
        collection: str,
        sheet: gspread.Worksheet,
        idx: int,
        existing: Record,
        payload: Record,
    ) -> Record:
        """Overwrite row idx in place. Caller holds the lock."""
        updated = {**existing, **payload, "id": existing["id"]}
        if "updated_at" not in payload:
            updated["updated_at"] = datetime.utcnow()
        self._check_unique(collection, updated, ignore_id=existing["id"])
        row = self._record_to_row(collection, updated)
        sheet.update(range_name=f"A{idx}", values=[row])
        return self._row_to_record(collection, row)

    def _insert_sync(self, collection: str, payload: Record) -> Record:
        with self._lock:
            return self._append_record(collection, payload)

    def _select_sync(
        self,
        collection: str,
        filters: Filters,
        order_by: Optional[str],
        descending: bool,
    ) -> list[Record]:
        _, matches = self._find(collection, filters)
        records = [record for _, record in matches]
        if order_by:
            records.sort(key=lambda r: to_cell(r.get(order_by)), reverse=descending)
        return records

    def _update_sync(self, collection: str, filters: Filters, payload: Record) -> Record:
        with self._lock:
            sheet, matches = self._find(collection, filters)
            if not matches:
                raise NotFoundError(f"No {collection} record matches {filters}")
            idx, existing = matches[0]
            return self._rewrite_record(collection, sheet, idx, existing, payload)

    def _upsert_sync(
        self,
        collection: str,
        keys: tuple[str, ...],
        payload: Record,
        on_conflict: Record,
    ) -> tuple[Record, bool]:
        filters = {key: payload[key] for key in keys}
        with self._lock:
            sheet, matches = self._find(collection, filters)
            if not matches:
                return self._append_record(collection, payload), True
            idx, existing = matches[0]
            return self._rewrite_record(collection, sheet, idx, existing, on_conflict), False

    def _delete_sync(self, collection: str, filters: Filters) -> Record:
        with self._lock:
            sheet, matches = self._find(collection, filters)
            if not matches:
                raise NotFoundError(f"No {collection} record matches {filters}")
            idx, existing = matches[0]
            sheet.delete_rows(idx)
        return existing

    # -------------------------------------------------------------------------
    # RemoteStore interface
    # -------------------------------------------------------------------------

    async def _run(self, operation: str, func, *args) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to {operation}: {e}") from e

    async def insert(self, collection: str, payload: Record) -> Record:
        return await self._run(f"insert into {collection}", self._insert_sync, collection, payload)

    async def select_one(self, collection: str, filters: Filters) -> Record:
        records = await self.select(collection, filters)
        if not records:
            raise NotFoundError(f"No {collection} record matches {filters}")
        return records[0]

    async def select(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[Record]:
        return await self._run(
            f"read {collection}",
            self._select_sync,
            collection,
            filters or {},
            order_by,
            descending,
        )

    async def update(self, collection: str, filters: Filters, payload: Record) -> Record:
        return await self._run(
            f"update {collection}", self._update_sync, collection, filters, payload
        )

    async def upsert(
        self,
        collection: str,
        keys: tuple[str, ...],
        payload: Record,
        on_conflict: Record,
    ) -> tuple[Record, bool]:
        """Lookup and write under one lock, so nothing lands in between."""
        return await self._run(
            f"upsert into {collection}",
            self._upsert_sync,
            collection,
            keys,
            payload,
            on_conflict,
        )

    async def delete(self, collection: str, filters: Filters) -> Record:
        return await self._run(f"delete from {collection}", self._delete_sync, collection, filters)


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
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, IndexError):
                continue  # Skip malformed rows
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        sheet = await asyncio.to_thread(self._client.get_audit_sheet)
        await asyncio.to_thread(
            sheet.append_row, event.to_sheets_row(), value_input_option="RAW"
        )
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = await asyncio.to_thread(self._read_events)
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e
        matching = [e for e in events if e.correlation_id == correlation_id]
        matching.sort(key=lambda e: e.timestamp)
        return matching

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = await asyncio.to_thread(self._read_events)
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
