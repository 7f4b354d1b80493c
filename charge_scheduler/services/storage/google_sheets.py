"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the remote store because:
1. The operator can look at the schedule directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- No transactions. The scheduler knows this (supports_transactions is
  False) and orders the settle writes itself: successor first, then
  the status update.
- Limited query capabilities (we filter in Python)
- Updates are targeted cell writes on the charge's own row, so
  concurrent sessions editing other charges are not clobbered. All cells
  of one update go out in a single batch request, so a settled status
  never lands without its settled_at.

Amounts are written as decimal strings and dates as ISO YYYY-MM-DD,
so nothing goes through a float or a timezone on the way in or out.
"""

import json
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from charge_scheduler.config import get_settings
from charge_scheduler.models.audit import AuditEvent, AuditEventType, AuditSeverity
from charge_scheduler.models.charge import (
    Charge,
    ChargeStatus,
    ChargeUpdate,
    Frequency,
    NewCharge,
    Recurrence,
)
from charge_scheduler.services.storage.interface import (
    AuditStorageInterface,
    ChargeStoreInterface,
    ConnectionError,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


# Column mappings for Charges sheet
CHARGE_COLUMNS = [
    "id",
    "created_at",
    "client_name",
    "reference",
    "amount",
    "due_date",
    "due_time",
    "status",
    "settled_at",
    "is_recurring",
    "frequency",
    "anchor_day_of_week",
    "anchor_day_of_month",
    "predecessor_id",
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

_retry_transient = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type(NotFoundError),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
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

    def get_charges_sheet(self) -> gspread.Worksheet:
        """Get or create the Charges worksheet."""
        return self._get_or_create_sheet(
            self._settings.charges_sheet_name,
            CHARGE_COLUMNS,
            rows=1000,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


def _cell(value: Any) -> str:
    """Render one field as a sheet cell."""
    if value is None:
        return ""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, (ChargeStatus, Frequency)):
        return value.value
    return str(value)


class GoogleSheetsChargeStore(ChargeStoreInterface):
    """
    Google Sheets implementation of the charge store.

    Charges are stored as rows in a worksheet with one charge per row.
    """

    supports_transactions = False

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _charge_to_row(self, charge: Charge) -> list:
        """Convert a Charge to a spreadsheet row."""
        recurrence = charge.recurrence
        return [
            str(charge.id),
            _cell(charge.created_at),
            charge.client_name,
            charge.reference,
            str(charge.amount),
            _cell(charge.due_date),
            charge.due_time or "",
            charge.status.value,
            _cell(charge.settled_at),
            str(recurrence.is_recurring),
            recurrence.frequency.value,
            _cell(recurrence.anchor_day_of_week),
            _cell(recurrence.anchor_day_of_month),
            _cell(charge.predecessor_id),
        ]

    def _row_to_charge(self, row: list) -> Charge:
        """Convert a spreadsheet row to a Charge."""
        # Handle missing columns gracefully
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        def optional_int(index: int) -> Optional[int]:
            value = safe_get(index)
            return int(value) if value else None

        return Charge(
            id=UUID(safe_get(0)),
            created_at=datetime.fromisoformat(safe_get(1)),
            client_name=safe_get(2),
            reference=safe_get(3),
            amount=Decimal(safe_get(4)),
            due_date=date.fromisoformat(safe_get(5)),
            due_time=safe_get(6) or None,
            status=ChargeStatus(safe_get(7)),
            settled_at=datetime.fromisoformat(safe_get(8)) if safe_get(8) else None,
            recurrence=Recurrence(
                is_recurring=safe_get(9).lower() == "true",
                frequency=Frequency(safe_get(10, Frequency.NONE.value)),
                anchor_day_of_week=optional_int(11),
                anchor_day_of_month=optional_int(12),
            ),
            predecessor_id=UUID(safe_get(13)) if safe_get(13) else None,
        )

    def _read_charges(self) -> list[Charge]:
        sheet = self._client.get_charges_sheet()
        all_rows = sheet.get_all_values()[1:]  # Skip header

        charges = []
        for row_number, row in enumerate(all_rows, start=2):
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                charges.append(self._row_to_charge(row))
            except (ValueError, InvalidOperation) as e:
                logger.warning(
                    "malformed_charge_row",
                    row_number=row_number,
                    error=str(e),
                )
        return charges

    def _find_row_number(self, sheet: gspread.Worksheet, charge_id: UUID) -> Optional[int]:
        all_rows = sheet.get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
            if row and row[0] == str(charge_id):
                return idx
        return None

    @_retry_transient
    async def list_by_due_date_range(
        self,
        start: date,
        end: date,
    ) -> list[Charge]:
        """List charges due in [start, end]."""
        try:
            charges = [
                charge
                for charge in self._read_charges()
                if start <= charge.due_date <= end
            ]
        except Exception as e:
            raise StorageError(f"Failed to list charges: {e}") from e

        charges.sort(key=lambda c: c.due_date)
        return charges

    @_retry_transient
    async def get(self, charge_id: UUID) -> Optional[Charge]:
        """Retrieve a charge by its ID."""
        try:
            for charge in self._read_charges():
                if charge.id == charge_id:
                    return charge
            return None
        except Exception as e:
            raise StorageError(f"Failed to get charge: {e}") from e

    async def insert(self, new_charge: NewCharge) -> Charge:
        """
        Append a charge row.

        Not retried: an append that timed out may still have landed, and
        a blind retry would duplicate the charge.
        """
        charge = Charge.from_new(new_charge)
        try:
            sheet = self._client.get_charges_sheet()
            sheet.append_row(self._charge_to_row(charge), value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to insert charge: {e}") from e
        return charge

    @_retry_transient
    async def update(self, charge_id: UUID, update: ChargeUpdate) -> None:
        """Write only the updated cells of the charge's row."""
        try:
            sheet = self._client.get_charges_sheet()
            row_number = self._find_row_number(sheet, charge_id)
            if row_number is None:
                raise NotFoundError(f"Charge not found: {charge_id}")

            cells = [
                {
                    "range": rowcol_to_a1(row_number, CHARGE_COLUMNS.index(field) + 1),
                    "values": [[_cell(value)]],
                }
                for field, value in update.to_fields().items()
            ]
            if cells:
                sheet.batch_update(cells, value_input_option="RAW")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update charge: {e}") from e

    @_retry_transient
    async def delete(self, charge_id: UUID) -> None:
        """Delete a charge row if it exists."""
        try:
            sheet = self._client.get_charges_sheet()
            row_number = self._find_row_number(sheet, charge_id)
            if row_number is not None:
                sheet.delete_rows(row_number)
        except Exception as e:
            raise StorageError(f"Failed to delete charge: {e}") from e


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
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
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
            except ValueError as e:
                logger.warning("malformed_audit_row", error=str(e))
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning(
                "audit_write_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        try:
            events = [
                event
                for event in self._read_events()
                if event.entity_type == entity_type and event.entity_id == entity_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._read_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
