"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a storage backend because:
1. The shop owner can view customers and debts directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (a neighbourhood market is fine)
- No native transactions (we record compensating undo actions instead)
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing the accounting rules.
"""

import json
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import AsyncIterator, Callable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import retry, stop_after_attempt, wait_exponential

from fiado_ledger.config import GoogleSheetsSettings, get_settings
from fiado_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from fiado_ledger.models.ledger import (
    Customer,
    Payment,
    PaymentMethod,
    Sale,
    SaleItem,
)
from fiado_ledger.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
    RecordNotFoundError,
    StorageConnectionError,
    StorageError,
)


logger = structlog.get_logger(__name__)


# Column mappings, one worksheet per record type
CUSTOMER_COLUMNS = [
    "id",
    "name",
    "phone",
    "credit_limit",
    "current_debt",
    "created_at",
    "address",
    "birth_date",
]

SALE_COLUMNS = [
    "id",
    "customer_id",
    "total_value",
    "created_at",
    "due_date",
    "signed",
    "payment_method",
]

SALE_ITEM_COLUMNS = [
    "sale_id",
    "position",
    "product",
    "value",
]

PAYMENT_COLUMNS = [
    "id",
    "customer_id",
    "amount",
    "payment_method",
    "created_at",
]

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
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _write_cell(sheet: gspread.Worksheet, row: int, col: int, value: str) -> None:
    """Overwrite one cell, stored as typed so Sheets never reparses it."""
    sheet.update(
        range_name=rowcol_to_a1(row, col),
        values=[[value]],
        value_input_option="RAW",
    )


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
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}") from e

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
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
            except gspread.exceptions.APIError as e:
                raise StorageConnectionError(f"Failed to open spreadsheet: {e}") from e
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
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

    def get_customers_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.customers_sheet_name, CUSTOMER_COLUMNS)

    def get_sales_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.sales_sheet_name, SALE_COLUMNS)

    def get_sale_items_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(
            self._settings.sale_items_sheet_name, SALE_ITEM_COLUMNS, rows=5000
        )

    def get_payments_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.payments_sheet_name, PAYMENT_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self._get_or_create(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Customers, sales, sale items and payments each live in their own
    worksheet, one record per row. Inside a transaction every write
    registers an undo action; if the block fails the undo actions run
    in reverse order.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._undo: Optional[list[Callable[[], None]]] = None

    # -------------------------------------------------------------------------
    # Row mapping
    # -------------------------------------------------------------------------

    @staticmethod
    def _customer_to_row(customer: Customer) -> list:
        return [
            str(customer.id),
            customer.name,
            customer.phone,
            str(customer.credit_limit),
            str(customer.current_debt),
            customer.created_at.isoformat(),
            customer.address or "",
            customer.birth_date.isoformat() if customer.birth_date else "",
        ]

    @staticmethod
    def _row_to_customer(row: list) -> Customer:
        return Customer(
            id=UUID(_safe_get(row, 0)),
            name=_safe_get(row, 1),
            phone=_safe_get(row, 2),
            credit_limit=Decimal(_safe_get(row, 3)),
            current_debt=Decimal(_safe_get(row, 4, "0")),
            created_at=datetime.fromisoformat(_safe_get(row, 5)),
            address=_safe_get(row, 6) or None,
            birth_date=date.fromisoformat(_safe_get(row, 7)) if _safe_get(row, 7) else None,
        )

    @staticmethod
    def _sale_to_row(sale: Sale) -> list:
        return [
            str(sale.id),
            str(sale.customer_id),
            str(sale.total_value),
            sale.created_at.isoformat(),
            sale.due_date.isoformat(),
            str(sale.signed),
            sale.payment_method.value if sale.payment_method else "",
        ]

    @staticmethod
    def _row_to_sale(row: list, items: list[SaleItem]) -> Sale:
        return Sale(
            id=UUID(_safe_get(row, 0)),
            customer_id=UUID(_safe_get(row, 1)),
            items=items,
            total_value=Decimal(_safe_get(row, 2)),
            created_at=datetime.fromisoformat(_safe_get(row, 3)),
            due_date=date.fromisoformat(_safe_get(row, 4)),
            signed=_safe_get(row, 5).lower() == "true",
            payment_method=PaymentMethod(_safe_get(row, 6)) if _safe_get(row, 6) else None,
        )

    @staticmethod
    def _payment_to_row(payment: Payment) -> list:
        return [
            str(payment.id),
            str(payment.customer_id),
            str(payment.amount),
            payment.payment_method.value,
            payment.created_at.isoformat(),
        ]

    @staticmethod
    def _row_to_payment(row: list) -> Payment:
        return Payment(
            id=UUID(_safe_get(row, 0)),
            customer_id=UUID(_safe_get(row, 1)),
            amount=Decimal(_safe_get(row, 2)),
            payment_method=PaymentMethod(_safe_get(row, 3)),
            created_at=datetime.fromisoformat(_safe_get(row, 4)),
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _find_row(sheet: gspread.Worksheet, key: str) -> tuple[int, list]:
        """Return the 1-based row index and values of the row whose first cell is key."""
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):  # Row 1 is header
            if row and row[0] == key:
                return idx, row
        raise RecordNotFoundError(f"Record not found: {key}")

    def _register_undo(self, action: Callable[[], None]) -> None:
        if self._undo is not None:
            self._undo.append(action)

    def _delete_rows_matching(self, sheet: gspread.Worksheet, key: str) -> None:
        rows = sheet.get_all_values()
        # Delete bottom-up so indices stay valid
        for idx in range(len(rows), 1, -1):
            row = rows[idx - 1]
            if row and row[0] == key:
                sheet.delete_rows(idx)

    def _append(self, sheet: gspread.Worksheet, row: list) -> None:
        sheet.append_row(row, value_input_option="RAW")
        self._register_undo(lambda: self._delete_rows_matching(sheet, row[0]))

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def list_customers(self) -> list[Customer]:
        try:
            rows = self._client.get_customers_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list customers: {e}") from e

        customers = []
        for row in rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                customers.append(self._row_to_customer(row))
            except (ValueError, InvalidOperation) as e:
                logger.warning("sheets_malformed_row", sheet="customers", row_id=row[0], error=str(e))
        return customers

    async def list_sales(self) -> list[Sale]:
        try:
            sale_rows = self._client.get_sales_sheet().get_all_values()[1:]
            item_rows = self._client.get_sale_items_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list sales: {e}") from e

        items_by_sale: dict[str, list[tuple[int, SaleItem]]] = {}
        for row in item_rows:
            if not row or not row[0]:
                continue
            try:
                item = SaleItem(product=_safe_get(row, 2), value=Decimal(_safe_get(row, 3)))
                position = int(_safe_get(row, 1, "0"))
            except (ValueError, InvalidOperation) as e:
                logger.warning("sheets_malformed_row", sheet="sale_items", row_id=row[0], error=str(e))
                continue
            items_by_sale.setdefault(row[0], []).append((position, item))

        sales = []
        for row in sale_rows:
            if not row or not row[0]:
                continue
            items = [item for _, item in sorted(items_by_sale.get(row[0], []), key=lambda p: p[0])]
            try:
                sales.append(self._row_to_sale(row, items))
            except (ValueError, InvalidOperation) as e:
                logger.warning("sheets_malformed_row", sheet="sales", row_id=row[0], error=str(e))
        return sales

    async def list_payments(self) -> list[Payment]:
        try:
            rows = self._client.get_payments_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list payments: {e}") from e

        payments = []
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                payments.append(self._row_to_payment(row))
            except (ValueError, InvalidOperation) as e:
                logger.warning("sheets_malformed_row", sheet="payments", row_id=row[0], error=str(e))
        return payments

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def insert_customer(self, customer: Customer) -> Customer:
        try:
            self._append(self._client.get_customers_sheet(), self._customer_to_row(customer))
        except Exception as e:
            raise StorageError(f"Failed to save customer: {e}") from e
        return customer

    async def insert_sale(self, sale: Sale) -> Sale:
        try:
            self._append(self._client.get_sales_sheet(), self._sale_to_row(sale))
        except Exception as e:
            raise StorageError(f"Failed to save sale: {e}") from e
        return sale

    async def insert_sale_items(self, sale_id: UUID, items: list[SaleItem]) -> None:
        rows = [
            [str(sale_id), str(position), item.product, str(item.value)]
            for position, item in enumerate(items, start=1)
        ]
        try:
            sheet = self._client.get_sale_items_sheet()
            sheet.append_rows(rows, value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to save sale items: {e}") from e
        self._register_undo(lambda: self._delete_rows_matching(sheet, str(sale_id)))

    async def update_customer_debt(self, customer_id: UUID, new_debt: Decimal) -> None:
        column = CUSTOMER_COLUMNS.index("current_debt") + 1
        try:
            sheet = self._client.get_customers_sheet()
            idx, row = self._find_row(sheet, str(customer_id))
            previous = _safe_get(row, column - 1, "0")
            _write_cell(sheet, idx, column, str(new_debt))
        except RecordNotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update customer debt: {e}") from e
        self._register_undo(lambda: _write_cell(sheet, idx, column, previous))

    async def update_sale_signed(self, sale_id: UUID) -> None:
        column = SALE_COLUMNS.index("signed") + 1
        try:
            sheet = self._client.get_sales_sheet()
            idx, row = self._find_row(sheet, str(sale_id))
            previous = _safe_get(row, column - 1, "False")
            _write_cell(sheet, idx, column, "True")
        except RecordNotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to mark sale as signed: {e}") from e
        self._register_undo(lambda: _write_cell(sheet, idx, column, previous))

    async def insert_payment(self, payment: Payment) -> Payment:
        try:
            self._append(self._client.get_payments_sheet(), self._payment_to_row(payment))
        except Exception as e:
            raise StorageError(f"Failed to save payment: {e}") from e
        return payment

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        # Nested blocks join the outermost transaction
        if self._undo is not None:
            yield
            return

        self._undo = []
        try:
            yield
        except BaseException:
            undo, self._undo = self._undo, None
            for action in reversed(undo):
                try:
                    action()
                except Exception as e:
                    # Keep undoing the rest; the original error is re-raised below
                    logger.error("sheets_rollback_step_failed", error=str(e))
            raise
        else:
            self._undo = None


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            entity_type=_safe_get(row, 4) or None,
            entity_id=UUID(_safe_get(row, 5)) if _safe_get(row, 5) else None,
            correlation_id=UUID(_safe_get(row, 6)) if _safe_get(row, 6) else None,
            description=_safe_get(row, 7),
            details=json.loads(_safe_get(row, 8)) if _safe_get(row, 8) else {},
            error_message=_safe_get(row, 9) or None,
            is_user_action=_safe_get(row, 10).lower() == "true",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}") from e

    def _all_events(self) -> list[AuditEvent]:
        try:
            rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

        events = []
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, InvalidOperation) as e:
                logger.warning("sheets_malformed_row", sheet="audit", row_id=row[0], error=str(e))
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        events = [
            event for event in self._all_events()
            if event.entity_type == entity_type and event.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = self._all_events()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
