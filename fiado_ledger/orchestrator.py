"""
Main Orchestrator for Fiado Ledger

This module ties together all the components and defines the
end-to-end flows a shop counter needs:
1. Checkout (items → sale → receipt → confirmation message)
2. Settlement (amount → payment → confirmation message)

DESIGN DECISION: storage is chosen here and only here.
The ledger core receives an already-built storage and never
knows which technology sits behind it.
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional, Union
from uuid import UUID

import structlog

from fiado_ledger.audit import AuditLogger, configure_logging, create_correlation_id
from fiado_ledger.config import LedgerSettings, get_settings
from fiado_ledger.errors import PersistenceError
from fiado_ledger.ledger import LedgerStore
from fiado_ledger.ledger.store import Amount, ItemInput
from fiado_ledger.models.ledger import Customer, PaymentMethod, Sale, SaleResult
from fiado_ledger.models.receipt import ReceiptView
from fiado_ledger.receipts import payment_message, render_receipt, sale_message
from fiado_ledger.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


class CheckoutFlow:
    """
    Orchestrates a credit sale at the counter.

    Flow:
    1. Record the sale (never blocked by the credit limit)
    2. Render the receipt from the updated customer snapshot
    3. Build the confirmation message (over-limit warning or success)
    4. Later, once the customer signs, flag the receipt as signed
    """

    def __init__(self, ledger: LedgerStore):
        self._ledger = ledger

    async def checkout(
        self,
        customer_id: UUID,
        items: Iterable[ItemInput],
        total_value: Optional[Amount] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[SaleResult, ReceiptView, str]:
        """
        Record a sale and prepare everything the counter shows next.

        Returns:
            (sale_result, receipt, message)
        """
        correlation_id = correlation_id or create_correlation_id()
        result = await self._ledger.add_sale(
            customer_id,
            items,
            total_value=total_value,
            correlation_id=correlation_id,
        )
        settings = self._ledger.settings
        receipt = render_receipt(result.sale, result.customer, settings)
        return result, receipt, sale_message(result, settings.currency_symbol)

    async def sign(self, sale_id: UUID, correlation_id: Optional[UUID] = None) -> Sale:
        return await self._ledger.mark_signed(sale_id, correlation_id=correlation_id)


class SettlementFlow:
    """Orchestrates a debt repayment."""

    def __init__(self, ledger: LedgerStore):
        self._ledger = ledger

    async def settle(
        self,
        customer_id: UUID,
        amount: Amount,
        payment_method: Union[PaymentMethod, str],
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Customer, str]:
        """
        Returns:
            (updated_customer, message)
        """
        correlation_id = correlation_id or create_correlation_id()
        customer = await self._ledger.pay_debt(
            customer_id,
            amount,
            payment_method,
            correlation_id=correlation_id,
        )
        # pay_debt already validated both values
        message = payment_message(
            Decimal(str(amount)),
            PaymentMethod(payment_method),
            self._ledger.settings.currency_symbol,
        )
        return customer, message


def _build_google_sheets_storage() -> tuple[LedgerStorageInterface, AuditStorageInterface]:
    # Imported here so the in-memory setup never needs Google credentials
    from fiado_ledger.services.storage.google_sheets import (
        GoogleSheetsAuditStorage,
        GoogleSheetsClient,
        GoogleSheetsLedgerStorage,
    )

    client = GoogleSheetsClient()
    try:
        client.get_spreadsheet()
    except StorageError as e:
        raise PersistenceError(f"Google Sheets storage unavailable: {e}") from e
    return GoogleSheetsLedgerStorage(client), GoogleSheetsAuditStorage(client)


def create_ledger(
    backend: Optional[str] = None,
    storage: Optional[LedgerStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    settings: Optional[LedgerSettings] = None,
    clock: Optional[Callable[[], datetime]] = None,
    configure_logs: bool = True,
) -> LedgerStore:
    """
    Factory function wiring settings, storage and audit logging into a LedgerStore.

    Args:
        backend: "memory" or "google_sheets"; defaults to AppSettings.storage_backend.
                 Ignored when storage is given.
        storage: Pre-built ledger storage (tests, custom backends)
        audit_storage: Pre-built audit storage; defaults to the backend's own
        settings: Ledger settings; defaults to the cached app settings
        clock: Override for "now"
        configure_logs: Whether to configure structlog

    Raises:
        PersistenceError: the Google Sheets backend could not connect
        ValueError: unknown backend name
    """
    app_settings = get_settings().app
    if configure_logs:
        configure_logging(debug=app_settings.debug_mode)

    if storage is None:
        backend = backend or app_settings.storage_backend
        if backend == "memory":
            storage = InMemoryLedgerStorage()
            audit_storage = audit_storage or InMemoryAuditStorage()
        elif backend == "google_sheets":
            storage, sheets_audit = _build_google_sheets_storage()
            audit_storage = audit_storage or sheets_audit
        else:
            raise ValueError(f"Unknown storage backend: {backend}")
        logger.info("ledger_storage_selected", backend=backend)

    return LedgerStore(
        storage,
        audit_logger=AuditLogger(audit_storage),
        settings=settings,
        clock=clock,
    )
