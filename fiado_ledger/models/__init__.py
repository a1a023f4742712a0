"""
Data Models Package

This package contains all Pydantic models used in the Fiado Ledger.
All data flowing through the ledger must conform to these schemas.
"""

from fiado_ledger.models.ledger import (
    PAYMENT_METHOD_LABELS,
    AlertSummary,
    Customer,
    CustomerStatus,
    DailySummary,
    Payment,
    PaymentMethod,
    Sale,
    SaleItem,
    SaleResult,
    SaleWithCustomer,
)
from fiado_ledger.models.receipt import ReceiptLine, ReceiptView
from fiado_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "PAYMENT_METHOD_LABELS",
    "AlertSummary",
    "Customer",
    "CustomerStatus",
    "DailySummary",
    "Payment",
    "PaymentMethod",
    "Sale",
    "SaleItem",
    "SaleResult",
    "SaleWithCustomer",
    # Receipt models
    "ReceiptLine",
    "ReceiptView",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
