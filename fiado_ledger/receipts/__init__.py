"""Receipt and due-date policy package."""

from fiado_ledger.receipts.policy import (
    DEFAULT_DUE_DAYS,
    compute_due_date,
    format_money,
    format_receipt_text,
    payment_message,
    render_receipt,
    sale_message,
)

__all__ = [
    "DEFAULT_DUE_DAYS",
    "compute_due_date",
    "format_money",
    "format_receipt_text",
    "payment_message",
    "render_receipt",
    "sale_message",
]
