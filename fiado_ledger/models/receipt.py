"""
Receipt view-models.

A receipt is a pure projection of a sale and the customer snapshot taken
right after it; nothing here touches storage.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class ReceiptLine(BaseModel):
    """One numbered product line."""

    number: int = Field(ge=1)
    product: str
    value: Decimal
    value_display: str


class ReceiptView(BaseModel):
    """Everything a printed fiado receipt shows."""

    sale_id: UUID

    # Header
    merchant_name: str
    merchant_tax_id: str
    title: str = "CREDIT PURCHASE RECEIPT"

    # Dates
    sale_date: datetime
    due_date: date
    sale_date_display: str
    due_date_display: str

    # Customer
    customer_name: str

    # Products
    lines: list[ReceiptLine] = Field(default_factory=list)
    total: Decimal
    total_display: str

    # Debt summary
    previous_debt: Decimal
    previous_debt_display: str
    new_total_debt: Decimal
    new_total_debt_display: str
    credit_limit: Decimal
    credit_limit_display: str

    # Signature block
    signature_label: str = "CUSTOMER SIGNATURE"
    signature_name: str
    signed: bool = False
