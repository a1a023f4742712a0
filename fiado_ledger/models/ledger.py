"""
Core Data Models for Fiado Ledger

These models define the strict schemas for all data flowing through the ledger.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Support the audit trail

DESIGN DECISION: Money is always Decimal. Floats never enter the ledger,
so a debt of 0.1 + 0.2 is exactly 0.3.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class PaymentMethod(str, Enum):
    """
    How a customer settled (part of) their debt.

    Informational only: it never changes the arithmetic.
    """
    CASH = "cash"
    INSTANT_TRANSFER = "instant_transfer"
    CARD = "card"
    CHECK = "check"

    @property
    def label(self) -> str:
        return PAYMENT_METHOD_LABELS[self]


PAYMENT_METHOD_LABELS = {
    PaymentMethod.CASH: "Cash",
    PaymentMethod.INSTANT_TRANSFER: "PIX",
    PaymentMethod.CARD: "Card",
    PaymentMethod.CHECK: "Check",
}


class CustomerStatus(str, Enum):
    """
    Credit status of a customer.

    OVER_LIMIT wins over NEAR_LIMIT; a debt exactly at the limit is NEAR_LIMIT.
    """
    OVER_LIMIT = "over_limit"
    NEAR_LIMIT = "near_limit"
    REGULAR = "regular"


# =============================================================================
# CORE LEDGER MODELS
# =============================================================================

class Customer(BaseModel):
    """
    A customer buying on credit.

    current_debt is the only field that changes after registration.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique customer ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Customer name"
    )
    phone: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Contact phone"
    )
    credit_limit: Decimal = Field(
        ...,
        gt=0,
        description="Maximum debt before the customer is over the limit"
    )
    current_debt: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Outstanding balance"
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        description="When the customer was registered"
    )

    # Optional registration details
    address: Optional[str] = Field(
        default=None,
        max_length=500,
    )
    birth_date: Optional[date] = None

    @property
    def available_credit(self) -> Decimal:
        """Credit left before the limit, never negative."""
        return max(Decimal("0"), self.credit_limit - self.current_debt)

    @property
    def usage_percent(self) -> Decimal:
        """Debt as a percentage of the credit limit."""
        return Decimal("100") * self.current_debt / self.credit_limit


class SaleItem(BaseModel):
    """A product line on a credit sale."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    product: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Product description"
    )
    value: Decimal = Field(
        ...,
        gt=0,
        description="Line value"
    )


class Sale(BaseModel):
    """
    A sale made on credit.

    Immutable except for `signed`, which flips once the receipt is
    acknowledged. payment_method stays empty at sale time.
    """

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique sale ID"
    )
    customer_id: UUID
    items: list[SaleItem] = Field(
        ...,
        min_length=1,
        description="Products sold, in the order they were entered"
    )
    total_value: Decimal = Field(
        ...,
        gt=0,
        description="Sum of item values"
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        description="When the sale was made"
    )
    due_date: date
    signed: bool = False
    payment_method: Optional[PaymentMethod] = None

    @model_validator(mode='after')
    def validate_totals(self) -> 'Sale':
        """The total must be the exact sum of the items."""
        expected = sum((item.value for item in self.items), Decimal("0"))
        if self.total_value != expected:
            raise ValueError(
                f"Total value {self.total_value} does not match item sum {expected}"
            )
        if self.due_date < self.created_at.date():
            raise ValueError("Due date cannot be before sale date")
        return self


class Payment(BaseModel):
    """
    A repayment against a customer's aggregate balance.

    Payments are not allocated to individual sales.
    """

    id: UUID = Field(default_factory=uuid4)
    customer_id: UUID
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount received"
    )
    payment_method: PaymentMethod
    created_at: datetime = Field(default_factory=_utcnow)


# =============================================================================
# RESULT / VIEW MODELS
# =============================================================================

class SaleResult(BaseModel):
    """
    Outcome of recording a sale.

    is_over_limit is advisory: the sale has been recorded either way.
    """

    sale: Sale
    customer: Customer
    is_over_limit: bool


class SaleWithCustomer(Sale):
    """A sale joined with the name of its customer, for listings."""

    customer_name: str


class AlertSummary(BaseModel):
    """Customers that need attention."""

    over_limit: list[Customer] = Field(default_factory=list)
    near_limit: list[Customer] = Field(default_factory=list)

    @property
    def has_alerts(self) -> bool:
        return bool(self.over_limit or self.near_limit)


class DailySummary(BaseModel):
    """Totals for the sales of one calendar day."""

    day: date
    sale_count: int = Field(ge=0)
    total_value: Decimal = Decimal("0")
    average_ticket: Decimal = Decimal("0")
    largest_sale: Decimal = Decimal("0")
