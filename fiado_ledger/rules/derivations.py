"""
Derivation Rules

Pure functions computing status, totals and alerts from a snapshot of
customers and sales. Nothing here reads storage or mutates its inputs,
so callers can recompute everything on every render.
"""

from datetime import date, datetime, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from fiado_ledger.errors import ValidationError
from fiado_ledger.models.ledger import (
    AlertSummary,
    Customer,
    CustomerStatus,
    DailySummary,
    Sale,
    SaleWithCustomer,
)


NEAR_LIMIT_PERCENT = Decimal("80")
FULL_PERCENT = Decimal("100")
CENT = Decimal("0.01")


def _local_date(moment: datetime, tz: Optional[tzinfo]) -> date:
    """Calendar date of moment as seen in tz (naive datetimes are taken as-is)."""
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(tz).date()


# =============================================================================
# PER-CUSTOMER RULES
# =============================================================================

def usage_percent(customer: Customer) -> Decimal:
    """
    Share of the credit limit in use, as a percentage.

    Raises:
        ValidationError: if the credit limit is not positive
    """
    if customer.credit_limit <= 0:
        raise ValidationError(
            f"Credit limit must be positive, got {customer.credit_limit}",
            field="credit_limit",
        )
    return customer.usage_percent


def is_over_limit(customer: Customer) -> bool:
    return customer.current_debt > customer.credit_limit


def status(
    customer: Customer,
    near_limit_percent: Decimal = NEAR_LIMIT_PERCENT,
) -> CustomerStatus:
    """
    Credit status of a customer.

    over_limit when the debt is strictly above the limit; near_limit when
    usage is within [near_limit_percent, 100]; regular otherwise.
    """
    if is_over_limit(customer):
        return CustomerStatus.OVER_LIMIT
    if near_limit_percent <= usage_percent(customer) <= FULL_PERCENT:
        return CustomerStatus.NEAR_LIMIT
    return CustomerStatus.REGULAR


# =============================================================================
# COLLECTION RULES
# =============================================================================

def over_limit_list(customers: Iterable[Customer]) -> list[Customer]:
    return [c for c in customers if status(c) == CustomerStatus.OVER_LIMIT]


def near_limit_list(
    customers: Iterable[Customer],
    near_limit_percent: Decimal = NEAR_LIMIT_PERCENT,
) -> list[Customer]:
    return [
        c for c in customers
        if status(c, near_limit_percent) == CustomerStatus.NEAR_LIMIT
    ]


def regular_list(
    customers: Iterable[Customer],
    near_limit_percent: Decimal = NEAR_LIMIT_PERCENT,
) -> list[Customer]:
    return [
        c for c in customers
        if status(c, near_limit_percent) == CustomerStatus.REGULAR
    ]


def status_counts(
    customers: Iterable[Customer],
    near_limit_percent: Decimal = NEAR_LIMIT_PERCENT,
) -> dict[CustomerStatus, int]:
    """How many customers fall in each status. Every status is present."""
    counts = {s: 0 for s in CustomerStatus}
    for customer in customers:
        counts[status(customer, near_limit_percent)] += 1
    return counts


def alerts(
    customers: Iterable[Customer],
    near_limit_percent: Decimal = NEAR_LIMIT_PERCENT,
) -> AlertSummary:
    customers = list(customers)
    return AlertSummary(
        over_limit=over_limit_list(customers),
        near_limit=near_limit_list(customers, near_limit_percent),
    )


def total_debt(customers: Iterable[Customer]) -> Decimal:
    return sum((c.current_debt for c in customers), Decimal("0"))


def debtors(customers: Iterable[Customer]) -> list[Customer]:
    """Customers who owe anything, largest debt first."""
    owing = [c for c in customers if c.current_debt > 0]
    owing.sort(key=lambda c: c.current_debt, reverse=True)
    return owing


def search(customers: Iterable[Customer], term: str) -> list[Customer]:
    """Case-insensitive match on name, plain substring match on phone."""
    term = term.strip()
    if not term:
        return list(customers)
    lowered = term.lower()
    return [c for c in customers if lowered in c.name.lower() or term in c.phone]


def birthdays_on(customers: Iterable[Customer], day: date) -> list[Customer]:
    """Customers whose birth date falls on the same month and day."""
    return [
        c for c in customers
        if c.birth_date is not None
        and (c.birth_date.month, c.birth_date.day) == (day.month, day.day)
    ]


# =============================================================================
# SALE RULES
# =============================================================================

def todays_sales(sales: Iterable[Sale], now: datetime) -> list[Sale]:
    """
    Sales made on the same calendar day as now.

    The comparison uses now's timezone, not a rolling 24h window.
    """
    today = now.date()
    return [s for s in sales if _local_date(s.created_at, now.tzinfo) == today]


def is_overdue(sale: Sale, now: datetime) -> bool:
    """
    A sale is overdue from the start of its due date.

    The due date is a calendar day, read in now's timezone, so the whole
    due day already counts as overdue.
    """
    return now.date() >= sale.due_date


def overdue_sales(sales: Iterable[Sale], now: datetime) -> list[Sale]:
    return [s for s in sales if is_overdue(s, now)]


def daily_summary(sales: Iterable[Sale], now: datetime) -> DailySummary:
    """Count, total, average ticket and largest sale for now's calendar day."""
    today = todays_sales(sales, now)
    if not today:
        return DailySummary(day=now.date(), sale_count=0)

    values = [s.total_value for s in today]
    total = sum(values, Decimal("0"))
    average = (total / len(values)).quantize(CENT, rounding=ROUND_HALF_UP)
    return DailySummary(
        day=now.date(),
        sale_count=len(values),
        total_value=total,
        average_ticket=average,
        largest_sale=max(values),
    )


def sales_with_customers(
    sales: Iterable[Sale],
    customers: Iterable[Customer],
) -> list[SaleWithCustomer]:
    """Join each sale with its customer's name for listings."""
    names = {c.id: c.name for c in customers}
    return [
        SaleWithCustomer(
            **sale.model_dump(),
            customer_name=names.get(sale.customer_id, "Unknown customer"),
        )
        for sale in sales
    ]
