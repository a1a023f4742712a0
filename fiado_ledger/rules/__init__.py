"""Derivation rules package."""

from fiado_ledger.rules.derivations import (
    NEAR_LIMIT_PERCENT,
    alerts,
    birthdays_on,
    daily_summary,
    debtors,
    is_over_limit,
    is_overdue,
    near_limit_list,
    over_limit_list,
    overdue_sales,
    regular_list,
    sales_with_customers,
    search,
    status,
    status_counts,
    todays_sales,
    total_debt,
    usage_percent,
)

__all__ = [
    "NEAR_LIMIT_PERCENT",
    "alerts",
    "birthdays_on",
    "daily_summary",
    "debtors",
    "is_over_limit",
    "is_overdue",
    "near_limit_list",
    "over_limit_list",
    "overdue_sales",
    "regular_list",
    "sales_with_customers",
    "search",
    "status",
    "status_counts",
    "todays_sales",
    "total_debt",
    "usage_percent",
]
