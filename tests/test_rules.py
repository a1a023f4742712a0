"""Tests for the derivation rules."""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4
from zoneinfo import ZoneInfo

from fiado_ledger.errors import ValidationError
from fiado_ledger.models.ledger import Customer, CustomerStatus, Sale, SaleItem
from fiado_ledger.rules import derivations


SAO_PAULO = ZoneInfo("America/Sao_Paulo")


def customer(limit="100", debt="0", name="Maria", phone="111", birth_date=None) -> Customer:
    return Customer(
        name=name,
        phone=phone,
        credit_limit=Decimal(limit),
        current_debt=Decimal(debt),
        birth_date=birth_date,
    )


def sale(value="10", created_at=None, due_date=None, customer_id=None) -> Sale:
    created_at = created_at or datetime(2024, 1, 15, 12, 0, tzinfo=SAO_PAULO)
    return Sale(
        customer_id=customer_id or uuid4(),
        items=[SaleItem(product="Item", value=Decimal(value))],
        total_value=Decimal(value),
        created_at=created_at,
        due_date=due_date or created_at.date() + timedelta(days=30),
    )


class TestStatus:
    """Tests for usage percentage and credit status."""

    def test_usage_percent(self):
        assert derivations.usage_percent(customer("100", "80")) == Decimal("80")

    def test_usage_percent_rejects_zero_limit(self):
        """A zero limit is rejected instead of dividing by zero."""
        broken = customer().model_copy(update={"credit_limit": Decimal("0")})
        with pytest.raises(ValidationError):
            derivations.usage_percent(broken)

    def test_over_limit_only_when_strictly_above(self):
        assert derivations.status(customer("100", "140")) == CustomerStatus.OVER_LIMIT
        assert derivations.status(customer("100", "100.01")) == CustomerStatus.OVER_LIMIT

    def test_debt_equal_to_limit_is_near_limit(self):
        """Usage of exactly 100% is near the limit, not over it."""
        assert derivations.status(customer("100", "100")) == CustomerStatus.NEAR_LIMIT

    def test_near_limit_lower_bound_is_inclusive(self):
        assert derivations.status(customer("100", "80")) == CustomerStatus.NEAR_LIMIT
        assert derivations.status(customer("100", "79.99")) == CustomerStatus.REGULAR

    def test_regular_with_no_debt(self):
        assert derivations.status(customer("100", "0")) == CustomerStatus.REGULAR

    def test_custom_threshold(self):
        assert derivations.status(customer("100", "60"), Decimal("50")) == CustomerStatus.NEAR_LIMIT


class TestCollections:
    """Tests for rules over lists of customers."""

    def setup_method(self):
        self.over = customer("100", "140", name="Over")
        self.near = customer("100", "90", name="Near")
        self.regular = customer("100", "10", name="Regular")
        self.clean = customer("100", "0", name="Clean", phone="999")
        self.all = [self.over, self.near, self.regular, self.clean]

    def test_status_lists_partition_customers(self):
        """Every customer lands in exactly one status list."""
        assert derivations.over_limit_list(self.all) == [self.over]
        assert derivations.near_limit_list(self.all) == [self.near]
        assert derivations.regular_list(self.all) == [self.regular, self.clean]

    def test_status_counts(self):
        counts = derivations.status_counts(self.all)
        assert counts == {
            CustomerStatus.OVER_LIMIT: 1,
            CustomerStatus.NEAR_LIMIT: 1,
            CustomerStatus.REGULAR: 2,
        }

    def test_status_counts_empty(self):
        assert set(derivations.status_counts([]).values()) == {0}

    def test_alerts(self):
        summary = derivations.alerts(self.all)
        assert summary.over_limit == [self.over]
        assert summary.near_limit == [self.near]
        assert summary.has_alerts

    def test_total_debt(self):
        assert derivations.total_debt(self.all) == Decimal("240")
        assert derivations.total_debt([]) == Decimal("0")

    def test_debtors_sorted_by_debt(self):
        """Only customers who owe, largest debt first."""
        assert derivations.debtors(self.all) == [self.over, self.near, self.regular]

    def test_search_by_name_is_case_insensitive(self):
        assert derivations.search(self.all, "near") == [self.near]

    def test_search_by_phone(self):
        assert derivations.search(self.all, "99") == [self.clean]

    def test_search_blank_term_returns_everyone(self):
        assert derivations.search(self.all, "  ") == self.all

    def test_birthdays_on(self):
        born = customer(name="Born", birth_date=date(1980, 3, 7))
        assert derivations.birthdays_on([born, self.clean], date(2024, 3, 7)) == [born]
        assert derivations.birthdays_on([born], date(2024, 3, 8)) == []


class TestSaleRules:
    """Tests for rules over sales."""

    def test_todays_sales_uses_local_calendar_day(self):
        """A sale late in the local evening is still today's, even if UTC has rolled over."""
        now = datetime(2024, 1, 15, 23, 0, tzinfo=SAO_PAULO)
        late = sale(created_at=datetime(2024, 1, 16, 1, 30, tzinfo=timezone.utc))  # 22:30 local
        yesterday = sale(created_at=datetime(2024, 1, 14, 12, 0, tzinfo=SAO_PAULO))
        assert derivations.todays_sales([late, yesterday], now) == [late]

    def test_is_overdue_on_due_date(self):
        """The whole due day already counts as overdue."""
        s = sale(due_date=date(2024, 2, 14))
        assert not derivations.is_overdue(s, datetime(2024, 2, 13, 23, 59, tzinfo=SAO_PAULO))
        assert derivations.is_overdue(s, datetime(2024, 2, 14, 0, 0, tzinfo=SAO_PAULO))
        assert derivations.is_overdue(s, datetime(2024, 2, 14, 12, 0, tzinfo=SAO_PAULO))
        assert derivations.is_overdue(s, datetime(2024, 2, 15, 0, 1, tzinfo=SAO_PAULO))

    def test_overdue_sales(self):
        old = sale(created_at=datetime(2023, 11, 1, 9, 0, tzinfo=SAO_PAULO))
        recent = sale()
        now = datetime(2024, 1, 20, 9, 0, tzinfo=SAO_PAULO)
        assert derivations.overdue_sales([old, recent], now) == [old]

    def test_daily_summary(self):
        now = datetime(2024, 1, 15, 18, 0, tzinfo=SAO_PAULO)
        sales = [sale("10"), sale("20"), sale("5.5")]
        summary = derivations.daily_summary(sales, now)
        assert summary.sale_count == 3
        assert summary.total_value == Decimal("35.5")
        assert summary.average_ticket == Decimal("11.83")
        assert summary.largest_sale == Decimal("20")

    def test_daily_summary_without_sales(self):
        now = datetime(2024, 1, 15, 18, 0, tzinfo=SAO_PAULO)
        summary = derivations.daily_summary([], now)
        assert summary.sale_count == 0
        assert summary.total_value == Decimal("0")
        assert summary.day == date(2024, 1, 15)

    def test_sales_with_customers(self):
        maria = customer(name="Maria")
        known = sale(customer_id=maria.id)
        orphan = sale()
        joined = derivations.sales_with_customers([known, orphan], [maria])
        assert [j.customer_name for j in joined] == ["Maria", "Unknown customer"]
        assert joined[0].id == known.id
