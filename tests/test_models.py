"""
Tests for Fiado Ledger models

Test strategy:
1. Unit tests for individual components (models, rules, receipts)
2. Ledger tests run against in-memory storage
3. No real Google Sheets calls in tests (fake worksheets instead)
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from fiado_ledger.models.ledger import (
    AlertSummary,
    Customer,
    CustomerStatus,
    Payment,
    PaymentMethod,
    Sale,
    SaleItem,
    SaleWithCustomer,
)
from fiado_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


def make_sale(**overrides) -> Sale:
    fields = dict(
        customer_id=uuid4(),
        items=[
            SaleItem(product="Rice", value=Decimal("50")),
            SaleItem(product="Beans", value=Decimal("30")),
        ],
        total_value=Decimal("80"),
        created_at=datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc),
        due_date=date(2024, 2, 14),
    )
    fields.update(overrides)
    return Sale(**fields)


class TestCustomerModel:
    """Tests for the Customer model."""

    def test_customer_creation(self):
        """A new customer starts with no debt."""
        customer = Customer(name="Maria", phone="11 99999-0000", credit_limit=Decimal("1000"))
        assert customer.current_debt == Decimal("0")
        assert customer.address is None
        assert customer.birth_date is None

    def test_customer_strips_whitespace(self):
        """Whitespace is stripped from name and phone."""
        customer = Customer(name="  Maria  ", phone=" 123 ", credit_limit=Decimal("10"))
        assert customer.name == "Maria"
        assert customer.phone == "123"

    def test_customer_rejects_empty_name(self):
        with pytest.raises(ValueError):
            Customer(name="   ", phone="123", credit_limit=Decimal("10"))

    def test_customer_rejects_non_positive_limit(self):
        """A zero limit would make usage percentages meaningless."""
        with pytest.raises(ValueError):
            Customer(name="Maria", phone="123", credit_limit=Decimal("0"))

    def test_customer_rejects_negative_debt(self):
        with pytest.raises(ValueError):
            Customer(
                name="Maria",
                phone="123",
                credit_limit=Decimal("10"),
                current_debt=Decimal("-1"),
            )

    def test_available_credit_never_negative(self):
        """Available credit stops at zero once the customer is over the limit."""
        within = Customer(name="A", phone="1", credit_limit=Decimal("100"), current_debt=Decimal("30"))
        over = Customer(name="B", phone="2", credit_limit=Decimal("100"), current_debt=Decimal("140"))
        assert within.available_credit == Decimal("70")
        assert over.available_credit == Decimal("0")

    def test_usage_percent(self):
        """Usage is the debt over the limit as a percentage, and can pass 100."""
        near = Customer(name="A", phone="1", credit_limit=Decimal("100"), current_debt=Decimal("80"))
        over = Customer(name="B", phone="2", credit_limit=Decimal("200"), current_debt=Decimal("250"))
        assert near.usage_percent == Decimal("80")
        assert over.usage_percent == Decimal("125")


class TestSaleModels:
    """Tests for sales and their items."""

    def test_sale_item_rejects_non_positive_value(self):
        with pytest.raises(ValueError):
            SaleItem(product="Rice", value=Decimal("0"))

    def test_sale_item_rejects_blank_product(self):
        with pytest.raises(ValueError):
            SaleItem(product="  ", value=Decimal("1"))

    def test_sale_item_is_immutable(self):
        item = SaleItem(product="Rice", value=Decimal("5"))
        with pytest.raises(ValueError):
            item.value = Decimal("6")

    def test_sale_creation(self):
        """A sale starts unsigned and without a payment method."""
        sale = make_sale()
        assert sale.signed is False
        assert sale.payment_method is None
        assert [i.product for i in sale.items] == ["Rice", "Beans"]

    def test_sale_requires_items(self):
        with pytest.raises(ValueError):
            make_sale(items=[], total_value=Decimal("1"))

    def test_sale_total_must_match_items(self):
        """The total is the exact sum of the item values."""
        with pytest.raises(ValueError):
            make_sale(total_value=Decimal("81"))

    def test_sale_due_date_not_before_sale(self):
        with pytest.raises(ValueError):
            make_sale(due_date=date(2024, 1, 14))

    def test_sale_with_customer_keeps_sale_fields(self):
        sale = make_sale()
        joined = SaleWithCustomer(**sale.model_dump(), customer_name="Maria")
        assert joined.id == sale.id
        assert joined.total_value == Decimal("80")
        assert joined.customer_name == "Maria"


class TestPaymentModels:
    """Tests for payments and payment methods."""

    def test_payment_rejects_non_positive_amount(self):
        with pytest.raises(ValueError):
            Payment(customer_id=uuid4(), amount=Decimal("0"), payment_method=PaymentMethod.CASH)

    def test_payment_method_values(self):
        """Test enum values are what storage persists."""
        assert PaymentMethod.CASH.value == "cash"
        assert PaymentMethod.INSTANT_TRANSFER.value == "instant_transfer"
        assert PaymentMethod.CARD.value == "card"
        assert PaymentMethod.CHECK.value == "check"

    def test_payment_method_labels(self):
        """Every method has a display label."""
        assert PaymentMethod.INSTANT_TRANSFER.label == "PIX"
        assert PaymentMethod.CASH.label == "Cash"
        assert all(method.label for method in PaymentMethod)


class TestAlertSummary:
    """Tests for the alert summary view."""

    def test_has_alerts(self):
        customer = Customer(name="A", phone="1", credit_limit=Decimal("10"))
        assert not AlertSummary().has_alerts
        assert AlertSummary(near_limit=[customer]).has_alerts

    def test_status_values(self):
        assert {s.value for s in CustomerStatus} == {"over_limit", "near_limit", "regular"}


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.SALE_RECORDED,
            description="Credit sale recorded",
        )
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to a structured log dict."""
        sale_id = uuid4()
        event = AuditEventBuilder.sale_recorded(sale_id, uuid4(), "80", "80")
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "sale_recorded"
        assert log_dict["entity_id"] == str(sale_id)
        assert log_dict["details"]["total_value"] == "80"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to a Sheets row."""
        event = AuditEventBuilder.receipt_signed(uuid4())
        row = event.to_sheets_row()
        assert len(row) == 11
        assert row[2] == "receipt_signed"
        assert row[8] == ""  # no details
        assert row[10] == "True"

    def test_credit_limit_exceeded_is_warning(self):
        event = AuditEventBuilder.credit_limit_exceeded(uuid4(), "Maria", "100", "140")
        assert event.severity == AuditSeverity.WARNING
        assert event.entity_type == "customer"
        assert "Maria" in event.description

    def test_payment_recorded_details(self):
        customer_id = uuid4()
        event = AuditEventBuilder.payment_recorded(uuid4(), customer_id, "80", "cash", "0")
        assert event.entity_type == "payment"
        assert event.details["customer_id"] == str(customer_id)
        assert event.details["new_debt"] == "0"
