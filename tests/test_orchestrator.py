"""Tests for the factory and the counter flows."""

import asyncio
from decimal import Decimal

import pytest

from fiado_ledger.models.ledger import PaymentMethod
from fiado_ledger.orchestrator import CheckoutFlow, SettlementFlow, create_ledger
from fiado_ledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage


def run(coro):
    return asyncio.run(coro)


class TestCreateLedger:
    """Tests for create_ledger."""

    def test_memory_backend(self, ledger_settings, clock):
        ledger = create_ledger("memory", settings=ledger_settings, clock=clock, configure_logs=False)
        customer = run(ledger.add_customer("Maria", "1", Decimal("100")))
        assert run(ledger.list_customers()) == [customer]

    def test_injected_storage(self, ledger_settings):
        storage = InMemoryLedgerStorage()
        audit_storage = InMemoryAuditStorage()
        ledger = create_ledger(
            storage=storage,
            audit_storage=audit_storage,
            settings=ledger_settings,
            configure_logs=False,
        )
        run(ledger.add_customer("Maria", "1", Decimal("100")))
        assert len(run(storage.list_customers())) == 1
        assert len(run(audit_storage.get_recent_events())) == 1

    def test_unknown_backend(self, ledger_settings):
        with pytest.raises(ValueError):
            create_ledger("postgres", settings=ledger_settings, configure_logs=False)


class TestFlows:
    """Tests for checkout and settlement."""

    def test_checkout_and_settle(self, ledger):
        customer = run(ledger.add_customer("Maria", "1", Decimal("1000")))

        result, receipt, message = run(CheckoutFlow(ledger).checkout(
            customer.id,
            [{"product": "Rice", "value": "50"}, {"product": "Beans", "value": "30"}],
        ))
        assert message == "Sale recorded: R$ 80.00 for Maria"
        assert receipt.previous_debt == Decimal("0")
        assert receipt.new_total_debt == Decimal("80")
        assert receipt.due_date == result.sale.due_date

        signed = run(CheckoutFlow(ledger).sign(result.sale.id))
        assert signed.signed is True

        updated, message = run(SettlementFlow(ledger).settle(customer.id, "80", "cash"))
        assert updated.current_debt == Decimal("0")
        assert message == "Payment of R$ 80.00 received via Cash."

    def test_checkout_over_limit_warns(self, ledger):
        customer = run(ledger.add_customer("Maria", "1", Decimal("100")))
        run(ledger.add_sale(customer.id, [{"product": "Coffee", "value": "90"}]))

        result, receipt, message = run(CheckoutFlow(ledger).checkout(
            customer.id, [{"product": "Milk", "value": "50"}]
        ))
        assert result.is_over_limit
        assert message.startswith("CREDIT LIMIT EXCEEDED!")
        assert receipt.previous_debt == Decimal("90")

    def test_settle_with_enum(self, ledger):
        customer = run(ledger.add_customer("Maria", "1", Decimal("100")))
        _, message = run(SettlementFlow(ledger).settle(customer.id, Decimal("5"), PaymentMethod.CARD))
        assert message.endswith("via Card.")
