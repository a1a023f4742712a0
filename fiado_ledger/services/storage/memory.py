"""
In-Memory Storage Implementation

Keeps the whole ledger in process memory. Used for tests and for
running the ledger without any external backend.

Transactions snapshot the collections on entry and restore them if the
block raises, so a failed sale leaves no header, no items and no
balance change behind.
"""

from contextlib import asynccontextmanager
from decimal import Decimal
from typing import AsyncIterator
from uuid import UUID

from fiado_ledger.models.audit import AuditEvent
from fiado_ledger.models.ledger import Customer, Payment, Sale, SaleItem
from fiado_ledger.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
    RecordNotFoundError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dict-backed ledger storage. Insertion order is preserved."""

    def __init__(self):
        self._customers: dict[UUID, Customer] = {}
        self._sales: dict[UUID, Sale] = {}
        self._sale_items: dict[UUID, list[SaleItem]] = {}
        self._payments: list[Payment] = []
        self._transaction_depth = 0

    async def list_customers(self) -> list[Customer]:
        return [customer.model_copy() for customer in self._customers.values()]

    async def list_sales(self) -> list[Sale]:
        return [
            sale.model_copy(update={"items": list(self._sale_items.get(sale.id, sale.items))})
            for sale in self._sales.values()
        ]

    async def list_payments(self) -> list[Payment]:
        return [payment.model_copy() for payment in self._payments]

    async def insert_customer(self, customer: Customer) -> Customer:
        self._customers[customer.id] = customer
        return customer.model_copy()

    async def insert_sale(self, sale: Sale) -> Sale:
        self._sales[sale.id] = sale
        return sale.model_copy()

    async def insert_sale_items(self, sale_id: UUID, items: list[SaleItem]) -> None:
        if sale_id not in self._sales:
            raise RecordNotFoundError(f"Sale not found: {sale_id}")
        self._sale_items[sale_id] = list(items)

    async def update_customer_debt(self, customer_id: UUID, new_debt: Decimal) -> None:
        customer = self._customers.get(customer_id)
        if customer is None:
            raise RecordNotFoundError(f"Customer not found: {customer_id}")
        self._customers[customer_id] = customer.model_copy(update={"current_debt": new_debt})

    async def update_sale_signed(self, sale_id: UUID) -> None:
        sale = self._sales.get(sale_id)
        if sale is None:
            raise RecordNotFoundError(f"Sale not found: {sale_id}")
        self._sales[sale_id] = sale.model_copy(update={"signed": True})

    async def insert_payment(self, payment: Payment) -> Payment:
        self._payments.append(payment)
        return payment.model_copy()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        # Nested blocks join the outermost transaction
        if self._transaction_depth:
            self._transaction_depth += 1
            try:
                yield
            finally:
                self._transaction_depth -= 1
            return

        snapshot = (
            dict(self._customers),
            dict(self._sales),
            {sale_id: list(items) for sale_id, items in self._sale_items.items()},
            list(self._payments),
        )
        self._transaction_depth = 1
        try:
            yield
        except BaseException:
            (
                self._customers,
                self._sales,
                self._sale_items,
                self._payments,
            ) = snapshot
            raise
        finally:
            self._transaction_depth = 0


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            event for event in self._events
            if event.entity_type == entity_type and event.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
