"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the accounting rules decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Just the operations the ledger needs, plus a transaction boundary so a
sale (header, items, new balance) lands as one unit.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from decimal import Decimal
from uuid import UUID

from fiado_ledger.models.ledger import Customer, Payment, Sale, SaleItem
from fiado_ledger.models.audit import AuditEvent


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def list_customers(self) -> list[Customer]:
        """
        List all customers.

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def list_sales(self) -> list[Sale]:
        """
        List all sales with their items.

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def list_payments(self) -> list[Payment]:
        """List all payments."""
        pass

    @abstractmethod
    async def insert_customer(self, customer: Customer) -> Customer:
        """
        Persist a new customer.

        Returns:
            The stored customer

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def insert_sale(self, sale: Sale) -> Sale:
        """
        Persist the header of a new sale.

        Items are written separately with insert_sale_items.
        """
        pass

    @abstractmethod
    async def insert_sale_items(self, sale_id: UUID, items: list[SaleItem]) -> None:
        """Persist the items of a sale, in order."""
        pass

    @abstractmethod
    async def update_customer_debt(self, customer_id: UUID, new_debt: Decimal) -> None:
        """
        Overwrite a customer's current debt.

        Raises:
            StorageError: If update fails
            RecordNotFoundError: If customer doesn't exist
        """
        pass

    @abstractmethod
    async def update_sale_signed(self, sale_id: UUID) -> None:
        """
        Mark a sale as signed.

        Raises:
            RecordNotFoundError: If sale doesn't exist
        """
        pass

    @abstractmethod
    async def insert_payment(self, payment: Payment) -> Payment:
        """Persist a payment."""
        pass

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[None]:
        """
        Group writes into one atomic unit.

        Usage:
            async with storage.transaction():
                await storage.insert_sale(sale)
                await storage.insert_sale_items(sale.id, sale.items)
                await storage.update_customer_debt(customer.id, new_debt)

        If the block raises, every write made inside it is undone
        and the exception propagates.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class RecordNotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
