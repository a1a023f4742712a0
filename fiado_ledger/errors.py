"""
Ledger errors.

Every failure a caller can see is one of three kinds:
- ValidationError: bad input, rejected before any write
- NotFoundError: unknown customer or sale, rejected before any write
- PersistenceError: the storage backend failed; the transaction was rolled back
"""

from typing import Optional
from uuid import UUID


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationError(LedgerError):
    """Input rejected by the accounting rules."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(LedgerError):
    """A referenced customer or sale does not exist."""

    def __init__(self, entity_type: str, entity_id: UUID):
        super().__init__(f"{entity_type.capitalize()} not found: {entity_id}")
        self.entity_type = entity_type
        self.entity_id = entity_id


class PersistenceError(LedgerError):
    """The storage backend failed. The original error is chained as __cause__."""
    pass
