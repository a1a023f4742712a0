"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Ships an in-memory backend and a Google Sheets backend; the ledger only
ever talks to the interfaces.
"""

from fiado_ledger.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
    RecordNotFoundError,
    StorageConnectionError,
    StorageError,
)
from fiado_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "RecordNotFoundError",
    "StorageConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
]
