"""Services package."""

from fiado_ledger.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    RecordNotFoundError,
    StorageConnectionError,
    StorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "RecordNotFoundError",
    "StorageConnectionError",
    "StorageError",
]
