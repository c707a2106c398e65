"""Services package."""

from pennywise.services.storage import (
    AuditStorageInterface,
    FinanceStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFinanceStorage,
    InMemoryAuditStorage,
    InMemoryFinanceStorage,
    StorageConnectionError,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "FinanceStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsFinanceStorage",
    "InMemoryAuditStorage",
    "InMemoryFinanceStorage",
    "StorageConnectionError",
    "StorageError",
]
