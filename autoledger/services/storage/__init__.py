"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The local JSON file is the default backend; Google Sheets is optional.
"""

from autoledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)
from autoledger.services.storage.json_file import JsonFileTransactionStorage
from autoledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Local JSON implementation
    "JsonFileTransactionStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
]
