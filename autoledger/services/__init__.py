"""Services package."""

from autoledger.services.backup import (
    BackupFormatError,
    backup_filename,
    export_transactions,
    import_transactions,
)
from autoledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    JsonFileTransactionStorage,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)

__all__ = [
    # Backup
    "BackupFormatError",
    "backup_filename",
    "export_transactions",
    "import_transactions",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
    "JsonFileTransactionStorage",
    "NotFoundError",
    "StorageError",
    "TransactionStorageInterface",
]
