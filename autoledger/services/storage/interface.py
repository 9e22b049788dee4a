"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the ledger in a local JSON file or in Google Sheets
2. Use a temporary file store for testing
3. Keep business logic decoupled from storage implementation

The store owns the authoritative list of transactions, most recent first.
Callers get copies; the core never mutates a list handed to it.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from autoledger.models.audit import AuditEvent
from autoledger.models.transaction import Transaction


class TransactionStorageInterface(ABC):
    """
    Abstract interface for transaction storage operations.
    """

    @abstractmethod
    async def add_transaction(self, transaction: Transaction) -> bool:
        """
        Add a transaction at the front of the ledger.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """Retrieve a transaction by ID, or None if it does not exist."""
        pass

    @abstractmethod
    async def replace_transaction(self, transaction: Transaction) -> bool:
        """
        Replace the stored record that has the same ID, keeping its position.

        Raises:
            NotFoundError: If no record has this ID
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> bool:
        """
        Delete a transaction by ID.

        Returns:
            True if a record was removed
        """
        pass

    @abstractmethod
    async def list_transactions(self) -> list[Transaction]:
        """Return every transaction in store order (most recent first)."""
        pass

    @abstractmethod
    async def replace_all(self, transactions: list[Transaction]) -> None:
        """Overwrite the whole ledger, keeping the given order (backup import)."""
        pass

    @abstractmethod
    async def clear(self) -> int:
        """
        Remove every transaction.

        Returns:
            Number of transactions removed
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event to the log."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """All events for one user action, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
