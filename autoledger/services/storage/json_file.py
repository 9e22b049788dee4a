"""
Local JSON File Storage

DESIGN DECISION: The default store is a single JSON file holding the
transaction array, the same document a backup export produces. This
keeps the data on the user's own machine and makes backups trivial.

TRADEOFFS:
- The whole file is rewritten on every change (fine for a personal ledger)
- No locking; one process owns the file
"""

import asyncio
from pathlib import Path
from typing import Optional, Union

import structlog

from autoledger.models.transaction import Transaction
from autoledger.services.backup import (
    BackupFormatError,
    export_transactions,
    import_transactions,
)
from autoledger.services.storage.interface import (
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)


class JsonFileTransactionStorage(TransactionStorageInterface):
    """
    Transaction store backed by a JSON file.

    Transactions are kept in memory after the first load and written
    back after each mutation.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._transactions: Optional[list[Transaction]] = None
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> list[Transaction]:
        if self._transactions is None:
            if not self._path.exists():
                self._transactions = []
            else:
                try:
                    text = self._path.read_text(encoding="utf-8")
                except OSError as e:
                    raise StorageError(f"Failed to read {self._path}: {e}")
                if not text.strip():
                    self._transactions = []
                else:
                    try:
                        self._transactions = import_transactions(text)
                    except BackupFormatError as e:
                        raise StorageError(f"Ledger file {self._path} is corrupt: {e}")
                logger.debug(
                    "ledger_loaded",
                    path=str(self._path),
                    count=len(self._transactions),
                )
        return self._transactions

    def _flush(self) -> None:
        transactions = self._load()
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp_path.write_text(export_transactions(transactions), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as e:
            raise StorageError(f"Failed to write {self._path}: {e}")

    async def add_transaction(self, transaction: Transaction) -> bool:
        async with self._lock:
            transactions = self._load()
            transactions.insert(0, transaction)
            self._flush()
        return True

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        for transaction in self._load():
            if transaction.id == transaction_id:
                return transaction
        return None

    async def replace_transaction(self, transaction: Transaction) -> bool:
        async with self._lock:
            transactions = self._load()
            for idx, existing in enumerate(transactions):
                if existing.id == transaction.id:
                    transactions[idx] = transaction
                    self._flush()
                    return True
        raise NotFoundError(f"Transaction not found: {transaction.id}")

    async def delete_transaction(self, transaction_id: str) -> bool:
        async with self._lock:
            transactions = self._load()
            for idx, existing in enumerate(transactions):
                if existing.id == transaction_id:
                    del transactions[idx]
                    self._flush()
                    return True
        return False

    async def list_transactions(self) -> list[Transaction]:
        return list(self._load())

    async def replace_all(self, transactions: list[Transaction]) -> None:
        async with self._lock:
            self._transactions = list(transactions)
            self._flush()

    async def clear(self) -> int:
        async with self._lock:
            count = len(self._load())
            self._transactions = []
            if self._path.exists():
                try:
                    self._path.unlink()
                except OSError as e:
                    raise StorageError(f"Failed to remove {self._path}: {e}")
        return count
