"""
Backup Export / Import

The backup format is a JSON array of transaction objects, most recent
first, with `type` and `category` written as their literal string values.
Export followed by import reproduces the same transactions in the same order.

Amounts are parsed back as Decimal. Stored amounts have at most 15
significant digits, so the JSON number reads back to the same value.
"""

import json
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import ValidationError

from autoledger.models.transaction import Transaction


BACKUP_FILENAME_PREFIX = "autoledger_backup_"


class BackupFormatError(Exception):
    """Backup text is not a valid transaction array."""
    pass


def export_transactions(transactions: Iterable[Transaction]) -> str:
    """Serialize transactions to the backup JSON document."""
    records = [
        transaction.model_dump(mode="json", exclude_none=True)
        for transaction in transactions
    ]
    return json.dumps(records, ensure_ascii=False, indent=2)


def import_transactions(text: str) -> list[Transaction]:
    """
    Parse a backup document.

    Raises:
        BackupFormatError: If the text is not JSON, not an array,
            or any element is not a valid transaction.
    """
    try:
        data = json.loads(text, parse_float=Decimal)
    except json.JSONDecodeError as e:
        raise BackupFormatError(f"Backup is not valid JSON: {e}")

    if not isinstance(data, list):
        raise BackupFormatError("Backup must be a JSON array of transactions")

    transactions = []
    for index, record in enumerate(data):
        if not isinstance(record, dict):
            raise BackupFormatError(f"Entry {index} is not an object")
        try:
            transactions.append(Transaction.model_validate(record))
        except ValidationError as e:
            raise BackupFormatError(f"Entry {index} is not a valid transaction: {e}")

    return transactions


def backup_filename(today: Optional[date] = None) -> str:
    """File name offered for download, e.g. autoledger_backup_2024-03-01.json."""
    today = today or date.today()
    return f"{BACKUP_FILENAME_PREFIX}{today.isoformat()}.json"
