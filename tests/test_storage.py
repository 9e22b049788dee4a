"""
Tests for backup export/import and the transaction stores.

Google Sheets is exercised against an in-memory worksheet stub.
"""

import asyncio
import json
from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from autoledger.models.category import Category, TransactionType
from autoledger.models.transaction import Transaction
from autoledger.services import (
    BackupFormatError,
    GoogleSheetsTransactionStorage,
    JsonFileTransactionStorage,
    NotFoundError,
    StorageError,
    backup_filename,
    export_transactions,
    import_transactions,
)
from autoledger.services.storage.google_sheets import (
    TRANSACTION_COLUMNS,
    row_to_transaction,
    transaction_to_row,
)


def make_transaction(merchant="星巴克", amount="35", day=date(2024, 1, 5), **kwargs):
    return Transaction(
        type=kwargs.pop("type", TransactionType.EXPENSE),
        amount=Decimal(amount),
        merchant=merchant,
        category=kwargs.pop("category", Category.FOOD),
        date=day,
        **kwargs,
    )


class TestBackup:
    """Tests for the backup document format."""

    def test_round_trip_keeps_order_and_values(self):
        """Export then import reproduces the same transactions."""
        transactions = [
            make_transaction("星巴克", "35.50", note="拿铁"),
            make_transaction(
                "公司", "8000", date(2024, 1, 10),
                type=TransactionType.INCOME, category=Category.SALARY,
            ),
            make_transaction("地铁", "0.10", category=Category.TRANSPORT),
        ]

        restored = import_transactions(export_transactions(transactions))

        assert restored == transactions

    def test_export_format(self):
        """Literal category strings, numeric amounts, no null note."""
        text = export_transactions([make_transaction(id="t1")])

        assert "餐饮美食" in text
        assert json.loads(text) == [{
            "id": "t1",
            "type": "expense",
            "amount": 35,
            "merchant": "星巴克",
            "category": "餐饮美食",
            "date": "2024-01-05",
        }]

    @pytest.mark.parametrize("amount", ["9999999999999.99", "1234567890123.45", "0.01"])
    def test_round_trip_keeps_large_amounts_exact(self, amount):
        """Every storable amount survives export and import digit for digit."""
        transaction = make_transaction(amount=amount)

        (restored,) = import_transactions(export_transactions([transaction]))

        assert restored.amount == Decimal(amount)

    def test_amount_above_maximum_rejected(self):
        with pytest.raises(ValidationError):
            make_transaction(amount="12345678901234567.89")

    def test_import_amount_above_maximum(self):
        text = json.dumps([{
            "id": "t1",
            "type": "expense",
            "amount": 12345678901234567.89,
            "merchant": "A",
            "category": "餐饮美食",
            "date": "2024-01-05",
        }], ensure_ascii=False)

        with pytest.raises(BackupFormatError):
            import_transactions(text)

    def test_export_empty(self):
        assert json.loads(export_transactions([])) == []

    def test_import_not_json(self):
        with pytest.raises(BackupFormatError):
            import_transactions("{not json")

    def test_import_not_array(self):
        with pytest.raises(BackupFormatError, match="array"):
            import_transactions('{"id": "t1"}')

    def test_import_non_object_entry(self):
        with pytest.raises(BackupFormatError, match="Entry 0"):
            import_transactions("[1]")

    def test_import_invalid_transaction(self):
        """An unknown category rejects the whole backup."""
        text = json.dumps([{
            "id": "t1",
            "type": "expense",
            "amount": 10,
            "merchant": "A",
            "category": "停车费",
            "date": "2024-01-05",
        }], ensure_ascii=False)

        with pytest.raises(BackupFormatError, match="Entry 0"):
            import_transactions(text)

    def test_backup_filename(self):
        assert backup_filename(date(2024, 3, 1)) == "autoledger_backup_2024-03-01.json"


class TestJsonFileStorage:
    """Tests for the local JSON file store."""

    def test_add_is_most_recent_first(self, tmp_path):
        """New transactions are prepended."""
        storage = JsonFileTransactionStorage(tmp_path / "ledger.json")
        first = make_transaction("first")
        second = make_transaction("second")

        asyncio.run(storage.add_transaction(first))
        asyncio.run(storage.add_transaction(second))

        listed = asyncio.run(storage.list_transactions())
        assert [t.merchant for t in listed] == ["second", "first"]

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "data" / "ledger.json"
        transaction = make_transaction(note="备注")

        asyncio.run(JsonFileTransactionStorage(path).add_transaction(transaction))

        reopened = JsonFileTransactionStorage(path)
        assert asyncio.run(reopened.list_transactions()) == [transaction]
        assert import_transactions(path.read_text(encoding="utf-8")) == [transaction]

    def test_missing_file_is_empty(self, tmp_path):
        storage = JsonFileTransactionStorage(tmp_path / "nope.json")
        assert asyncio.run(storage.list_transactions()) == []

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text("{broken", encoding="utf-8")

        with pytest.raises(StorageError):
            asyncio.run(JsonFileTransactionStorage(path).list_transactions())

    def test_replace_transaction(self, tmp_path):
        storage = JsonFileTransactionStorage(tmp_path / "ledger.json")
        original = make_transaction("星巴克", "35")
        asyncio.run(storage.add_transaction(original))

        corrected = original.model_copy(update={"amount": Decimal("38")})
        asyncio.run(storage.replace_transaction(corrected))

        stored = asyncio.run(storage.get_transaction(original.id))
        assert stored.amount == Decimal("38")

    def test_replace_unknown_transaction(self, tmp_path):
        storage = JsonFileTransactionStorage(tmp_path / "ledger.json")

        with pytest.raises(NotFoundError):
            asyncio.run(storage.replace_transaction(make_transaction()))

    def test_delete_transaction(self, tmp_path):
        storage = JsonFileTransactionStorage(tmp_path / "ledger.json")
        transaction = make_transaction()
        asyncio.run(storage.add_transaction(transaction))

        assert asyncio.run(storage.delete_transaction(transaction.id)) is True
        assert asyncio.run(storage.delete_transaction(transaction.id)) is False
        assert asyncio.run(storage.list_transactions()) == []

    def test_replace_all_and_clear(self, tmp_path):
        path = tmp_path / "ledger.json"
        storage = JsonFileTransactionStorage(path)
        transactions = [make_transaction("a"), make_transaction("b")]

        asyncio.run(storage.replace_all(transactions))
        assert asyncio.run(storage.list_transactions()) == transactions

        assert asyncio.run(storage.clear()) == 2
        assert not path.exists()
        assert asyncio.run(storage.list_transactions()) == []


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the transaction store."""

    def __init__(self, rows=None):
        self.rows = [list(TRANSACTION_COLUMNS)] + [list(r) for r in (rows or [])]

    def get_all_values(self):
        return [list(r) for r in self.rows]

    def insert_row(self, values, index=1, value_input_option=None):
        self.rows.insert(index - 1, list(values))

    def append_row(self, values, value_input_option=None):
        self.rows.append(list(values))

    def append_rows(self, values, value_input_option=None):
        self.rows.extend(list(v) for v in values)

    def update_cell(self, row, col, value):
        self.rows[row - 1][col - 1] = value

    def delete_rows(self, index):
        del self.rows[index - 1]

    def clear(self):
        self.rows = []


class FakeSheetsClient:

    def __init__(self, worksheet):
        self.worksheet = worksheet

    def get_transactions_sheet(self):
        return self.worksheet


class TestGoogleSheetsStorage:
    """Tests for the Google Sheets store against a stub worksheet."""

    def test_row_conversion(self):
        transaction = make_transaction("星巴克", "35.50", id="t1", note="拿铁")

        row = transaction_to_row(transaction)

        assert row == ["t1", "expense", "35.50", "星巴克", "餐饮美食", "2024-01-05", "拿铁"]
        assert row_to_transaction(row) == transaction

    def test_short_row_without_note(self):
        transaction = row_to_transaction(["t1", "income", "100", "公司", "工资薪金", "2024-01-10"])
        assert transaction.note is None
        assert transaction.category == Category.SALARY

    def test_add_inserts_below_header(self):
        worksheet = FakeWorksheet()
        storage = GoogleSheetsTransactionStorage(FakeSheetsClient(worksheet))

        asyncio.run(storage.add_transaction(make_transaction("first")))
        asyncio.run(storage.add_transaction(make_transaction("second")))

        assert worksheet.rows[0] == TRANSACTION_COLUMNS
        listed = asyncio.run(storage.list_transactions())
        assert [t.merchant for t in listed] == ["second", "first"]

    def test_malformed_rows_skipped(self):
        good = make_transaction("good")
        worksheet = FakeWorksheet([
            transaction_to_row(good),
            ["bad", "expense", "not-a-number", "x", "餐饮美食", "2024-01-05", ""],
            [],
        ])
        storage = GoogleSheetsTransactionStorage(FakeSheetsClient(worksheet))

        assert asyncio.run(storage.list_transactions()) == [good]

    def test_replace_delete_and_clear(self):
        first = make_transaction("first", id="t1")
        second = make_transaction("second", id="t2")
        worksheet = FakeWorksheet([transaction_to_row(first), transaction_to_row(second)])
        storage = GoogleSheetsTransactionStorage(FakeSheetsClient(worksheet))

        asyncio.run(storage.replace_transaction(first.model_copy(update={"merchant": "renamed"})))
        assert asyncio.run(storage.get_transaction("t1")).merchant == "renamed"

        assert asyncio.run(storage.delete_transaction("t2")) is True
        assert asyncio.run(storage.delete_transaction("t2")) is False

        assert asyncio.run(storage.clear()) == 1
        assert worksheet.rows == [TRANSACTION_COLUMNS]

    def test_replace_all_writes_header(self):
        worksheet = FakeWorksheet([transaction_to_row(make_transaction("old"))])
        storage = GoogleSheetsTransactionStorage(FakeSheetsClient(worksheet))
        replacement = [make_transaction("a"), make_transaction("b")]

        asyncio.run(storage.replace_all(replacement))

        assert worksheet.rows[0] == TRANSACTION_COLUMNS
        assert asyncio.run(storage.list_transactions()) == replacement


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
