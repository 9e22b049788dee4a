"""Tests for two-stage entry validation."""

from datetime import date
from decimal import Decimal

import pytest

from autoledger.config.settings import AppSettings
from autoledger.models.category import Category, TransactionType
from autoledger.models.transaction import TransactionForm
from autoledger.validation import EntryValidator


TODAY = date(2024, 6, 15)


@pytest.fixture
def validator():
    return EntryValidator(AppSettings())


def make_form(**overrides):
    fields = dict(
        type=TransactionType.EXPENSE,
        amount=Decimal("35.00"),
        merchant="星巴克",
        category=Category.FOOD,
        date=date(2024, 6, 14),
    )
    fields.update(overrides)
    return TransactionForm(**fields)


def issue_types(result):
    return [(issue.field, issue.issue_type, issue.severity) for issue in result.issues]


class TestSchemaStage:
    """Stage 1: blocking errors."""

    def test_valid_form(self, validator):
        result = validator.validate(make_form(), today=TODAY)

        assert result.is_valid is True
        assert result.issues == []
        assert validator.get_user_friendly_summary(result) == "✅ All checks passed."

    def test_missing_fields(self, validator):
        result = validator.validate(TransactionForm(), today=TODAY)

        assert result.schema_valid is False
        assert result.semantic_valid is False
        assert {field for field, _, _ in issue_types(result)} == {
            "amount", "merchant", "category", "date",
        }
        assert result.error_count == 4

    def test_negative_amount(self, validator):
        result = validator.validate(make_form(amount=Decimal("-1")), today=TODAY)
        assert ("amount", "invalid_value", "error") in issue_types(result)

    def test_sub_cent_amount(self, validator):
        result = validator.validate(make_form(amount=Decimal("1.001")), today=TODAY)
        assert ("amount", "invalid_format", "error") in issue_types(result)

    def test_blank_merchant(self, validator):
        """Whitespace is stripped, so a blank merchant is missing."""
        result = validator.validate(make_form(merchant="   "), today=TODAY)
        assert ("merchant", "missing", "error") in issue_types(result)

    def test_category_from_wrong_partition(self, validator):
        result = validator.validate(
            make_form(type=TransactionType.INCOME, category=Category.FOOD),
            today=TODAY,
        )
        assert ("category", "invalid_value", "error") in issue_types(result)

    def test_merchant_too_long(self, validator):
        """Names longer than a stored transaction allows are reported, not raised."""
        result = validator.validate(make_form(merchant="x" * 201), today=TODAY)

        assert result.schema_valid is False
        assert ("merchant", "invalid_value", "error") in issue_types(result)

    def test_merchant_at_limit(self, validator):
        result = validator.validate(make_form(merchant="x" * 200), today=TODAY)
        assert result.schema_valid is True

    def test_note_too_long(self, validator):
        result = validator.validate(make_form(note="n" * 1001), today=TODAY)
        assert ("note", "invalid_value", "error") in issue_types(result)

    def test_amount_above_storable_maximum(self, validator):
        result = validator.validate(make_form(amount=Decimal("10000000000000.00")), today=TODAY)
        assert ("amount", "invalid_value", "error") in issue_types(result)

    def test_summary_lists_errors(self, validator):
        result = validator.validate(make_form(merchant=None), today=TODAY)
        summary = validator.get_user_friendly_summary(result)

        assert summary.startswith("❌")
        assert "Merchant or source is required" in summary


class TestSemanticStage:
    """Stage 2: non-blocking warnings."""

    def test_future_date(self, validator):
        result = validator.validate(make_form(date=date(2024, 7, 1)), today=TODAY)

        assert result.schema_valid is True
        assert result.has_errors is False
        assert ("date", "future_date", "warning") in issue_types(result)

    def test_tomorrow_is_tolerated(self, validator):
        result = validator.validate(make_form(date=date(2024, 6, 16)), today=TODAY)
        assert result.warnings == []

    def test_old_date(self, validator):
        result = validator.validate(make_form(date=date(2020, 1, 1)), today=TODAY)
        assert ("date", "suspicious_date", "warning") in issue_types(result)

    def test_huge_amount(self, validator):
        result = validator.validate(make_form(amount=Decimal("2000000")), today=TODAY)

        assert result.has_errors is False
        assert ("amount", "suspicious_value", "warning") in issue_types(result)
        assert "⚠️" in validator.get_user_friendly_summary(result)

    def test_zero_amount(self, validator):
        result = validator.validate(make_form(amount=Decimal("0")), today=TODAY)
        assert result.warnings == ["Amount is zero"]

    def test_custom_threshold(self):
        validator = EntryValidator(AppSettings(max_transaction_amount=100.0))
        result = validator.validate(make_form(amount=Decimal("150")), today=TODAY)
        assert result.warnings


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
