"""
Tests for AutoLedger

Test strategy:
1. Unit tests for individual components (models, taxonomy, validators)
2. Integration tests for flows (with a fake AI client)
3. No real API calls in tests
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from autoledger.models.category import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    Category,
    TransactionType,
    categories_for,
    default_category,
    is_valid_for,
    reconcile_category,
)
from autoledger.models.transaction import (
    ExtractionInput,
    ImagePayload,
    PeriodGroup,
    Transaction,
    ValidationIssue,
    ValidationResult,
)
from autoledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestTransactionModel:
    """Tests for the Transaction model."""

    def test_transaction_creation(self):
        """Test Transaction model creation with a generated id."""
        transaction = Transaction(
            type=TransactionType.EXPENSE,
            amount=Decimal("35.00"),
            merchant="星巴克",
            category=Category.FOOD,
            date=date(2024, 1, 5),
        )
        assert transaction.id
        assert transaction.amount == Decimal("35")
        assert transaction.note is None

    def test_ids_are_unique(self):
        """Two transactions never share a generated id."""
        kwargs = dict(
            type=TransactionType.EXPENSE,
            amount=Decimal("1"),
            merchant="A",
            category=Category.FOOD,
            date=date(2024, 1, 5),
        )
        assert Transaction(**kwargs).id != Transaction(**kwargs).id

    def test_merchant_strips_whitespace(self):
        """Test that whitespace is stripped from merchant."""
        transaction = Transaction(
            type=TransactionType.EXPENSE,
            amount=Decimal("10"),
            merchant="  全家  ",
            category=Category.FOOD,
            date=date(2024, 1, 5),
        )
        assert transaction.merchant == "全家"

    def test_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValidationError):
            Transaction(
                type=TransactionType.EXPENSE,
                amount=Decimal("-1"),
                merchant="A",
                category=Category.FOOD,
                date=date(2024, 1, 5),
            )

    def test_rejects_sub_cent_amount(self):
        """Amounts carry at most two decimal places."""
        with pytest.raises(ValidationError):
            Transaction(
                type=TransactionType.EXPENSE,
                amount=Decimal("1.005"),
                merchant="A",
                category=Category.FOOD,
                date=date(2024, 1, 5),
            )

    def test_rejects_category_from_other_partition(self):
        """An income category on an expense is rejected."""
        with pytest.raises(ValidationError):
            Transaction(
                type=TransactionType.EXPENSE,
                amount=Decimal("10"),
                merchant="A",
                category=Category.SALARY,
                date=date(2024, 1, 5),
            )

    def test_is_frozen(self):
        """Corrections replace the record instead of mutating it."""
        transaction = Transaction(
            type=TransactionType.INCOME,
            amount=Decimal("8000"),
            merchant="公司",
            category=Category.SALARY,
            date=date(2024, 1, 10),
        )
        with pytest.raises(ValidationError):
            transaction.amount = Decimal("1")

    def test_json_dump_uses_literal_values(self):
        """Type and category serialize as their literal strings, amount as a number."""
        transaction = Transaction(
            id="t1",
            type=TransactionType.EXPENSE,
            amount=Decimal("35.50"),
            merchant="星巴克",
            category=Category.FOOD,
            date=date(2024, 1, 5),
        )
        dumped = transaction.model_dump(mode="json", exclude_none=True)
        assert dumped == {
            "id": "t1",
            "type": "expense",
            "amount": 35.5,
            "merchant": "星巴克",
            "category": "餐饮美食",
            "date": "2024-01-05",
        }

    def test_json_dump_integral_amount_is_int(self):
        """Whole amounts are written without a fractional part."""
        transaction = Transaction(
            type=TransactionType.EXPENSE,
            amount=Decimal("35.00"),
            merchant="A",
            category=Category.FOOD,
            date=date(2024, 1, 5),
        )
        assert transaction.model_dump(mode="json")["amount"] == 35
        assert isinstance(transaction.model_dump(mode="json")["amount"], int)


class TestExtractionInput:
    """Tests for raw extraction input."""

    def test_whitespace_text_is_empty(self):
        """Whitespace-only text does not count as input."""
        assert ExtractionInput(text="   ").is_empty is True

    def test_image_only_is_not_empty(self):
        """An image alone is enough."""
        extraction_input = ExtractionInput(image=ImagePayload(data=b"\x89PNG", mime_type="IMAGE/PNG"))
        assert extraction_input.is_empty is False
        assert extraction_input.has_text is False
        assert extraction_input.image.mime_type == "image/png"


class TestPeriodGroup:
    """Tests for PeriodGroup derived values."""

    def test_balance_and_shares(self):
        """Shares are computed with the epsilon in the denominator."""
        group = PeriodGroup(
            key="2024-01",
            title="2024年1月",
            total_income=Decimal("100"),
            total_expense=Decimal("300"),
        )
        assert group.balance == Decimal("-200")
        assert group.income_share == Decimal("100") / Decimal("400.001")
        assert group.expense_share == Decimal("300") / Decimal("400.001")

    def test_zero_totals_give_zero_shares(self):
        """No division by zero for an empty group."""
        group = PeriodGroup(key="2024", title="2024年")
        assert group.income_share == 0
        assert group.expense_share == 0


class TestCategoryTaxonomy:
    """Tests for the closed category taxonomy."""

    def test_partitions_are_disjoint(self):
        """No category belongs to both partitions."""
        assert not set(EXPENSE_CATEGORIES) & set(INCOME_CATEGORIES)
        assert set(EXPENSE_CATEGORIES) | set(INCOME_CATEGORIES) == set(Category)

    def test_category_values(self):
        """Test category string values."""
        assert Category.FOOD.value == "餐饮美食"
        assert Category.SALARY.value == "工资薪金"

    def test_categories_for_order(self):
        """Partitions keep their display order."""
        assert categories_for(TransactionType.EXPENSE)[0] == Category.FOOD
        assert categories_for(TransactionType.INCOME)[0] == Category.SALARY
        assert len(categories_for(TransactionType.EXPENSE)) == 8
        assert len(categories_for(TransactionType.INCOME)) == 4

    def test_default_category_is_other(self):
        """The fallback is the catch-all of each partition."""
        assert default_category(TransactionType.EXPENSE) == Category.EXPENSE_OTHER
        assert default_category(TransactionType.INCOME) == Category.INCOME_OTHER
        assert default_category("income") == Category.INCOME_OTHER

    def test_is_valid_for(self):
        """Membership check accepts enum members and raw strings."""
        assert is_valid_for(Category.FOOD, TransactionType.EXPENSE)
        assert is_valid_for("奖金补贴", TransactionType.INCOME)
        assert not is_valid_for(Category.FOOD, TransactionType.INCOME)
        assert not is_valid_for("停车费", TransactionType.EXPENSE)

    def test_reconcile_exact_match(self):
        """A known label passes through unchanged."""
        assert reconcile_category(" 交通出行 ", TransactionType.EXPENSE) == (Category.TRANSPORT, False)

    def test_reconcile_unknown_label(self):
        """An unknown label becomes the partition default."""
        assert reconcile_category("停车费", TransactionType.EXPENSE) == (Category.EXPENSE_OTHER, True)

    def test_reconcile_wrong_partition(self):
        """A label from the other partition counts as a miss."""
        assert reconcile_category("餐饮美食", TransactionType.INCOME) == (Category.INCOME_OTHER, True)

    def test_reconcile_missing_label(self):
        """None and empty labels fall back."""
        assert reconcile_category(None, TransactionType.INCOME) == (Category.INCOME_OTHER, True)
        assert reconcile_category("", TransactionType.EXPENSE) == (Category.EXPENSE_OTHER, True)


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            severity=AuditSeverity.INFO,
            entity_type="transaction",
            entity_id="t1",
            correlation_id=correlation_id,
            description="Transaction saved",
            is_user_action=True,
        )
        assert event.event_type == AuditEventType.TRANSACTION_SAVED
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            description="Saved",
            details={"merchant": "星巴克", "amount": "35"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "transaction_saved"
        assert log_dict["details"]["merchant"] == "星巴克"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.LEDGER_CLEARED,
            description="Ledger cleared",
            details={"count": 3},
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 11  # Expected number of columns
        assert row[2] == "ledger_cleared"  # event_type
        assert row[8] == '{"count": 3}'
        assert row[10] == "True"  # is_user_action

    def test_audit_event_builder_extraction_requested(self):
        """Test AuditEventBuilder.extraction_requested."""
        correlation_id = uuid4()
        extraction_id = uuid4()

        event = AuditEventBuilder.extraction_requested(
            extraction_id=extraction_id,
            has_text=True,
            has_image=False,
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.EXTRACTION_REQUESTED
        assert event.entity_id == str(extraction_id)
        assert event.details == {"has_text": True, "has_image": False}
        assert event.is_user_action is True

    def test_audit_event_builder_category_fallback(self):
        """Test AuditEventBuilder.category_fallback."""
        event = AuditEventBuilder.category_fallback(
            extraction_id=uuid4(),
            raw_category="停车费",
            fallback="其他支出",
            correlation_id=None,
        )

        assert event.event_type == AuditEventType.CATEGORY_FALLBACK
        assert event.severity == AuditSeverity.WARNING
        assert event.details["raw_category"] == "停车费"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            extraction_id=uuid4(),
            schema_valid=False,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="missing",
                    message="Amount is required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            schema_valid=True,
            semantic_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message="Date in future",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
