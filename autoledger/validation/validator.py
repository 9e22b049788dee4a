"""
Two-Stage Entry Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence (amount, merchant, category, date)
- Amount range and precision
- Category belongs to the partition for the transaction type

STAGE 2 - SEMANTIC VALIDATION:
- Future date detection
- Suspiciously old dates
- Absurd or zero amounts

Errors block confirmation. Warnings are shown but never block.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for human review.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from autoledger.config import get_settings
from autoledger.config.settings import AppSettings
from autoledger.models.category import is_valid_for
from autoledger.models.transaction import (
    MAX_AMOUNT,
    MAX_MERCHANT_LENGTH,
    MAX_NOTE_LENGTH,
    TransactionForm,
    ValidationIssue,
    ValidationResult,
)


class EntryValidator:
    """
    Validates the entry form before it becomes a Transaction.

    Stage 1: Schema validation
    Stage 2: Semantic validation (only when stage 1 passes)
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def _validate_schema(
        self,
        form: TransactionForm,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if form.amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
                suggested_fix="Enter the amount shown on the receipt",
            ))
        elif form.amount < 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount cannot be negative",
                severity="error",
                suggested_fix="Use the income/expense switch instead of a minus sign",
            ))
        elif form.amount != form.amount.quantize(Decimal("0.01")):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message="Amount can have at most two decimal places",
                severity="error",
            ))
        elif form.amount > MAX_AMOUNT:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message=f"Amount cannot exceed {MAX_AMOUNT:,}",
                severity="error",
            ))

        if not form.merchant:
            issues.append(ValidationIssue(
                field="merchant",
                issue_type="missing",
                message="Merchant or source is required",
                severity="error",
                suggested_fix="Enter who you paid or who paid you",
            ))
        elif len(form.merchant) > MAX_MERCHANT_LENGTH:
            issues.append(ValidationIssue(
                field="merchant",
                issue_type="invalid_value",
                message=f"Merchant or source can be at most {MAX_MERCHANT_LENGTH} characters",
                severity="error",
                suggested_fix="Shorten the name and put details in the note",
            ))

        if form.note and len(form.note) > MAX_NOTE_LENGTH:
            issues.append(ValidationIssue(
                field="note",
                issue_type="invalid_value",
                message=f"Note can be at most {MAX_NOTE_LENGTH} characters",
                severity="error",
            ))

        if form.category is None:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
                severity="error",
            ))
        elif not is_valid_for(form.category, form.type):
            issues.append(ValidationIssue(
                field="category",
                issue_type="invalid_value",
                message=f"{form.category.value} is not a {form.type.value} category",
                severity="error",
                suggested_fix="Pick a category from the list for this type",
            ))

        if form.date is None:
            issues.append(ValidationIssue(
                field="date",
                issue_type="missing",
                message="Date is required",
                severity="error",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        form: TransactionForm,
        today: date,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if form.date > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Date ({form.date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        # Very old date check (might be a misread year)
        min_reasonable_date = today - timedelta(days=365 * 2)
        if form.date < min_reasonable_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="suspicious_date",
                message=f"Date ({form.date}) seems unusually old",
                severity="warning",
                suggested_fix="Please verify the date was read correctly",
            ))

        max_amount = Decimal(str(self._settings.max_transaction_amount))
        if form.amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount (¥{form.amount:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        if form.amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="Amount is zero",
                severity="warning",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(
        self,
        form: TransactionForm,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            form: The entry to validate
            today: Reference date for the future/old checks

        Returns:
            ValidationResult with all issues found
        """
        today = today or date.today()
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(form)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(form, today)
            all_issues.extend(semantic_issues)

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            extraction_id=form.extraction_id,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []

        if not result.schema_valid:
            lines.append("❌ Please complete the entry:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines).strip()
