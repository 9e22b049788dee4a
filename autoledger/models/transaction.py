"""
Core Data Models for AutoLedger

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Keep money exact (Decimal everywhere, float only at the JSON boundary)
3. Be serializable for storage, backup and logging
4. Support the audit trail

DESIGN DECISION: A Transaction is frozen. Corrections replace the record
in the store, they never mutate it in place.
"""

import datetime as dt
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from autoledger.models.category import Category, TransactionType, is_valid_for


DEFAULT_RATIO_EPSILON = Decimal("0.001")

MAX_MERCHANT_LENGTH = 200
MAX_NOTE_LENGTH = 1000

# 15 significant digits, so a backup amount survives the trip through a JSON double
MAX_AMOUNT = Decimal("9999999999999.99")


# =============================================================================
# ENUMS
# =============================================================================

class Period(str, Enum):
    """Grouping granularity for summaries."""
    DAY = "day"
    MONTH = "month"
    YEAR = "year"


class AttachmentKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"


# =============================================================================
# CANONICAL TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """
    A confirmed ledger entry.

    CRITICAL: Only Transaction objects are persisted to storage.
    They are created by manual entry or by confirming an ExtractionDraft.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        min_length=1,
        description="Opaque unique ID, assigned once at creation"
    )
    type: TransactionType = Field(
        ...,
        description="expense or income"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        le=MAX_AMOUNT,
        decimal_places=2,
        description="Amount in yuan"
    )
    merchant: str = Field(
        ...,
        min_length=1,
        max_length=MAX_MERCHANT_LENGTH,
        description="Merchant for expenses, payer/source for income"
    )
    category: Category = Field(
        ...,
        description="Category from the partition matching `type`"
    )
    date: dt.date = Field(
        ...,
        description="Calendar date of the transaction"
    )
    note: Optional[str] = Field(
        default=None,
        max_length=MAX_NOTE_LENGTH,
    )

    @model_validator(mode='after')
    def validate_category_partition(self) -> 'Transaction':
        """Category must belong to the partition for the transaction type."""
        if not is_valid_for(self.category, self.type):
            raise ValueError(
                f"Category {self.category.value} is not valid for {self.type.value}"
            )
        return self

    @field_serializer('amount', when_used='json')
    def serialize_amount(self, amount: Decimal) -> Union[int, float]:
        # Backups store amounts as JSON numbers
        if amount == amount.to_integral_value():
            return int(amount)
        return float(amount)


# =============================================================================
# EXTRACTION MODELS
# =============================================================================

class ImagePayload(BaseModel):
    """A receipt photo or payment screenshot."""

    data: bytes = Field(..., min_length=1)
    mime_type: str = Field(default="image/jpeg")

    @field_validator('mime_type')
    @classmethod
    def normalize_mime_type(cls, v: str) -> str:
        return v.strip().lower()


class ExtractionInput(BaseModel):
    """Raw user input for AI extraction. Either part may be missing."""

    text: Optional[str] = None
    image: Optional[ImagePayload] = None

    @property
    def has_text(self) -> bool:
        return bool(self.text and self.text.strip())

    @property
    def is_empty(self) -> bool:
        return not self.has_text and self.image is None


class Attachment(BaseModel):
    """One part of an extraction request."""

    kind: AttachmentKind
    value: Optional[str] = None
    mime_type: Optional[str] = None
    data: Optional[str] = Field(
        default=None,
        description="Base64-encoded image bytes"
    )


class ExtractionRequest(BaseModel):
    """
    Transport-agnostic request sent to the AI extraction capability.
    """

    instructions: str
    attachments: list[Attachment] = Field(default_factory=list)


class ExtractionDraft(BaseModel):
    """
    Transaction fields proposed by the AI.

    CRITICAL: This is PROPOSED data, NOT confirmed.
    It has no id and is never persisted. The user confirms or edits it
    and the result becomes a Transaction.

    `category` is already reconciled against the closed taxonomy;
    `raw_category` keeps what the model actually said.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    extraction_id: UUID = Field(
        default_factory=uuid4,
        description="Unique ID for this extraction attempt"
    )
    extracted_at: datetime = Field(
        default_factory=datetime.utcnow,
    )

    type: TransactionType
    amount: Decimal = Field(..., ge=0)
    merchant: str = Field(..., min_length=1)
    category: Category
    date: Optional[dt.date] = Field(
        default=None,
        description="Unset when the model gave no usable date"
    )

    raw_category: Optional[str] = None
    category_fallback_applied: bool = False


class TransactionForm(BaseModel):
    """
    The editable entry form the user confirms.

    Filled either by hand or from an ExtractionDraft. Fields are loose on
    purpose: the validator reports what is missing instead of raising.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    type: TransactionType = TransactionType.EXPENSE
    amount: Optional[Decimal] = None
    merchant: Optional[str] = None
    category: Optional[Category] = None
    date: Optional[dt.date] = None
    note: Optional[str] = None

    # Set when the form was filled from an AI draft
    extraction_id: Optional[UUID] = None


# =============================================================================
# REPORT MODELS
# =============================================================================

class PeriodGroup(BaseModel):
    """
    Transactions sharing one day, month or year.

    Derived data: recomputed on every aggregation and never persisted.
    """
    model_config = ConfigDict(frozen=True)

    key: str = Field(..., description="Sortable grouping key")
    title: str = Field(..., description="Localized label")
    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    transactions: tuple[Transaction, ...] = ()
    ratio_epsilon: Decimal = DEFAULT_RATIO_EPSILON

    @property
    def balance(self) -> Decimal:
        return self.total_income - self.total_expense

    @property
    def income_share(self) -> Decimal:
        """Width of the income part of the ratio bar (0..1)."""
        return self.total_income / (self.total_income + self.total_expense + self.ratio_epsilon)

    @property
    def expense_share(self) -> Decimal:
        """Width of the expense part of the ratio bar (0..1)."""
        return self.total_expense / (self.total_income + self.total_expense + self.ratio_epsilon)


class LedgerTotals(BaseModel):
    """Overall income, expense and balance across all transactions."""

    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    transaction_count: int = Field(default=0, ge=0)

    @property
    def balance(self) -> Decimal:
        return self.total_income - self.total_expense


class CategoryTotal(BaseModel):
    """Sum of amounts for one category (pie chart slice)."""

    category: Category
    total: Decimal
    count: int = Field(ge=0)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage draft validation.

    Stage 1: Schema validation (required fields, value ranges)
    Stage 2: Semantic validation (dates, amounts, consistency)
    """

    extraction_id: Optional[UUID] = None
    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
