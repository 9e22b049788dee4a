"""
Data Models Package

This package contains the category taxonomy and all Pydantic models used
in AutoLedger. All data flowing through the system must conform to these schemas.
"""

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
    Attachment,
    AttachmentKind,
    CategoryTotal,
    ExtractionDraft,
    ExtractionInput,
    ExtractionRequest,
    ImagePayload,
    LedgerTotals,
    Period,
    PeriodGroup,
    Transaction,
    TransactionForm,
    ValidationIssue,
    ValidationResult,
)
from autoledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Taxonomy
    "EXPENSE_CATEGORIES",
    "INCOME_CATEGORIES",
    "Category",
    "TransactionType",
    "categories_for",
    "default_category",
    "is_valid_for",
    "reconcile_category",
    # Transaction models
    "Attachment",
    "AttachmentKind",
    "CategoryTotal",
    "ExtractionDraft",
    "ExtractionInput",
    "ExtractionRequest",
    "ImagePayload",
    "LedgerTotals",
    "Period",
    "PeriodGroup",
    "Transaction",
    "TransactionForm",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
