"""
Audit Models for AutoLedger

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability from an AI extraction to the saved transaction
2. Debugging information when the model answers badly
3. A record of category fallbacks (AI labels outside the taxonomy)

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Extraction
    EXTRACTION_REQUESTED = "extraction_requested"
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FAILED = "extraction_failed"
    INPUT_REJECTED = "input_rejected"
    CATEGORY_FALLBACK = "category_fallback"

    # Confirmation
    DRAFT_VALIDATION_FAILED = "draft_validation_failed"

    # Persistence
    TRANSACTION_SAVED = "transaction_saved"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Backup
    BACKUP_EXPORTED = "backup_exported"
    BACKUP_IMPORTED = "backup_imported"
    LEDGER_CLEARED = "ledger_cleared"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'extraction', 'ledger')"
    )
    entity_id: Optional[str] = None

    # Groups all events from one user action
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, ensure_ascii=False) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.extraction_requested(extraction_id, True, False, cid)
        event = AuditEventBuilder.transaction_saved(txn_id, merchant, amount, cid)
    """

    @staticmethod
    def extraction_requested(
        extraction_id: UUID,
        has_text: bool,
        has_image: bool,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_REQUESTED,
            entity_type="extraction",
            entity_id=str(extraction_id),
            correlation_id=correlation_id,
            description="AI extraction requested",
            details={"has_text": has_text, "has_image": has_image},
            is_user_action=True,
        )

    @staticmethod
    def extraction_completed(
        extraction_id: UUID,
        transaction_type: str,
        category: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            entity_type="extraction",
            entity_id=str(extraction_id),
            correlation_id=correlation_id,
            description=f"AI extraction completed: {transaction_type} / {category}",
            details={"type": transaction_type, "category": category},
        )

    @staticmethod
    def extraction_failed(
        extraction_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="extraction",
            entity_id=str(extraction_id),
            correlation_id=correlation_id,
            description="AI extraction failed",
            error_message=error_message,
        )

    @staticmethod
    def input_rejected(
        reason: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INPUT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="extraction",
            correlation_id=correlation_id,
            description=f"Extraction input rejected: {reason}",
            is_user_action=True,
        )

    @staticmethod
    def category_fallback(
        extraction_id: UUID,
        raw_category: Optional[str],
        fallback: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_FALLBACK,
            severity=AuditSeverity.WARNING,
            entity_type="extraction",
            entity_id=str(extraction_id),
            correlation_id=correlation_id,
            description=f"AI category {raw_category!r} replaced with {fallback}",
            details={"raw_category": raw_category, "fallback": fallback},
        )

    @staticmethod
    def draft_validation_failed(
        extraction_id: Optional[UUID],
        issues: list[dict],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRAFT_VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="extraction",
            entity_id=str(extraction_id) if extraction_id else None,
            correlation_id=correlation_id,
            description=f"Draft validation failed with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def transaction_saved(
        transaction_id: str,
        merchant: str,
        amount: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction saved: {merchant} - ¥{amount}",
            details={"merchant": merchant, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(
        transaction_id: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction replaced with corrected record",
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def backup_exported(count: int, correlation_id: Optional[UUID]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Exported {count} transactions",
            details={"count": count},
            is_user_action=True,
        )

    @staticmethod
    def backup_imported(count: int, correlation_id: Optional[UUID]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_IMPORTED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Ledger replaced with {count} imported transactions",
            details={"count": count},
            is_user_action=True,
        )

    @staticmethod
    def ledger_cleared(count: int, correlation_id: Optional[UUID]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_CLEARED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Ledger cleared ({count} transactions removed)",
            details={"count": count},
            is_user_action=True,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
