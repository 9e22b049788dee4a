"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability from AI extraction to saved transaction
2. Debugging capability when the model answers badly
3. Observability for category fallbacks

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from autoledger.models.audit import AuditEvent, AuditEventBuilder
from autoledger.services.storage.interface import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(ensure_ascii=False)
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("autoledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_extraction_requested(
        self,
        extraction_id: UUID,
        has_text: bool,
        has_image: bool,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.extraction_requested(
            extraction_id=extraction_id,
            has_text=has_text,
            has_image=has_image,
            correlation_id=correlation_id,
        ))

    async def log_extraction_completed(
        self,
        extraction_id: UUID,
        transaction_type: str,
        category: str,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.extraction_completed(
            extraction_id=extraction_id,
            transaction_type=transaction_type,
            category=category,
            correlation_id=correlation_id,
        ))

    async def log_extraction_failed(
        self,
        extraction_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.extraction_failed(
            extraction_id=extraction_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_input_rejected(
        self,
        reason: str,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.input_rejected(
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_category_fallback(
        self,
        extraction_id: UUID,
        raw_category: Optional[str],
        fallback: str,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.category_fallback(
            extraction_id=extraction_id,
            raw_category=raw_category,
            fallback=fallback,
            correlation_id=correlation_id,
        ))

    async def log_draft_validation_failed(
        self,
        extraction_id: Optional[UUID],
        issues: list[dict],
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.draft_validation_failed(
            extraction_id=extraction_id,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_transaction_saved(
        self,
        transaction_id: str,
        merchant: str,
        amount: str,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.transaction_saved(
            transaction_id=transaction_id,
            merchant=merchant,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_transaction_updated(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.transaction_updated(
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))

    async def log_transaction_deleted(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))

    async def log_backup_exported(self, count: int, correlation_id: Optional[UUID]) -> None:
        await self.log(AuditEventBuilder.backup_exported(count, correlation_id))

    async def log_backup_imported(self, count: int, correlation_id: Optional[UUID]) -> None:
        await self.log(AuditEventBuilder.backup_imported(count, correlation_id))

    async def log_ledger_cleared(self, count: int, correlation_id: Optional[UUID]) -> None:
        await self.log(AuditEventBuilder.ledger_cleared(count, correlation_id))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., one AI entry).
    Pass it through all subsequent operations.
    """
    return uuid4()
