"""
Main Orchestrator for AutoLedger

This module ties together all the components and defines the
end-to-end flows for:
1. Entry (text/image → AI draft → user edits form → validate → save)
2. Ledger (list → summarize by period → overview → backup)

DESIGN DECISION: The orchestrator is the CALLER of the core and owns
the policies the core deliberately leaves out:
- Only one AI extraction may be pending per entry flow
- A draft with no date defaults to today when it becomes a form
- No data persists without explicit confirmation
- Every step is audited
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from autoledger.agents import ExtractionError, TransactionExtractionAgent
from autoledger.audit import AuditLogger, create_correlation_id
from autoledger.config import get_settings
from autoledger.config.settings import AppSettings
from autoledger.models.category import TransactionType
from autoledger.models.transaction import (
    CategoryTotal,
    ExtractionDraft,
    ExtractionInput,
    ImagePayload,
    LedgerTotals,
    Period,
    PeriodGroup,
    Transaction,
    TransactionForm,
    ValidationResult,
)
from autoledger.reports import PeriodAggregator
from autoledger.services.backup import (
    backup_filename,
    export_transactions,
    import_transactions,
)
from autoledger.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    JsonFileTransactionStorage,
    TransactionStorageInterface,
)
from autoledger.validation import EntryValidator


logger = structlog.get_logger(__name__)


class ExtractionInProgressError(ExtractionError):
    """An extraction is already pending for this entry flow."""
    pass


class UnsupportedImageError(ExtractionError):
    """The attached image is too large or of an unsupported type."""
    pass


class EntryValidationError(Exception):
    """The entry form has blocking validation errors."""

    def __init__(self, result: ValidationResult, message: str):
        self.result = result
        super().__init__(message)


class TransactionEntryFlow:
    """
    Orchestrates adding transactions.

    Flow:
    1. Analyze → AI proposes an ExtractionDraft (optional)
    2. Form → Draft becomes an editable form, date defaults to today
    3. Validate → Two-stage validation
    4. Confirm → User explicitly saves
    5. Save → Prepend to the store

    Manual entry skips step 1.
    """

    def __init__(
        self,
        extraction_agent: Optional[TransactionExtractionAgent] = None,
        validator: Optional[EntryValidator] = None,
        storage: Optional[TransactionStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        self._settings = app_settings or get_settings().app
        self._audit_logger = audit_logger
        self._agent = extraction_agent or TransactionExtractionAgent(audit_logger=audit_logger)
        self._validator = validator or EntryValidator(self._settings)
        self._storage = storage
        self._analyzing = False

    @property
    def is_analyzing(self) -> bool:
        """True while an extraction is pending; the UI disables its trigger."""
        return self._analyzing

    def build_input(
        self,
        text: Optional[str] = None,
        image_bytes: Optional[bytes] = None,
        mime_type: Optional[str] = None,
    ) -> ExtractionInput:
        """
        Package raw user input, checking the image against upload limits.

        Raises:
            UnsupportedImageError: If the image is too large or not an accepted type
        """
        image = None
        if image_bytes:
            mime_type = (mime_type or "image/jpeg").strip().lower()
            if mime_type not in self._settings.supported_image_types_list:
                raise UnsupportedImageError(
                    f"Unsupported image type: {mime_type}. "
                    f"Allowed: {', '.join(self._settings.supported_image_types_list)}"
                )
            if len(image_bytes) > self._settings.max_upload_size_bytes:
                raise UnsupportedImageError(
                    f"Image is larger than {self._settings.max_upload_size_mb} MB"
                )
            image = ImagePayload(data=image_bytes, mime_type=mime_type)
        return ExtractionInput(text=text, image=image)

    async def analyze(
        self,
        text: Optional[str] = None,
        image_bytes: Optional[bytes] = None,
        mime_type: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ExtractionDraft:
        """
        Ask the AI for a draft.

        Raises:
            ExtractionInProgressError: If another extraction is pending
            UnsupportedImageError: If the image fails the upload limits
            InputEmptyError / AIServiceError: From the extraction agent
        """
        if self._analyzing:
            raise ExtractionInProgressError("An extraction is already in progress")

        correlation_id = correlation_id or create_correlation_id()
        extraction_input = self.build_input(text, image_bytes, mime_type)

        self._analyzing = True
        try:
            return await self._agent.normalize(extraction_input, correlation_id=correlation_id)
        finally:
            self._analyzing = False

    def draft_to_form(
        self,
        draft: ExtractionDraft,
        today: Optional[date] = None,
    ) -> TransactionForm:
        """Pre-fill the entry form from a draft; a missing date becomes today."""
        return TransactionForm(
            type=draft.type,
            amount=draft.amount,
            merchant=draft.merchant,
            category=draft.category,
            date=draft.date or today or date.today(),
            extraction_id=draft.extraction_id,
        )

    def validate_entry(
        self,
        form: TransactionForm,
        today: Optional[date] = None,
    ) -> tuple[ValidationResult, str]:
        """
        Validate a form.

        Returns:
            (validation_result, user_message)
        """
        result = self._validator.validate(form, today=today)
        return result, self._validator.get_user_friendly_summary(result)

    async def confirm_and_save(
        self,
        form: TransactionForm,
        correlation_id: Optional[UUID] = None,
        today: Optional[date] = None,
    ) -> Transaction:
        """
        Turn a confirmed form into a Transaction and store it.

        CRITICAL: This is called ONLY after explicit user confirmation.

        Raises:
            EntryValidationError: If the form has blocking errors
        """
        correlation_id = correlation_id or create_correlation_id()

        result, message = self.validate_entry(form, today=today)
        if result.has_errors:
            if self._audit_logger:
                await self._audit_logger.log_draft_validation_failed(
                    extraction_id=form.extraction_id,
                    issues=[
                        {"field": i.field, "type": i.issue_type, "message": i.message}
                        for i in result.issues
                    ],
                    correlation_id=correlation_id,
                )
            raise EntryValidationError(result, message)

        transaction = Transaction(
            type=form.type,
            amount=form.amount,
            merchant=form.merchant,
            category=form.category,
            date=form.date,
            note=form.note or None,
        )

        if self._storage:
            await self._storage.add_transaction(transaction)

            if self._audit_logger:
                await self._audit_logger.log_transaction_saved(
                    transaction_id=transaction.id,
                    merchant=transaction.merchant,
                    amount=str(transaction.amount),
                    correlation_id=correlation_id,
                )

        return transaction

    async def update_transaction(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """Replace a stored transaction with a corrected record (same id)."""
        if self._storage:
            await self._storage.replace_transaction(transaction)
            if self._audit_logger:
                await self._audit_logger.log_transaction_updated(
                    transaction_id=transaction.id,
                    correlation_id=correlation_id or create_correlation_id(),
                )
        return transaction

    async def delete_transaction(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        if not self._storage:
            return False
        deleted = await self._storage.delete_transaction(transaction_id)
        if deleted and self._audit_logger:
            await self._audit_logger.log_transaction_deleted(
                transaction_id=transaction_id,
                correlation_id=correlation_id or create_correlation_id(),
            )
        return deleted


class LedgerFlow:
    """
    Orchestrates reading the ledger: summaries, overview and backups.

    All reports are recomputed from the full list on every call.
    """

    def __init__(
        self,
        storage: TransactionStorageInterface,
        aggregator: Optional[PeriodAggregator] = None,
        audit_logger: Optional[AuditLogger] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        settings = app_settings or get_settings().app
        self._storage = storage
        self._aggregator = aggregator or PeriodAggregator(
            locale=settings.display_locale,
            ratio_epsilon=Decimal(str(settings.ratio_epsilon)),
        )
        self._audit_logger = audit_logger

    async def list_transactions(self) -> list[Transaction]:
        return await self._storage.list_transactions()

    async def summarize(self, period: Period) -> list[PeriodGroup]:
        """Groups for the chosen period, newest first."""
        transactions = await self._storage.list_transactions()
        return self._aggregator.aggregate(transactions, period)

    async def overview(self) -> tuple[LedgerTotals, list[CategoryTotal]]:
        """
        Overall totals plus the expense breakdown by category.

        Returns:
            (totals, expense_categories)
        """
        transactions = await self._storage.list_transactions()
        totals = self._aggregator.ledger_totals(transactions)
        breakdown = self._aggregator.category_breakdown(
            transactions, transaction_type=TransactionType.EXPENSE
        )
        return totals, breakdown

    async def export_backup(
        self,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[str, str]:
        """
        Returns:
            (filename, json_text)
        """
        transactions = await self._storage.list_transactions()
        text = export_transactions(transactions)
        if self._audit_logger:
            await self._audit_logger.log_backup_exported(
                len(transactions), correlation_id or create_correlation_id()
            )
        return backup_filename(today), text

    async def import_backup(
        self,
        text: str,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Replace the whole ledger with a backup.

        Raises:
            BackupFormatError: If the backup is malformed (ledger untouched)
        """
        transactions = import_transactions(text)
        await self._storage.replace_all(transactions)
        if self._audit_logger:
            await self._audit_logger.log_backup_imported(
                len(transactions), correlation_id or create_correlation_id()
            )
        return len(transactions)

    async def clear(self, correlation_id: Optional[UUID] = None) -> int:
        count = await self._storage.clear()
        if self._audit_logger:
            await self._audit_logger.log_ledger_cleared(
                count, correlation_id or create_correlation_id()
            )
        return count


def create_storage(
    backend: Optional[str] = None,
) -> tuple[TransactionStorageInterface, Optional[AuditStorageInterface]]:
    """
    Build the configured transaction store (and audit store, for Sheets).
    """
    settings = get_settings()
    backend = backend or settings.storage.backend

    if backend == "google_sheets":
        client = GoogleSheetsClient()
        return GoogleSheetsTransactionStorage(client), GoogleSheetsAuditStorage(client)

    return JsonFileTransactionStorage(settings.storage.json_path), None


def create_app_components(
    backend: Optional[str] = None,
) -> tuple[TransactionEntryFlow, LedgerFlow, TransactionStorageInterface]:
    """
    Factory function to create all application components.

    Falls back to the local JSON store if Google Sheets is not configured.

    Returns:
        (entry_flow, ledger_flow, storage)
    """
    try:
        storage, audit_storage = create_storage(backend)
    except Exception as e:
        logger.warning("storage_fallback_to_json", error=str(e))
        storage, audit_storage = create_storage("json")

    audit_logger = AuditLogger(audit_storage)

    entry_flow = TransactionEntryFlow(storage=storage, audit_logger=audit_logger)
    ledger_flow = LedgerFlow(storage=storage, audit_logger=audit_logger)

    return entry_flow, ledger_flow, storage
