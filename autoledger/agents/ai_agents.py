"""
AI Agents for AutoLedger

DESIGN DECISION: The extraction agent is a thin, typed boundary around
Gemini. The model reads a pasted payment message and/or a receipt photo
and proposes transaction fields. Everything it says is checked before it
reaches the user:

1. The raw answer must be a JSON object with type, amount, merchant
   and category. Anything else is an AIServiceError.
2. The category label is reconciled against the CLOSED taxonomy.
   An unknown label never survives; it becomes the "other" category.
3. A missing or malformed date is dropped, not guessed.

CRITICAL BOUNDARIES:
- CAN: Propose fields for a new transaction
- CANNOT: Persist anything or assign an id
- CANNOT: Retry. One call per normalize(); failures surface immediately.

The LLM is a FORM FILLER, not a BOOKKEEPER.
"""

import base64
import json
import warnings
from abc import ABC, abstractmethod
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID, uuid4

import google.generativeai as genai
import structlog

from autoledger.audit import AuditLogger
from autoledger.config import get_settings
from autoledger.models.category import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    TransactionType,
    reconcile_category,
)
from autoledger.models.transaction import (
    Attachment,
    AttachmentKind,
    ExtractionDraft,
    ExtractionInput,
    ExtractionRequest,
)


logger = structlog.get_logger(__name__)

REQUIRED_FIELDS = ("type", "amount", "merchant", "category")

CENT = Decimal("0.01")


class ExtractionError(Exception):
    """Base exception for extraction errors."""
    pass


class InputEmptyError(ExtractionError):
    """Neither text nor image was supplied."""
    pass


class AIServiceError(ExtractionError):
    """The AI call failed or its answer did not match the expected shape."""
    pass


class CategoryMismatchWarning(UserWarning):
    """The AI category was outside the taxonomy and was replaced by the default."""
    pass


EXTRACTION_INSTRUCTIONS = f"""你是一个专业的智能记账助手。请分析提供的图片（支付截图、收款截图、小票）或文本。

请提取以下关键信息并生成 JSON：
1. type: 判断是 'expense' (支出/消费/付款) 还是 'income' (收入/收款/工资/转账收入)。
   - 如果是支付成功、消费、付款，则是 'expense'。
   - 如果是收款成功、收到转账、工资入账，则是 'income'。
2. amount: 金额（数字）。
3. merchant: 交易对象。
   - 支出：商户名称（如"星巴克"）。
   - 收入：来源名称（如"公司转账"、"张三"）。
4. category: 从列表中选择最合适的分类：
   - 支出类: {', '.join(repr(c.value) for c in EXPENSE_CATEGORIES)}
   - 收入类: {', '.join(repr(c.value) for c in INCOME_CATEGORIES)}
5. date: 日期 YYYY-MM-DD。如果不明确，请省略该字段。

请直接返回 JSON 对象。"""


# Gemini response schema (OpenAPI subset understood by the API)
RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "type": {
            "type": "STRING",
            "enum": [t.value for t in TransactionType],
            "description": "交易类型: expense 或 income",
        },
        "amount": {"type": "NUMBER", "description": "金额"},
        "merchant": {"type": "STRING", "description": "商户或来源"},
        "category": {"type": "STRING", "description": "分类"},
        "date": {"type": "STRING", "description": "日期 YYYY-MM-DD"},
    },
    "required": list(REQUIRED_FIELDS),
}


def build_extraction_request(extraction_input: ExtractionInput) -> ExtractionRequest:
    """
    Build the transport-agnostic request for one extraction.

    Text comes before the image so the model reads the user's hint first.
    """
    attachments = []
    if extraction_input.has_text:
        attachments.append(Attachment(
            kind=AttachmentKind.TEXT,
            value=f"附加文本信息: {extraction_input.text.strip()}",
        ))
    if extraction_input.image is not None:
        attachments.append(Attachment(
            kind=AttachmentKind.IMAGE,
            mime_type=extraction_input.image.mime_type,
            data=base64.b64encode(extraction_input.image.data).decode("ascii"),
        ))
    return ExtractionRequest(
        instructions=EXTRACTION_INSTRUCTIONS,
        attachments=attachments,
    )


class ExtractionClient(ABC):
    """
    Sends one extraction request to an AI model.

    Implementations return the raw response body (expected to be JSON
    text) or None when the model produced nothing. Transport errors
    propagate as exceptions; the agent wraps them.
    """

    @abstractmethod
    async def generate(self, request: ExtractionRequest) -> Optional[str]:
        pass


class GeminiExtractionClient(ExtractionClient):
    """ExtractionClient backed by Gemini structured JSON output."""

    def __init__(self):
        self._settings = get_settings().gemini
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
                "response_schema": RESPONSE_SCHEMA,
            }
        )

    @staticmethod
    def _to_parts(request: ExtractionRequest) -> list:
        parts: list[Any] = [request.instructions]
        for attachment in request.attachments:
            if attachment.kind == AttachmentKind.TEXT:
                parts.append(attachment.value)
            else:
                parts.append({
                    "mime_type": attachment.mime_type,
                    "data": base64.b64decode(attachment.data),
                })
        return parts

    async def generate(self, request: ExtractionRequest) -> Optional[str]:
        response = await self._model.generate_content_async(self._to_parts(request))
        try:
            text = response.text
        except ValueError:
            # Raised when the candidate was blocked or has no text parts
            return None
        return text.strip() or None


def parse_amount(value: Any) -> Decimal:
    """Convert the model's amount to a non-negative Decimal rounded to cents."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal, str)):
        raise AIServiceError(f"AI returned a non-numeric amount: {value!r}")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise AIServiceError(f"AI returned a non-numeric amount: {value!r}")
    if not amount.is_finite() or amount < 0:
        raise AIServiceError(f"AI returned an invalid amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_optional_date(value: Any) -> Optional[date]:
    """A real YYYY-MM-DD calendar date, or None."""
    if not isinstance(value, str):
        return None
    candidate = value.strip()
    if len(candidate) != 10:
        return None
    try:
        return date.fromisoformat(candidate)
    except ValueError:
        return None


class TransactionExtractionAgent:
    """
    Turns pasted text and/or a receipt image into an ExtractionDraft.

    RESPONSIBILITIES:
    - Build the request and make exactly one AI call
    - Validate the raw answer's shape
    - Reconcile the category against the closed taxonomy
    - Drop unusable dates

    BOUNDARIES:
    - NEVER persists data
    - NEVER retries
    - Holds no per-call state, so concurrent calls do not interfere
    """

    def __init__(
        self,
        client: Optional[ExtractionClient] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._client = client
        self._audit_logger = audit_logger

    @property
    def client(self) -> ExtractionClient:
        # Created lazily so manual-only setups never need a Gemini key
        if self._client is None:
            self._client = GeminiExtractionClient()
        return self._client

    async def normalize(
        self,
        extraction_input: ExtractionInput,
        correlation_id: Optional[UUID] = None,
    ) -> ExtractionDraft:
        """
        Run one extraction.

        Raises:
            InputEmptyError: If neither text nor image was supplied
            AIServiceError: If the call fails or the answer is unusable
        """
        if extraction_input.is_empty:
            if self._audit_logger:
                await self._audit_logger.log_input_rejected(
                    reason="no text or image supplied",
                    correlation_id=correlation_id,
                )
            raise InputEmptyError("Please paste some text or attach an image first")

        extraction_id = uuid4()
        request = build_extraction_request(extraction_input)

        if self._audit_logger:
            await self._audit_logger.log_extraction_requested(
                extraction_id=extraction_id,
                has_text=extraction_input.has_text,
                has_image=extraction_input.image is not None,
                correlation_id=correlation_id,
            )

        try:
            body = await self.client.generate(request)
            if not body:
                raise AIServiceError("AI service returned an empty response")
            draft = self._build_draft(body, extraction_id)
        except Exception as e:
            error = e if isinstance(e, AIServiceError) else AIServiceError(
                f"AI service call failed: {e}"
            )
            logger.error(
                "extraction_failed",
                extraction_id=str(extraction_id),
                error=str(error),
            )
            if self._audit_logger:
                if error is not e:
                    await self._audit_logger.log_external_service_error(
                        service="gemini",
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                await self._audit_logger.log_extraction_failed(
                    extraction_id=extraction_id,
                    error_message=str(error),
                    correlation_id=correlation_id,
                )
            if error is e:
                raise
            raise error from e

        if draft.category_fallback_applied:
            self._report_category_fallback(draft)
            if self._audit_logger:
                await self._audit_logger.log_category_fallback(
                    extraction_id=extraction_id,
                    raw_category=draft.raw_category,
                    fallback=draft.category.value,
                    correlation_id=correlation_id,
                )

        if self._audit_logger:
            await self._audit_logger.log_extraction_completed(
                extraction_id=extraction_id,
                transaction_type=draft.type.value,
                category=draft.category.value,
                correlation_id=correlation_id,
            )

        return draft

    def _build_draft(self, body: str, extraction_id: UUID) -> ExtractionDraft:
        try:
            data = json.loads(body, parse_float=Decimal)
        except json.JSONDecodeError as e:
            raise AIServiceError(f"AI response is not valid JSON: {e}")

        if not isinstance(data, dict):
            raise AIServiceError("AI response is not a JSON object")

        missing = [name for name in REQUIRED_FIELDS if data.get(name) is None]
        if missing:
            raise AIServiceError(f"AI response missing required fields: {', '.join(missing)}")

        try:
            transaction_type = TransactionType(str(data["type"]).strip().lower())
        except ValueError:
            raise AIServiceError(f"AI returned an unknown transaction type: {data['type']!r}")

        amount = parse_amount(data["amount"])

        merchant = data["merchant"]
        if not isinstance(merchant, str) or not merchant.strip():
            raise AIServiceError("AI returned an empty merchant")

        raw_category = data["category"] if isinstance(data["category"], str) else str(data["category"])
        category, fallback_applied = reconcile_category(raw_category, transaction_type)

        return ExtractionDraft(
            extraction_id=extraction_id,
            type=transaction_type,
            amount=amount,
            merchant=merchant.strip(),
            category=category,
            date=parse_optional_date(data.get("date")),
            raw_category=raw_category,
            category_fallback_applied=fallback_applied,
        )

    @staticmethod
    def _report_category_fallback(draft: ExtractionDraft) -> None:
        message = (
            f"AI category {draft.raw_category!r} is not a {draft.type.value} category; "
            f"using {draft.category.value}"
        )
        logger.warning(
            "category_fallback",
            extraction_id=str(draft.extraction_id),
            raw_category=draft.raw_category,
            fallback=draft.category.value,
        )
        warnings.warn(message, CategoryMismatchWarning, stacklevel=3)
