"""AI Agents package."""

from autoledger.agents.ai_agents import (
    AIServiceError,
    CategoryMismatchWarning,
    ExtractionClient,
    ExtractionError,
    GeminiExtractionClient,
    InputEmptyError,
    TransactionExtractionAgent,
    build_extraction_request,
)

__all__ = [
    "AIServiceError",
    "CategoryMismatchWarning",
    "ExtractionClient",
    "ExtractionError",
    "GeminiExtractionClient",
    "InputEmptyError",
    "TransactionExtractionAgent",
    "build_extraction_request",
]
