"""AI Agents package."""

from smartspend.agents.ai_agents import (
    ADVICE_EMPTY_MESSAGE,
    ADVICE_FAILURE_MESSAGE,
    SUGGESTED_RECEIPT_CATEGORIES,
    AdvisorAgent,
    AIServiceError,
    ReceiptAgent,
    ReceiptParsingError,
    UnsupportedImageError,
    match_category,
)

__all__ = [
    "ADVICE_EMPTY_MESSAGE",
    "ADVICE_FAILURE_MESSAGE",
    "SUGGESTED_RECEIPT_CATEGORIES",
    "AdvisorAgent",
    "AIServiceError",
    "ReceiptAgent",
    "ReceiptParsingError",
    "UnsupportedImageError",
    "match_category",
]
