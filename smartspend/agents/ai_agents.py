"""
AI Agents for SmartSpend

Two narrow jobs for Gemini, nothing more.

CRITICAL BOUNDARIES:

1. RECEIPT AGENT:
   - CAN: Read merchant, amount, date and a category hint off a photo
   - CANNOT: Write anything. Its output only prefills a form.
   - MUST: Raise on failure so the form stays untouched

2. ADVISOR AGENT:
   - CAN: Answer a free-text question about the user's recent transactions
   - SEES: At most the N most recent transactions (date, amount, category, description)
   - MUST: Never raise. Any failure degrades to a fixed apology.

The LLM is a reader and a commentator. The ledger is never its to change.
"""

import json
from typing import Any, Iterable, Optional, Sequence

import google.generativeai as genai
import structlog
from pydantic import ValidationError
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from smartspend.aggregates import recent_transactions
from smartspend.config import AppSettings, GeminiSettings, get_settings
from smartspend.models.finance import ReceiptData, Transaction


logger = structlog.get_logger(__name__)


ADVICE_FAILURE_MESSAGE = (
    "Sorry, I'm having trouble connecting to the financial brain right now."
)
ADVICE_EMPTY_MESSAGE = "I couldn't generate advice at this moment."

# What the receipt prompt offers; mapped onto the user's own categories later
SUGGESTED_RECEIPT_CATEGORIES = (
    "Food",
    "Transport",
    "Shopping",
    "Utilities",
    "Entertainment",
    "Health",
    "Other",
)


class AIServiceError(Exception):
    """Base exception for AI collaborator failures."""
    pass


class ReceiptParsingError(AIServiceError):
    """The receipt could not be read."""
    pass


class UnsupportedImageError(ReceiptParsingError):
    """The upload is not an image we accept."""
    pass


def match_category(suggested: Optional[str], categories: Sequence[str]) -> str:
    """
    Map a free-text category hint onto an existing category.

    Case-insensitive exact match; otherwise the first known category.
    """
    if not categories:
        return suggested or ""
    wanted = (suggested or "").strip().lower()
    for category in categories:
        if category.lower() == wanted:
            return category
    return categories[0]


def _extract_json(text: str) -> str:
    """Models sometimes wrap JSON in prose or code fences."""
    start = text.find("{")
    end = text.rfind("}") + 1
    if start >= 0 and end > start:
        return text[start:end]
    return text


class _GeminiAgent:
    """Shared Gemini plumbing: configuration and retried calls."""

    def __init__(
        self,
        model: Optional[Any] = None,
        settings: Optional[GeminiSettings] = None,
    ):
        """
        Args:
            model: Anything with an async generate_content_async().
                   Built from settings when None.
            settings: Gemini settings. Loaded from the environment when None.
        """
        self._settings = settings or get_settings().gemini
        self._model = model or self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        return genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    async def _generate(self, contents: Any, generation_config: Optional[dict] = None) -> str:
        """Call Gemini, retrying transient failures with exponential backoff."""
        text = ""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._settings.max_retries),
            wait=wait_exponential(multiplier=self._settings.retry_wait_seconds, max=10),
            reraise=True,
        ):
            with attempt:
                if generation_config:
                    response = await self._model.generate_content_async(
                        contents,
                        generation_config=generation_config,
                    )
                else:
                    response = await self._model.generate_content_async(contents)
                text = (response.text or "").strip()
        return text


class ReceiptAgent(_GeminiAgent):
    """
    Reads receipts.

    RESPONSIBILITIES:
    - Check the upload is an image we accept
    - Ask Gemini for merchant, total, date and a category hint as JSON
    - Validate the answer against ReceiptData

    BOUNDARIES:
    - NEVER writes to the store
    - NEVER returns a partial result; it raises instead
    """

    PROMPT = (
        "Extract the merchant name, total amount, date, and suggest a category "
        f"({', '.join(SUGGESTED_RECEIPT_CATEGORIES)}) from this receipt.\n"
        "Respond with ONLY a JSON object in this exact format:\n"
        '{"merchant": "Store name", "amount": 12.34, "date": "YYYY-MM-DD", '
        '"category": "Food"}'
    )

    def __init__(
        self,
        model: Optional[Any] = None,
        settings: Optional[GeminiSettings] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        super().__init__(model=model, settings=settings)
        self._app_settings = app_settings or get_settings().app

    def check_image(self, image_bytes: bytes, mime_type: str) -> None:
        """
        Reject uploads before spending an API call on them.

        Raises:
            UnsupportedImageError: empty, too large, or not an allowed image type
        """
        if not image_bytes:
            raise UnsupportedImageError("The uploaded file is empty")

        if len(image_bytes) > self._app_settings.max_upload_size_bytes:
            raise UnsupportedImageError(
                f"Image is larger than {self._app_settings.max_upload_size_mb} MB"
            )

        kind, _, subtype = (mime_type or "").lower().partition("/")
        if kind != "image" or subtype not in self._app_settings.supported_formats_list:
            raise UnsupportedImageError(
                f"Unsupported image type: {mime_type}. "
                f"Allowed: {', '.join(self._app_settings.supported_formats_list)}"
            )

    async def parse_receipt(
        self,
        image_bytes: bytes,
        mime_type: str = "image/jpeg",
    ) -> ReceiptData:
        """
        Extract receipt details from an image.

        Raises:
            ReceiptParsingError: the image was rejected, the service failed,
                or the answer was not valid receipt JSON
        """
        self.check_image(image_bytes, mime_type)

        contents = [
            {"mime_type": mime_type, "data": image_bytes},
            self.PROMPT,
        ]

        try:
            text = await self._generate(
                contents,
                generation_config={"response_mime_type": "application/json"},
            )
        except Exception as e:
            logger.error("receipt_request_failed", error=str(e))
            raise ReceiptParsingError(f"Receipt service failed: {e}") from e

        if not text:
            raise ReceiptParsingError("No data returned from Gemini")

        try:
            return ReceiptData.model_validate_json(_extract_json(text))
        except ValidationError as e:
            logger.error("receipt_response_invalid", error=str(e), response=text[:200])
            raise ReceiptParsingError(f"Could not understand receipt data: {e}") from e


class AdvisorAgent(_GeminiAgent):
    """
    Answers questions about the user's own spending.

    The model sees a compact JSON list of recent transactions and the
    question. The answer is advisory text only.
    """

    def __init__(
        self,
        model: Optional[Any] = None,
        settings: Optional[GeminiSettings] = None,
        history_limit: Optional[int] = None,
    ):
        super().__init__(model=model, settings=settings)
        self._history_limit = history_limit or get_settings().app.advisor_history_limit

    def build_context(self, transactions: Iterable[Transaction]) -> list[dict]:
        """The slice of the ledger the model is allowed to see."""
        return [
            {
                "date": t.date.isoformat(),
                "amount": float(t.amount),
                "category": t.category,
                "desc": t.description,
            }
            for t in recent_transactions(transactions, self._history_limit)
        ]

    def build_prompt(self, query: str, context: list[dict]) -> str:
        return f"""You are a helpful, encouraging, and concise financial advisor.
Here is the user's recent transaction history JSON:
{json.dumps(context)}

User Query: {query}

Answer the user's question based on their data. Be specific. If they ask about savings, look at their spending.
Keep the response brief (under 100 words) and friendly."""

    async def get_advice(
        self,
        query: str,
        transactions: Iterable[Transaction],
    ) -> str:
        """
        Ask the advisor. Never raises.

        Returns the model's answer, or a fixed message when the
        answer is empty or the service fails.
        """
        prompt = self.build_prompt(query, self.build_context(transactions))

        try:
            text = await self._generate(prompt)
        except Exception as e:
            logger.error("advice_request_failed", error=str(e))
            return ADVICE_FAILURE_MESSAGE

        return text or ADVICE_EMPTY_MESSAGE
