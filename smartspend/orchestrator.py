"""
Main Orchestrator for SmartSpend

This module ties together all the components and defines the
end-to-end flows for:
1. Startup (load snapshot → project recurring rules)
2. Receipt scan (image → Gemini → form prefill)
3. Advisor chat (question → recent history → Gemini → reply)

DESIGN DECISION: The orchestrator enforces the boundaries:
- AI output never reaches the store without a form submit
- A failed AI call changes no entity state
- A failed projection leaves the loaded state as it was

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from datetime import datetime
from typing import Optional, Sequence

import structlog

from smartspend.agents import (
    ADVICE_FAILURE_MESSAGE,
    AdvisorAgent,
    AIServiceError,
    ReceiptAgent,
    match_category,
)
from smartspend.audit import AuditLogger, configure_logging, create_correlation_id
from smartspend.config import Settings, get_settings
from smartspend.handlers import MutationHandlers
from smartspend.models.audit import AuditEventBuilder
from smartspend.models.finance import (
    ChatMessage,
    ChatRole,
    ReceiptData,
    TransactionType,
)
from smartspend.models.forms import TransactionForm
from smartspend.recurring import ProjectionError, ProjectionResult, run_projection
from smartspend.services.storage import JsonFileStorage, KeyValueStorageInterface
from smartspend.store import EntityStore
from smartspend.validation import InputValidator


logger = structlog.get_logger(__name__)


class ReceiptScanFlow:
    """
    Orchestrates the receipt scan.

    Flow:
    1. Upload → new scan token
    2. Parse → ReceiptAgent reads the image
    3. Prefill → TransactionForm with the matched category
    4. Submit → the user saves it like any manual entry

    Only the most recent scan may prefill the form. A response that
    arrives after a newer scan started, or after cancel(), is dropped.
    """

    def __init__(
        self,
        receipt_agent: Optional[ReceiptAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._agent = receipt_agent
        self._audit_logger = audit_logger or AuditLogger()
        self._current_token = 0

    @property
    def is_available(self) -> bool:
        return self._agent is not None

    def begin(self) -> int:
        """Start a new scan; any scan still in flight becomes stale."""
        self._current_token += 1
        return self._current_token

    def cancel(self) -> None:
        """The user left the view. Whatever is in flight is discarded."""
        self._current_token += 1

    def is_current(self, token: int) -> bool:
        return token == self._current_token

    @staticmethod
    def to_form(receipt: ReceiptData, categories: Sequence[str]) -> TransactionForm:
        """Receipts are always expenses."""
        return TransactionForm(
            amount=str(receipt.amount),
            description=receipt.merchant,
            category=match_category(receipt.category, categories),
            type=TransactionType.EXPENSE,
            date=receipt.date,
        )

    async def scan(
        self,
        image_bytes: bytes,
        mime_type: str,
        categories: Sequence[str],
    ) -> Optional[TransactionForm]:
        """
        Read a receipt into a form prefill.

        Returns:
            The prefilled form, or None if this scan went stale

        Raises:
            AIServiceError: scanning is not configured, or the receipt
                could not be read (only for the current scan)
        """
        if self._agent is None:
            raise AIServiceError("Receipt scanning is not configured")

        token = self.begin()
        correlation_id = create_correlation_id()

        try:
            receipt = await self._agent.parse_receipt(image_bytes, mime_type)
        except AIServiceError as e:
            if not self.is_current(token):
                logger.info("stale_receipt_failure_ignored", token=token)
                return None
            self._audit_logger.log_external_service_error(
                service="gemini",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        if not self.is_current(token):
            logger.info("stale_receipt_discarded", token=token)
            return None

        self._audit_logger.log(AuditEventBuilder.receipt_parsed(
            merchant=receipt.merchant,
            amount=receipt.amount,
            correlation_id=correlation_id,
        ))
        return self.to_form(receipt, categories)


class AdvisorFlow:
    """
    Orchestrates the advisor chat.

    The conversation lives here for the session only. It is never
    persisted and never written to the store.
    """

    WELCOME_MESSAGE = (
        "Hi! I'm your SmartSpend assistant. I can analyze your spending habits, "
        "suggest budget improvements, or answer questions about your finances. "
        "How can I help today?"
    )

    SUGGESTED_QUESTIONS = (
        "How much did I spend on Food?",
        "Can I afford a $200 purchase?",
        "Where can I cut costs?",
        "Summarize my month.",
    )

    def __init__(
        self,
        store: EntityStore,
        advisor_agent: Optional[AdvisorAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
        history_limit: int = 50,
    ):
        self._store = store
        self._agent = advisor_agent
        self._audit_logger = audit_logger or AuditLogger()
        self._history_limit = history_limit
        self._messages: list[ChatMessage] = [
            ChatMessage(id="welcome", role=ChatRole.MODEL, text=self.WELCOME_MESSAGE),
        ]
        self._waiting = False

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        """Conversation so far, with a loading placeholder while a reply is pending."""
        if self._waiting:
            return tuple(self._messages) + (
                ChatMessage(role=ChatRole.MODEL, text="", is_loading=True),
            )
        return tuple(self._messages)

    async def ask(self, query: str) -> Optional[ChatMessage]:
        """
        Send a question and append the reply.

        Blank input is ignored and returns None. Never raises on
        service failure; the reply is an apology instead.
        """
        query = (query or "").strip()
        if not query or self._waiting:
            return None

        self._messages.append(ChatMessage(role=ChatRole.USER, text=query))
        correlation_id = create_correlation_id()

        self._waiting = True
        try:
            if self._agent is None:
                answer = ADVICE_FAILURE_MESSAGE
            else:
                answer = await self._agent.get_advice(query, self._store.transactions)
        finally:
            self._waiting = False

        reply = ChatMessage(role=ChatRole.MODEL, text=answer)
        self._messages.append(reply)

        self._audit_logger.log(AuditEventBuilder.advice_generated(
            context_size=min(len(self._store.transactions), self._history_limit),
            correlation_id=correlation_id,
        ))
        return reply


class SmartSpendApp:
    """Everything the UI needs, wired together."""

    def __init__(
        self,
        store: EntityStore,
        handlers: MutationHandlers,
        validator: InputValidator,
        receipt_flow: ReceiptScanFlow,
        advisor_flow: AdvisorFlow,
        audit_logger: AuditLogger,
        projection: Optional[ProjectionResult] = None,
        startup_errors: Optional[list[str]] = None,
    ):
        self.store = store
        self.handlers = handlers
        self.validator = validator
        self.receipt_flow = receipt_flow
        self.advisor_flow = advisor_flow
        self.audit_logger = audit_logger
        self.projection = projection
        self.startup_errors = startup_errors or []

    @property
    def ai_enabled(self) -> bool:
        return self.receipt_flow.is_available


def _build_agents(
    settings: Settings,
    audit_logger: AuditLogger,
) -> tuple[Optional[ReceiptAgent], Optional[AdvisorAgent]]:
    try:
        return (
            ReceiptAgent(settings=settings.gemini, app_settings=settings.app),
            AdvisorAgent(
                settings=settings.gemini,
                history_limit=settings.app.advisor_history_limit,
            ),
        )
    except Exception as e:
        # Gemini not configured - continue without AI
        logger.warning("ai_not_configured", error=str(e))
        audit_logger.log_error("ai_not_configured", str(e))
        return None, None


def create_app_components(
    storage: Optional[KeyValueStorageInterface] = None,
    now: Optional[datetime] = None,
    use_ai: bool = True,
    receipt_agent: Optional[ReceiptAgent] = None,
    advisor_agent: Optional[AdvisorAgent] = None,
    settings: Optional[Settings] = None,
) -> SmartSpendApp:
    """
    Factory function to create all application components.

    Args:
        storage: Snapshot backend. JSON files under the configured
                 data directory when None.
        now: Startup time (seeds sample data, projection "today").
        use_ai: Whether to build Gemini agents from settings.
                Set to False for testing without an API key.
        receipt_agent, advisor_agent: Prebuilt agents; take precedence.

    Returns:
        SmartSpendApp with state loaded and recurring rules projected
    """
    settings = settings or get_settings()
    configure_logging(settings.app.log_level)
    now = now or datetime.now()

    audit_logger = AuditLogger()
    storage = storage or JsonFileStorage(settings.storage.data_dir)

    store = EntityStore(
        storage,
        audit_logger=audit_logger,
        key_prefix=settings.storage.key_prefix,
    )
    store.load(now)

    startup_errors = []
    projection = None
    try:
        projection = run_projection(store, today=now, audit_logger=audit_logger)
    except ProjectionError as e:
        startup_errors.append(f"Recurring transactions were not processed: {e}")

    if use_ai and (receipt_agent is None or advisor_agent is None):
        built_receipt, built_advisor = _build_agents(settings, audit_logger)
        receipt_agent = receipt_agent or built_receipt
        advisor_agent = advisor_agent or built_advisor

    return SmartSpendApp(
        store=store,
        handlers=MutationHandlers(store, audit_logger=audit_logger),
        validator=InputValidator(settings.app),
        receipt_flow=ReceiptScanFlow(receipt_agent, audit_logger=audit_logger),
        advisor_flow=AdvisorFlow(
            store,
            advisor_agent,
            audit_logger=audit_logger,
            history_limit=settings.app.advisor_history_limit,
        ),
        audit_logger=audit_logger,
        projection=projection,
        startup_errors=startup_errors,
    )
