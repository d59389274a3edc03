"""Tests for startup wiring and the AI-backed flows."""

import asyncio
import json
from datetime import date, datetime
from decimal import Decimal

import pytest

from smartspend.agents import (
    ADVICE_FAILURE_MESSAGE,
    AdvisorAgent,
    AIServiceError,
    ReceiptAgent,
    ReceiptParsingError,
)
from smartspend.models import ChatRole, ReceiptData, TransactionType
from smartspend.models.audit import AuditEventType
from smartspend.orchestrator import AdvisorFlow, ReceiptScanFlow, create_app_components
from smartspend.services.storage import InMemoryStorage

from conftest import FakeModel, make_rule, make_transaction


RECEIPT_JSON = json.dumps({
    "merchant": "Corner Cafe",
    "amount": 8.75,
    "date": "2024-03-10",
    "category": "shopping",
})


class SlowReceiptAgent:
    """Returns a fixed receipt once released."""

    def __init__(self):
        self.release = asyncio.Event()

    async def parse_receipt(self, image_bytes, mime_type):
        await self.release.wait()
        return ReceiptData(
            merchant="Late Shop",
            amount=Decimal("1"),
            date=date(2024, 3, 1),
            category="Other",
        )


class TestCreateAppComponents:
    """Tests for the startup factory."""

    def test_startup_seeds_and_projects(self):
        """Test a first launch gets sample data and no AI without a key."""
        storage = InMemoryStorage()

        app = create_app_components(storage=storage, now=datetime(2024, 3, 15, 9, 0), use_ai=False)

        assert len(app.store.transactions) == 3
        assert app.startup_errors == []
        assert app.projection is not None
        assert not app.ai_enabled

    def test_startup_runs_due_rules(self):
        """Test rules persisted last session catch up at startup."""
        storage = InMemoryStorage({
            "smartspend_transactions": "[]",
            "smartspend_recurring": json.dumps([
                make_rule(date(2024, 1, 1)).model_dump(mode="json", by_alias=True),
            ]),
        })

        app = create_app_components(storage=storage, now=datetime(2024, 3, 15), use_ai=False)

        assert len(app.store.transactions) == 3
        assert app.store.recurring_rules[0].next_due_date == date(2024, 4, 1)
        assert '"nextDueDate":"2024-04-01"' in storage.load("smartspend_recurring")

    def test_unknown_frequency_is_a_startup_error(self):
        """Test a rule with an unknown frequency stops the run and keeps every rule."""
        raw = json.dumps([
            make_rule(date(2024, 1, 1), id="good").model_dump(mode="json", by_alias=True),
            {"id": "bad", "amount": 5, "description": "Broken", "category": "Other",
             "type": "EXPENSE", "frequency": "HOURLY", "nextDueDate": "2024-01-01"},
        ])
        storage = InMemoryStorage({
            "smartspend_transactions": "[]",
            "smartspend_recurring": raw,
        })

        app = create_app_components(storage=storage, now=datetime(2024, 3, 15), use_ai=False)

        assert [r.id for r in app.store.recurring_rules] == ["good", "bad"]
        assert app.store.transactions == ()
        assert app.projection is None
        assert len(app.startup_errors) == 1
        assert "HOURLY" in app.startup_errors[0]
        assert storage.load("smartspend_recurring") == raw
        assert storage.load("smartspend_transactions") == "[]"

    def test_injected_agents_are_used(self, gemini_settings, app_settings):
        """Test prebuilt agents switch the AI features on."""
        app = create_app_components(
            storage=InMemoryStorage(),
            use_ai=False,
            receipt_agent=ReceiptAgent(model=FakeModel(), settings=gemini_settings, app_settings=app_settings),
            advisor_agent=AdvisorAgent(model=FakeModel(), settings=gemini_settings, history_limit=50),
        )
        assert app.ai_enabled


class TestReceiptScanFlow:
    """Tests for scanning receipts into the form."""

    @pytest.mark.asyncio
    async def test_scan_prefills_form(self, gemini_settings, app_settings, audit_logger):
        """Test a receipt becomes an expense form with a matched category."""
        agent = ReceiptAgent(model=FakeModel(RECEIPT_JSON), settings=gemini_settings, app_settings=app_settings)
        flow = ReceiptScanFlow(agent, audit_logger=audit_logger)

        form = await flow.scan(b"img", "image/png", ["Food & Dining", "Shopping"])

        assert form.amount == "8.75"
        assert form.description == "Corner Cafe"
        assert form.category == "Shopping"
        assert form.type == TransactionType.EXPENSE
        assert form.date == date(2024, 3, 10)
        assert audit_logger.recent_events(1)[0].event_type == AuditEventType.RECEIPT_PARSED

    @pytest.mark.asyncio
    async def test_failure_is_raised_and_audited(self, gemini_settings, app_settings, audit_logger):
        """Test a failed scan surfaces the error and records it."""
        agent = ReceiptAgent(model=FakeModel("nonsense"), settings=gemini_settings, app_settings=app_settings)
        flow = ReceiptScanFlow(agent, audit_logger=audit_logger)

        with pytest.raises(ReceiptParsingError):
            await flow.scan(b"img", "image/png", ["Other"])
        assert audit_logger.recent_events(1)[0].event_type == AuditEventType.EXTERNAL_SERVICE_ERROR

    @pytest.mark.asyncio
    async def test_not_configured(self):
        """Test scanning without an agent is a clear error."""
        with pytest.raises(AIServiceError):
            await ReceiptScanFlow(None).scan(b"img", "image/png", ["Other"])

    @pytest.mark.asyncio
    async def test_cancelled_scan_is_discarded(self):
        """Test a response that arrives after cancel() prefills nothing."""
        agent = SlowReceiptAgent()
        flow = ReceiptScanFlow(agent)

        task = asyncio.ensure_future(flow.scan(b"img", "image/png", ["Other"]))
        await asyncio.sleep(0)
        flow.cancel()
        agent.release.set()

        assert await task is None

    @pytest.mark.asyncio
    async def test_older_scan_is_discarded(self):
        """Test only the newest of two overlapping scans counts."""
        agent = SlowReceiptAgent()
        flow = ReceiptScanFlow(agent)

        first = asyncio.ensure_future(flow.scan(b"a", "image/png", ["Other"]))
        await asyncio.sleep(0)
        second = asyncio.ensure_future(flow.scan(b"b", "image/png", ["Other"]))
        await asyncio.sleep(0)
        agent.release.set()

        assert await first is None
        assert (await second).description == "Late Shop"

    def test_to_form(self):
        """Test receipts are always expenses."""
        form = ReceiptScanFlow.to_form(
            ReceiptData(merchant="Pharmacy", amount=Decimal("4.20"), date=date(2024, 3, 2), category="Health"),
            ["Food & Dining", "Health"],
        )
        assert form.category == "Health"
        assert form.type == TransactionType.EXPENSE


class TestAdvisorFlow:
    """Tests for the advisor chat."""

    def test_starts_with_welcome(self, store):
        """Test the conversation opens with the greeting."""
        flow = AdvisorFlow(store)
        assert len(flow.messages) == 1
        assert flow.messages[0].role == ChatRole.MODEL
        assert flow.messages[0].text.startswith("Hi! I'm your SmartSpend assistant.")

    @pytest.mark.asyncio
    async def test_ask_appends_question_and_answer(self, store, gemini_settings, audit_logger):
        """Test a question and its reply are added in order."""
        store.commit(transactions=[make_transaction()])
        agent = AdvisorAgent(model=FakeModel("You are doing great."), settings=gemini_settings, history_limit=50)
        flow = AdvisorFlow(store, agent, audit_logger=audit_logger)

        reply = await flow.ask("Summarize my month.")

        assert reply.text == "You are doing great."
        assert [m.role for m in flow.messages] == [ChatRole.MODEL, ChatRole.USER, ChatRole.MODEL]
        assert flow.messages[1].text == "Summarize my month."
        assert audit_logger.recent_events(1)[0].details["context_size"] == 1

    @pytest.mark.asyncio
    async def test_blank_question_ignored(self, store):
        """Test whitespace-only input adds nothing."""
        flow = AdvisorFlow(store)

        assert await flow.ask("   ") is None
        assert len(flow.messages) == 1

    @pytest.mark.asyncio
    async def test_no_agent_apologizes(self, store):
        """Test the chat still answers when AI is not configured."""
        flow = AdvisorFlow(store)

        reply = await flow.ask("Hello?")

        assert reply.text == ADVICE_FAILURE_MESSAGE

    @pytest.mark.asyncio
    async def test_advisor_never_writes(self, store, gemini_settings):
        """Test asking leaves every collection untouched."""
        agent = AdvisorAgent(model=FakeModel("Cut dining out."), settings=gemini_settings, history_limit=50)
        flow = AdvisorFlow(store, agent)
        before = store.snapshot()

        await flow.ask("Where can I cut costs?")

        assert store.snapshot() is before

    @pytest.mark.asyncio
    async def test_loading_placeholder_while_waiting(self, store):
        """Test a pending reply shows as a loading message."""
        release = asyncio.Event()

        class SlowAdvisor:
            async def get_advice(self, query, transactions):
                await release.wait()
                return "Done."

        flow = AdvisorFlow(store, SlowAdvisor())
        task = asyncio.ensure_future(flow.ask("Summarize my month."))
        await asyncio.sleep(0)

        assert flow.messages[-1].is_loading is True
        assert await flow.ask("Another one") is None

        release.set()
        await task

        assert flow.messages[-1].text == "Done."
        assert not any(m.is_loading for m in flow.messages)
