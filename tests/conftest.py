"""
Shared fixtures.

No test touches the real filesystem data directory or the Gemini API:
stores sit on InMemoryStorage (or tmp_path) and agents get a fake model.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import pytest

from smartspend.audit import AuditLogger
from smartspend.config import AppSettings, GeminiSettings
from smartspend.handlers import MutationHandlers
from smartspend.models import (
    Frequency,
    Goal,
    RecurringRule,
    Transaction,
    TransactionType,
)
from smartspend.services.storage import InMemoryStorage
from smartspend.store import EntityStore


FIXED_NOW = datetime(2024, 3, 15, 10, 30)
KEY_PREFIX = "test_"


def make_transaction(
    amount: str = "10.00",
    category: str = "Food & Dining",
    type: TransactionType = TransactionType.EXPENSE,
    when: Optional[datetime] = None,
    description: str = "Test transaction",
    id: Optional[str] = None,
) -> Transaction:
    return Transaction(
        id=id or f"txn-{amount}-{category}",
        amount=Decimal(amount),
        description=description,
        category=category,
        date=when or FIXED_NOW,
        type=type,
    )


def make_rule(
    next_due_date: date,
    frequency: Frequency = Frequency.MONTHLY,
    amount: str = "12.00",
    id: str = "rule-1",
) -> RecurringRule:
    return RecurringRule(
        id=id,
        amount=Decimal(amount),
        description="Streaming",
        category="Entertainment",
        type=TransactionType.EXPENSE,
        frequency=frequency,
        next_due_date=next_due_date,
    )


def make_goal(
    current: str = "0",
    target: str = "1000",
    id: str = "goal-1",
) -> Goal:
    return Goal(
        id=id,
        name="Vacation",
        target_amount=Decimal(target),
        current_amount=Decimal(current),
        deadline=date(2024, 12, 31),
        color="indigo",
    )


class FakeResponse:
    def __init__(self, text: str):
        self.text = text


class FakeModel:
    """
    Stands in for genai.GenerativeModel.

    Each call pops the next scripted outcome: a string becomes the
    response text, an exception is raised.
    """

    def __init__(self, *outcomes):
        self._outcomes = list(outcomes)
        self.calls = []

    async def generate_content_async(self, contents, generation_config=None):
        self.calls.append((contents, generation_config))
        outcome = self._outcomes.pop(0) if self._outcomes else ""
        if isinstance(outcome, Exception):
            raise outcome
        return FakeResponse(outcome)


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def store(storage, audit_logger):
    """A loaded store with no transactions."""
    store = EntityStore(storage, audit_logger=audit_logger, key_prefix=KEY_PREFIX)
    store.load(FIXED_NOW)
    store.commit(transactions=())
    return store


@pytest.fixture
def handlers(store, audit_logger):
    return MutationHandlers(store, audit_logger=audit_logger, clock=lambda: FIXED_NOW)


@pytest.fixture
def app_settings():
    return AppSettings(_env_file=None)


@pytest.fixture
def gemini_settings():
    return GeminiSettings(api_key="test-key", max_retries=2, retry_wait_seconds=0)
