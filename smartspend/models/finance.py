"""
Core Data Models for SmartSpend

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce the entity invariants at runtime (positive amounts, known types)
2. Provide clear validation error messages
3. Round-trip through the JSON snapshots the storage layer keeps
4. Read snapshots written by the original web app (camelCase keys)

DESIGN DECISION: Python attributes are snake_case, persisted keys are
camelCase via an alias generator. Always dump with by_alias=True.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


SAVINGS_CATEGORY = "Savings"

DEFAULT_CATEGORIES: tuple[str, ...] = (
    "Food & Dining",
    "Transportation",
    "Shopping",
    "Utilities",
    "Entertainment",
    "Health",
    "Income",
    SAVINGS_CATEGORY,
    "Other",
)

# Presentation tags, assigned to goals round-robin
GOAL_COLORS: tuple[str, ...] = (
    "indigo",
    "emerald",
    "rose",
    "amber",
    "violet",
    "cyan",
)


def new_id() -> str:
    """Collision-resistant opaque identifier."""
    return uuid4().hex


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction."""
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"


class Frequency(str, Enum):
    """
    How often a recurring rule fires.

    The projection engine has one advance step per member.
    Adding a member here without teaching the engine is a hard error.
    """
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class ChatRole(str, Enum):
    """Author of an advisor chat message."""
    USER = "user"
    MODEL = "model"


class FinanceModel(BaseModel):
    """Shared config: camelCase on disk, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionDraft(FinanceModel):
    """
    A transaction as entered by the user, before it has an identity.

    Used by the add/edit form and as the payload for edits
    (an edit is a full replacement that keeps the original id).
    """

    amount: Decimal = Field(
        ...,
        gt=0,
        description="Positive amount, currency agnostic"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )
    date: datetime = Field(
        ...,
        description="When the transaction happened"
    )
    type: TransactionType
    is_recurring: Optional[bool] = None
    recurring_rule_id: Optional[str] = None

    @field_validator('date')
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        """Store local naive timestamps so dates always compare."""
        if v.tzinfo is not None:
            return v.astimezone().replace(tzinfo=None)
        return v

    def to_transaction(self, transaction_id: Optional[str] = None) -> "Transaction":
        """Give the draft an identity."""
        return Transaction(
            id=transaction_id or new_id(),
            **self.model_dump(),
        )


class Transaction(TransactionDraft):
    """
    A recorded income or expense.

    Immutable: edits replace the whole record by id.
    `recurring_rule_id` is a back-reference only, the rule does not own it.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Unique transaction ID"
    )

    def to_draft(self) -> TransactionDraft:
        """Prefill an edit form from this transaction."""
        return TransactionDraft(**self.model_dump(exclude={"id"}))


# =============================================================================
# RECURRING RULES
# =============================================================================

class RecurringRuleDraft(FinanceModel):
    """A recurring rule as entered by the user."""

    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    frequency: Frequency
    next_due_date: date = Field(
        ...,
        description="Next occurrence; past dates fire on the next projection"
    )

    @field_validator('next_due_date', mode='before')
    @classmethod
    def strip_time(cls, v):
        """Accept full ISO timestamps but keep only the calendar date."""
        if isinstance(v, datetime):
            return v.date()
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        return v


class RecurringRule(RecurringRuleDraft):
    """
    Template that generates transactions until it is deleted.

    Only the projection engine moves `next_due_date`.
    A stored frequency the engine does not know is kept as a plain
    string so the rule survives loading; projecting it fails instead.
    """

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Unique rule ID"
    )
    frequency: Union[Frequency, str] = Field(..., union_mode="left_to_right")

    @property
    def frequency_label(self) -> str:
        if isinstance(self.frequency, Frequency):
            return self.frequency.value
        return str(self.frequency)


# =============================================================================
# BUDGETS AND GOALS
# =============================================================================

class Budget(FinanceModel):
    """Advisory monthly spending ceiling. Category is the key."""

    category: str = Field(..., min_length=1, max_length=100)
    limit: Decimal = Field(..., gt=0)


class Goal(FinanceModel):
    """
    A savings goal.

    `current_amount` only moves through allocation and may exceed
    the target. Every increase is mirrored by a Savings expense.
    """

    id: str = Field(default_factory=new_id, min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    target_amount: Decimal = Field(..., gt=0)
    current_amount: Decimal = Field(default=Decimal("0"), ge=0)
    deadline: date
    color: str = Field(default=GOAL_COLORS[0])


# =============================================================================
# AI COLLABORATOR MODELS
# =============================================================================

class ReceiptData(BaseModel):
    """
    What the AI thinks it read off a receipt.

    CRITICAL: This is PROPOSED data. It only prefills the form,
    the user still has to submit it.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    merchant: str = Field(..., max_length=200)
    amount: Decimal = Field(..., ge=0)
    date: date
    category: str = Field(
        ...,
        description="Free-text suggestion, mapped onto known categories later"
    )


class ChatMessage(BaseModel):
    """One message in the advisor conversation."""

    id: str = Field(default_factory=new_id)
    role: ChatRole
    text: str
    is_loading: bool = False
