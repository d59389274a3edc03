"""
Data Models Package

This package contains all Pydantic models used in SmartSpend.
All data flowing through the system must conform to these schemas.
"""

from smartspend.models.finance import (
    DEFAULT_CATEGORIES,
    GOAL_COLORS,
    SAVINGS_CATEGORY,
    Budget,
    ChatMessage,
    ChatRole,
    Frequency,
    Goal,
    ReceiptData,
    RecurringRule,
    RecurringRuleDraft,
    Transaction,
    TransactionDraft,
    TransactionType,
    new_id,
)
from smartspend.models.forms import (
    GoalForm,
    TransactionForm,
    ValidationIssue,
    ValidationResult,
)
from smartspend.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "DEFAULT_CATEGORIES",
    "GOAL_COLORS",
    "SAVINGS_CATEGORY",
    "Budget",
    "ChatMessage",
    "ChatRole",
    "Frequency",
    "Goal",
    "ReceiptData",
    "RecurringRule",
    "RecurringRuleDraft",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "new_id",
    # Forms and validation
    "GoalForm",
    "TransactionForm",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
