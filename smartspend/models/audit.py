"""
Audit Models for SmartSpend

Every state transition in the system is logged for audit purposes.
This provides:
1. Traceability of every write to the entity store
2. Debugging information when things go wrong
3. Ability to reconstruct how a balance came about

DESIGN DECISION: Audit events are append-only. We never delete or modify them.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    One event type per writer operation, plus load and AI outcomes.
    """
    # Startup
    STATE_LOADED = "state_loaded"
    STATE_LOAD_FALLBACK = "state_load_fallback"

    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Planning
    CATEGORY_ADDED = "category_added"
    BUDGET_UPDATED = "budget_updated"
    GOAL_ADDED = "goal_added"
    GOAL_UPDATED = "goal_updated"
    GOAL_DELETED = "goal_deleted"
    FUNDS_ALLOCATED = "funds_allocated"

    # Recurring
    RECURRING_RULE_ADDED = "recurring_rule_added"
    RECURRING_RULE_DELETED = "recurring_rule_deleted"
    PROJECTION_COMPLETED = "projection_completed"
    PROJECTION_FAILED = "projection_failed"

    # Persistence
    SAVE_FAILED = "save_failed"

    # AI collaborator
    RECEIPT_PARSED = "receipt_parsed"
    ADVICE_GENERATED = "advice_generated"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every committed mutation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred (local time)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'goal', 'collection')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one receipt scan)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(txn_id, amount, category)
        event = AuditEventBuilder.projection_completed(3, 1)
    """

    @staticmethod
    def state_loaded(collection: str, item_count: int, from_default: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_LOADED,
            entity_type="collection",
            entity_id=collection,
            description=f"Loaded {collection} ({item_count} items)",
            details={
                "item_count": item_count,
                "from_default": from_default,
            },
        )

    @staticmethod
    def state_load_fallback(collection: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_LOAD_FALLBACK,
            severity=AuditSeverity.ERROR,
            entity_type="collection",
            entity_id=collection,
            description=f"Failed to parse {collection}, using default",
            error_message=error_message,
        )

    @staticmethod
    def transaction_added(
        transaction_id: str,
        amount: Decimal,
        category: str,
        is_user_action: bool = True,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction added: {category} {amount}",
            details={
                "amount": str(amount),
                "category": category,
            },
            is_user_action=is_user_action,
        )

    @staticmethod
    def transaction_updated(transaction_id: str, amount: Decimal, category: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction replaced: {category} {amount}",
            details={
                "amount": str(amount),
                "category": category,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(transaction_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def category_added(category: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_ADDED,
            entity_type="category",
            entity_id=category,
            description=f"Category added: {category}",
            is_user_action=True,
        )

    @staticmethod
    def budget_updated(category: str, limit: Decimal) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_UPDATED,
            entity_type="budget",
            entity_id=category,
            description=f"Budget for {category} set to {limit}",
            details={"limit": str(limit)},
            is_user_action=True,
        )

    @staticmethod
    def goal_added(goal_id: str, name: str, target_amount: Decimal) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_ADDED,
            entity_type="goal",
            entity_id=goal_id,
            description=f"Goal created: {name}",
            details={"target_amount": str(target_amount)},
            is_user_action=True,
        )

    @staticmethod
    def goal_updated(goal_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_UPDATED,
            entity_type="goal",
            entity_id=goal_id,
            description=f"Goal updated: {name}",
            is_user_action=True,
        )

    @staticmethod
    def funds_allocated(
        goal_id: str,
        amount: Decimal,
        transaction_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FUNDS_ALLOCATED,
            entity_type="goal",
            entity_id=goal_id,
            description=f"Allocated {amount} to goal",
            details={
                "amount": str(amount),
                "savings_transaction_id": transaction_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def goal_deleted(goal_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_DELETED,
            entity_type="goal",
            entity_id=goal_id,
            description="Goal deleted",
            is_user_action=True,
        )

    @staticmethod
    def recurring_rule_added(rule_id: str, frequency: str, next_due_date: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_RULE_ADDED,
            entity_type="recurring_rule",
            entity_id=rule_id,
            description=f"Recurring rule added ({frequency}, next {next_due_date})",
            details={
                "frequency": frequency,
                "next_due_date": next_due_date,
            },
            is_user_action=True,
        )

    @staticmethod
    def recurring_rule_deleted(rule_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_RULE_DELETED,
            entity_type="recurring_rule",
            entity_id=rule_id,
            description="Recurring rule deleted",
            is_user_action=True,
        )

    @staticmethod
    def projection_completed(
        today: str,
        transactions_created: int,
        rules_advanced: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECTION_COMPLETED,
            entity_type="projection",
            description=(
                f"Projection for {today}: {transactions_created} transactions, "
                f"{rules_advanced} rules advanced"
            ),
            details={
                "today": today,
                "transactions_created": transactions_created,
                "rules_advanced": rules_advanced,
            },
        )

    @staticmethod
    def projection_failed(today: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECTION_FAILED,
            severity=AuditSeverity.CRITICAL,
            entity_type="projection",
            description=f"Projection for {today} aborted, no changes applied",
            error_message=error_message,
        )

    @staticmethod
    def save_failed(collection: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="collection",
            entity_id=collection,
            description=f"Could not persist {collection}",
            error_message=error_message,
        )

    @staticmethod
    def receipt_parsed(
        merchant: str,
        amount: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_PARSED,
            entity_type="receipt",
            correlation_id=correlation_id,
            description=f"Receipt read: {merchant} {amount}",
            details={
                "merchant": merchant,
                "amount": str(amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def advice_generated(context_size: int, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVICE_GENERATED,
            entity_type="advice",
            correlation_id=correlation_id,
            description=f"Advisor answered using {context_size} transactions",
            details={"context_size": context_size},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
