"""
Mutation Handlers

Apply user intents to the entity store.

DESIGN DECISION: Each handler builds the complete new collections first
and hands them to EntityStore.commit() in one call. A handler that
touches two collections (goal allocation) therefore lands both or
neither, and every changed collection is persisted by the commit.

Handlers assume their input has already passed the InputValidator.
The few checks here protect store invariants, not form hygiene.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional

import structlog

from smartspend.audit import AuditLogger
from smartspend.models.audit import AuditEventBuilder
from smartspend.models.finance import (
    GOAL_COLORS,
    SAVINGS_CATEGORY,
    Budget,
    Goal,
    RecurringRule,
    RecurringRuleDraft,
    Transaction,
    TransactionDraft,
    TransactionType,
    new_id,
)
from smartspend.store import EntityStore
from smartspend.validation import parse_amount


logger = structlog.get_logger(__name__)


class MutationError(Exception):
    """Base exception for rejected mutations."""
    pass


class InvalidAllocationError(MutationError):
    """Allocation amount is missing, not a number, or not positive."""
    pass


class DuplicateIdError(MutationError):
    """An entity with this id already exists in the collection."""
    pass


class MutationHandlers:
    """
    The write side of the application, next to the projection engine.

    Every public method is one user intent.
    """

    def __init__(
        self,
        store: EntityStore,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()
        self._clock = clock or datetime.now

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def add_transaction(self, draft: TransactionDraft) -> Transaction:
        """Prepend a new transaction with a fresh id."""
        transaction = draft.to_transaction(new_id())
        self._store.commit(transactions=(transaction,) + self._store.transactions)
        self._audit.log(AuditEventBuilder.transaction_added(
            transaction.id, transaction.amount, transaction.category,
        ))
        return transaction

    def edit_transaction(
        self,
        transaction_id: str,
        draft: TransactionDraft,
    ) -> Optional[Transaction]:
        """
        Replace a transaction by id, keeping the id and its position.

        Returns None (and changes nothing) if the id is unknown.
        """
        replacement = draft.to_transaction(transaction_id)
        found = False
        updated = []
        for txn in self._store.transactions:
            if txn.id == transaction_id:
                updated.append(replacement)
                found = True
            else:
                updated.append(txn)

        if not found:
            logger.warning("edit_unknown_transaction", transaction_id=transaction_id)
            return None

        self._store.commit(transactions=updated)
        self._audit.log(AuditEventBuilder.transaction_updated(
            transaction_id, replacement.amount, replacement.category,
        ))
        return replacement

    def save_transaction(
        self,
        draft: TransactionDraft,
        editing_id: Optional[str] = None,
    ) -> Optional[Transaction]:
        """Form submit: edit when an id is being edited, add otherwise."""
        if editing_id:
            return self.edit_transaction(editing_id, draft)
        return self.add_transaction(draft)

    def delete_transaction(self, transaction_id: str) -> bool:
        """
        Remove by id. An unknown id leaves the collection as it is.

        Asking the user first is the caller's job.
        """
        remaining = tuple(t for t in self._store.transactions if t.id != transaction_id)
        if len(remaining) == len(self._store.transactions):
            return False

        self._store.commit(transactions=remaining)
        self._audit.log(AuditEventBuilder.transaction_deleted(transaction_id))
        return True

    # ------------------------------------------------------------------
    # Categories and budgets
    # ------------------------------------------------------------------

    def add_category(self, category: str) -> bool:
        """Append unless an exact (case-sensitive) match already exists."""
        if category in self._store.categories:
            return False

        self._store.commit(categories=self._store.categories + (category,))
        self._audit.log(AuditEventBuilder.category_added(category))
        return True

    def update_budget(self, budget: Budget) -> Budget:
        """Upsert by category: drop any existing budget for it, append the new one."""
        others = tuple(b for b in self._store.budgets if b.category != budget.category)
        self._store.commit(budgets=others + (budget,))
        self._audit.log(AuditEventBuilder.budget_updated(budget.category, budget.limit))
        return budget

    # ------------------------------------------------------------------
    # Goals
    # ------------------------------------------------------------------

    def add_goal(self, goal: Goal) -> Goal:
        """Append a goal. New goals always start with nothing saved."""
        if self._store.find_goal(goal.id) is not None:
            raise DuplicateIdError(f"Goal {goal.id} already exists")

        goal = goal.model_copy(update={"current_amount": Decimal("0")})
        self._store.commit(goals=self._store.goals + (goal,))
        self._audit.log(AuditEventBuilder.goal_added(goal.id, goal.name, goal.target_amount))
        return goal

    def create_goal(
        self,
        name: str,
        target_amount: Decimal,
        deadline: date,
    ) -> Goal:
        """Build a goal with a fresh id and the next palette colour, then add it."""
        color = GOAL_COLORS[len(self._store.goals) % len(GOAL_COLORS)]
        goal = Goal(
            id=new_id(),
            name=name,
            target_amount=target_amount,
            deadline=deadline,
            color=color,
        )
        return self.add_goal(goal)

    def update_goal(self, goal: Goal) -> Optional[Transaction]:
        """
        Replace a goal record.

        If current_amount went up compared to the stored goal, the
        difference is recorded as a Savings expense dated now, in the
        same commit as the goal.

        Returns:
            The synthesized Savings transaction, or None if there was
            no increase (or the goal does not exist).
        """
        previous = self._store.find_goal(goal.id)
        if previous is None:
            logger.warning("update_unknown_goal", goal_id=goal.id)
            return None

        goals = tuple(goal if g.id == goal.id else g for g in self._store.goals)

        delta = goal.current_amount - previous.current_amount
        if delta <= 0:
            self._store.commit(goals=goals)
            self._audit.log(AuditEventBuilder.goal_updated(goal.id, goal.name))
            return None

        savings = Transaction(
            id=new_id(),
            amount=delta,
            description=f"Allocation to {goal.name}",
            category=SAVINGS_CATEGORY,
            date=self._clock(),
            type=TransactionType.EXPENSE,
        )
        self._store.commit(
            goals=goals,
            transactions=(savings,) + self._store.transactions,
        )
        self._audit.log(AuditEventBuilder.funds_allocated(goal.id, delta, savings.id))
        return savings

    def allocate_funds(self, goal_id: str, amount: object) -> Transaction:
        """
        Move `amount` into a goal.

        Raises:
            InvalidAllocationError: amount is not a positive number
            MutationError: goal does not exist
        """
        value = parse_amount(amount)
        if value is None or value <= 0:
            raise InvalidAllocationError(f"Cannot allocate {amount!r}")

        goal = self._store.find_goal(goal_id)
        if goal is None:
            raise MutationError(f"Goal {goal_id} not found")

        updated = goal.model_copy(update={"current_amount": goal.current_amount + value})
        return self.update_goal(updated)

    def delete_goal(self, goal_id: str) -> bool:
        """Remove a goal. Its past Savings transactions stay in the ledger."""
        remaining = tuple(g for g in self._store.goals if g.id != goal_id)
        if len(remaining) == len(self._store.goals):
            return False

        self._store.commit(goals=remaining)
        self._audit.log(AuditEventBuilder.goal_deleted(goal_id))
        return True

    # ------------------------------------------------------------------
    # Recurring rules
    # ------------------------------------------------------------------

    def add_recurring_rule(self, draft: RecurringRuleDraft) -> RecurringRule:
        """
        Append a rule with a fresh id.

        The due date is kept as entered; a past or present date fires
        on the next projection run.
        """
        rule = RecurringRule(id=new_id(), **draft.model_dump())
        self._store.commit(recurring_rules=self._store.recurring_rules + (rule,))
        self._audit.log(AuditEventBuilder.recurring_rule_added(
            rule.id, rule.frequency_label, rule.next_due_date.isoformat(),
        ))
        return rule

    def delete_recurring_rule(self, rule_id: str) -> bool:
        """Stop a rule. Transactions it already generated are kept."""
        remaining = tuple(r for r in self._store.recurring_rules if r.id != rule_id)
        if len(remaining) == len(self._store.recurring_rules):
            return False

        self._store.commit(recurring_rules=remaining)
        self._audit.log(AuditEventBuilder.recurring_rule_deleted(rule_id))
        return True
