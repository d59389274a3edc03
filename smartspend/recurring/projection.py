"""
Recurring Projection Engine

Turns recurring rules into concrete transactions as of "today".

GUARANTEES:
1. Every occurrence with a due date on or before today is emitted once
   (a rule due exactly today fires)
2. A rule that fired has its next due date moved strictly past today
3. Running again with the same today emits nothing (idempotent)
4. An unknown frequency aborts the whole run; nothing is emitted and
   no rule is touched

DESIGN DECISION: The engine is a pure function over (rules, today).
Applying its output to the entity store is a separate step
(run_projection) so the algorithm can be tested without storage.

Every step starts from the previous due date, the same single date the
store keeps between runs, so the schedule does not depend on how often
the projection runs. Calendar steps (MONTHLY, YEARLY) use relativedelta,
which clamps to the month end where the target month is shorter
(Jan 31 -> Feb 29 -> Mar 29).
"""

from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING, Iterable, Iterator, Optional, Union

import structlog
from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict

from smartspend.audit import AuditLogger
from smartspend.models.audit import AuditEventBuilder
from smartspend.models.finance import (
    Frequency,
    RecurringRule,
    Transaction,
    new_id,
)

if TYPE_CHECKING:
    from smartspend.store import EntityStore


logger = structlog.get_logger(__name__)


_FIXED_STEPS: dict[Frequency, timedelta] = {
    Frequency.DAILY: timedelta(days=1),
    Frequency.WEEKLY: timedelta(days=7),
    Frequency.BIWEEKLY: timedelta(days=14),
}

_CALENDAR_STEPS: dict[Frequency, relativedelta] = {
    Frequency.MONTHLY: relativedelta(months=1),
    Frequency.YEARLY: relativedelta(years=1),
}


class ProjectionError(Exception):
    """Base exception for projection runs."""
    pass


class UnknownFrequencyError(ProjectionError):
    """A rule carries a frequency the engine cannot advance."""

    def __init__(self, rule_id: str, frequency: object):
        self.rule_id = rule_id
        self.frequency = frequency
        super().__init__(
            f"Recurring rule {rule_id} has unknown frequency {frequency!r}"
        )


class ProjectionResult(BaseModel):
    """Output of one projection run."""

    model_config = ConfigDict(frozen=True)

    today: date
    new_transactions: tuple[Transaction, ...] = ()
    updated_rules: tuple[RecurringRule, ...] = ()
    advanced_rule_ids: tuple[str, ...] = ()

    @property
    def has_changes(self) -> bool:
        return bool(self.new_transactions)


def normalize_today(today: Union[date, datetime]) -> date:
    """Drop the time of day; comparisons are by calendar date."""
    if isinstance(today, datetime):
        return today.date()
    return today


def _frequency_of(rule: RecurringRule) -> Frequency:
    try:
        frequency = Frequency(rule.frequency)
    except ValueError:
        raise UnknownFrequencyError(rule.id, rule.frequency)
    if frequency not in _FIXED_STEPS and frequency not in _CALENDAR_STEPS:
        raise UnknownFrequencyError(rule.id, frequency)
    return frequency


def advance_due_date(due: date, frequency: Frequency) -> date:
    """
    Move a due date forward by exactly one period.

    Raises:
        UnknownFrequencyError: frequency has no advance step
    """
    if frequency in _FIXED_STEPS:
        return due + _FIXED_STEPS[frequency]
    if frequency in _CALENDAR_STEPS:
        return due + _CALENDAR_STEPS[frequency]
    raise UnknownFrequencyError("?", frequency)


def due_dates(rule: RecurringRule, today: Union[date, datetime]) -> Iterator[date]:
    """
    Yield every due date of `rule` that is on or before today, oldest first.

    Each step is strictly later than the previous one, so the
    iteration ends for any today.
    """
    today = normalize_today(today)
    frequency = _frequency_of(rule)
    due = rule.next_due_date
    while due <= today:
        yield due
        due = advance_due_date(due, frequency)


def _materialize(rule: RecurringRule, due: date) -> Transaction:
    return Transaction(
        id=new_id(),
        amount=rule.amount,
        description=rule.description,
        category=rule.category,
        date=datetime.combine(due, time.min),
        type=rule.type,
        is_recurring=True,
        recurring_rule_id=rule.id,
    )


def project(
    rules: Iterable[RecurringRule],
    today: Union[date, datetime],
) -> ProjectionResult:
    """
    Materialize every overdue occurrence of every rule.

    Args:
        rules: Current recurring rules, in display order
        today: Reference date; a datetime is truncated to its date

    Returns:
        ProjectionResult with new transactions in rule order
        (chronological within a rule) and all rules, the fired ones
        carrying their new next_due_date.

    Raises:
        UnknownFrequencyError: Any rule has an unrecognized frequency.
            Raised before anything is returned, so no partial result
            can be applied.
    """
    today = normalize_today(today)
    rules = list(rules)

    # Fail the whole run up front, before any rule is processed
    for rule in rules:
        _frequency_of(rule)

    new_transactions: list[Transaction] = []
    updated_rules: list[RecurringRule] = []
    advanced: list[str] = []

    for rule in rules:
        fired = list(due_dates(rule, today))
        if not fired:
            updated_rules.append(rule)
            continue

        new_transactions.extend(_materialize(rule, due) for due in fired)
        next_due = advance_due_date(fired[-1], _frequency_of(rule))
        updated_rules.append(rule.model_copy(update={"next_due_date": next_due}))
        advanced.append(rule.id)

    return ProjectionResult(
        today=today,
        new_transactions=tuple(new_transactions),
        updated_rules=tuple(updated_rules),
        advanced_rule_ids=tuple(advanced),
    )


def run_projection(
    store: "EntityStore",
    today: Optional[Union[date, datetime]] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> ProjectionResult:
    """
    Project the store's rules and merge the result into the store.

    The merge is a single commit: either both the new transactions and
    the advanced rules land, or (on error) neither does.

    Raises:
        ProjectionError: Propagated after logging; the store is untouched.
    """
    today = normalize_today(today or datetime.now())
    audit = audit_logger or AuditLogger()

    try:
        result = project(store.recurring_rules, today)
    except ProjectionError as e:
        logger.error("projection_failed", today=today.isoformat(), error=str(e))
        audit.log(AuditEventBuilder.projection_failed(today.isoformat(), str(e)))
        raise

    store.apply_projection(result)

    audit.log(AuditEventBuilder.projection_completed(
        today=today.isoformat(),
        transactions_created=len(result.new_transactions),
        rules_advanced=len(result.advanced_rule_ids),
    ))
    return result
