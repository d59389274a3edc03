"""
Derived Aggregates

Pure functions over the store's collections. Nothing here is cached:
the numbers are recomputed from the transactions on every read, so
they can never disagree with the ledger.

Savings are expenses in the "Savings" category. They are reported
apart from ordinary expenses but still reduce the balance:

    balance = income - expense - savings
"""

from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict

from smartspend.models.finance import (
    SAVINGS_CATEGORY,
    Budget,
    Goal,
    Transaction,
    TransactionType,
)


HUNDRED = Decimal("100")
ZERO = Decimal("0")


class FinancialSummary(BaseModel):
    """Dashboard totals."""

    model_config = ConfigDict(frozen=True)

    income: Decimal = ZERO
    expense: Decimal = ZERO
    savings: Decimal = ZERO
    balance: Decimal = ZERO


class BudgetStatus(BaseModel):
    """Utilization of one category's monthly budget."""

    model_config = ConfigDict(frozen=True)

    category: str
    limit: Decimal = ZERO
    spent: Decimal = ZERO
    percent: Optional[Decimal] = None
    is_over: bool = False

    @property
    def has_budget(self) -> bool:
        return self.limit > 0


class GoalProgress(BaseModel):
    """How far along a savings goal is."""

    model_config = ConfigDict(frozen=True)

    goal_id: str
    percent: Decimal
    remaining: Decimal

    @property
    def is_complete(self) -> bool:
        return self.remaining == 0


def _is_savings(txn: Transaction) -> bool:
    return txn.type == TransactionType.EXPENSE and txn.category == SAVINGS_CATEGORY


def summarize(transactions: Iterable[Transaction]) -> FinancialSummary:
    """Income, expense (excluding savings), savings and balance."""
    income = expense = savings = ZERO

    for txn in transactions:
        if txn.type == TransactionType.INCOME:
            income += txn.amount
        elif _is_savings(txn):
            savings += txn.amount
        else:
            expense += txn.amount

    return FinancialSummary(
        income=income,
        expense=expense,
        savings=savings,
        balance=income - expense - savings,
    )


def category_breakdown(transactions: Iterable[Transaction]) -> dict[str, Decimal]:
    """
    Total expense per category, Savings included.

    Categories appear in the order they are first seen.
    """
    totals: dict[str, Decimal] = {}
    for txn in transactions:
        if txn.type != TransactionType.EXPENSE:
            continue
        totals[txn.category] = totals.get(txn.category, ZERO) + txn.amount
    return totals


def _in_month(value: datetime, today: date) -> bool:
    return value.year == today.year and value.month == today.month


def category_spending(
    transactions: Iterable[Transaction],
    category: str,
    today: Union[date, datetime, None] = None,
) -> Decimal:
    """Expense total for one category in today's calendar month."""
    today = today or date.today()
    return sum(
        (
            txn.amount for txn in transactions
            if txn.type == TransactionType.EXPENSE
            and txn.category == category
            and _in_month(txn.date, today)
        ),
        ZERO,
    )


def budget_status(
    category: str,
    budget: Optional[Budget],
    spent: Decimal,
) -> BudgetStatus:
    """
    Clamp utilization to [0, 100].

    A category without a budget has no percentage at all.
    """
    limit = budget.limit if budget else ZERO
    if limit <= 0:
        return BudgetStatus(category=category, limit=ZERO, spent=spent)

    percent = min(spent / limit * HUNDRED, HUNDRED)
    return BudgetStatus(
        category=category,
        limit=limit,
        spent=spent,
        percent=percent,
        is_over=spent > limit,
    )


def budget_overview(
    categories: Iterable[str],
    budgets: Iterable[Budget],
    transactions: Iterable[Transaction],
    today: Union[date, datetime, None] = None,
) -> list[BudgetStatus]:
    """One BudgetStatus per category, in category order."""
    today = today or date.today()
    by_category = {b.category: b for b in budgets}

    spent: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for txn in transactions:
        if txn.type == TransactionType.EXPENSE and _in_month(txn.date, today):
            spent[txn.category] += txn.amount

    return [
        budget_status(cat, by_category.get(cat), spent[cat])
        for cat in categories
    ]


def goal_progress(goal: Goal) -> GoalProgress:
    """Percent saved (capped at 100) and amount still missing (floored at 0)."""
    percent = min(goal.current_amount / goal.target_amount * HUNDRED, HUNDRED)
    remaining = max(goal.target_amount - goal.current_amount, ZERO)
    return GoalProgress(goal_id=goal.id, percent=percent, remaining=remaining)


def recent_transactions(
    transactions: Iterable[Transaction],
    limit: int = 50,
) -> list[Transaction]:
    """Newest first, at most `limit` entries."""
    ordered = sorted(transactions, key=lambda t: t.date, reverse=True)
    return ordered[:limit]
