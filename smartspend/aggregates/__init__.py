"""Derived aggregates package."""

from smartspend.aggregates.summary import (
    BudgetStatus,
    FinancialSummary,
    GoalProgress,
    budget_overview,
    budget_status,
    category_breakdown,
    category_spending,
    goal_progress,
    recent_transactions,
    summarize,
)

__all__ = [
    "BudgetStatus",
    "FinancialSummary",
    "GoalProgress",
    "budget_overview",
    "budget_status",
    "category_breakdown",
    "category_spending",
    "goal_progress",
    "recent_transactions",
    "summarize",
]
