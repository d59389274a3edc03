"""Recurring transaction projection package."""

from smartspend.recurring.projection import (
    ProjectionError,
    ProjectionResult,
    UnknownFrequencyError,
    advance_due_date,
    due_dates,
    normalize_today,
    project,
    run_projection,
)

__all__ = [
    "ProjectionError",
    "ProjectionResult",
    "UnknownFrequencyError",
    "advance_due_date",
    "due_dates",
    "normalize_today",
    "project",
    "run_projection",
]
