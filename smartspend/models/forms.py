"""
Form and Validation Models

Raw user input as the UI collects it (strings where the user types),
and the result of checking it. Nothing in here is trusted until the
validator turns it into a draft model.
"""

from datetime import date as date_type
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from smartspend.models.finance import Frequency, TransactionType


class TransactionForm(BaseModel):
    """
    The add/edit transaction form.

    Also the target of a receipt scan: the AI result prefills it and
    the user submits it like any other form.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    amount: str = ""
    description: str = ""
    category: str = ""
    type: TransactionType = TransactionType.EXPENSE
    date: date_type = Field(default_factory=date_type.today)

    # Recurring rule mode (ignored when editing)
    is_recurring: bool = False
    frequency: Frequency = Frequency.MONTHLY


class GoalForm(BaseModel):
    """The create goal form."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = ""
    target_amount: str = ""
    deadline: Optional[date_type] = None


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'not_a_number', 'future_date')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of validating one form.

    Errors block the submit, warnings are shown but do not.
    """

    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "warning"]
