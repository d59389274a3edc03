"""
Form Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence (amount, description, goal name...)
- Numbers parse and are positive
- This catches empty or mistyped input

STAGE 2 - SEMANTIC VALIDATION:
- Dates far in the future
- Categories the user has not created
- These only produce warnings, the user may know better

IMPORTANT: Validation NEVER silently fixes input.
A form with errors produces no draft and changes no state.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from pydantic import ValidationError

from smartspend.config import AppSettings, get_settings
from smartspend.models.finance import (
    RecurringRuleDraft,
    TransactionDraft,
)
from smartspend.models.forms import (
    GoalForm,
    TransactionForm,
    ValidationIssue,
    ValidationResult,
)


def parse_amount(raw: object) -> Optional[Decimal]:
    """Parse user input into a Decimal, None if it is not a finite number."""
    if raw is None:
        return None
    if isinstance(raw, Decimal):
        value = raw
    else:
        text = str(raw).strip().replace(",", "")
        if not text:
            return None
        try:
            value = Decimal(text)
        except InvalidOperation:
            return None
    if not value.is_finite():
        return None
    return value


def _error(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="error",
    )


def _warning(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="warning",
    )


def _result(issues: list[ValidationIssue]) -> ValidationResult:
    return ValidationResult(
        is_valid=not any(i.severity == "error" for i in issues),
        issues=issues,
    )


class InputValidator:
    """
    Validates raw form input before any handler sees it.

    Handlers assume valid input; this is where it becomes valid.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    @property
    def settings(self) -> AppSettings:
        return self._settings

    def check_positive_amount(
        self,
        raw: object,
        field: str = "amount",
    ) -> tuple[Optional[Decimal], list[ValidationIssue]]:
        """Required, numeric, greater than zero."""
        if raw is None or not str(raw).strip():
            return None, [_error(field, "missing", f"{field.replace('_', ' ').capitalize()} is required")]

        value = parse_amount(raw)
        if value is None:
            return None, [_error(field, "not_a_number", f"'{raw}' is not a number")]
        if value <= 0:
            return None, [_error(field, "invalid_value", "Amount must be greater than zero")]
        return value, []

    def _validate_schema(self, form: TransactionForm) -> tuple[Optional[Decimal], list[ValidationIssue]]:
        amount, issues = self.check_positive_amount(form.amount)

        if not form.description:
            issues.append(_error("description", "missing", "Description is required"))
        if not form.category:
            issues.append(_error("category", "missing", "Pick a category"))

        return amount, issues

    def _validate_semantic(
        self,
        form: TransactionForm,
        categories: Optional[Iterable[str]],
    ) -> list[ValidationIssue]:
        issues = []
        today = date.today()

        # A recurring start date may be past, present or future
        if not form.is_recurring:
            max_future = today + timedelta(days=self._settings.future_date_tolerance_days)
            if form.date > max_future:
                issues.append(_warning(
                    "date",
                    "future_date",
                    f"Date ({form.date}) is in the future",
                ))

        if categories is not None and form.category and form.category not in set(categories):
            issues.append(_warning(
                "category",
                "unknown_category",
                f"'{form.category}' is not one of your categories",
            ))

        return issues

    def validate_transaction(
        self,
        form: TransactionForm,
        categories: Optional[Iterable[str]] = None,
    ) -> ValidationResult:
        """Run both stages. Stage 2 only runs if stage 1 passes."""
        _, issues = self._validate_schema(form)
        if not any(i.severity == "error" for i in issues):
            issues.extend(self._validate_semantic(form, categories))
        return _result(issues)

    def to_transaction_draft(
        self,
        form: TransactionForm,
        categories: Optional[Iterable[str]] = None,
    ) -> tuple[ValidationResult, Optional[TransactionDraft]]:
        """
        Turn a submitted form into a TransactionDraft.

        Returns:
            (validation_result, draft or None when there are errors)
        """
        result = self.validate_transaction(form, categories)
        if not result.is_valid:
            return result, None

        try:
            draft = TransactionDraft(
                amount=parse_amount(form.amount),
                description=form.description,
                category=form.category,
                date=datetime.combine(form.date, time.min),
                type=form.type,
            )
        except ValidationError as e:
            return _result([_error("form", "invalid", str(e))]), None
        return result, draft

    def to_recurring_draft(
        self,
        form: TransactionForm,
        categories: Optional[Iterable[str]] = None,
    ) -> tuple[ValidationResult, Optional[RecurringRuleDraft]]:
        """Same form in recurring mode: the date becomes the next due date."""
        result = self.validate_transaction(form, categories)
        if not result.is_valid:
            return result, None

        try:
            draft = RecurringRuleDraft(
                amount=parse_amount(form.amount),
                description=form.description,
                category=form.category,
                type=form.type,
                frequency=form.frequency,
                next_due_date=form.date,
            )
        except ValidationError as e:
            return _result([_error("form", "invalid", str(e))]), None
        return result, draft

    def validate_goal(self, form: GoalForm) -> tuple[ValidationResult, Optional[Decimal]]:
        """Name, positive target and a deadline are all required."""
        target, issues = self.check_positive_amount(form.target_amount, "target_amount")
        if not form.name:
            issues.append(_error("name", "missing", "Goal name is required"))
        if form.deadline is None:
            issues.append(_error("deadline", "missing", "Pick a deadline"))
        elif form.deadline < date.today():
            issues.append(_warning("deadline", "past_date", "Deadline is already in the past"))
        return _result(issues), target

    def validate_category_name(
        self,
        name: str,
        categories: Iterable[str],
    ) -> ValidationResult:
        """Blank names are rejected; duplicates are a no-op, so only informational."""
        name = (name or "").strip()
        if not name:
            return _result([_error("category", "missing", "Category name is required")])
        if name in set(categories):
            return _result([ValidationIssue(
                field="category",
                issue_type="duplicate",
                message=f"'{name}' already exists",
                severity="info",
            )])
        return _result([])

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Short message for the form.

        This is what we show under the submit button.
        """
        if result.is_valid and not result.warnings:
            return ""

        lines = []
        for issue in result.issues:
            if issue.severity == "error":
                lines.append(f"❌ {issue.message}")
        for warning in result.warnings:
            lines.append(f"⚠️ {warning}")
        return "\n".join(lines)
