"""Tests for form validation."""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from smartspend.models import Frequency, GoalForm, TransactionForm, TransactionType
from smartspend.validation import InputValidator, parse_amount


CATEGORIES = ["Food & Dining", "Shopping"]


@pytest.fixture
def validator(app_settings):
    return InputValidator(app_settings)


def form(**overrides) -> TransactionForm:
    values = {
        "amount": "12.50",
        "description": "Lunch",
        "category": "Food & Dining",
        "date": date.today(),
    }
    values.update(overrides)
    return TransactionForm(**values)


class TestParseAmount:
    """Tests for amount parsing."""

    @pytest.mark.parametrize("raw,expected", [
        ("12.50", Decimal("12.50")),
        (" 7 ", Decimal("7")),
        ("1,250.00", Decimal("1250.00")),
        (Decimal("3"), Decimal("3")),
        (5, Decimal("5")),
    ])
    def test_valid(self, raw, expected):
        """Test numbers in the shapes users type them."""
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   ", "abc", "nan", "inf"])
    def test_invalid(self, raw):
        """Test anything that is not a finite number."""
        assert parse_amount(raw) is None


class TestTransactionValidation:
    """Tests for the transaction form."""

    def test_valid_form_gives_draft(self, validator):
        """Test a clean form becomes a draft at midnight of its date."""
        result, draft = validator.to_transaction_draft(form(), CATEGORIES)

        assert result.is_valid
        assert draft.amount == Decimal("12.50")
        assert draft.date == datetime.combine(date.today(), datetime.min.time())
        assert draft.type == TransactionType.EXPENSE

    @pytest.mark.parametrize("amount,issue_type", [
        ("", "missing"),
        ("twelve", "not_a_number"),
        ("0", "invalid_value"),
        ("-3", "invalid_value"),
    ])
    def test_bad_amount_blocks_submit(self, validator, amount, issue_type):
        """Test missing, non-numeric and non-positive amounts are errors."""
        result, draft = validator.to_transaction_draft(form(amount=amount), CATEGORIES)

        assert draft is None
        assert not result.is_valid
        assert result.issues[0].field == "amount"
        assert result.issues[0].issue_type == issue_type

    def test_missing_description(self, validator):
        """Test the description is required."""
        result = validator.validate_transaction(form(description="   "))
        assert result.error_count == 1
        assert result.issues[0].field == "description"

    def test_far_future_date_warns(self, validator):
        """Test a date past the tolerance is a warning, not an error."""
        result, draft = validator.to_transaction_draft(
            form(date=date.today() + timedelta(days=30)), CATEGORIES,
        )
        assert result.is_valid
        assert draft is not None
        assert any("future" in w for w in result.warnings)

    def test_recurring_start_may_be_future(self, validator):
        """Test recurring mode does not warn about future dates."""
        result = validator.validate_transaction(
            form(date=date.today() + timedelta(days=90), is_recurring=True),
        )
        assert result.warnings == []

    def test_unknown_category_warns(self, validator):
        """Test a category the user never created is flagged."""
        result = validator.validate_transaction(form(category="Pets"), CATEGORIES)
        assert result.is_valid
        assert result.issues[0].issue_type == "unknown_category"

    def test_recurring_draft(self, validator):
        """Test the form date becomes the rule's next due date."""
        start = date(2024, 1, 1)
        result, draft = validator.to_recurring_draft(
            form(date=start, is_recurring=True, frequency=Frequency.WEEKLY), CATEGORIES,
        )
        assert result.is_valid
        assert draft.next_due_date == start
        assert draft.frequency == Frequency.WEEKLY

    def test_summary_text(self, validator):
        """Test the user-facing summary lists errors."""
        result = validator.validate_transaction(form(amount="", description=""))
        summary = validator.get_user_friendly_summary(result)
        assert "Amount is required" in summary
        assert "Description is required" in summary

    def test_summary_empty_when_clean(self, validator):
        """Test nothing is shown for a clean form."""
        result = validator.validate_transaction(form(), CATEGORIES)
        assert validator.get_user_friendly_summary(result) == ""


class TestGoalValidation:
    """Tests for the goal form."""

    def test_valid_goal(self, validator):
        """Test a complete goal form."""
        result, target = validator.validate_goal(GoalForm(
            name="Car", target_amount="5000", deadline=date.today() + timedelta(days=365),
        ))
        assert result.is_valid
        assert target == Decimal("5000")

    def test_goal_requires_everything(self, validator):
        """Test name, target and deadline are all required."""
        result, target = validator.validate_goal(GoalForm())
        assert target is None
        assert {i.field for i in result.issues} == {"name", "target_amount", "deadline"}

    def test_past_deadline_warns(self, validator):
        """Test a past deadline is allowed with a warning."""
        result, _ = validator.validate_goal(GoalForm(
            name="Car", target_amount="5000", deadline=date(2000, 1, 1),
        ))
        assert result.is_valid
        assert result.warnings


class TestCategoryValidation:
    """Tests for new category names."""

    def test_blank_name(self, validator):
        """Test a blank category is an error."""
        assert not validator.validate_category_name("  ", CATEGORIES).is_valid

    def test_duplicate_is_info(self, validator):
        """Test a duplicate is allowed through as a no-op."""
        result = validator.validate_category_name("Shopping", CATEGORIES)
        assert result.is_valid
        assert result.issues[0].issue_type == "duplicate"
