"""Form validation package."""

from smartspend.validation.validator import InputValidator, parse_amount

__all__ = ["InputValidator", "parse_amount"]
