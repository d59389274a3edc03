"""
SmartSpend - Source Package

A personal finance tracker: income/expense transactions, monthly
budgets, savings goals and recurring transactions, with an AI
receipt scanner and advisor on the side.

DESIGN PRINCIPLES:
1. One owned state container, one writer at a time
2. Recurring projection is deterministic and idempotent
3. Every mutation is all-or-nothing
4. AI output is a suggestion, never a write
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "SmartSpend Team"
