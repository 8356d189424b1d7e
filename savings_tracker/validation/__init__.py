"""Input validation package."""

from savings_tracker.validation.amounts import AmountInput, parse_amount

__all__ = ["AmountInput", "parse_amount"]
