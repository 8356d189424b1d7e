"""
Amount Validation

DESIGN DECISION: Every amount that enters the ledger passes through
parse_amount first. Form inputs arrive as strings, floats or Decimals;
we normalize them to a 2-place Decimal or reject them loudly.

IMPORTANT: Validation NEVER silently fixes issues.
"abc", "-5", "NaN" and "0" are rejected, not coerced to zero.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from savings_tracker.config import get_settings
from savings_tracker.errors import InvalidAmountError


CENT = Decimal("0.01")

AmountInput = Union[str, int, float, Decimal]


def _max_amount() -> Decimal:
    return Decimal(str(get_settings().app.max_amount))


def parse_amount(
    value: Optional[AmountInput],
    field: str = "amount",
    allow_zero: bool = False,
    max_amount: Optional[Decimal] = None,
) -> Decimal:
    """
    Convert user input to a validated Decimal amount.

    Args:
        value: Raw input (form string, number)
        field: Field name used in the error message
        allow_zero: Accept 0 (administrative edits) instead of requiring > 0
        max_amount: Sanity cap; defaults to the configured max_amount

    Returns:
        The amount quantized to cents

    Raises:
        InvalidAmountError: If the value is missing, non-numeric, not finite,
            negative, zero (unless allowed) or above the cap
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmountError(field, value)

    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            raise InvalidAmountError(field, value, f"{field.replace('_', ' ').capitalize()} is required")

    try:
        # str() first so floats keep their printed value (0.1 -> "0.1")
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(field, value)

    if not amount.is_finite():
        raise InvalidAmountError(field, value)

    label = field.replace("_", " ").capitalize()

    cap = max_amount if max_amount is not None else _max_amount()
    if amount > cap:
        raise InvalidAmountError(
            field,
            value,
            f"{label} ({amount:,.2f}) exceeds the limit of {cap:,.2f}",
        )

    # Quantize before the sign check so 0.001 counts as zero
    amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)

    if amount < 0:
        raise InvalidAmountError(field, value, f"{label} cannot be negative")
    if amount == 0 and not allow_zero:
        raise InvalidAmountError(field, value, f"{label} must be greater than zero")

    # "-0" survives both checks as Decimal("-0.00")
    return abs(amount)
