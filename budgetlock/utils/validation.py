"""
Validation utilities
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from budgetlock.domain.errors import BudgetValidationError

CENT = Decimal("0.01")

# Numeric(20, 2): 18 integer digits
MAX_AMOUNT = Decimal("1e18")


def normalize_decimal_input(value: str) -> str:
    """
    Normalize an amount string: strip spaces and replace a decimal comma with a dot

    Example:
        >>> normalize_decimal_input(" 100,50 ")
        "100.50"
    """
    return value.strip().replace(" ", "").replace(",", ".")


def to_cents(value: Decimal) -> Decimal:
    """Quantize to 2 decimal places (half away from zero)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value) -> Decimal:
    """
    Coerce caller input into a currency amount in cents.

    Malformed or non-finite input is treated as zero instead of raising.
    Amounts that do not fit the money columns raise BudgetValidationError.

    Example:
        >>> parse_amount("1 000,50")
        Decimal('1000.50')
        >>> parse_amount("abc")
        Decimal('0.00')
    """
    if value is None or isinstance(value, bool):
        return to_cents(Decimal(0))
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    else:
        try:
            amount = Decimal(normalize_decimal_input(str(value)))
        except (InvalidOperation, ValueError):
            return to_cents(Decimal(0))
    if not amount.is_finite():
        return to_cents(Decimal(0))
    if abs(amount) >= MAX_AMOUNT:
        raise BudgetValidationError(f"Amount {amount} is out of range (max {MAX_AMOUNT:,.0f})")
    try:
        cents = to_cents(amount)
    except InvalidOperation as exc:
        raise BudgetValidationError(f"Amount {amount} is out of range") from exc
    if abs(cents) >= MAX_AMOUNT:
        raise BudgetValidationError(f"Amount {amount} is out of range (max {MAX_AMOUNT:,.0f})")
    return cents
