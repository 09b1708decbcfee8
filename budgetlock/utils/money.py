"""
Unified money formatting for the whole project.

Usage:
    from budgetlock.utils.money import format_money

    format_money(15000, "GBP")       -> "£15,000.00"
    format_money(-1200.5, "USD")     -> "-1,200.50 USD"
    format_money("0", "EUR")         -> "€0.00"
"""
from decimal import Decimal

_CURRENCY_SYMBOL = {
    "GBP": "£",
    "EUR": "€",
}


def format_money(amount, currency: str = "GBP", decimals: int = 2) -> str:
    """
    Format an amount with thousands separators and the currency symbol.

    Args:
        amount: int / float / Decimal / str
        currency: ISO currency code
        decimals: digits after the decimal point

    Returns:
        "£15,000.00" / "1,200.50 USD"
    """
    if isinstance(amount, str):
        amount = Decimal(amount)
    sign = "-" if amount < 0 else ""
    formatted = f"{abs(amount):,.{decimals}f}"
    symbol = _CURRENCY_SYMBOL.get(currency)
    if symbol:
        return f"{sign}{symbol}{formatted}"
    return f"{sign}{formatted} {currency}"


def format_change(amount, currency: str = "GBP") -> str:
    """Signed change: "+£10.00" / "-£5.00"."""
    prefix = "+" if Decimal(str(amount)) >= 0 else ""
    return f"{prefix}{format_money(amount, currency)}"
