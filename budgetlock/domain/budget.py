"""
Budget domain rules (pure, no database access)

- ClassKind: revenue vs expense classes and the favorable direction of change
- Quarter / month arithmetic
- Yearly -> monthly distribution with an exact cent remainder in December
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import List

from budgetlock.domain.errors import InvalidMonth, InvalidQuarter

REVENUE_CLASS_CODE = "REVENUE"

MONTHS_IN_YEAR = 12

QUARTER_MONTHS = {
    1: (1, 2, 3),
    2: (4, 5, 6),
    3: (7, 8, 9),
    4: (10, 11, 12),
}

MONTH_NAMES_SHORT = {
    1: "Jan", 2: "Feb", 3: "Mar", 4: "Apr", 5: "May", 6: "Jun",
    7: "Jul", 8: "Aug", 9: "Sep", 10: "Oct", 11: "Nov", 12: "Dec",
}

_ZERO = Decimal("0")
_CENT = Decimal("0.01")


class ClassKind(str, Enum):
    """Kind of a top-level class. Revenue classes sort first."""

    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"

    @classmethod
    def from_code(cls, code: str | None) -> "ClassKind":
        if (code or "").strip().upper() == REVENUE_CLASS_CODE:
            return cls.REVENUE
        return cls.EXPENSE

    @property
    def sort_rank(self) -> int:
        return 0 if self is ClassKind.REVENUE else 1

    def is_favorable(self, change: Decimal) -> bool:
        """More revenue is good, less spending is good. Zero is favorable for both."""
        if self is ClassKind.REVENUE:
            return change >= 0
        return change <= 0


def validate_month(month) -> int:
    """Return month if it is a calendar month number 1..12, else raise InvalidMonth."""
    if isinstance(month, bool) or not isinstance(month, int) or not 1 <= month <= MONTHS_IN_YEAR:
        raise InvalidMonth(month)
    return month


def validate_quarter(quarter) -> int:
    if isinstance(quarter, bool) or not isinstance(quarter, int) or quarter not in QUARTER_MONTHS:
        raise InvalidQuarter(quarter)
    return quarter


def quarter_months(quarter: int) -> tuple[int, int, int]:
    """Calendar months of a quarter in order: 2 -> (4, 5, 6)."""
    return QUARTER_MONTHS[validate_quarter(quarter)]


def quarter_of_month(month: int) -> int:
    return (validate_month(month) - 1) // 3 + 1


def quarter_month_names(quarter: int) -> List[str]:
    return [MONTH_NAMES_SHORT[m] for m in quarter_months(quarter)]


def quarter_description(quarter: int) -> str:
    """Q1 -> "Jan · Feb · Mar"."""
    return " · ".join(quarter_month_names(quarter))


@dataclass(frozen=True)
class MonthlyDistribution:
    """Twelve monthly allocations derived from one yearly amount."""

    yearly_amount: Decimal
    monthly_base: Decimal
    remainder: Decimal

    @property
    def allocations(self) -> List[Decimal]:
        return [self.monthly_base] * (MONTHS_IN_YEAR - 1) + [self.remainder]

    def by_month(self) -> dict[int, Decimal]:
        return {month: amount for month, amount in enumerate(self.allocations, start=1)}

    @property
    def total(self) -> Decimal:
        return sum(self.allocations, _ZERO)


def distribute_yearly_amount(yearly_amount: Decimal) -> MonthlyDistribution:
    """
    Split a yearly amount into 12 monthly figures.

    Months 1..11 get floor(yearly / 12) at cent resolution (floored towards
    negative infinity, so -50.00 gives -4.17), and December absorbs the rest:

        1000.00 -> 11 x 83.33 + 83.37
        -50.00  -> 11 x -4.17 + -4.13

    The amount must already be quantized to cents; the 12 figures then sum
    back to it exactly.
    Callers quantize first (half away from zero), so a sub-cent input such as
    -0.005 is distributed as -0.01 (11 x -0.01 + 0.10) rather than split from
    the raw value.
    """
    amount = Decimal(yearly_amount)
    if amount != amount.quantize(_CENT):
        raise ValueError(f"yearly amount must be in whole cents, got {amount}")

    cents = int(amount * 100)
    base_cents = cents // MONTHS_IN_YEAR  # floor division rounds towards -inf
    remainder_cents = cents - base_cents * (MONTHS_IN_YEAR - 1)

    return MonthlyDistribution(
        yearly_amount=amount.quantize(_CENT),
        monthly_base=Decimal(base_cents).scaleb(-2),
        remainder=Decimal(remainder_cents).scaleb(-2),
    )
