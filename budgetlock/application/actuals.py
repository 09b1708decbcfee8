"""
Ledger reads (actuals and previous-year reference) and budget-vs-actual variance.

The ledger is an external collaborator: this module only reads
ledger_transactions and never writes to it.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date as date_type
from decimal import Decimal
from typing import Dict, Iterable, List

from sqlalchemy import or_
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from budgetlock.domain.budget import validate_month
from budgetlock.domain.errors import ExternalServiceUnavailable
from budgetlock.infrastructure.db.models import LedgerTransaction

logger = logging.getLogger(__name__)

# category_id -> month (1..12) -> amount
ActualsByMonth = Dict[int, Dict[int, Decimal]]

_ZERO = Decimal("0")

OPERATION_INCOME = "INCOME"
OPERATION_EXPENSE = "EXPENSE"


@dataclass(frozen=True)
class VarianceFigures:
    """budget / actual pair; variance is always derived, never stored."""

    budget: Decimal = _ZERO
    actual: Decimal = _ZERO

    @property
    def variance(self) -> Decimal:
        return self.budget - self.actual

    @property
    def is_over_budget(self) -> bool:
        return self.actual > self.budget

    def __add__(self, other: "VarianceFigures") -> "VarianceFigures":
        return VarianceFigures(self.budget + other.budget, self.actual + other.actual)

    def __sub__(self, other: "VarianceFigures") -> "VarianceFigures":
        return VarianceFigures(self.budget - other.budget, self.actual - other.actual)

    def to_dict(self) -> dict:
        return {
            "budget": self.budget,
            "actual": self.actual,
            "variance": self.variance,
            "is_over_budget": self.is_over_budget,
        }


def compute_variance(budget: Decimal, actual: Decimal) -> VarianceFigures:
    return VarianceFigures(Decimal(budget), Decimal(actual))


def sum_figures(figures: Iterable[VarianceFigures]) -> VarianceFigures:
    """Sum budgets and actuals independently; variance follows from the pair."""
    total = VarianceFigures()
    for item in figures:
        total = total + item
    return total


def _bucket(rows, month_of) -> ActualsByMonth:
    result: ActualsByMonth = defaultdict(lambda: defaultdict(lambda: _ZERO))
    for tx in rows:
        month = month_of(tx)
        if month is None:
            continue
        result[tx.category_id][month] += abs(Decimal(tx.amount))
    return {cat: dict(months) for cat, months in result.items()}


class LedgerReader:
    """Read-only projection of the external ledger."""

    def __init__(self, db: Session):
        self.db = db

    def get_actuals(
        self,
        account_id: int,
        year: int,
        months: List[int] | None = None,
    ) -> ActualsByMonth:
        """
        Live actuals for a calendar year, summed per category and month.

        A transaction linked to a payable counts in the payable's due month
        (late payments land where they were planned), otherwise in the month
        of its transaction date. Amounts are absolute. An empty or missing
        months list means the whole year.
        """
        wanted = {validate_month(m) for m in months} if months else None
        start, end = date_type(year, 1, 1), date_type(year, 12, 31)

        rows = self._fetch(
            "Ledger actuals source",
            self.db.query(LedgerTransaction).filter(
                LedgerTransaction.account_id == account_id,
                LedgerTransaction.category_id.isnot(None),
                or_(
                    LedgerTransaction.transaction_date.between(start, end),
                    LedgerTransaction.payable_due_date.between(start, end),
                ),
            ),
        )

        def month_of(tx: LedgerTransaction) -> int | None:
            effective = tx.payable_due_date or tx.transaction_date
            if effective.year != year:
                return None
            month = effective.month
            if wanted is not None and month not in wanted:
                return None
            return month

        return _bucket(rows, month_of)

    def get_reference(
        self,
        account_id: int,
        year: int,
        operation_type: str | None = None,
    ) -> ActualsByMonth:
        """
        Confirmed ledger totals of a (previous) year used as the planning baseline,
        bucketed by transaction month. operation_type narrows to INCOME or EXPENSE.
        """
        query = self.db.query(LedgerTransaction).filter(
            LedgerTransaction.account_id == account_id,
            LedgerTransaction.category_id.isnot(None),
            LedgerTransaction.confirmed == True,
            LedgerTransaction.transaction_date >= date_type(year, 1, 1),
            LedgerTransaction.transaction_date < date_type(year + 1, 1, 1),
        )
        if operation_type == OPERATION_INCOME:
            query = query.filter(LedgerTransaction.operation_type == OPERATION_INCOME)
        elif operation_type == OPERATION_EXPENSE:
            query = query.filter(LedgerTransaction.operation_type != OPERATION_INCOME)

        rows = self._fetch("Ledger reference source", query)
        return _bucket(rows, lambda tx: tx.transaction_date.month)

    def _fetch(self, source: str, query) -> list:
        try:
            return query.all()
        except OperationalError as exc:
            logger.exception("%s query failed", source)
            raise ExternalServiceUnavailable(source, str(exc.orig)) from exc


def year_total(by_month: Dict[int, Decimal] | None) -> Decimal:
    return sum((by_month or {}).values(), _ZERO)
