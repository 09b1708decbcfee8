"""
Budget vs actual tracking view.

Same Class > Group > SubCategory tree as the editor, with budget / actual /
variance per node. A view spans a set of month columns: the three months of
a quarter (plus the quarter total), a single month, or the whole year.
Group and class figures sum budget and actual separately per column and
derive variance from the summed pair.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Tuple

from sqlalchemy.orm import Session

from budgetlock.application.actuals import LedgerReader, VarianceFigures, sum_figures
from budgetlock.application.hierarchy import load_category_tree, load_budget_by_category
from budgetlock.application.lookups import get_scenario
from budgetlock.domain.budget import ClassKind, quarter_months, validate_quarter
from budgetlock.domain.errors import InvalidMonth

ALL_MONTHS: Tuple[int, ...] = tuple(range(1, 13))

_ZERO = Decimal("0")


def _sum_columns(nodes, months: Tuple[int, ...]) -> Dict[int, VarianceFigures]:
    return {m: sum_figures(n.columns[m] for n in nodes) for m in months}


@dataclass
class TrackingSubCategory:
    id: int
    name: str
    code: str
    kind: ClassKind
    columns: Dict[int, VarianceFigures]

    @property
    def total(self) -> VarianceFigures:
        return sum_figures(self.columns.values())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "columns": {m: f.to_dict() for m, f in self.columns.items()},
            "total": self.total.to_dict(),
        }


@dataclass
class TrackingGroup:
    id: int
    name: str
    code: str
    kind: ClassKind
    months: Tuple[int, ...]
    sub_categories: List[TrackingSubCategory] = field(default_factory=list)

    @property
    def columns(self) -> Dict[int, VarianceFigures]:
        return _sum_columns(self.sub_categories, self.months)

    @property
    def total(self) -> VarianceFigures:
        return sum_figures(s.total for s in self.sub_categories)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "columns": {m: f.to_dict() for m, f in self.columns.items()},
            "total": self.total.to_dict(),
            "sub_categories": [s.to_dict() for s in self.sub_categories],
        }


@dataclass
class TrackingClass:
    id: int
    code: str
    name: str
    kind: ClassKind
    months: Tuple[int, ...]
    category_groups: List[TrackingGroup] = field(default_factory=list)

    @property
    def columns(self) -> Dict[int, VarianceFigures]:
        return _sum_columns(self.category_groups, self.months)

    @property
    def total(self) -> VarianceFigures:
        return sum_figures(g.total for g in self.category_groups)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "kind": self.kind.value,
            "columns": {m: f.to_dict() for m, f in self.columns.items()},
            "total": self.total.to_dict(),
            "category_groups": [g.to_dict() for g in self.category_groups],
        }


@dataclass
class TrackingTotals:
    """Total Revenue, Total Expenses and Net P&L for every column of the view."""

    months: Tuple[int, ...]
    revenue: Dict[int, VarianceFigures]
    expenses: Dict[int, VarianceFigures]

    @property
    def net(self) -> Dict[int, VarianceFigures]:
        return {m: self.revenue[m] - self.expenses[m] for m in self.months}

    @property
    def revenue_total(self) -> VarianceFigures:
        return sum_figures(self.revenue.values())

    @property
    def expenses_total(self) -> VarianceFigures:
        return sum_figures(self.expenses.values())

    @property
    def net_total(self) -> VarianceFigures:
        return self.revenue_total - self.expenses_total

    def to_dict(self) -> dict:
        return {
            "revenue": {"columns": {m: f.to_dict() for m, f in self.revenue.items()}, "total": self.revenue_total.to_dict()},
            "expenses": {"columns": {m: f.to_dict() for m, f in self.expenses.items()}, "total": self.expenses_total.to_dict()},
            "net": {"columns": {m: f.to_dict() for m, f in self.net.items()}, "total": self.net_total.to_dict()},
        }


def compute_tracking_totals(classes: List[TrackingClass], months: Tuple[int, ...]) -> TrackingTotals:
    revenue = {m: VarianceFigures() for m in months}
    expenses = {m: VarianceFigures() for m in months}
    for cls in classes:
        target = revenue if cls.kind is ClassKind.REVENUE else expenses
        for m, figures in cls.columns.items():
            target[m] = target[m] + figures
    return TrackingTotals(months=months, revenue=revenue, expenses=expenses)


@dataclass
class TrackingView:
    scenario_id: int
    year: int
    quarter: int | None
    months: Tuple[int, ...]
    classes: List[TrackingClass]

    @property
    def totals(self) -> TrackingTotals:
        return compute_tracking_totals(self.classes, self.months)

    def to_dict(self) -> dict:
        return {
            "scenario_id": self.scenario_id,
            "year": self.year,
            "quarter": self.quarter,
            "months": list(self.months),
            "classes": [c.to_dict() for c in self.classes],
            "totals": self.totals.to_dict(),
        }


class BudgetTrackingService:
    """Reconcile the scenario's budget items against live ledger actuals."""

    def __init__(self, db: Session):
        self.db = db
        self.ledger = LedgerReader(db)

    def get_quarter_view(self, account_id: int, scenario_id: int, quarter: int,
                         month_in_quarter: int | None = None) -> TrackingView:
        """Quarter view (3 month columns) or, with month_in_quarter 1..3, a single month."""
        months = quarter_months(quarter)
        if month_in_quarter is not None:
            if month_in_quarter not in (1, 2, 3):
                raise InvalidMonth(month_in_quarter)
            months = (months[month_in_quarter - 1],)
        return self._build(account_id, scenario_id, tuple(months), validate_quarter(quarter))

    def get_year_view(self, account_id: int, scenario_id: int) -> TrackingView:
        return self._build(account_id, scenario_id, ALL_MONTHS, None)

    def _build(self, account_id: int, scenario_id: int, months: Tuple[int, ...], quarter: int | None) -> TrackingView:
        scenario = get_scenario(self.db, account_id, scenario_id)
        tree = load_category_tree(self.db, account_id)
        budgets = load_budget_by_category(self.db, scenario.id)
        actuals = self.ledger.get_actuals(account_id, scenario.year, list(months))

        classes = []
        for tree_class in tree:
            fc = tree_class.financial_class
            groups = []
            for tree_group in tree_class.groups:
                subs = []
                for leaf in tree_group.leaves:
                    b = budgets.get(leaf.id, {})
                    a = actuals.get(leaf.id, {})
                    columns = {m: VarianceFigures(b.get(m, _ZERO), a.get(m, _ZERO)) for m in months}
                    subs.append(TrackingSubCategory(
                        id=leaf.id, name=leaf.name, code=leaf.code or "", kind=tree_class.kind, columns=columns,
                    ))
                group = tree_group.category
                groups.append(TrackingGroup(
                    id=group.id, name=group.name, code=group.code or "", kind=tree_class.kind,
                    months=months, sub_categories=subs,
                ))
            classes.append(TrackingClass(
                id=fc.id, code=fc.code, name=fc.name, kind=tree_class.kind, months=months, category_groups=groups,
            ))

        return TrackingView(scenario_id=scenario.id, year=scenario.year, quarter=quarter, months=months, classes=classes)
