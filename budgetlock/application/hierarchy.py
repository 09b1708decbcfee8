"""
Budget editor hierarchy: Class > CategoryGroup > SubCategory with
reference (previous-year actual), budget and change figures.

Aggregates are properties over the children, so a class total can never
drift from the sum of its groups or leaves.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List

from sqlalchemy.orm import Session

from budgetlock.application.actuals import LedgerReader, OPERATION_INCOME, OPERATION_EXPENSE, year_total
from budgetlock.application.lookups import get_scenario
from budgetlock.domain.budget import ClassKind
from budgetlock.infrastructure.db.models import FinancialClass, BudgetCategory, BudgetItem

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


# ---------------------------------------------------------------------------
# Category tree (structure only, no figures)
# ---------------------------------------------------------------------------


@dataclass
class TreeGroup:
    category: BudgetCategory
    leaves: List[BudgetCategory] = field(default_factory=list)


@dataclass
class TreeClass:
    financial_class: FinancialClass
    kind: ClassKind
    groups: List[TreeGroup] = field(default_factory=list)

    @property
    def ordering_key(self) -> tuple:
        fc = self.financial_class
        return (self.kind.sort_rank, fc.sort_order, fc.id)

    def iter_leaves(self):
        for group in self.groups:
            yield from group.leaves


def _category_sort_key(cat: BudgetCategory) -> tuple:
    return (cat.code or "", cat.name, cat.id)


def load_category_tree(db: Session, account_id: int) -> List[TreeClass]:
    """
    Build the three-level tree for an account.

    Groups are categories without a parent that belong to a class; leaves are
    categories whose parent is such a group. Classes with no groups are left out.
    Revenue classes come first, then the declared sort_order.
    """
    classes = db.query(FinancialClass).filter(FinancialClass.account_id == account_id).all()
    categories = db.query(BudgetCategory).filter(BudgetCategory.account_id == account_id).all()

    tree_by_class = {
        fc.id: TreeClass(financial_class=fc, kind=ClassKind.from_code(fc.code))
        for fc in classes
    }

    children_by_parent: Dict[int, List[BudgetCategory]] = defaultdict(list)
    for cat in categories:
        if cat.parent_id is not None:
            children_by_parent[cat.parent_id].append(cat)

    roots = sorted((c for c in categories if c.parent_id is None), key=_category_sort_key)
    for group in roots:
        tree_class = tree_by_class.get(group.class_id)
        if tree_class is None:
            continue
        leaves = sorted(children_by_parent.get(group.id, []), key=_category_sort_key)
        tree_class.groups.append(TreeGroup(category=group, leaves=leaves))

    result = [tc for tc in tree_by_class.values() if tc.groups]
    result.sort(key=lambda tc: tc.ordering_key)
    return result


# ---------------------------------------------------------------------------
# Editor figures
# ---------------------------------------------------------------------------


@dataclass
class SubCategoryFigures:
    id: int
    name: str
    code: str
    kind: ClassKind
    reference: Decimal
    budget: Decimal

    @property
    def change(self) -> Decimal:
        return self.budget - self.reference

    @property
    def change_percent(self) -> Decimal:
        if self.reference <= 0:
            return _ZERO
        return (self.change / self.reference * _HUNDRED).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    @property
    def is_favorable(self) -> bool:
        # Judged by the owning class, not by the leaf's own sign
        return self.kind.is_favorable(self.change)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "reference": self.reference,
            "budget": self.budget,
            "change": self.change,
            "change_percent": self.change_percent,
            "is_favorable": self.is_favorable,
        }


@dataclass
class CategoryGroupFigures:
    id: int
    name: str
    code: str
    kind: ClassKind
    sub_categories: List[SubCategoryFigures] = field(default_factory=list)

    @property
    def total_reference(self) -> Decimal:
        return sum((s.reference for s in self.sub_categories), _ZERO)

    @property
    def total_budget(self) -> Decimal:
        return sum((s.budget for s in self.sub_categories), _ZERO)

    @property
    def total_change(self) -> Decimal:
        return self.total_budget - self.total_reference

    @property
    def is_favorable(self) -> bool:
        return self.kind.is_favorable(self.total_change)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "total_reference": self.total_reference,
            "total_budget": self.total_budget,
            "total_change": self.total_change,
            "is_favorable": self.is_favorable,
            "sub_categories": [s.to_dict() for s in self.sub_categories],
        }


@dataclass
class ClassFigures:
    id: int
    code: str
    name: str
    kind: ClassKind
    category_groups: List[CategoryGroupFigures] = field(default_factory=list)

    @property
    def total_reference(self) -> Decimal:
        return sum((g.total_reference for g in self.category_groups), _ZERO)

    @property
    def total_budget(self) -> Decimal:
        return sum((g.total_budget for g in self.category_groups), _ZERO)

    @property
    def total_change(self) -> Decimal:
        return self.total_budget - self.total_reference

    @property
    def is_favorable(self) -> bool:
        return self.kind.is_favorable(self.total_change)

    def iter_sub_categories(self):
        for group in self.category_groups:
            yield from group.sub_categories

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "kind": self.kind.value,
            "total_reference": self.total_reference,
            "total_budget": self.total_budget,
            "total_change": self.total_change,
            "is_favorable": self.is_favorable,
            "category_groups": [g.to_dict() for g in self.category_groups],
        }


@dataclass(frozen=True)
class PlanFigures:
    reference: Decimal = _ZERO
    budget: Decimal = _ZERO

    @property
    def change(self) -> Decimal:
        return self.budget - self.reference

    def __add__(self, other: "PlanFigures") -> "PlanFigures":
        return PlanFigures(self.reference + other.reference, self.budget + other.budget)

    def __sub__(self, other: "PlanFigures") -> "PlanFigures":
        return PlanFigures(self.reference - other.reference, self.budget - other.budget)

    def to_dict(self) -> dict:
        return {"reference": self.reference, "budget": self.budget, "change": self.change}


@dataclass(frozen=True)
class GrandTotals:
    """P&L summary: Total Revenue, Total Expenses, Net = Revenue - Expenses."""

    revenue: PlanFigures
    expenses: PlanFigures

    @property
    def net(self) -> PlanFigures:
        return self.revenue - self.expenses

    def to_dict(self) -> dict:
        return {
            "revenue": {**self.revenue.to_dict(), "is_favorable": ClassKind.REVENUE.is_favorable(self.revenue.change)},
            "expenses": {**self.expenses.to_dict(), "is_favorable": ClassKind.EXPENSE.is_favorable(self.expenses.change)},
            "net": {**self.net.to_dict(), "is_favorable": self.net.change >= 0},
        }


def compute_grand_totals(classes: List[ClassFigures]) -> GrandTotals:
    revenue = PlanFigures()
    expenses = PlanFigures()
    for cls in classes:
        figures = PlanFigures(cls.total_reference, cls.total_budget)
        if cls.kind is ClassKind.REVENUE:
            revenue = revenue + figures
        else:
            expenses = expenses + figures
    return GrandTotals(revenue=revenue, expenses=expenses)


def load_budget_by_category(db: Session, scenario_id: int) -> Dict[int, Dict[int, Decimal]]:
    """category_id -> month -> budgeted amount for one scenario."""
    result: Dict[int, Dict[int, Decimal]] = defaultdict(dict)
    items = db.query(BudgetItem).filter(BudgetItem.scenario_id == scenario_id).all()
    for item in items:
        result[item.category_id][item.month] = Decimal(item.budgeted_amount)
    return result


class BudgetHierarchyService:
    """Build the yearly editor hierarchy for one scenario (read only)."""

    def __init__(self, db: Session):
        self.db = db
        self.ledger = LedgerReader(db)

    def get_hierarchy(self, account_id: int, scenario_id: int) -> List[ClassFigures]:
        scenario = get_scenario(self.db, account_id, scenario_id)
        tree = load_category_tree(self.db, account_id)

        budget_by_category = load_budget_by_category(self.db, scenario.id)

        # Reference follows the P&L split: revenue classes read income
        # transactions, every other class reads expense transactions.
        reference_year = scenario.year - 1
        reference = {
            ClassKind.REVENUE: self.ledger.get_reference(account_id, reference_year, OPERATION_INCOME),
            ClassKind.EXPENSE: self.ledger.get_reference(account_id, reference_year, OPERATION_EXPENSE),
        }

        result = []
        for tree_class in tree:
            fc = tree_class.financial_class
            kind = tree_class.kind
            groups = []
            for tree_group in tree_class.groups:
                group = tree_group.category
                subs = [
                    SubCategoryFigures(
                        id=leaf.id,
                        name=leaf.name,
                        code=leaf.code or "",
                        kind=kind,
                        reference=year_total(reference[kind].get(leaf.id)),
                        budget=year_total(budget_by_category.get(leaf.id)),
                    )
                    for leaf in tree_group.leaves
                ]
                groups.append(CategoryGroupFigures(
                    id=group.id, name=group.name, code=group.code or "", kind=kind, sub_categories=subs,
                ))
            result.append(ClassFigures(id=fc.id, code=fc.code, name=fc.name, kind=kind, category_groups=groups))
        return result

    def get_grand_totals(self, account_id: int, scenario_id: int) -> GrandTotals:
        return compute_grand_totals(self.get_hierarchy(account_id, scenario_id))
