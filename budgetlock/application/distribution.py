"""
Monthly distribution engine: yearly figure -> twelve budget_items rows,
single-month edits, and the per-quarter monthly detail read.

All writes go through the same upsert keyed by (scenario, category, month),
so replaying a call leaves the table unchanged.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from budgetlock.application.actuals import LedgerReader, OPERATION_INCOME, OPERATION_EXPENSE
from budgetlock.application.hierarchy import load_category_tree, load_budget_by_category
from budgetlock.application.lookups import get_scenario, get_leaf_category
from budgetlock.application.quarter_locks import ensure_yearly_editable
from budgetlock.domain.budget import (
    ClassKind, MonthlyDistribution, distribute_yearly_amount, quarter_months, validate_month,
)
from budgetlock.infrastructure.db.models import BudgetItem
from budgetlock.utils.validation import parse_amount

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


def upsert_budget_months(
    db: Session,
    scenario_id: int,
    category_id: int,
    amounts: Dict[int, Decimal],
    is_auto_populated: bool = False,
) -> None:
    """Insert or overwrite budget_items for the given months (flush only, caller commits)."""
    existing = {
        item.month: item
        for item in db.query(BudgetItem).filter(
            BudgetItem.scenario_id == scenario_id,
            BudgetItem.category_id == category_id,
            BudgetItem.month.in_(list(amounts)),
        ).all()
    }
    for month, amount in amounts.items():
        item = existing.get(month)
        if item is None:
            db.add(BudgetItem(
                scenario_id=scenario_id,
                category_id=category_id,
                month=month,
                budgeted_amount=amount,
                is_auto_populated=is_auto_populated,
            ))
        else:
            item.budgeted_amount = amount
            item.is_auto_populated = is_auto_populated
    db.flush()


def _commit_or_rollback(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise


class DistributeYearlyBudgetUseCase:
    """
    Spread a yearly target for one sub-category over 12 months.

    Rejected with ScenarioLocked while any quarter of the scenario is locked.
    The twelve rows are written in one transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(self, account_id: int, scenario_id: int, category_id: int, yearly_amount) -> MonthlyDistribution:
        amount = parse_amount(yearly_amount)

        scenario = get_scenario(self.db, account_id, scenario_id, for_update=True)
        try:
            ensure_yearly_editable(scenario)
            category = get_leaf_category(self.db, account_id, category_id)

            distribution = distribute_yearly_amount(amount)
            upsert_budget_months(self.db, scenario.id, category.id, distribution.by_month())
        except Exception:
            # release the row lock taken above
            self.db.rollback()
            raise
        _commit_or_rollback(self.db)

        logger.info(
            "Scenario %s category %s: yearly %s distributed (base %s, December %s)",
            scenario.id, category.id, distribution.yearly_amount,
            distribution.monthly_base, distribution.remainder,
        )
        return distribution


class SetMonthBudgetUseCase:
    """Direct single-month edit (no distribution). Same lock gate as the yearly path."""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, account_id: int, scenario_id: int, category_id: int, month: int, amount) -> Decimal:
        month = validate_month(month)
        value = parse_amount(amount)

        scenario = get_scenario(self.db, account_id, scenario_id, for_update=True)
        try:
            ensure_yearly_editable(scenario)
            category = get_leaf_category(self.db, account_id, category_id)
            upsert_budget_months(self.db, scenario.id, category.id, {month: value})
        except Exception:
            self.db.rollback()
            raise
        _commit_or_rollback(self.db)

        logger.info("Scenario %s category %s: month %d set to %s", scenario.id, category.id, month, value)
        return value


# ---------------------------------------------------------------------------
# Monthly detail (one quarter)
# ---------------------------------------------------------------------------


@dataclass
class MonthlyBudgetRow:
    category_id: int
    category_name: str
    category_code: str
    group_id: int
    group_name: str
    class_id: int
    class_name: str
    class_kind: ClassKind
    quarter: int
    month1_budget: Decimal = _ZERO
    month2_budget: Decimal = _ZERO
    month3_budget: Decimal = _ZERO
    month1_ref: Decimal = _ZERO
    month2_ref: Decimal = _ZERO
    month3_ref: Decimal = _ZERO
    month1_actual: Decimal = _ZERO
    month2_actual: Decimal = _ZERO
    month3_actual: Decimal = _ZERO

    @property
    def months(self) -> tuple[int, int, int]:
        return quarter_months(self.quarter)

    @property
    def q_total(self) -> Decimal:
        return self.month1_budget + self.month2_budget + self.month3_budget

    @property
    def q_ref_total(self) -> Decimal:
        return self.month1_ref + self.month2_ref + self.month3_ref

    @property
    def q_actual_total(self) -> Decimal:
        return self.month1_actual + self.month2_actual + self.month3_actual

    def budget_for(self, month_in_quarter: int) -> Decimal:
        return (self.month1_budget, self.month2_budget, self.month3_budget)[month_in_quarter - 1]

    def actual_for(self, month_in_quarter: int) -> Decimal:
        return (self.month1_actual, self.month2_actual, self.month3_actual)[month_in_quarter - 1]

    def to_dict(self) -> dict:
        return {
            "category_id": self.category_id,
            "category_name": self.category_name,
            "category_code": self.category_code,
            "group_id": self.group_id,
            "group_name": self.group_name,
            "class_id": self.class_id,
            "class_name": self.class_name,
            "class_kind": self.class_kind.value,
            "quarter": self.quarter,
            "months": list(self.months),
            "month1_budget": self.month1_budget,
            "month2_budget": self.month2_budget,
            "month3_budget": self.month3_budget,
            "q_total": self.q_total,
            "month1_ref": self.month1_ref,
            "month2_ref": self.month2_ref,
            "month3_ref": self.month3_ref,
            "q_ref_total": self.q_ref_total,
            "month1_actual": self.month1_actual,
            "month2_actual": self.month2_actual,
            "month3_actual": self.month3_actual,
            "q_actual_total": self.q_actual_total,
        }


class MonthlyBudgetService:
    """Per-quarter monthly rows for every sub-category of the scenario's account."""

    def __init__(self, db: Session):
        self.db = db
        self.ledger = LedgerReader(db)

    def get_monthly_data(self, account_id: int, scenario_id: int, quarter: int) -> List[MonthlyBudgetRow]:
        months = quarter_months(quarter)
        scenario = get_scenario(self.db, account_id, scenario_id)

        tree = load_category_tree(self.db, account_id)
        budgets = load_budget_by_category(self.db, scenario.id)
        actuals = self.ledger.get_actuals(account_id, scenario.year, list(months))
        reference = {
            ClassKind.REVENUE: self.ledger.get_reference(account_id, scenario.year - 1, OPERATION_INCOME),
            ClassKind.EXPENSE: self.ledger.get_reference(account_id, scenario.year - 1, OPERATION_EXPENSE),
        }

        rows = []
        for tree_class in tree:
            fc = tree_class.financial_class
            for tree_group in tree_class.groups:
                for leaf in tree_group.leaves:
                    b = budgets.get(leaf.id, {})
                    r = reference[tree_class.kind].get(leaf.id, {})
                    a = actuals.get(leaf.id, {})
                    m1, m2, m3 = months
                    rows.append(MonthlyBudgetRow(
                        category_id=leaf.id,
                        category_name=leaf.name,
                        category_code=leaf.code or "",
                        group_id=tree_group.category.id,
                        group_name=tree_group.category.name,
                        class_id=fc.id,
                        class_name=fc.name,
                        class_kind=tree_class.kind,
                        quarter=quarter,
                        month1_budget=b.get(m1, _ZERO),
                        month2_budget=b.get(m2, _ZERO),
                        month3_budget=b.get(m3, _ZERO),
                        month1_ref=r.get(m1, _ZERO),
                        month2_ref=r.get(m2, _ZERO),
                        month3_ref=r.get(m3, _ZERO),
                        month1_actual=a.get(m1, _ZERO),
                        month2_actual=a.get(m2, _ZERO),
                        month3_actual=a.get(m3, _ZERO),
                    ))
        return rows
