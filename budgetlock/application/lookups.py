"""
Account-scoped lookups shared by the budget use cases.
"""
from sqlalchemy.orm import Session

from budgetlock.domain.errors import ScenarioNotFound, CategoryNotFound
from budgetlock.infrastructure.db.models import BudgetScenario, BudgetCategory


def get_scenario(db: Session, account_id: int, scenario_id: int, for_update: bool = False) -> BudgetScenario:
    """for_update=True holds the row lock so a concurrent quarter lock waits for the write."""
    query = db.query(BudgetScenario).filter(
        BudgetScenario.id == scenario_id,
        BudgetScenario.account_id == account_id,
    )
    if for_update:
        query = query.with_for_update()
    scenario = query.first()
    if scenario is None:
        raise ScenarioNotFound(scenario_id)
    return scenario


def get_leaf_category(db: Session, account_id: int, category_id: int) -> BudgetCategory:
    """Budget figures live on sub-categories only; groups are aggregates."""
    category = db.query(BudgetCategory).filter(
        BudgetCategory.id == category_id,
        BudgetCategory.account_id == account_id,
    ).first()
    if category is None:
        raise CategoryNotFound(category_id)
    if not category.is_leaf:
        raise CategoryNotFound(category_id, "is a category group, not a sub-category")
    return category
