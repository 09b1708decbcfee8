"""
Quarter locks and yearly confirmation.

Each scenario has four independent latches (q1..q4). Locking any one of
them freezes the yearly edit surface; all four must be unlocked to restore
it. yearly_confirmed is a separate one-way flag that opens the monthly
detail surface. Recommended workflow (not enforced): confirm the yearly
budget, then lock quarters one by one as they are committed.

Latch flips are compare-and-set UPDATEs, so two callers racing on the same
quarter cannot both observe a transition.
"""
import logging

from sqlalchemy.orm import Session

from budgetlock.application.lookups import get_scenario
from budgetlock.domain.budget import validate_quarter
from budgetlock.domain.errors import ScenarioLocked, BudgetValidationError
from budgetlock.infrastructure.db.models import BudgetScenario

logger = logging.getLogger(__name__)

STATUS_DRAFT = "draft"
STATUS_ACTIVE = "active"


def ensure_yearly_editable(scenario: BudgetScenario) -> None:
    """Single gate for yearly-level writes: reject while any quarter is locked."""
    if scenario.any_quarter_locked:
        logger.warning(
            "Rejected yearly write on scenario %s: locked quarters %s",
            scenario.id, scenario.locked_quarters,
        )
        raise ScenarioLocked(scenario.id, scenario.locked_quarters)


def can_edit_yearly(db: Session, account_id: int, scenario_id: int) -> bool:
    return get_scenario(db, account_id, scenario_id).can_edit_yearly


def can_edit_monthly(db: Session, account_id: int, scenario_id: int) -> bool:
    return get_scenario(db, account_id, scenario_id).can_edit_monthly


def _compare_and_set(db: Session, scenario: BudgetScenario, column, expected: bool, values: dict) -> bool:
    updated = (
        db.query(BudgetScenario)
        .filter(
            BudgetScenario.id == scenario.id,
            BudgetScenario.account_id == scenario.account_id,
            column == expected,
        )
        .update(values, synchronize_session=False)
    )
    db.commit()
    db.refresh(scenario)
    return updated == 1


class LockQuarterUseCase:
    """Unlocked -> Locked. Returns False if the quarter was already locked."""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, account_id: int, scenario_id: int, quarter: int) -> bool:
        quarter = validate_quarter(quarter)
        scenario = get_scenario(self.db, account_id, scenario_id)

        column = getattr(BudgetScenario, f"q{quarter}_locked")
        values = {column: True}
        if scenario.status == STATUS_DRAFT:
            values[BudgetScenario.status] = STATUS_ACTIVE

        changed = _compare_and_set(self.db, scenario, column, False, values)
        if changed:
            logger.info("Scenario %s: Q%d locked", scenario.id, quarter)
        return changed


class UnlockQuarterUseCase:
    """
    Locked -> Unlocked.

    Destructive: the quarter leaves actuals-tracking mode, so the caller must
    pass confirmed=True after asking the user.
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(self, account_id: int, scenario_id: int, quarter: int, confirmed: bool = False) -> bool:
        quarter = validate_quarter(quarter)
        scenario = get_scenario(self.db, account_id, scenario_id)
        if not confirmed:
            raise BudgetValidationError(
                f"Unlocking Q{quarter} allows budget edits but removes actuals tracking; "
                "explicit confirmation is required"
            )

        column = getattr(BudgetScenario, f"q{quarter}_locked")
        changed = _compare_and_set(self.db, scenario, column, True, {column: False})
        if changed:
            logger.info("Scenario %s: Q%d unlocked", scenario.id, quarter)
        return changed


class ConfirmYearlyBudgetUseCase:
    """One-way: sets yearly_confirmed. There is no reset."""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, account_id: int, scenario_id: int) -> bool:
        scenario = get_scenario(self.db, account_id, scenario_id)
        column = BudgetScenario.yearly_confirmed
        changed = _compare_and_set(self.db, scenario, column, False, {column: True})
        if changed:
            logger.info("Scenario %s: yearly budget confirmed", scenario.id)
        return changed
