"""
Budget scenario use cases: create (optionally seeded from last year's
ledger), activate, rename, notes, duplicate, delete and notes cleanup.
"""
import logging
from typing import List

from sqlalchemy.orm import Session

from budgetlock.application.actuals import LedgerReader
from budgetlock.application.distribution import upsert_budget_months
from budgetlock.application.hierarchy import BudgetHierarchyService
from budgetlock.application.lookups import get_scenario
from budgetlock.application.quarter_locks import STATUS_DRAFT
from budgetlock.domain.errors import BudgetValidationError
from budgetlock.infrastructure.db.models import BudgetScenario, BudgetItem
from budgetlock.infrastructure.notes_cleanup import NotesCleanupClient, NotesContext
from budgetlock.utils.validation import to_cents

logger = logging.getLogger(__name__)


def _clean_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise BudgetValidationError("Scenario name is required")
    return name


def list_scenarios(db: Session, account_id: int, year: int) -> List[BudgetScenario]:
    """Scenarios of a year, newest first."""
    return db.query(BudgetScenario).filter(
        BudgetScenario.account_id == account_id,
        BudgetScenario.year == year,
    ).order_by(BudgetScenario.created_at.desc(), BudgetScenario.id.desc()).all()


def get_active_scenario(db: Session, account_id: int, year: int) -> BudgetScenario | None:
    return db.query(BudgetScenario).filter(
        BudgetScenario.account_id == account_id,
        BudgetScenario.year == year,
        BudgetScenario.is_active == True,
    ).first()


class CreateScenarioUseCase:
    """
    Create a draft scenario with every quarter unlocked.

    With seed_from_previous_year the previous year's confirmed ledger totals
    are copied as-is (no growth applied) into auto-populated budget items.
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(self, account_id: int, name: str, year: int, seed_from_previous_year: bool = False) -> BudgetScenario:
        scenario = BudgetScenario(
            account_id=account_id,
            name=_clean_name(name),
            year=year,
            status=STATUS_DRAFT,
            is_active=False,
            yearly_confirmed=False,
            q1_locked=False,
            q2_locked=False,
            q3_locked=False,
            q4_locked=False,
        )
        self.db.add(scenario)
        self.db.flush()

        seeded = 0
        if seed_from_previous_year:
            reference = LedgerReader(self.db).get_reference(account_id, year - 1)
            for category_id, by_month in reference.items():
                upsert_budget_months(
                    self.db, scenario.id, category_id,
                    {month: to_cents(amount) for month, amount in by_month.items()},
                    is_auto_populated=True,
                )
                seeded += len(by_month)

        self.db.commit()
        logger.info("Scenario %s created for %d (%d seeded items)", scenario.id, year, seeded)
        return scenario


class SetActiveScenarioUseCase:
    """Exactly one active scenario per account."""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, account_id: int, scenario_id: int) -> None:
        scenario = get_scenario(self.db, account_id, scenario_id)
        self.db.query(BudgetScenario).filter(
            BudgetScenario.account_id == account_id,
            BudgetScenario.id != scenario.id,
        ).update({BudgetScenario.is_active: False}, synchronize_session=False)
        scenario.is_active = True
        self.db.commit()


class RenameScenarioUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, account_id: int, scenario_id: int, name: str) -> BudgetScenario:
        scenario = get_scenario(self.db, account_id, scenario_id)
        scenario.name = _clean_name(name)
        self.db.commit()
        return scenario


class UpdateScenarioNotesUseCase:
    """Blank notes are stored as NULL."""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, account_id: int, scenario_id: int, notes: str | None) -> BudgetScenario:
        scenario = get_scenario(self.db, account_id, scenario_id)
        notes = (notes or "").strip()
        scenario.notes = notes or None
        self.db.commit()
        return scenario


class DuplicateScenarioUseCase:
    """Copy a scenario and its budget items. The copy starts as an unlocked draft."""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, account_id: int, scenario_id: int, new_name: str) -> BudgetScenario:
        original = get_scenario(self.db, account_id, scenario_id)
        copy = BudgetScenario(
            account_id=account_id,
            name=_clean_name(new_name),
            year=original.year,
            notes=original.notes,
            status=STATUS_DRAFT,
            is_active=False,
        )
        self.db.add(copy)
        self.db.flush()

        items = self.db.query(BudgetItem).filter(BudgetItem.scenario_id == original.id).all()
        self.db.add_all([
            BudgetItem(
                scenario_id=copy.id,
                category_id=item.category_id,
                month=item.month,
                budgeted_amount=item.budgeted_amount,
                is_auto_populated=item.is_auto_populated,
                notes=item.notes,
            )
            for item in items
        ])
        self.db.commit()
        logger.info("Scenario %s duplicated as %s (%d items)", original.id, copy.id, len(items))
        return copy


class DeleteScenarioUseCase:
    """Explicit user action only; removes the scenario and its budget items."""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, account_id: int, scenario_id: int) -> None:
        scenario = get_scenario(self.db, account_id, scenario_id)
        self.db.query(BudgetItem).filter(BudgetItem.scenario_id == scenario.id).delete(synchronize_session=False)
        self.db.delete(scenario)
        self.db.commit()
        logger.info("Scenario %s deleted", scenario_id)


class CleanupScenarioNotesUseCase:
    """
    Send notes plus the scenario's budget summary to the text service.

    Returns the cleaned text; nothing is persisted (the caller saves it via
    UpdateScenarioNotesUseCase once the user accepts it).
    """

    def __init__(self, db: Session, client: NotesCleanupClient | None = None):
        self.db = db
        self.client = client or NotesCleanupClient()

    def build_context(self, account_id: int, scenario_id: int) -> NotesContext:
        scenario = get_scenario(self.db, account_id, scenario_id)
        totals = BudgetHierarchyService(self.db).get_grand_totals(account_id, scenario.id)
        return NotesContext(
            scenario_name=scenario.name,
            year=scenario.year,
            total_budget_income=totals.revenue.budget,
            total_budget_expenses=totals.expenses.budget,
            net_budget=totals.net.budget,
            total_reference_income=totals.revenue.reference,
            total_reference_expenses=totals.expenses.reference,
        )

    def execute(self, account_id: int, scenario_id: int, notes: str | None = None) -> str:
        if notes is None:
            notes = get_scenario(self.db, account_id, scenario_id).notes or ""
        if not notes.strip():
            raise BudgetValidationError("There are no notes to clean up")
        context = self.build_context(account_id, scenario_id)
        return self.client.cleanup(notes, context)
