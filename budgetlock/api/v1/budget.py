"""
Budget API endpoints: scenarios, yearly editor, monthly detail, quarter
locks and budget-vs-actual tracking.

Money leaves the API as strings with two decimals so cents survive JSON.
Successful mutations answer {"success": true, ...}; budget errors are
rendered by budgetlock.api.errors as {"success": false, "error": {...}}.
"""
from decimal import Decimal
from enum import Enum
from typing import Any, List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from budgetlock.api.deps import get_db, get_account_id
from budgetlock.application.actuals import LedgerReader
from budgetlock.application.distribution import (
    DistributeYearlyBudgetUseCase, SetMonthBudgetUseCase, MonthlyBudgetService,
)
from budgetlock.application.hierarchy import BudgetHierarchyService, compute_grand_totals
from budgetlock.application.lookups import get_scenario
from budgetlock.application.quarter_locks import (
    LockQuarterUseCase, UnlockQuarterUseCase, ConfirmYearlyBudgetUseCase,
)
from budgetlock.application.scenarios import (
    CreateScenarioUseCase, SetActiveScenarioUseCase, RenameScenarioUseCase,
    UpdateScenarioNotesUseCase, DuplicateScenarioUseCase, DeleteScenarioUseCase,
    CleanupScenarioNotesUseCase, list_scenarios, get_active_scenario,
)
from budgetlock.application.tracking import BudgetTrackingService
from budgetlock.domain.budget import quarter_description
from budgetlock.domain.errors import BudgetValidationError
from budgetlock.infrastructure.db.models import BudgetScenario


router = APIRouter(prefix="/api/v1/budget", tags=["budget"])


def to_jsonable(value: Any) -> Any:
    """Decimals -> "123.45", enums -> their value, recursively."""
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


# === Request/Response models ===

class AmountRequest(BaseModel):
    # Any scalar is accepted; malformed values become 0 in the use case
    amount: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def stringify_amount(cls, v):
        return None if v is None else str(v)


class CreateScenarioRequest(BaseModel):
    name: str
    year: int
    seed_from_previous_year: bool = False


class RenameScenarioRequest(BaseModel):
    name: str


class NotesRequest(BaseModel):
    notes: str | None = None


class DuplicateScenarioRequest(BaseModel):
    name: str


class UnlockQuarterRequest(BaseModel):
    confirmed: bool = False


class ScenarioResponse(BaseModel):
    id: int
    name: str
    year: int
    notes: str | None
    status: str
    is_active: bool
    yearly_confirmed: bool
    q1_locked: bool
    q2_locked: bool
    q3_locked: bool
    q4_locked: bool
    any_quarter_locked: bool
    can_edit_yearly: bool
    can_edit_monthly: bool


def _scenario_response(scenario: BudgetScenario) -> dict:
    return ScenarioResponse(
        id=scenario.id,
        name=scenario.name,
        year=scenario.year,
        notes=scenario.notes,
        status=scenario.status,
        is_active=scenario.is_active,
        yearly_confirmed=scenario.yearly_confirmed,
        q1_locked=scenario.q1_locked,
        q2_locked=scenario.q2_locked,
        q3_locked=scenario.q3_locked,
        q4_locked=scenario.q4_locked,
        any_quarter_locked=scenario.any_quarter_locked,
        can_edit_yearly=scenario.can_edit_yearly,
        can_edit_monthly=scenario.can_edit_monthly,
    ).model_dump()


# === Scenarios ===

@router.get("/scenarios")
def get_scenarios(
    year: int,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db),
):
    """Scenarios of a year, newest first"""
    return [_scenario_response(s) for s in list_scenarios(db, account_id, year)]


@router.post("/scenarios")
def create_scenario(
    req: CreateScenarioRequest,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db),
):
    scenario = CreateScenarioUseCase(db).execute(
        account_id=account_id,
        name=req.name,
        year=req.year,
        seed_from_previous_year=req.seed_from_previous_year,
    )
    return {"success": True, "scenario": _scenario_response(scenario)}


@router.get("/scenarios/active")
def get_active(
    year: int,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db),
):
    """Active scenario of a year, or null when none is active"""
    scenario = get_active_scenario(db, account_id, year)
    return {"scenario": _scenario_response(scenario) if scenario else None}


@router.get("/scenarios/{scenario_id}")
def get_scenario_detail(
    scenario_id: int,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db),
):
    scenario = get_scenario(db, account_id, scenario_id)
    response = _scenario_response(scenario)
    response["quarters"] = [
        {"quarter": q, "months": quarter_description(q), "locked": scenario.is_quarter_locked(q)}
        for q in (1, 2, 3, 4)
    ]
    return response


@router.put("/scenarios/{scenario_id}/name")
def rename_scenario(
    scenario_id: int,
    req: RenameScenarioRequest,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db),
):
    scenario = RenameScenarioUseCase(db).execute(account_id, scenario_id, req.name)
    return {"success": True, "scenario": _scenario_response(scenario)}


@router.put("/scenarios/{scenario_id}/notes")
def update_notes(
    scenario_id: int,
    req: NotesRequest,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db),
):
    scenario = UpdateScenarioNotesUseCase(db).execute(account_id, scenario_id, req.notes)
    return {"success": True, "scenario": _scenario_response(scenario)}


@router.post("/scenarios/{scenario_id}/notes/cleanup")
def cleanup_notes(
    scenario_id: int,
    req: NotesRequest,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db),
):
    """Cleaned text from the external service; not saved until the user accepts it"""
    cleaned = CleanupScenarioNotesUseCase(db).execute(account_id, scenario_id, req.notes)
    return {"success": True, "cleaned_notes": cleaned}


@router.post("/scenarios/{scenario_id}/activate")
def activate_scenario(
    scenario_id: int,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db),
):
    SetActiveScenarioUseCase(db).execute(account_id, scenario_id)
    return {"success": True}


@router.post("/scenarios/{scenario_id}/duplicate")
def duplicate_scenario(
    scenario_id: int,
    req: DuplicateScenarioRequest,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db),
):
    scenario = DuplicateScenarioUseCase(db).execute(account_id, scenario_id, req.name)
    return {"success": True, "scenario": _scenario_response(scenario)}


@router.delete("/scenarios/{scenario_id}")
def delete_scenario(
    scenario_id: int,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db),
):
    DeleteScenarioUseCase(db).execute(account_id, scenario_id)
    return {"success": True}


# === Yearly confirmation and quarter locks ===

@router.post("/scenarios/{scenario_id}/confirm-yearly")
def confirm_yearly(
    scenario_id: int,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db),
):
    changed = ConfirmYearlyBudgetUseCase(db).execute(account_id, scenario_id)
    return {"success": True, "changed": changed}


@router.post("/scenarios/{scenario_id}/quarters/{quarter}/lock")
def lock_quarter(
    scenario_id: int,
    quarter: int,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db),
):
    changed = LockQuarterUseCase(db).execute(account_id, scenario_id, quarter)
    return {"success": True, "changed": changed}


@router.post("/scenarios/{scenario_id}/quarters/{quarter}/unlock")
def unlock_quarter(
    scenario_id: int,
    quarter: int,
    req: UnlockQuarterRequest,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db),
):
    """Requires {"confirmed": true}: unlocking removes actuals tracking for the quarter"""
    changed = UnlockQuarterUseCase(db).execute(account_id, scenario_id, quarter, confirmed=req.confirmed)
    return {"success": True, "changed": changed}


# === Yearly editor ===

@router.get("/scenarios/{scenario_id}/hierarchy")
def get_hierarchy(
    scenario_id: int,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db),
):
    classes = BudgetHierarchyService(db).get_hierarchy(account_id, scenario_id)
    scenario = get_scenario(db, account_id, scenario_id)
    return to_jsonable({
        "scenario_id": scenario.id,
        "year": scenario.year,
        "can_edit_yearly": scenario.can_edit_yearly,
        "can_edit_monthly": scenario.can_edit_monthly,
        "classes": [c.to_dict() for c in classes],
        "grand_totals": compute_grand_totals(classes).to_dict(),
    })


@router.put("/scenarios/{scenario_id}/categories/{category_id}/yearly")
def distribute_yearly_budget(
    scenario_id: int,
    category_id: int,
    req: AmountRequest,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db),
):
    distribution = DistributeYearlyBudgetUseCase(db).execute(account_id, scenario_id, category_id, req.amount)
    return to_jsonable({
        "success": True,
        "yearly_amount": distribution.yearly_amount,
        "months": distribution.by_month(),
    })


@router.put("/scenarios/{scenario_id}/categories/{category_id}/months/{month}")
def set_month_budget(
    scenario_id: int,
    category_id: int,
    month: int,
    req: AmountRequest,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db),
):
    amount = SetMonthBudgetUseCase(db).execute(account_id, scenario_id, category_id, month, req.amount)
    return to_jsonable({"success": True, "month": month, "amount": amount})


# === Monthly detail and tracking ===

@router.get("/scenarios/{scenario_id}/monthly")
def get_monthly_data(
    scenario_id: int,
    quarter: int,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db),
):
    rows = MonthlyBudgetService(db).get_monthly_data(account_id, scenario_id, quarter)
    scenario = get_scenario(db, account_id, scenario_id)
    return to_jsonable({
        "scenario_id": scenario.id,
        "quarter": quarter,
        "can_edit_yearly": scenario.can_edit_yearly,
        "can_edit_monthly": scenario.can_edit_monthly,
        "rows": [r.to_dict() for r in rows],
    })


@router.get("/scenarios/{scenario_id}/tracking")
def get_tracking(
    scenario_id: int,
    quarter: int | None = None,
    month: int | None = Query(default=None, description="Month within the quarter (1..3)"),
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db),
):
    """Quarter view, single-month view (quarter + month) or whole year (no quarter)"""
    service = BudgetTrackingService(db)
    if quarter is None and month is not None:
        raise BudgetValidationError("month can only be given together with quarter")
    if quarter is None:
        view = service.get_year_view(account_id, scenario_id)
    else:
        view = service.get_quarter_view(account_id, scenario_id, quarter, month)
    return to_jsonable(view.to_dict())


@router.get("/actuals")
def get_actuals(
    year: int,
    months: List[int] = Query(default=[]),
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db),
):
    actuals = LedgerReader(db).get_actuals(account_id, year, months)
    return to_jsonable({str(cat): {str(m): amt for m, amt in by_month.items()} for cat, by_month in actuals.items()})
