"""
Budget error taxonomy.

Every error carries a stable machine code; the HTTP layer renders it as an
explicit result value instead of letting it escape as a 500.
"""


class BudgetError(Exception):
    code = "BUDGET_ERROR"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message())
        self.message = str(self)

    def default_message(self) -> str:
        return "Budget operation failed"

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class BudgetValidationError(BudgetError, ValueError):
    code = "VALIDATION_ERROR"


class ScenarioNotFound(BudgetError):
    code = "SCENARIO_NOT_FOUND"

    def __init__(self, scenario_id: int):
        self.scenario_id = scenario_id
        super().__init__(f"Budget scenario {scenario_id} not found")


class CategoryNotFound(BudgetError):
    code = "CATEGORY_NOT_FOUND"

    def __init__(self, category_id: int, reason: str = "not found"):
        self.category_id = category_id
        super().__init__(f"Category {category_id} {reason}")


class InvalidMonth(BudgetError, ValueError):
    code = "INVALID_MONTH"

    def __init__(self, month):
        self.month = month
        super().__init__(f"Month must be between 1 and 12, got {month!r}")


class InvalidQuarter(BudgetError, ValueError):
    code = "INVALID_QUARTER"

    def __init__(self, quarter):
        self.quarter = quarter
        super().__init__(f"Quarter must be 1, 2, 3 or 4, got {quarter!r}")


class ScenarioLocked(BudgetError):
    code = "SCENARIO_LOCKED"

    def __init__(self, scenario_id: int, locked_quarters: list[int]):
        self.scenario_id = scenario_id
        self.locked_quarters = locked_quarters
        quarters = ", ".join(f"Q{q}" for q in locked_quarters)
        super().__init__(
            f"Scenario {scenario_id} is read-only while quarters are locked ({quarters})"
        )


class ExternalServiceUnavailable(BudgetError):
    code = "EXTERNAL_SERVICE_UNAVAILABLE"

    def __init__(self, service: str, detail: str | None = None):
        self.service = service
        message = f"{service} is unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
