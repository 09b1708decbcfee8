"""
Render budget errors as explicit result values.

    {"success": false, "error": {"code": "SCENARIO_LOCKED", "message": "..."}}
"""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from budgetlock.domain.errors import (
    BudgetError, BudgetValidationError, ScenarioNotFound, CategoryNotFound,
    InvalidMonth, InvalidQuarter, ScenarioLocked, ExternalServiceUnavailable,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = {
    ScenarioNotFound: 404,
    CategoryNotFound: 404,
    InvalidMonth: 422,
    InvalidQuarter: 422,
    BudgetValidationError: 422,
    ScenarioLocked: 409,
    ExternalServiceUnavailable: 503,
}


def status_for(exc: BudgetError) -> int:
    for error_type, code in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return code
    return 400


def error_result(exc: BudgetError) -> dict:
    result = {"success": False, "error": exc.to_dict()}
    if isinstance(exc, ScenarioLocked):
        result["error"]["locked_quarters"] = exc.locked_quarters
    return result


async def budget_error_handler(request: Request, exc: BudgetError) -> JSONResponse:
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=status_for(exc), content=error_result(exc))
