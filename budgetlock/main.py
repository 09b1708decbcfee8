"""
FastAPI application factory
"""
import logging
import traceback

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from budgetlock.api.errors import budget_error_handler
from budgetlock.api.v1 import budget
from budgetlock.config import get_settings
from budgetlock.domain.errors import BudgetError
from budgetlock.infrastructure.db.session import check_db_connection

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ErrorLoggingMiddleware(BaseHTTPMiddleware):
    """Last line: anything the exception handlers did not render becomes a logged 500."""

    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception:
            tb_str = traceback.format_exc()
            logger.error(f"\n{'='*60}\nERROR on {request.method} {request.url.path}\n{tb_str}{'='*60}")
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": {"code": "INTERNAL_ERROR", "message": "Internal server error"}},
            )


def create_app() -> FastAPI:
    """
    Application factory

    Returns:
        Configured FastAPI app
    """
    settings = get_settings()

    app = FastAPI(
        title="BudgetLock",
        debug=settings.DEBUG,
    )

    app.add_middleware(ErrorLoggingMiddleware)
    app.add_exception_handler(BudgetError, budget_error_handler)

    app.include_router(budget.router)

    # Health checks
    @app.get("/health", response_class=PlainTextResponse, tags=["system"])
    def health():
        """Health check endpoint"""
        return "ok"

    @app.get("/ready", response_class=PlainTextResponse, tags=["system"])
    def ready():
        """Readiness check endpoint (database reachable)"""
        check_db_connection()
        return "ok"

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "budgetlock.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
