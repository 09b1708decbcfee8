"""
FastAPI dependencies (DB session, caller account)
"""
from fastapi import Header, HTTPException, status

from budgetlock.infrastructure.db.session import get_db as _get_db


# Re-export get_db so routes and test overrides share one symbol
get_db = _get_db


def get_account_id(x_account_id: int | None = Header(default=None)) -> int:
    """
    Ledger account of the caller.

    Authentication happens upstream; the gateway forwards the authenticated
    account in the X-Account-Id header.

    Raises:
        HTTPException(401): header missing
    """
    if x_account_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return x_account_id
