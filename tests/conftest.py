"""
Pytest fixtures for testing
"""
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from budgetlock.infrastructure.db.session import Base
from budgetlock.infrastructure.db.models import FinancialClass, BudgetCategory, BudgetScenario, LedgerTransaction


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared across threads (TestClient runs routes in a worker thread)"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Session:
    """Create database session for tests"""
    SessionLocal = sessionmaker(bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def sample_account_id():
    """Sample account ID for tests"""
    return 1


@pytest.fixture
def budget_tree(db_session, sample_account_id):
    """
    Category hierarchy for one account.

    The expense class is declared first (sort_order 0) so ordering tests can
    check that revenue still comes first. "COGS" has no groups.

        REVENUE  Revenue
            4000 Sales        -> 4010 Product, 4020 Services
        OPEX     Operating expenses
            6000 Staff        -> 6010 Salaries
            6100 Office       -> 6110 Rent
        COGS     Cost of sales (empty)
    """
    acc = sample_account_id
    db_session.add_all([
        FinancialClass(id=1, account_id=acc, code="OPEX", name="Operating expenses", sort_order=0),
        FinancialClass(id=2, account_id=acc, code="REVENUE", name="Revenue", sort_order=5),
        FinancialClass(id=3, account_id=acc, code="COGS", name="Cost of sales", sort_order=1),
        # groups
        BudgetCategory(id=10, account_id=acc, class_id=2, code="4000", name="Sales"),
        BudgetCategory(id=20, account_id=acc, class_id=1, code="6100", name="Office"),
        BudgetCategory(id=21, account_id=acc, class_id=1, code="6000", name="Staff"),
        # sub-categories
        BudgetCategory(id=12, account_id=acc, parent_id=10, code="4020", name="Services"),
        BudgetCategory(id=11, account_id=acc, parent_id=10, code="4010", name="Product"),
        BudgetCategory(id=22, account_id=acc, parent_id=21, code="6010", name="Salaries"),
        BudgetCategory(id=23, account_id=acc, parent_id=20, code="6110", name="Rent"),
    ])
    db_session.commit()
    return {
        "revenue_class": 2, "opex_class": 1,
        "sales": 10, "product": 11, "services": 12,
        "office": 20, "staff": 21, "salaries": 22, "rent": 23,
    }


@pytest.fixture
def scenario(db_session, sample_account_id):
    """Unlocked draft scenario for 2026"""
    s = BudgetScenario(account_id=sample_account_id, name="Base plan", year=2026)
    db_session.add(s)
    db_session.commit()
    return s


@pytest.fixture
def add_transaction(db_session, sample_account_id):
    """Factory: add_transaction("EXPENSE", "12.50", category_id, date(2026, 1, 5), ...)"""
    def _add(operation_type, amount, category_id, transaction_date, payable_due_date=None, confirmed=True):
        tx = LedgerTransaction(
            account_id=sample_account_id,
            operation_type=operation_type,
            amount=Decimal(amount),
            category_id=category_id,
            transaction_date=transaction_date,
            payable_due_date=payable_due_date,
            confirmed=confirmed,
        )
        db_session.add(tx)
        db_session.commit()
        return tx
    return _add


@pytest.fixture
def reference_ledger(add_transaction, budget_tree):
    """Confirmed 2025 ledger used as the reference year for 2026 scenarios"""
    add_transaction("INCOME", "1200.00", budget_tree["product"], date(2025, 3, 10))
    add_transaction("INCOME", "300.00", budget_tree["product"], date(2025, 7, 1))
    add_transaction("EXPENSE", "-600.00", budget_tree["salaries"], date(2025, 1, 31))
    add_transaction("EXPENSE", "250.00", budget_tree["rent"], date(2025, 2, 1))
    # unconfirmed: never part of the reference
    add_transaction("EXPENSE", "999.00", budget_tree["rent"], date(2025, 2, 2), confirmed=False)
    return budget_tree
