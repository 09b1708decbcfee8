"""
SQLAlchemy ORM models (budget tables + ledger read model)
"""
from decimal import Decimal
from datetime import date as date_type
from sqlalchemy import String, DateTime, Integer, SmallInteger, Text, TIMESTAMP, Date, func, Boolean, Numeric, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from budgetlock.infrastructure.db.session import Base


# ============================================================================
# Category hierarchy: Class > CategoryGroup > SubCategory
# ============================================================================


class FinancialClass(Base):
    """
    Top level of the category hierarchy.

    code == "REVENUE" marks the income class, every other code is expense-like.
    """
    __tablename__ = "financial_classes"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    code: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    __table_args__ = (
        UniqueConstraint('account_id', 'code', name='uq_financial_class_code'),
    )


class BudgetCategory(Base):
    """
    Category group (parent_id IS NULL, owned by a class) or sub-category
    (parent_id -> group). Only sub-categories carry budget figures.
    """
    __tablename__ = "budget_categories"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    class_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)  # -> financial_classes
    parent_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)  # -> budget_categories
    code: Mapped[str] = mapped_column(String(32), nullable=False, default="", server_default="")
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    @property
    def is_leaf(self) -> bool:
        return self.parent_id is not None


# ============================================================================
# Budget scenarios and monthly allocations
# ============================================================================


class BudgetScenario(Base):
    """One yearly budget plan with its confirmation flag and four quarter latches"""
    __tablename__ = "budget_scenarios"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft", server_default="draft")  # draft/active/archived
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    yearly_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    q1_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    q2_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    q3_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    q4_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index('ix_budget_scenario_account_year', 'account_id', 'year'),
    )

    def is_quarter_locked(self, quarter: int) -> bool:
        return bool(getattr(self, f"q{quarter}_locked"))

    @property
    def locked_quarters(self) -> list[int]:
        return [q for q in (1, 2, 3, 4) if self.is_quarter_locked(q)]

    @property
    def any_quarter_locked(self) -> bool:
        """Yearly edit gate: OR over the four latches."""
        return bool(self.locked_quarters)

    @property
    def can_edit_yearly(self) -> bool:
        return not self.any_quarter_locked

    @property
    def can_edit_monthly(self) -> bool:
        """Monthly detail gate: opened once by confirming the yearly budget."""
        return bool(self.yearly_confirmed)


class BudgetItem(Base):
    """Budgeted amount per (scenario, category, calendar month)"""
    __tablename__ = "budget_items"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    scenario_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)  # -> budget_scenarios
    category_id: Mapped[int] = mapped_column(Integer, nullable=False)  # -> budget_categories (leaf)
    month: Mapped[int] = mapped_column(SmallInteger, nullable=False)  # 1..12

    budgeted_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=2), nullable=False, default=Decimal("0"), server_default="0"
    )
    is_auto_populated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    notes: Mapped[str | None] = mapped_column(String(512), nullable=True)

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint('scenario_id', 'category_id', 'month', name='uq_budget_item'),
        Index('ix_budget_item_scenario_month', 'scenario_id', 'month'),
    )


# ============================================================================
# Ledger read model (owned by the external ledger, read-only here)
# ============================================================================


class LedgerTransaction(Base):
    """
    Read model: categorized ledger transactions used for reference and actual figures
    """
    __tablename__ = "ledger_transactions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    operation_type: Mapped[str] = mapped_column(String(20), nullable=False)  # INCOME / EXPENSE
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)
    category_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    transaction_date: Mapped[date_type] = mapped_column(Date, nullable=False, index=True)
    # Due date of the linked payable, if any (late payments count in the due month)
    payable_due_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)
    confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
