"""create budget scenario tables

Revision ID: b7c1d2e3f4a5
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'b7c1d2e3f4a5'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'financial_classes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('account_id', sa.Integer(), nullable=False, index=True),
        sa.Column('code', sa.String(32), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.UniqueConstraint('account_id', 'code', name='uq_financial_class_code'),
    )

    op.create_table(
        'budget_categories',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('account_id', sa.Integer(), nullable=False, index=True),
        sa.Column('class_id', sa.Integer(), nullable=True, index=True),
        sa.Column('parent_id', sa.Integer(), nullable=True, index=True),
        sa.Column('code', sa.String(32), nullable=False, server_default=''),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'budget_scenarios',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('account_id', sa.Integer(), nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='draft'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('yearly_confirmed', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('q1_locked', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('q2_locked', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('q3_locked', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('q4_locked', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_budget_scenario_account_year', 'budget_scenarios', ['account_id', 'year'])

    op.create_table(
        'budget_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('scenario_id', sa.Integer(), nullable=False, index=True),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('month', sa.SmallInteger(), nullable=False),
        sa.Column('budgeted_amount', sa.Numeric(20, 2), nullable=False, server_default='0'),
        sa.Column('is_auto_populated', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('notes', sa.String(512), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('scenario_id', 'category_id', 'month', name='uq_budget_item'),
    )
    op.create_index('ix_budget_item_scenario_month', 'budget_items', ['scenario_id', 'month'])

    op.create_table(
        'ledger_transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('account_id', sa.Integer(), nullable=False, index=True),
        sa.Column('operation_type', sa.String(20), nullable=False),
        sa.Column('amount', sa.Numeric(20, 2), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=True, index=True),
        sa.Column('transaction_date', sa.Date(), nullable=False, index=True),
        sa.Column('payable_due_date', sa.Date(), nullable=True),
        sa.Column('confirmed', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
    )


def downgrade() -> None:
    op.drop_table('ledger_transactions')
    op.drop_index('ix_budget_item_scenario_month', table_name='budget_items')
    op.drop_table('budget_items')
    op.drop_index('ix_budget_scenario_account_year', table_name='budget_scenarios')
    op.drop_table('budget_scenarios')
    op.drop_table('budget_categories')
    op.drop_table('financial_classes')
