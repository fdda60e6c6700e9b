"""create envelope budget tables

Revision ID: e1n2v3e4l5o6
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'e1n2v3e4l5o6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    account_types = op.create_table(
        'account_types',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(64), nullable=False, unique=True),
        sa.Column('is_liability', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_budget_account', sa.Boolean(), nullable=False, server_default='true'),
    )
    op.bulk_insert(account_types, [
        {'name': 'Checking', 'is_liability': False, 'is_budget_account': True},
        {'name': 'Savings', 'is_liability': False, 'is_budget_account': True},
        {'name': 'Cash', 'is_liability': False, 'is_budget_account': True},
        {'name': 'Credit Card', 'is_liability': True, 'is_budget_account': True},
        {'name': 'Line of Credit', 'is_liability': True, 'is_budget_account': True},
        {'name': 'Mortgage', 'is_liability': True, 'is_budget_account': False},
        {'name': 'Auto Loan', 'is_liability': True, 'is_budget_account': False},
        {'name': 'Student Loan', 'is_liability': True, 'is_budget_account': False},
        {'name': 'Medical Debt', 'is_liability': True, 'is_budget_account': False},
        {'name': 'Investment', 'is_liability': False, 'is_budget_account': False},
        {'name': 'Other Asset', 'is_liability': False, 'is_budget_account': False},
        {'name': 'Other Liability', 'is_liability': True, 'is_budget_account': False},
    ])

    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type_id', sa.Integer(), nullable=False),
        sa.Column('on_budget', sa.Boolean(), nullable=True),
        sa.Column('is_closed', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payment_category_id', sa.Integer(), nullable=True, index=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'category_groups',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('is_hidden', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
    )

    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False, index=True),
        sa.Column('group_id', sa.Integer(), nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('is_hidden', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_system', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('note', sa.Text(), nullable=True),
        sa.UniqueConstraint('user_id', 'name', 'group_id', name='uq_category_name'),
    )

    op.create_table(
        'category_goals',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('category_id', sa.Integer(), nullable=False, unique=True),
        sa.Column('goal_type', sa.String(32), nullable=False),
        sa.Column('target_amount', sa.Numeric(precision=20, scale=2), nullable=True),
        sa.Column('target_date', sa.Date(), nullable=True),
        sa.Column('monthly_amount', sa.Numeric(precision=20, scale=2), nullable=True),
    )

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('account_id', sa.Integer(), nullable=False, index=True),
        sa.Column('payee_id', sa.Integer(), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=True, index=True),
        sa.Column('transfer_transaction_id', sa.Integer(), nullable=True, index=True),
        sa.Column('parent_transaction_id', sa.Integer(), nullable=True, index=True),
        sa.Column('amount', sa.Numeric(precision=20, scale=2), nullable=False),
        sa.Column('date', sa.Date(), nullable=False, index=True),
        sa.Column('memo', sa.Text(), nullable=True),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('cleared', sa.String(20), nullable=False, server_default='uncleared'),
        sa.Column('is_split', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_transactions_account_date', 'transactions', ['account_id', 'date'])

    op.create_table(
        'budgets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False, index=True),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'month', 'year', name='uq_budget_month'),
    )

    op.create_table(
        'category_allocations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('budget_id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('budgeted_amount', sa.Numeric(precision=20, scale=2), nullable=False, server_default='0'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('budget_id', 'category_id', name='uq_category_allocation'),
    )
    op.create_index('ix_category_allocation_budget', 'category_allocations', ['budget_id'])


def downgrade() -> None:
    op.drop_index('ix_category_allocation_budget', table_name='category_allocations')
    op.drop_table('category_allocations')
    op.drop_table('budgets')
    op.drop_index('ix_transactions_account_date', table_name='transactions')
    op.drop_table('transactions')
    op.drop_table('category_goals')
    op.drop_table('categories')
    op.drop_table('category_groups')
    op.drop_table('accounts')
    op.drop_table('account_types')
    op.drop_table('users')
