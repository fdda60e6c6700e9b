"""
SQLAlchemy ORM models (ledger tables + budget tables)

Balances are never stored: available / activity / to-be-budgeted are
derived on every read by app.application.budget_engine.
"""
from decimal import Decimal
from datetime import date as date_type
from sqlalchemy import String, DateTime, Integer, Text, TIMESTAMP, Date, func, Boolean, Numeric, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.infrastructure.db.session import Base


class User(Base):
    """
    User model (owner of every ledger row)
    """
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[DateTime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )


# ============================================================================
# Accounts
# ============================================================================


class AccountType(Base):
    """Seeded lookup table shared by all users (Checking, Credit Card, Mortgage, ...)"""
    __tablename__ = "account_types"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    is_liability: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    # True = on-budget, False = tracking only
    is_budget_account: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")


class Account(Base):
    """
    Bank / cash / credit account.

    payment_category_id is set only for revolving-credit accounts: it links the
    card to its auto-generated "payment" category.
    """
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type_id: Mapped[int] = mapped_column(Integer, nullable=False)  # -> account_types
    on_budget: Mapped[bool | None] = mapped_column(Boolean, nullable=True)  # NULL = inherit from type
    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    payment_category_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)  # -> categories

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


# ============================================================================
# Categories (envelopes)
# ============================================================================


class CategoryGroup(Base):
    __tablename__ = "category_groups"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")


class Category(Base):
    """
    Envelope. is_system marks auto-created credit card payment categories.
    """
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    group_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)  # -> category_groups

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint('user_id', 'name', 'group_id', name='uq_category_name'),
    )


class CategoryGoal(Base):
    """Optional savings / spending / debt target attached 1:1 to a category"""
    __tablename__ = "category_goals"

    id: Mapped[int] = mapped_column(primary_key=True)
    category_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)  # -> categories

    # target_balance, target_balance_by_date, monthly_savings, monthly_spending, debt_payoff
    goal_type: Mapped[str] = mapped_column(String(32), nullable=False)
    target_amount: Mapped[Decimal | None] = mapped_column(Numeric(precision=20, scale=2), nullable=True)
    target_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)
    monthly_amount: Mapped[Decimal | None] = mapped_column(Numeric(precision=20, scale=2), nullable=True)


# ============================================================================
# Transactions
# ============================================================================


class Transaction(Base):
    """
    Ledger row.

    - Split child: parent_transaction_id is set; carries its own category/amount.
      The split parent has category_id NULL and is_split = True.
    - Transfer leg: transfer_transaction_id points to the opposite leg on
      another account; transfers never carry a category.
    """
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)  # -> accounts
    payee_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    category_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    transfer_transaction_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    parent_transaction_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)
    date: Mapped[date_type] = mapped_column(Date, nullable=False, index=True)
    memo: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # income / expense / transfer
    cleared: Mapped[str] = mapped_column(String(20), nullable=False, default="uncleared", server_default="uncleared")
    is_split: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index('ix_transactions_account_date', 'account_id', 'date'),
    )


# ============================================================================
# Budgets
# ============================================================================


class Budget(Base):
    """Calendar-month container, one per (user, month, year)"""
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    month: Mapped[int] = mapped_column(Integer, nullable=False)  # 1..12
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint('user_id', 'month', 'year', name='uq_budget_month'),
    )


class CategoryAllocation(Base):
    """Budgeted amount for a category in a month. Missing row = 0."""
    __tablename__ = "category_allocations"

    id: Mapped[int] = mapped_column(primary_key=True)
    budget_id: Mapped[int] = mapped_column(Integer, nullable=False)  # -> budgets
    category_id: Mapped[int] = mapped_column(Integer, nullable=False)  # -> categories
    budgeted_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=2), nullable=False, default=Decimal("0"), server_default="0"
    )

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint('budget_id', 'category_id', name='uq_category_allocation'),
        Index('ix_category_allocation_budget', 'budget_id'),
    )
