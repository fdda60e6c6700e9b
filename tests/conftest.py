"""
Pytest fixtures for testing
"""
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from app.infrastructure.db.session import Base
from app.infrastructure.db.models import (
    User, AccountType, Account, CategoryGroup, Category, Budget, CategoryAllocation, Transaction,
)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared across threads (TestClient runs handlers in a worker thread)"""
    engine = create_engine(
        "sqlite://",
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
def sample_user_id():
    """Sample owner ID for tests"""
    return 1


# ---------------------------------------------------------------------------
# Ledger fixtures
# ---------------------------------------------------------------------------

CHECKING_ID = 10
VISA_ID = 11
MORTGAGE_ID = 12

GROCERIES_ID = 101
SAVINGS_ID = 102
RENT_ID = 103
VISA_PAYMENT_ID = 104
HIDDEN_ID = 105


@pytest.fixture
def ledger(db_session, sample_user_id):
    """
    One user with:
    - Checking (on-budget), Visa credit card (on-budget, payment category 104),
      Mortgage (off-budget by type)
    - "Everyday" group: Groceries, Savings, Rent, Old (hidden)
    - "Credit Card Payments" group (sorted last): Visa Payment (system)
    """
    db_session.add_all([
        User(id=sample_user_id, email="owner@example.com", password_hash="x"),
        User(id=2, email="other@example.com", password_hash="x"),
        AccountType(id=1, name="Checking", is_liability=False, is_budget_account=True),
        AccountType(id=4, name="Credit Card", is_liability=True, is_budget_account=True),
        AccountType(id=6, name="Mortgage", is_liability=True, is_budget_account=False),
        Account(id=CHECKING_ID, user_id=sample_user_id, name="Checking", type_id=1),
        Account(id=VISA_ID, user_id=sample_user_id, name="Visa", type_id=4, payment_category_id=VISA_PAYMENT_ID),
        Account(id=MORTGAGE_ID, user_id=sample_user_id, name="Mortgage", type_id=6),
        CategoryGroup(id=1, user_id=sample_user_id, name="Everyday", sort_order=0),
        CategoryGroup(id=9, user_id=sample_user_id, name="Credit Card Payments", sort_order=9999),
        Category(id=GROCERIES_ID, user_id=sample_user_id, group_id=1, name="Groceries", sort_order=0),
        Category(id=SAVINGS_ID, user_id=sample_user_id, group_id=1, name="Savings", sort_order=1),
        Category(id=RENT_ID, user_id=sample_user_id, group_id=1, name="Rent", sort_order=2),
        Category(id=HIDDEN_ID, user_id=sample_user_id, group_id=1, name="Old", is_hidden=True, sort_order=3),
        Category(id=VISA_PAYMENT_ID, user_id=sample_user_id, group_id=9, name="Visa Payment", is_system=True),
    ])
    db_session.flush()
    return SimpleNamespace(
        user_id=sample_user_id,
        checking=CHECKING_ID, visa=VISA_ID, mortgage=MORTGAGE_ID,
        groceries=GROCERIES_ID, savings=SAVINGS_ID, rent=RENT_ID,
        visa_payment=VISA_PAYMENT_ID, hidden=HIDDEN_ID,
    )


@pytest.fixture
def make_budget(db_session, sample_user_id):
    """make_budget(year, month, {category_id: amount}, user_id=...) -> Budget"""
    def _make(year, month, allocations=None, user_id=None):
        budget = Budget(user_id=user_id or sample_user_id, month=month, year=year)
        db_session.add(budget)
        db_session.flush()
        for category_id, amount in (allocations or {}).items():
            db_session.add(CategoryAllocation(
                budget_id=budget.id, category_id=category_id, budgeted_amount=Decimal(str(amount)),
            ))
        db_session.flush()
        return budget
    return _make


@pytest.fixture
def make_tx(db_session):
    """make_tx(account_id, amount, on, type, category_id=None, parent=None, ...) -> Transaction"""
    def _make(account_id, amount, on, type="expense", category_id=None, parent=None,
              is_split=False, transfer_to=None):
        tx = Transaction(
            account_id=account_id,
            amount=Decimal(str(amount)),
            date=on,
            type=type,
            category_id=category_id,
            parent_transaction_id=parent.id if parent is not None else None,
            transfer_transaction_id=transfer_to.id if transfer_to is not None else None,
            is_split=is_split,
        )
        db_session.add(tx)
        db_session.flush()
        return tx
    return _make


@pytest.fixture
def make_transfer(db_session, make_tx):
    """make_transfer(from_account, to_account, amount, on) -> (outflow leg, inflow leg)"""
    def _make(from_account_id, to_account_id, amount, on):
        outflow = make_tx(from_account_id, -Decimal(str(amount)), on, type="transfer")
        inflow = make_tx(to_account_id, Decimal(str(amount)), on, type="transfer", transfer_to=outflow)
        outflow.transfer_transaction_id = inflow.id
        db_session.flush()
        return outflow, inflow
    return _make
