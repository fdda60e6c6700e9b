"""
Budget use cases: allocation writes and month provisioning.

Writes go straight to the relational store; the next read through
BudgetingEngine reflects them (nothing is cached, nothing to invalidate).
"""
import logging
from decimal import Decimal
from typing import Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.application.budget_engine import BudgetingEngine, BudgetNotFoundError, BudgetSummary
from app.domain.budget import previous_month
from app.infrastructure.db.models import Budget, Category, CategoryAllocation
from app.utils.validation import validate_and_normalize_amount

logger = logging.getLogger(__name__)

MIN_YEAR = 2000
MAX_YEAR = 2100


class BudgetValidationError(ValueError):
    pass


class CategoryNotFoundError(LookupError):
    def __init__(self, message: str = "Category not found"):
        super().__init__(message)


def validate_period(month: int, year: int) -> None:
    if not 1 <= month <= 12:
        raise BudgetValidationError("month must be between 1 and 12")
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise BudgetValidationError(f"year must be between {MIN_YEAR} and {MAX_YEAR}")


def parse_allocation_amount(amount) -> Decimal:
    """Budgeted amounts are non-negative decimals with at most 2 places; floats go through str()."""
    if amount is None or isinstance(amount, bool):
        raise BudgetValidationError("amount must be a number")
    try:
        value = Decimal(validate_and_normalize_amount(str(amount)))
    except ValueError as e:
        raise BudgetValidationError(str(e)) from e
    if value < 0:
        raise BudgetValidationError("amount must be >= 0")
    return value


def get_owned_budget(db: Session, user_id: int, budget_id: int) -> Budget:
    budget = db.query(Budget).filter(
        Budget.id == budget_id,
        Budget.user_id == user_id,
    ).first()
    if not budget:
        raise BudgetNotFoundError("Budget not found")
    return budget


def _find_budget(db: Session, user_id: int, month: int, year: int) -> Budget | None:
    return db.query(Budget).filter(
        Budget.user_id == user_id,
        Budget.month == month,
        Budget.year == year,
    ).first()


def _find_allocation(db: Session, budget_id: int, category_id: int) -> CategoryAllocation | None:
    return db.query(CategoryAllocation).filter(
        CategoryAllocation.budget_id == budget_id,
        CategoryAllocation.category_id == category_id,
    ).first()


def _upsert_allocation(db: Session, budget_id: int, category_id: int, amount: Decimal) -> CategoryAllocation:
    allocation = _find_allocation(db, budget_id, category_id)
    if allocation:
        allocation.budgeted_amount = amount
    else:
        allocation = CategoryAllocation(
            budget_id=budget_id,
            category_id=category_id,
            budgeted_amount=amount,
        )
        db.add(allocation)
    return allocation


def _commit_with_retry(db: Session, write):
    """
    Run write() and commit.

    When a concurrent request inserted the same (budget, category) row first,
    the unique constraint fires: roll back and run write() once more, which
    now finds the row and overwrites it.
    """
    try:
        try:
            result = write()
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info("Concurrent insert detected, retrying as update")
            result = write()
            db.commit()
    except Exception:
        db.rollback()
        raise
    return result


# ---------------------------------------------------------------------------
# Use Cases
# ---------------------------------------------------------------------------


class EnsureBudgetUseCase:
    """
    Idempotently create the budget row for (user, month, year).

    A new month gets a zero allocation for every visible category so the
    snapshot lists all envelopes.
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(self, user_id: int, month: int, year: int) -> Tuple[Budget, bool]:
        """Returns (budget, created)."""
        validate_period(month, year)

        existing = _find_budget(self.db, user_id, month, year)
        if existing:
            return existing, False

        try:
            budget = Budget(user_id=user_id, month=month, year=year)
            self.db.add(budget)
            self.db.flush()

            category_ids = [
                row.id for row in self.db.query(Category.id).filter(
                    Category.user_id == user_id,
                    Category.is_hidden == False,
                ).all()
            ]
            self.db.add_all([
                CategoryAllocation(budget_id=budget.id, category_id=cid, budgeted_amount=Decimal("0"))
                for cid in category_ids
            ])
            self.db.commit()
        except IntegrityError:
            # Another request created the month first
            self.db.rollback()
            existing = _find_budget(self.db, user_id, month, year)
            if existing is None:
                raise
            return existing, False
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Budget created: user=%s %04d-%02d with %d allocations",
            user_id, year, month, len(category_ids),
        )
        return budget, True


class SetAllocationUseCase:
    """Set (upsert) the budgeted amount of a category for a budget month. Plain overwrite."""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, user_id: int, budget_id: int, category_id: int, amount) -> CategoryAllocation:
        value = parse_allocation_amount(amount)
        get_owned_budget(self.db, user_id, budget_id)

        category = self.db.query(Category).filter(
            Category.id == category_id,
            Category.user_id == user_id,
        ).first()
        if not category:
            raise CategoryNotFoundError()

        allocation = _commit_with_retry(
            self.db, lambda: _upsert_allocation(self.db, budget_id, category_id, value),
        )

        logger.info("Allocation set: budget=%s category=%s amount=%s", budget_id, category_id, value)
        return allocation


class CopyPreviousMonthUseCase:
    """
    Copy every allocation of the immediately preceding month into the target budget.

    Categories without an allocation last month are left untouched.
    Returns the recomputed snapshot of the target month.
    """

    def __init__(self, db: Session, engine: BudgetingEngine | None = None):
        self.db = db
        self.engine = engine or BudgetingEngine(db)

    def execute(self, user_id: int, budget_id: int) -> BudgetSummary:
        target = get_owned_budget(self.db, user_id, budget_id)
        target_id, target_month, target_year = target.id, target.month, target.year

        prev_year, prev_month = previous_month(target_year, target_month)
        source = _find_budget(self.db, user_id, prev_month, prev_year)
        if not source:
            raise BudgetNotFoundError("No budget found for the previous month")

        source_amounts = [
            (alloc.category_id, alloc.budgeted_amount)
            for alloc in self.db.query(CategoryAllocation).filter(
                CategoryAllocation.budget_id == source.id,
            ).all()
        ]

        def copy_all():
            for category_id, amount in source_amounts:
                _upsert_allocation(self.db, target_id, category_id, amount)

        if source_amounts:
            _commit_with_retry(self.db, copy_all)

        logger.info(
            "Copied %d allocations from %04d-%02d into budget=%s",
            len(source_amounts), prev_year, prev_month, target_id,
        )
        return self.engine.get_budget_summary(user_id, target_month, target_year)
