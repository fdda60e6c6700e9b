"""
Envelope budget engine: derives a month's budget state from the ledger.

Nothing here is stored. Every read recomputes activity, available amounts and
To Be Budgeted from transactions and category allocations, so a month can be
queried in any order and never drifts from the ledger.

get_budget_summary() prefetches the whole look-back window in a handful of
queries and does the per-category arithmetic in memory. The compute_* methods
answer single questions and are kept for standalone use.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date as date_type
from decimal import Decimal
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import get_settings
from app.domain.account import build_payment_category_map, resolve_on_budget
from app.domain.budget import (
    ZERO, Period, carry_forward, credit_card_net_activity, month_bounds, month_window, roll_forward,
)
from app.domain.transaction import (
    TRANSACTION_TYPE_INCOME, TRANSACTION_TYPE_TRANSFER, is_split_child, is_transfer_leg,
)
from app.infrastructure.db.models import (
    Account, AccountType, Budget, Category, CategoryAllocation, CategoryGoal, CategoryGroup,
    Transaction,
)

logger = logging.getLogger(__name__)


class BudgetNotFoundError(LookupError):
    """No budget row for the requested month (the caller creates it and retries)."""

    def __init__(self, message: str = "Budget not found for specified month"):
        super().__init__(message)


# ---------------------------------------------------------------------------
# Read results
# ---------------------------------------------------------------------------


@dataclass
class CategoryGoalView:
    id: int
    goal_type: str
    target_amount: Optional[Decimal]
    target_date: Optional[date_type]
    monthly_amount: Optional[Decimal]


@dataclass
class BudgetCategoryRow:
    id: int
    name: str
    group_name: str
    is_system: bool
    budgeted_amount: Decimal
    activity_amount: Decimal
    available_amount: Decimal
    goal: Optional[CategoryGoalView] = None


@dataclass
class BudgetSummary:
    id: int
    month: int
    year: int
    to_be_budgeted: Decimal
    categories: List[BudgetCategoryRow] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Prefetched ledger window
# ---------------------------------------------------------------------------


class LedgerWindow:
    """
    In-memory index over one user's budgets, allocations and transactions
    for a range of months. All lookups are dictionary reads.
    """

    def __init__(
        self,
        periods: List[Period],
        budgets: List[Budget],
        allocations: List[CategoryAllocation],
        transactions: List[Transaction],
        budget_account_ids: Set[int],
    ):
        self.periods = periods
        self.budget_ids: Dict[Period, int] = {(b.year, b.month): b.id for b in budgets}
        self.budget_account_ids = budget_account_ids

        # category_id -> budget_id -> budgeted amount
        self.allocations: Dict[int, Dict[int, Decimal]] = defaultdict(dict)
        # budget_id -> total budgeted
        self.budgeted_totals: Dict[int, Decimal] = defaultdict(lambda: ZERO)
        for alloc in allocations:
            amount = Decimal(alloc.budgeted_amount)
            self.allocations[alloc.category_id][alloc.budget_id] = amount
            self.budgeted_totals[alloc.budget_id] += amount

        # (category_id, period) -> account_id -> summed amount
        self.activity: Dict[Tuple[int, Period], Dict[int, Decimal]] = defaultdict(lambda: defaultdict(lambda: ZERO))
        # (account_id, period) -> rows
        self.by_account: Dict[Tuple[int, Period], List[Transaction]] = defaultdict(list)
        # period -> on-budget top-level income
        self.income: Dict[Period, Decimal] = defaultdict(lambda: ZERO)

        for tx in transactions:
            period = (tx.date.year, tx.date.month)
            self.by_account[(tx.account_id, period)].append(tx)
            if tx.category_id is not None and not is_transfer_leg(tx):
                self.activity[(tx.category_id, period)][tx.account_id] += Decimal(tx.amount)
            if (
                tx.type == TRANSACTION_TYPE_INCOME
                and not is_split_child(tx)
                and tx.account_id in budget_account_ids
            ):
                self.income[period] += Decimal(tx.amount)

    @property
    def budgeted_periods(self) -> Set[Period]:
        return set(self.budget_ids)

    def budgeted(self, category_id: int, year: int, month: int) -> Decimal:
        budget_id = self.budget_ids.get((year, month))
        if budget_id is None:
            return ZERO
        return self.allocations.get(category_id, {}).get(budget_id, ZERO)

    def category_activity(
        self, category_id: int, year: int, month: int, exclude_account_id: int | None = None,
    ) -> Decimal:
        per_account = self.activity.get((category_id, (year, month)))
        if not per_account:
            return ZERO
        return sum(
            (amount for account_id, amount in per_account.items() if account_id != exclude_account_id),
            ZERO,
        )

    def cc_activity(self, account_id: int, year: int, month: int, payment_category_id: int | None) -> Decimal:
        return credit_card_net_activity(self.by_account.get((account_id, (year, month)), []), payment_category_id)

    def available(
        self, category_id: int, window_months: int, card_account_id: int | None = None,
    ) -> Decimal:
        """
        Rollover walk over the last `window_months` months of the window.

        For a credit card payment category the card's own rows are left out of
        activity, and the card's net utilization for the target month is added
        after the walk (it is not rolled forward).
        """
        periods = self.periods[-window_months:]

        def contribution(year: int, month: int) -> Decimal:
            return (
                self.budgeted(category_id, year, month)
                + self.category_activity(category_id, year, month, exclude_account_id=card_account_id)
            )

        available = roll_forward(periods, self.budgeted_periods, contribution)
        if card_account_id is not None:
            year, month = periods[-1]
            available += self.cc_activity(card_account_id, year, month, category_id)
        return available

    def to_be_budgeted(self, window_months: int) -> Decimal:
        periods = self.periods[-window_months:]

        def contribution(year: int, month: int) -> Decimal:
            budget_id = self.budget_ids.get((year, month))
            budgeted = self.budgeted_totals.get(budget_id, ZERO) if budget_id is not None else ZERO
            return self.income.get((year, month), ZERO) - budgeted

        return carry_forward(periods, contribution)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class BudgetingEngine:
    """Read side of envelope budgeting. Holds no state besides the session."""

    def __init__(
        self,
        db: Session,
        rollover_window_months: int | None = None,
        tbb_window_months: int | None = None,
    ):
        settings = get_settings()
        self.db = db
        self.rollover_window_months = rollover_window_months or settings.ROLLOVER_WINDOW_MONTHS
        self.tbb_window_months = tbb_window_months or settings.TBB_WINDOW_MONTHS

    # --- standalone calculators -------------------------------------------

    def compute_activity(
        self, category_id: int, month: int, year: int, exclude_account_id: int | None = None,
    ) -> Decimal:
        """Sum of transaction amounts posted to the category in the month (split children included)."""
        start, end = month_bounds(year, month)
        q = self.db.query(func.sum(Transaction.amount)).filter(
            Transaction.category_id == category_id,
            Transaction.type != TRANSACTION_TYPE_TRANSFER,
            Transaction.date >= start,
            Transaction.date <= end,
        )
        if exclude_account_id is not None:
            q = q.filter(Transaction.account_id != exclude_account_id)
        return Decimal(q.scalar() or 0)

    def compute_cc_activity(
        self, account_id: int, month: int, year: int, payment_category_id: int | None = None,
    ) -> Decimal:
        """Net credit card utilization (charges - payments) for the month."""
        start, end = month_bounds(year, month)
        rows = self.db.query(Transaction).filter(
            Transaction.account_id == account_id,
            Transaction.date >= start,
            Transaction.date <= end,
        ).all()
        return credit_card_net_activity(rows, payment_category_id)

    def compute_available(self, category_id: int, month: int, year: int, user_id: int) -> Decimal:
        """Available amount of one category, rollover and credit card adjustment included."""
        accounts = self._load_accounts(user_id)
        card_account_id = build_payment_category_map(a for a, _ in accounts).get(category_id)
        window = self._load_window(
            user_id, year, month, self.rollover_window_months, accounts,
            category_ids={category_id},
        )
        return window.available(category_id, self.rollover_window_months, card_account_id)

    def compute_tbb(self, user_id: int, month: int, year: int) -> Decimal:
        """To Be Budgeted (unassigned funds) for the month."""
        window = self._load_window(user_id, year, month, self.tbb_window_months)
        return window.to_be_budgeted(self.tbb_window_months)

    # --- snapshot ---------------------------------------------------------

    def get_budget_summary(self, user_id: int, month: int, year: int) -> BudgetSummary:
        """
        Full budget state of one month.

        Raises:
            BudgetNotFoundError: the month has no budget row
        """
        current_budget = self.db.query(Budget).filter(
            Budget.user_id == user_id,
            Budget.month == month,
            Budget.year == year,
        ).first()
        if not current_budget:
            raise BudgetNotFoundError()

        accounts = self._load_accounts(user_id)
        payment_map = build_payment_category_map(a for a, _ in accounts)
        window_size = max(self.rollover_window_months, self.tbb_window_months)
        window = self._load_window(user_id, year, month, window_size, accounts)

        rows = (
            self.db.query(CategoryAllocation, Category, CategoryGroup, CategoryGoal)
            .join(Category, Category.id == CategoryAllocation.category_id)
            .join(CategoryGroup, CategoryGroup.id == Category.group_id)
            .outerjoin(CategoryGoal, CategoryGoal.category_id == Category.id)
            .filter(
                CategoryAllocation.budget_id == current_budget.id,
                Category.user_id == user_id,
                Category.is_hidden == False,
            )
            .order_by(
                CategoryGroup.sort_order.asc(), CategoryGroup.name.asc(),
                Category.sort_order.asc(), Category.name.asc(),
            )
            .all()
        )

        categories = []
        for alloc, cat, group, goal in rows:
            card_account_id = payment_map.get(cat.id)
            categories.append(BudgetCategoryRow(
                id=cat.id,
                name=cat.name,
                group_name=group.name,
                is_system=cat.is_system,
                budgeted_amount=Decimal(alloc.budgeted_amount),
                activity_amount=window.category_activity(cat.id, year, month, exclude_account_id=card_account_id),
                available_amount=window.available(cat.id, self.rollover_window_months, card_account_id),
                goal=_goal_view(goal),
            ))

        tbb = window.to_be_budgeted(self.tbb_window_months)
        logger.debug(
            "Budget summary user=%s %04d-%02d: %d categories, tbb=%s",
            user_id, year, month, len(categories), tbb,
        )
        return BudgetSummary(
            id=current_budget.id,
            month=month,
            year=year,
            to_be_budgeted=tbb,
            categories=categories,
        )

    # --- loading ----------------------------------------------------------

    def _load_accounts(self, user_id: int) -> List[Tuple[Account, Optional[AccountType]]]:
        return (
            self.db.query(Account, AccountType)
            .outerjoin(AccountType, AccountType.id == Account.type_id)
            .filter(Account.user_id == user_id)
            .all()
        )

    def _load_window(
        self,
        user_id: int,
        year: int,
        month: int,
        size: int,
        accounts: List[Tuple[Account, Optional[AccountType]]] | None = None,
        category_ids: Set[int] | None = None,
    ) -> LedgerWindow:
        """Prefetch budgets, allocations and transactions for `size` months ending at (year, month)."""
        if accounts is None:
            accounts = self._load_accounts(user_id)
        periods = month_window(year, month, size)
        period_set = set(periods)
        range_start, _ = month_bounds(*periods[0])
        _, range_end = month_bounds(*periods[-1])

        budgets = [
            b for b in self.db.query(Budget).filter(
                Budget.user_id == user_id,
                Budget.year >= periods[0][0],
                Budget.year <= periods[-1][0],
            ).all()
            if (b.year, b.month) in period_set
        ]

        allocations: List[CategoryAllocation] = []
        if budgets:
            q = self.db.query(CategoryAllocation).filter(
                CategoryAllocation.budget_id.in_([b.id for b in budgets]),
            )
            if category_ids is not None:
                q = q.filter(CategoryAllocation.category_id.in_(category_ids))
            allocations = q.all()

        account_ids = [a.id for a, _ in accounts]
        transactions: List[Transaction] = []
        if account_ids:
            transactions = self.db.query(Transaction).filter(
                Transaction.account_id.in_(account_ids),
                Transaction.date >= range_start,
                Transaction.date <= range_end,
            ).all()

        budget_account_ids = {
            a.id for a, account_type in accounts
            if resolve_on_budget(a.on_budget, account_type.is_budget_account if account_type else None)
        }
        return LedgerWindow(periods, budgets, allocations, transactions, budget_account_ids)


def _goal_view(goal: CategoryGoal | None) -> CategoryGoalView | None:
    if goal is None:
        return None
    return CategoryGoalView(
        id=goal.id,
        goal_type=goal.goal_type,
        target_amount=goal.target_amount,
        target_date=goal.target_date,
        monthly_amount=goal.monthly_amount,
    )
