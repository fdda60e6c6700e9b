"""
Envelope budget arithmetic (pure, no database access).

available(M) = max(0, available(M-1)) + budgeted(M) + activity(M)
TBB(M)       = max(0, TBB(M-1)) + income(M) - total_budgeted(M)

Both are folds over a bounded window of calendar months, oldest first.
For available, a month without a budget row adds nothing and only floors a
negative carry. For TBB such a month still brings in its income, with
nothing budgeted against it.
"""
import calendar
from datetime import date as date_type
from decimal import Decimal
from typing import Any, Callable, Collection, Iterable, List, Tuple

from app.domain.transaction import (
    TRANSACTION_TYPE_EXPENSE, TRANSACTION_TYPE_INCOME, TRANSACTION_TYPE_TRANSFER,
    is_split_child, is_split_parent,
)

ZERO = Decimal("0")

Period = Tuple[int, int]  # (year, month)


def shift_month(year: int, month: int, offset: int) -> Period:
    """Shift (year, month) by offset months (negative = backwards)."""
    total = year * 12 + (month - 1) + offset
    return total // 12, total % 12 + 1


def previous_month(year: int, month: int) -> Period:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def month_bounds(year: int, month: int) -> Tuple[date_type, date_type]:
    """First and last calendar day of the month."""
    last_day = calendar.monthrange(year, month)[1]
    return date_type(year, month, 1), date_type(year, month, last_day)


def month_window(year: int, month: int, size: int) -> List[Period]:
    """`size` consecutive months ending at (year, month), oldest first."""
    return [shift_month(year, month, -offset) for offset in range(size - 1, -1, -1)]


def floor_carry(carry: Decimal) -> Decimal:
    """Overspending never carries into the next month; savings always do."""
    return carry if carry > ZERO else ZERO


def roll_forward(
    window: Iterable[Period],
    budgeted_periods: Collection[Period],
    contribution: Callable[[int, int], Decimal],
) -> Decimal:
    """
    Fold a month window into a running balance.

    Args:
        window: months oldest first, the last one is the target month
        budgeted_periods: months that have a budget row
        contribution: (year, month) -> amount added in a budgeted month

    Returns:
        Balance after the last month of the window
    """
    balance = ZERO
    for year, month in window:
        balance = floor_carry(balance)
        if (year, month) not in budgeted_periods:
            continue
        balance += contribution(year, month)
    return balance


def carry_forward(window: Iterable[Period], contribution: Callable[[int, int], Decimal]) -> Decimal:
    """
    Fold every month of the window, budgeted or not.

    Used for To Be Budgeted: income is counted in every month, and a month
    without a budget row simply has nothing assigned.
    """
    balance = ZERO
    for year, month in window:
        balance = floor_carry(balance) + contribution(year, month)
    return balance


def credit_card_net_activity(transactions: Iterable[Any], payment_category_id: int | None = None) -> Decimal:
    """
    Net utilization of a credit card for one month: charges - payments.

    The result is added to the available amount of the card's payment category:
    - categorized expense (charge, split children included): money moves from the
      spending envelope into the payment envelope -> positive
    - uncategorized top-level expense (e.g. a starting balance): unfunded debt -> negative
    - uncategorized top-level income (e.g. a starting credit): positive
    - positive transfer leg landing on the card (a payment) -> negative

    Split parents are skipped; their children carry the categories.
    Rows must already be restricted to the card account and the month.
    """
    charges = ZERO
    payments = ZERO
    for tx in transactions:
        if is_split_parent(tx):
            continue
        amount = Decimal(tx.amount)
        top_level = not is_split_child(tx)

        if tx.type == TRANSACTION_TYPE_EXPENSE:
            if tx.category_id is not None and tx.category_id != payment_category_id:
                charges -= amount
            elif tx.category_id is None and top_level:
                payments -= amount
        elif tx.type == TRANSACTION_TYPE_INCOME:
            if tx.category_id is None and top_level:
                charges += amount
        elif tx.type == TRANSACTION_TYPE_TRANSFER:
            if amount > ZERO and top_level:
                payments += amount

    return charges - payments
