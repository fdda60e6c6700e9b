"""
Account domain rules: on-budget resolution and revolving-credit linkage
"""
from typing import Any, Dict, Iterable


def resolve_on_budget(on_budget: bool | None, type_is_budget_account: bool | None) -> bool:
    """
    Effective on-budget flag of an account.

    The account's own override wins; otherwise the account type decides;
    an account with neither is treated as on-budget.
    """
    if on_budget is not None:
        return on_budget
    if type_is_budget_account is not None:
        return type_is_budget_account
    return True


def build_payment_category_map(accounts: Iterable[Any]) -> Dict[int, int]:
    """
    Map payment_category_id -> account_id for revolving-credit accounts.

    Built once per snapshot instead of looking the card up per category.
    """
    return {
        acc.payment_category_id: acc.id
        for acc in accounts
        if acc.payment_category_id is not None
    }
