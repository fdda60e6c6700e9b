"""
Transaction domain rules shared by the budget engine.

Ledger rows are written by the transaction-management side of the app; the
engine only classifies them.
"""
from typing import Any

# Transaction types
TRANSACTION_TYPE_INCOME = "income"
TRANSACTION_TYPE_EXPENSE = "expense"
TRANSACTION_TYPE_TRANSFER = "transfer"


def is_split_child(tx: Any) -> bool:
    """Row is one part of a split transaction."""
    return tx.parent_transaction_id is not None


def is_split_parent(tx: Any) -> bool:
    """Row is the container of a split; its children carry the categories."""
    return bool(getattr(tx, "is_split", False)) and tx.category_id is None


def is_transfer_leg(tx: Any) -> bool:
    return tx.type == TRANSACTION_TYPE_TRANSFER
