"""
Validation utilities
"""
import re
from decimal import Decimal, InvalidOperation


def validate_and_normalize_amount(value: str, max_decimal_places: int = 2) -> str:
    """
    Normalize a typed amount (trim, comma as decimal separator) and check it

    Example:
        >>> validate_and_normalize_amount(" 100,50 ")
        "100.50"

    Raises:
        ValueError: not a number, or more than max_decimal_places decimals
    """
    normalized = value.strip().replace(",", ".")

    try:
        Decimal(normalized)
    except (InvalidOperation, ValueError):
        raise ValueError("amount must be a number")

    if not re.fullmatch(rf"-?\d+(\.\d{{1,{max_decimal_places}}})?", normalized):
        raise ValueError(f"At most {max_decimal_places} decimal places")

    return normalized
