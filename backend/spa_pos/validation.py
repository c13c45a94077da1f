from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


# Maximum amount: 9,999,999,999.99 (fits Numeric(12, 2))
MAX_AMOUNT = Decimal("9999999999.99")

_CENT = Decimal("0.01")


def is_number(value: Any) -> bool:
    """JSON-style number check: int/float/Decimal, but not bool, NaN or inf."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, Decimal):
        return value.is_finite()
    return False


def as_whole_number(value: Any) -> Optional[int]:
    """
    Strict integer coercion for quantities.

    - int (not bool) -> int
    - float / Decimal with no fractional part (e.g., 3.0) -> int
    - anything else (strings, 2.5, None, bool) -> None
    """
    if not is_number(value):
        return None
    if isinstance(value, int):
        return value
    if value != int(value):
        return None
    return int(value)


def as_amount(value: Any) -> Optional[Decimal]:
    """Money coercion: numeric -> Decimal rounded to cents, anything else -> None."""
    if not is_number(value):
        return None
    try:
        amount = Decimal(str(value)).quantize(_CENT)
    except InvalidOperation:
        return None
    if abs(amount) > MAX_AMOUNT:
        return None
    return amount


def as_id(value: Any) -> Optional[int]:
    """Record ids arrive as ints or digit strings (path/query params)."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit() and int(stripped) > 0:
            return int(stripped)
    return None


def clean_text(value: Any) -> Optional[str]:
    """Trim a free-text field; blank -> None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None
