from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any


def _to_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    s = str(value).strip()
    if not s:
        return None
    s = s.replace(",", "")
    try:
        return Decimal(s)
    except InvalidOperation:
        return None


def to_float(value: Any) -> float:
    """Lenient numeric coercion: anything unparseable (or NaN) counts as 0."""
    d = _to_decimal(value)
    if d is None or not d.is_finite():
        return 0.0
    return float(d)


def to_float_or_none(value: Any) -> float | None:
    d = _to_decimal(value)
    if d is None or not d.is_finite():
        return None
    return float(d)


def format_number(value: Any, max_digits: int = 2) -> str:
    """
    `1234.5` -> "1,234.5", `10` -> "10", falsy/unparseable -> "0".

    Trailing zeros are dropped; at most `max_digits` decimals are shown.
    """
    d = _to_decimal(value)
    if d is None or not d.is_finite() or d == 0:
        return "0"
    q = Decimal("1").scaleb(-max(0, int(max_digits)))
    d = d.quantize(q, rounding=ROUND_HALF_UP)
    s = f"{d:,.{max(0, int(max_digits))}f}"
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    return s


def format_amount(value: Any, symbol: str = "₹", signed: bool = False) -> str:
    d = _to_decimal(value) or Decimal(0)
    body = f"{symbol}{format_number(abs(d))}"
    if not signed:
        return body if d >= 0 else f"-{body}"
    return f"+{body}" if d >= 0 else f"-{body}"
