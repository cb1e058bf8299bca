from __future__ import annotations

import math
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional


def _to_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return Decimal(str(value))
    if value is None:
        return None
    raw = str(value).strip().replace(",", "")
    if not raw:
        return None
    try:
        return Decimal(raw)
    except InvalidOperation:
        return None


def _quantize(value: Decimal, decimals: int) -> Decimal:
    safe_decimals = max(int(decimals), 0)
    quantum = Decimal(1).scaleb(-safe_decimals)
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def _group_thousands(integer_part: str) -> str:
    chunks = []
    digits = integer_part or "0"
    while digits:
        chunks.append(digits[-3:])
        digits = digits[:-3]
    return ",".join(reversed(chunks))


def format_decimal(value: Any, decimals: int = 2) -> str:
    """``1234.5`` -> ``"1,234.50"`` (half-up rounding)."""
    parsed = _to_decimal(value)
    if parsed is None:
        return "-" if value is None else str(value)

    safe_decimals = max(int(decimals), 0)
    quantized = _quantize(parsed, safe_decimals)
    sign = "-" if quantized < 0 else ""
    absolute = -quantized if quantized < 0 else quantized
    raw = f"{absolute:.{safe_decimals}f}"
    integer_part, _, fraction_part = raw.partition(".")
    grouped = _group_thousands(integer_part)

    if safe_decimals == 0:
        return f"{sign}{grouped}"
    return f"{sign}{grouped}.{fraction_part}"


def format_currency(value: Any, symbol: str = "Ksh") -> str:
    parsed = _to_decimal(value)
    if parsed is None:
        return "-" if value is None else str(value)
    return f"{symbol} {format_decimal(parsed, decimals=2)}".strip()


def format_percent(rate: Any, decimals: Optional[int] = None) -> str:
    """A fractional rate as a percentage: ``0.16`` -> ``"16%"``, ``0.165`` -> ``"16.5%"``.

    Without ``decimals`` the rate is shown exactly, trailing zeros trimmed.
    """
    parsed = _to_decimal(rate)
    if parsed is None:
        return "-" if rate is None else str(rate)
    scaled = parsed * 100
    if decimals is None:
        exponent = scaled.normalize().as_tuple().exponent
        decimals = -exponent if exponent < 0 else 0
    text = format_decimal(scaled, decimals=decimals)
    return f"{text}%"


def format_quantity(value: Any) -> str:
    parsed = _to_decimal(value)
    if parsed is None:
        return "-" if value is None else str(value)
    if parsed == parsed.to_integral_value():
        return str(int(parsed))
    return format_decimal(parsed, decimals=2)


def format_date(value: Any) -> str:
    """Format date value to DD/MM/YYYY."""
    if not value:
        return "-"
    if isinstance(value, (date, datetime)):
        return value.strftime("%d/%m/%Y")
    text = str(value).split("T")[0].split(" ")[0]
    try:
        return datetime.strptime(text, "%Y-%m-%d").strftime("%d/%m/%Y")
    except ValueError:
        return str(value)
