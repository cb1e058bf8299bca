from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable

from document_engine.errors import ValidationError
from document_engine.models import LineItem

ZERO = Decimal("0")
ONE = Decimal("1")
Q2 = Decimal("0.01")
DEFAULT_TAX_RATE = Decimal("0.16")


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    try:
        if isinstance(value, str):
            value = value.strip().replace(",", "")
            if value == "":
                return default
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def quantize_2(value: Decimal) -> Decimal:
    return value.quantize(Q2, rounding=ROUND_HALF_UP)


def _required_decimal(value: Any, field: str) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required", field=field)
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number, got {value!r}", field=field)
    if not number.is_finite():
        raise ValidationError(f"{field} must be finite, got {value!r}", field=field)
    return number


@dataclass(frozen=True)
class LineCalculation:
    line_total: Decimal


def calculate_line_item(item: LineItem) -> LineCalculation:
    """``unit_price * quantity``; negative prices and non-positive quantities are rejected."""
    quantity = _required_decimal(item.quantity, "quantity")
    unit_price = _required_decimal(item.unit_price, "unit_price")
    if quantity <= ZERO:
        raise ValidationError(f"Quantity must be greater than zero for item {item.id or item.name!r}", field="quantity")
    if unit_price < ZERO:
        raise ValidationError(f"Unit price cannot be negative for item {item.id or item.name!r}", field="unit_price")
    return LineCalculation(line_total=unit_price * quantity)


def line_freight(item: LineItem, freight_rate: Any) -> Decimal:
    """Freight for a single line: ``weight * freight_rate * quantity``; items without weight pay none."""
    weight = to_decimal(item.weight)
    rate = to_decimal(freight_rate)
    if weight <= ZERO or rate <= ZERO:
        return ZERO
    return weight * rate * to_decimal(item.quantity)


def calculate_freight(items: Iterable[LineItem], freight_rate: Any) -> Decimal:
    """Caller-side freight helper; only weighted goods attract freight."""
    return sum((line_freight(item, freight_rate) for item in items), ZERO)


def validate_currency_rate(rate: Any) -> Decimal:
    value = _required_decimal(rate, "currency_rate")
    if value <= ZERO:
        raise ValidationError("Currency rate must be greater than zero", field="currency_rate")
    return value


def to_display_currency(base_amount: Any, currency_rate: Any) -> Decimal:
    """Base-currency amount shown in the foreign currency: ``base / rate``, rounded half-up."""
    return quantize_2(to_decimal(base_amount) / validate_currency_rate(currency_rate))


def to_base_currency(foreign_amount: Any, currency_rate: Any) -> Decimal:
    """Foreign-currency input stored in base currency: ``foreign * rate``, rounded half-up."""
    return quantize_2(to_decimal(foreign_amount) * validate_currency_rate(currency_rate))


@dataclass(frozen=True)
class ConvertedTotals:
    currency_rate: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    freight_amount: Decimal
    grand_total: Decimal


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax_amount: Decimal
    freight_amount: Decimal
    grand_total: Decimal
    tax_rate: Decimal = DEFAULT_TAX_RATE

    def rounded(self) -> Dict[str, Decimal]:
        return {
            "subtotal": quantize_2(self.subtotal),
            "tax_amount": quantize_2(self.tax_amount),
            "freight_amount": quantize_2(self.freight_amount),
            "grand_total": quantize_2(self.grand_total),
        }

    def in_currency(self, currency_rate: Any) -> ConvertedTotals:
        # Each figure is converted from its own unrounded base value.
        rate = validate_currency_rate(currency_rate)
        return ConvertedTotals(
            currency_rate=rate,
            subtotal=to_display_currency(self.subtotal, rate),
            tax_amount=to_display_currency(self.tax_amount, rate),
            freight_amount=to_display_currency(self.freight_amount, rate),
            grand_total=to_display_currency(self.grand_total, rate),
        )


def calculate_totals(
    items: Iterable[LineItem],
    tax_rate: Any = DEFAULT_TAX_RATE,
    *,
    freight_amount: Any = ZERO,
) -> Totals:
    """
    Totals in base currency, unrounded.

    Freight is computed by the caller (see ``calculate_freight``) and is added
    to the grand total without being taxed.
    """
    rate = _required_decimal(tax_rate, "tax_rate")
    if rate < ZERO:
        raise ValidationError("Tax rate cannot be negative", field="tax_rate")
    freight = _required_decimal(freight_amount, "freight_amount")
    if freight < ZERO:
        raise ValidationError("Freight cannot be negative", field="freight_amount")

    subtotal = ZERO
    for item in items:
        subtotal += calculate_line_item(item).line_total

    tax_amount = subtotal * rate
    return Totals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        freight_amount=freight,
        grand_total=subtotal + tax_amount + freight,
        tax_rate=rate,
    )
