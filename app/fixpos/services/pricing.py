"""Cart pricing.

Every function here is pure: the cart lines, the active discount and the tax
rate are explicit inputs and nothing is cached between calls, so totals can
be recomputed on every cart change without drift. Internal arithmetic keeps
full ``Decimal`` precision; rounding to cents happens only through
:func:`money` when values are displayed or persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Literal

from app.fixpos.core.error_catalog import AppError, ErrorCatalog

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")

LineKind = Literal["product", "service"]


def money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class CartLine:
    item_id: str
    kind: LineKind
    name: str
    unit_price: Decimal
    quantity: int = 1
    original_unit_price: Decimal | None = None
    discount_label: str | None = None
    stock_ceiling: int | None = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class NoDiscount:
    kind: Literal["none"] = "none"

    @property
    def value(self) -> Decimal:
        return ZERO


@dataclass(frozen=True)
class PercentageDiscount:
    value: Decimal
    kind: Literal["percentage"] = "percentage"


@dataclass(frozen=True)
class FixedDiscount:
    amount: Decimal
    kind: Literal["fixed"] = "fixed"

    @property
    def value(self) -> Decimal:
        return self.amount


Discount = NoDiscount | PercentageDiscount | FixedDiscount

NO_DISCOUNT = NoDiscount()


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    tax_amount: Decimal
    total: Decimal

    def rounded(self) -> "Totals":
        return Totals(
            subtotal=money(self.subtotal),
            discount_amount=money(self.discount_amount),
            taxable_amount=money(self.taxable_amount),
            tax_amount=money(self.tax_amount),
            total=money(self.total),
        )


@dataclass(frozen=True)
class LineBreakdown:
    item_id: str
    name: str
    quantity: int
    unit_price: Decimal
    original_unit_price: Decimal | None
    discount_label: str | None
    line_total: Decimal
    promotion_savings: Decimal


def subtotal_of(lines: Iterable[CartLine]) -> Decimal:
    return sum((line.unit_price * line.quantity for line in lines), ZERO)


def discount_amount_for(discount: Discount, subtotal: Decimal) -> Decimal:
    if isinstance(discount, PercentageDiscount):
        return subtotal * discount.value / HUNDRED
    if isinstance(discount, FixedDiscount):
        return min(discount.amount, subtotal)
    return ZERO


def compute_totals(lines: Iterable[CartLine], discount: Discount, tax_rate: Decimal) -> Totals:
    subtotal = subtotal_of(lines)
    discount_amount = discount_amount_for(discount, subtotal)
    taxable_amount = max(subtotal - discount_amount, ZERO)
    tax_amount = taxable_amount * tax_rate
    return Totals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        taxable_amount=taxable_amount,
        tax_amount=tax_amount,
        total=taxable_amount + tax_amount,
    )


def line_breakdown(lines: Iterable[CartLine]) -> list[LineBreakdown]:
    rows = []
    for line in lines:
        savings = ZERO
        if line.original_unit_price is not None and line.original_unit_price > line.unit_price:
            savings = (line.original_unit_price - line.unit_price) * line.quantity
        rows.append(
            LineBreakdown(
                item_id=line.item_id,
                name=line.name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                original_unit_price=line.original_unit_price,
                discount_label=line.discount_label,
                line_total=line.line_total,
                promotion_savings=savings,
            )
        )
    return rows


def validate_discount(discount: Discount, subtotal: Decimal | None = None) -> Discount:
    """Apply-time bounds check; :func:`compute_totals` clamps instead of raising."""
    if isinstance(discount, PercentageDiscount):
        if discount.value < ZERO or discount.value > HUNDRED:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "percentage discount must be between 0 and 100", "value": str(discount.value)},
            )
    elif isinstance(discount, FixedDiscount):
        if discount.amount < ZERO:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "fixed discount must be >= 0", "amount": str(discount.amount)},
            )
        if subtotal is not None and discount.amount > subtotal:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={
                    "message": "fixed discount cannot exceed the subtotal",
                    "amount": str(discount.amount),
                    "subtotal": str(money(subtotal)),
                },
            )
    return discount


def preset_discount(percentage: int, presets: Iterable[int]) -> PercentageDiscount:
    if percentage not in set(presets):
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"message": "unknown quick discount preset", "percentage": percentage},
        )
    return PercentageDiscount(value=Decimal(percentage))


def build_discount(kind: str, value) -> Discount:
    if kind == "none":
        return NO_DISCOUNT
    if kind == "percentage":
        return PercentageDiscount(value=to_decimal(value))
    if kind == "fixed":
        return FixedDiscount(amount=to_decimal(value))
    raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "unsupported discount type", "type": kind})
