from decimal import Decimal

import pytest

from app.fixpos.core.error_catalog import AppError, ErrorCatalog
from app.fixpos.services.pricing import (
    NO_DISCOUNT,
    CartLine,
    FixedDiscount,
    PercentageDiscount,
    build_discount,
    compute_totals,
    line_breakdown,
    money,
    preset_discount,
    subtotal_of,
    validate_discount,
)

TAX = Decimal("0.115")


def _line(price: str, quantity: int = 1, **kwargs) -> CartLine:
    return CartLine(item_id=f"item-{price}", kind="service", name="Item", unit_price=Decimal(price), quantity=quantity, **kwargs)


def test_subtotal_sums_unit_price_times_quantity():
    assert subtotal_of([_line("10.00", 2), _line("5.50", 1)]) == Decimal("25.50")


def test_percentage_discount_is_applied_before_tax():
    totals = compute_totals([_line("100.00")], PercentageDiscount(value=Decimal("20")), TAX).rounded()

    assert totals.discount_amount == Decimal("20.00")
    assert totals.taxable_amount == Decimal("80.00")
    assert totals.tax_amount == Decimal("9.20")
    assert totals.total == Decimal("89.20")


def test_fixed_discount_is_clamped_to_subtotal():
    totals = compute_totals([_line("30.00")], FixedDiscount(amount=Decimal("50.00")), TAX).rounded()

    assert totals.discount_amount == Decimal("30.00")
    assert totals.taxable_amount == Decimal("0.00")
    assert totals.total == Decimal("0.00")


def test_no_discount_taxes_the_full_subtotal():
    totals = compute_totals([_line("10.00", 3)], NO_DISCOUNT, TAX).rounded()

    assert totals.discount_amount == Decimal("0.00")
    assert totals.tax_amount == Decimal("3.45")
    assert totals.total == Decimal("33.45")


def test_compute_totals_is_deterministic():
    lines = [_line("19.99", 3), _line("0.35", 7)]
    discount = PercentageDiscount(value=Decimal("15"))

    assert compute_totals(lines, discount, TAX) == compute_totals(lines, discount, TAX)


def test_rounding_happens_only_at_the_edges():
    totals = compute_totals([_line("0.10", 3)], PercentageDiscount(value=Decimal("5")), TAX)

    assert totals.total == Decimal("0.30") * Decimal("0.95") * Decimal("1.115")
    assert totals.rounded().total == Decimal("0.32")


def test_money_rounds_half_up():
    assert money(Decimal("0.125")) == Decimal("0.13")
    assert money(Decimal("2.675")) == Decimal("2.68")


@pytest.mark.parametrize(
    "discount, subtotal",
    [
        (PercentageDiscount(value=Decimal("101")), None),
        (PercentageDiscount(value=Decimal("-1")), None),
        (FixedDiscount(amount=Decimal("-0.01")), None),
        (FixedDiscount(amount=Decimal("30.01")), Decimal("30.00")),
    ],
)
def test_validate_discount_rejects_out_of_bounds(discount, subtotal):
    with pytest.raises(AppError) as excinfo:
        validate_discount(discount, subtotal)
    assert excinfo.value.error == ErrorCatalog.VALIDATION_ERROR


def test_validate_discount_accepts_bounds():
    assert validate_discount(PercentageDiscount(value=Decimal("100"))).value == Decimal("100")
    assert validate_discount(FixedDiscount(amount=Decimal("30.00")), Decimal("30.00")).amount == Decimal("30.00")


def test_preset_discount_only_accepts_configured_presets():
    assert preset_discount(10, [5, 10, 15, 20]) == PercentageDiscount(value=Decimal("10"))
    with pytest.raises(AppError):
        preset_discount(12, [5, 10, 15, 20])


def test_build_discount_from_request_values():
    assert build_discount("none", "99") is NO_DISCOUNT
    assert build_discount("percentage", "12.5") == PercentageDiscount(value=Decimal("12.5"))
    assert build_discount("fixed", 5) == FixedDiscount(amount=Decimal("5"))
    with pytest.raises(AppError):
        build_discount("bogo", 1)


def test_line_breakdown_reports_promotion_savings():
    promo = _line("8.00", 2, original_unit_price=Decimal("10.00"), discount_label="Summer")
    plain = _line("5.00")

    rows = line_breakdown([promo, plain])

    assert rows[0].line_total == Decimal("16.00")
    assert rows[0].promotion_savings == Decimal("4.00")
    assert rows[0].discount_label == "Summer"
    assert rows[1].promotion_savings == Decimal("0")
