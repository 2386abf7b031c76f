from decimal import Decimal

import pytest

from app.fixpos.services.loyalty import accrue, points_for, tier_for


@pytest.mark.parametrize(
    "total, points",
    [(Decimal("111.50"), 111), (Decimal("0.99"), 0), (Decimal("0"), 0), (Decimal("-3"), 0), (Decimal("20.00"), 20)],
)
def test_points_are_whole_currency_units(total, points):
    assert points_for(total) == points


@pytest.mark.parametrize(
    "spend, tier",
    [(Decimal("0"), "bronze"), (Decimal("499.99"), "bronze"), (Decimal("500"), "silver"), (Decimal("2500"), "gold"), (Decimal("5000"), "platinum")],
)
def test_tier_thresholds(spend, tier):
    assert tier_for(spend) == tier


def test_accrual_updates_points_spend_orders_and_tier():
    accrual = accrue(
        points=40,
        tier="bronze",
        lifetime_spend=Decimal("450.00"),
        total_orders=3,
        sale_total=Decimal("111.50"),
    )

    assert accrual.points_delta == 111
    assert accrual.points_after == 151
    assert accrual.lifetime_spend_after == Decimal("561.50")
    assert accrual.total_orders_after == 4
    assert accrual.tier_after == "silver"
    assert accrual.tier_changed is True


def test_missing_tier_defaults_to_bronze():
    accrual = accrue(points=0, tier=None, lifetime_spend=Decimal("0"), total_orders=0, sale_total=Decimal("5"))

    assert accrual.tier_before == "bronze"
    assert accrual.tier_changed is False
