from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal

from app.fixpos.services.pricing import ZERO

# Lower bound of lifetime spend for each tier, highest first.
TIER_THRESHOLDS: tuple[tuple[str, Decimal], ...] = (
    ("platinum", Decimal("5000")),
    ("gold", Decimal("2000")),
    ("silver", Decimal("500")),
    ("bronze", ZERO),
)


@dataclass(frozen=True)
class LoyaltyAccrual:
    points_delta: int
    points_after: int
    tier_before: str
    tier_after: str
    lifetime_spend_after: Decimal
    total_orders_after: int

    @property
    def tier_changed(self) -> bool:
        return self.tier_before != self.tier_after


def tier_for(lifetime_spend: Decimal) -> str:
    for tier, floor in TIER_THRESHOLDS:
        if lifetime_spend >= floor:
            return tier
    return "bronze"


def points_for(total: Decimal) -> int:
    if total <= ZERO:
        return 0
    return int(total.to_integral_value(rounding=ROUND_FLOOR))


def accrue(
    *,
    points: int,
    tier: str | None,
    lifetime_spend: Decimal,
    total_orders: int,
    sale_total: Decimal,
) -> LoyaltyAccrual:
    delta = points_for(sale_total)
    spend_after = lifetime_spend + sale_total
    return LoyaltyAccrual(
        points_delta=delta,
        points_after=points + delta,
        tier_before=tier or "bronze",
        tier_after=tier_for(spend_after),
        lifetime_spend_after=spend_after,
        total_orders_after=total_orders + 1,
    )
