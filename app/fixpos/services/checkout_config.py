from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from app.fixpos.core.config import settings
from app.fixpos.core.logging import log_json
from app.fixpos.repos.settings import AppSettingsRepository
from app.fixpos.services.payments import PAYMENT_METHODS
from app.fixpos.services.pricing import HUNDRED, ZERO

logger = logging.getLogger(__name__)

TAX_SLUG = "tax"
PAYMENT_METHODS_SLUG = "payment-methods"
QUICK_DISCOUNTS_SLUG = "quick-discounts"


@dataclass(frozen=True)
class CheckoutConfig:
    tax_rate_percent: Decimal
    enabled_methods: dict[str, bool] = field(default_factory=dict)
    quick_discount_presets: tuple[int, ...] = ()

    @property
    def tax_rate(self) -> Decimal:
        return self.tax_rate_percent / HUNDRED

    def method_enabled(self, method: str) -> bool:
        return bool(self.enabled_methods.get(method, False))


def _defaults() -> CheckoutConfig:
    return CheckoutConfig(
        tax_rate_percent=settings.TAX_RATE_PERCENT,
        enabled_methods={method: bool(settings.PAYMENT_METHODS_ENABLED.get(method, False)) for method in PAYMENT_METHODS},
        quick_discount_presets=tuple(settings.QUICK_DISCOUNT_PRESETS),
    )


def _tax_override(payload: dict) -> Decimal | None:
    raw = payload.get("tax_rate")
    if raw is None:
        return None
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        return None
    if value < ZERO or value > HUNDRED:
        return None
    return value


def merge_overrides(base: CheckoutConfig, overrides: dict[str, dict]) -> CheckoutConfig:
    """Apply store-level settings rows on top of the process configuration.

    Malformed rows are ignored and logged; checkout keeps working on the
    defaults rather than refusing to price.
    """
    tax_rate_percent = base.tax_rate_percent
    enabled = dict(base.enabled_methods)
    presets = base.quick_discount_presets

    tax_payload = overrides.get(TAX_SLUG)
    if tax_payload:
        value = _tax_override(tax_payload)
        if value is None:
            log_json(logger, {"event": "config_override_ignored", "slug": TAX_SLUG}, level=logging.WARNING)
        else:
            tax_rate_percent = value

    methods_payload = overrides.get(PAYMENT_METHODS_SLUG)
    if methods_payload:
        for method in PAYMENT_METHODS:
            if method in methods_payload:
                enabled[method] = bool(methods_payload[method])

    discounts_payload = overrides.get(QUICK_DISCOUNTS_SLUG)
    if discounts_payload:
        raw_presets = discounts_payload.get("presets")
        if isinstance(raw_presets, list) and all(isinstance(p, int) and 0 < p <= 100 for p in raw_presets):
            presets = tuple(raw_presets)
        else:
            log_json(logger, {"event": "config_override_ignored", "slug": QUICK_DISCOUNTS_SLUG}, level=logging.WARNING)

    return CheckoutConfig(
        tax_rate_percent=tax_rate_percent,
        enabled_methods=enabled,
        quick_discount_presets=presets,
    )


async def load_checkout_config(db) -> CheckoutConfig:
    rows = await AppSettingsRepository(db).list_by_slugs([TAX_SLUG, PAYMENT_METHODS_SLUG, QUICK_DISCOUNTS_SLUG])
    overrides = {row.slug: row.payload or {} for row in rows}
    return merge_overrides(_defaults(), overrides)
