"""Work-order balance reconciliation for payments taken at checkout."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from app.fixpos.core.config import settings
from app.fixpos.services.pricing import ZERO, to_decimal

READY_FOR_PICKUP = "ready_for_pickup"
TERMINAL_ORDER_STATUSES = frozenset({"delivered", "picked_up", "cancelled", "completed"})

FULL = "full"
DEPOSIT = "deposit"


@dataclass(frozen=True)
class OrderSnapshot:
    id: str
    order_number: str
    status: str
    total: Decimal
    total_paid: Decimal
    items: tuple[dict, ...] = ()
    customer_id: str | None = None
    # Sale whose payment the stored total_paid already includes.
    last_payment_reference_id: str | None = None


@dataclass(frozen=True)
class BalanceReconciliation:
    order_id: str
    order_total: Decimal
    total_paid_before: Decimal
    total_paid_after: Decimal
    balance_after: Decimal
    paid: bool
    status_before: str
    status_transition: str | None = None


def order_total(order: OrderSnapshot, tax_rate: Decimal) -> Decimal:
    """Stored total, or the taxed sum of the order items when none was stored."""
    if order.total > ZERO or not order.items:
        return order.total
    items_subtotal = ZERO
    for item in order.items:
        quantity = item.get("qty") or item.get("quantity") or 1
        items_subtotal += to_decimal(item.get("price") or 0) * int(quantity)
    return items_subtotal * (1 + tax_rate)


def outstanding_balance(order: OrderSnapshot, tax_rate: Decimal) -> Decimal:
    return max(ZERO, order_total(order, tax_rate) - order.total_paid)


def is_settled(balance: Decimal) -> bool:
    return balance <= settings.BALANCE_EPSILON


def proposed_transition(status: str, *, paid: bool, mode: str) -> str | None:
    current = (status or "").lower()
    if not paid or mode != FULL:
        return None
    if current in TERMINAL_ORDER_STATUSES or current == READY_FOR_PICKUP:
        return None
    return READY_FOR_PICKUP


def reconcile(order: OrderSnapshot, amount_paid: Decimal, *, mode: str, tax_rate: Decimal) -> BalanceReconciliation:
    total = order_total(order, tax_rate)
    total_paid_after = order.total_paid + amount_paid
    balance_after = max(ZERO, total - total_paid_after)
    paid = is_settled(balance_after)
    return BalanceReconciliation(
        order_id=order.id,
        order_total=total,
        total_paid_before=order.total_paid,
        total_paid_after=total_paid_after,
        balance_after=balance_after,
        paid=paid,
        status_before=order.status,
        status_transition=proposed_transition(order.status, paid=paid, mode=mode),
    )
