from decimal import Decimal

from app.fixpos.services.reconciler import (
    DEPOSIT,
    FULL,
    READY_FOR_PICKUP,
    OrderSnapshot,
    order_total,
    outstanding_balance,
    reconcile,
)

TAX = Decimal("0.115")


def _order(status="in_progress", total="100.00", paid="0", items=()) -> OrderSnapshot:
    return OrderSnapshot(
        id="wo-1",
        order_number="WO-1001",
        status=status,
        total=Decimal(total),
        total_paid=Decimal(paid),
        items=tuple(items),
    )


def test_full_payment_marks_paid_and_ready_for_pickup():
    result = reconcile(_order(paid="60.00"), Decimal("40.00"), mode=FULL, tax_rate=TAX)

    assert result.total_paid_after == Decimal("100.00")
    assert result.balance_after == Decimal("0")
    assert result.paid is True
    assert result.status_transition == READY_FOR_PICKUP


def test_partial_deposit_leaves_balance_and_status():
    result = reconcile(_order(), Decimal("30.00"), mode=DEPOSIT, tax_rate=TAX)

    assert result.balance_after == Decimal("70.00")
    assert result.paid is False
    assert result.status_transition is None


def test_deposit_that_clears_balance_does_not_move_status():
    result = reconcile(_order(paid="60.00"), Decimal("40.00"), mode=DEPOSIT, tax_rate=TAX)

    assert result.paid is True
    assert result.status_transition is None


def test_balance_within_epsilon_counts_as_paid():
    result = reconcile(_order(total="100.00"), Decimal("99.995"), mode=FULL, tax_rate=TAX)

    assert result.paid is True


def test_terminal_and_ready_statuses_are_kept():
    for status in ("delivered", "picked_up", "cancelled", READY_FOR_PICKUP):
        result = reconcile(_order(status=status), Decimal("100.00"), mode=FULL, tax_rate=TAX)
        assert result.status_transition is None, status


def test_order_total_falls_back_to_taxed_items():
    order = _order(total="0", items=[{"price": 40, "qty": 2}, {"price": "20.00"}])

    assert order_total(order, TAX) == Decimal("111.500")
    assert outstanding_balance(order, TAX) == Decimal("111.500")


def test_overpayment_never_goes_negative():
    assert outstanding_balance(_order(paid="120.00"), TAX) == Decimal("0")
