"""Checkout settlement.

A settlement writes a fixed sequence of records, each committed on its own:
the sale, its revenue ledger entry, one inventory movement per product line,
the customer's loyalty update and the linked work order's payment. There is
no transaction spanning them. The settlement id is used as the sale id and
as the reference id of every dependent record, so running the same
settlement again after a failure skips whatever already exists and finishes
the rest. Records that were written are never rolled back; a failure part-way
through is reported with the steps that did commit so the operator can
verify them.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal

from app.fixpos.core.config import settings
from app.fixpos.core.context import current_trace_id
from app.fixpos.core.error_catalog import AppError, ErrorCatalog
from app.fixpos.core.logging import log_json
from app.fixpos.core.metrics import metrics
from app.fixpos.db.models import (
    Customer,
    InventoryMovement,
    LedgerTransaction,
    LoyaltyEntry,
    Sale,
    SaleLine,
    WorkOrder,
    WorkOrderEvent,
)
from app.fixpos.repos.catalog import CatalogRepository
from app.fixpos.repos.customers import CustomerRepository
from app.fixpos.repos.settlement import SettlementRepository
from app.fixpos.repos.work_orders import WorkOrderRepository
from app.fixpos.services import signals
from app.fixpos.services.cart import Cart
from app.fixpos.services.drawer_gate import DrawerService, DrawerSession, assert_settleable
from app.fixpos.services.loyalty import LoyaltyAccrual, accrue, points_for, tier_for
from app.fixpos.services.payments import PaymentIntent, PaymentSession
from app.fixpos.services.pricing import (
    NO_DISCOUNT,
    Discount,
    LineBreakdown,
    Totals,
    compute_totals,
    line_breakdown,
    money,
    to_decimal,
    validate_discount,
)
from app.fixpos.services.reconciler import (
    DEPOSIT,
    FULL,
    BalanceReconciliation,
    OrderSnapshot,
    outstanding_balance,
    reconcile,
)
from app.fixpos.services.signals import SignalBus, SignalFailure

logger = logging.getLogger(__name__)

STEP_SALE = "sale"
STEP_LEDGER = "ledger"
STEP_INVENTORY = "inventory"
STEP_LOYALTY = "loyalty"
STEP_WORK_ORDER = "work_order"

PAYMENT_EVENT = "payment"
PAYMENT_MODES = (FULL, DEPOSIT)


@dataclass(frozen=True)
class CustomerSnapshot:
    id: str
    name: str
    loyalty_points: int = 0
    loyalty_tier: str = "bronze"


def customer_snapshot(customer: Customer) -> CustomerSnapshot:
    return CustomerSnapshot(
        id=str(customer.id),
        name=customer.name,
        loyalty_points=customer.loyalty_points or 0,
        loyalty_tier=customer.loyalty_tier or "bronze",
    )


def order_snapshot(order: WorkOrder) -> OrderSnapshot:
    return OrderSnapshot(
        id=str(order.id),
        order_number=order.order_number,
        status=order.status,
        total=to_decimal(order.total or 0),
        total_paid=to_decimal(order.total_paid or 0),
        items=tuple(order.order_items or ()),
        customer_id=str(order.customer_id) if order.customer_id else None,
        last_payment_reference_id=str(order.last_payment_reference_id) if order.last_payment_reference_id else None,
    )


@dataclass
class SettlementRequest:
    settlement_id: str
    cart: Cart
    payment: PaymentSession
    drawer_session: DrawerSession | None
    tax_rate: Decimal
    discount: Discount = NO_DISCOUNT
    mode: str = FULL
    customer: CustomerSnapshot | None = None
    linked_order: OrderSnapshot | None = None
    operator: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class CustomerSummary:
    id: str
    name: str
    points_earned: int
    loyalty_points: int
    loyalty_tier: str
    tier_changed: bool


@dataclass(frozen=True)
class WorkOrderSummary:
    order_id: str
    order_number: str
    reconciliation: BalanceReconciliation


@dataclass(frozen=True)
class SettlementOutcome:
    sale_id: str
    sale_number: str
    created_at: datetime
    lines: list[LineBreakdown]
    totals: Totals
    discount: Discount
    tax_rate: Decimal
    method: str
    mode: str
    amount_paid: Decimal
    amount_tendered: Decimal
    change_due: Decimal
    points_earned: int
    payer_phone: str | None = None
    payer_name: str | None = None
    customer: CustomerSummary | None = None
    work_order: WorkOrderSummary | None = None
    completed_steps: tuple[str, ...] = ()
    skipped_steps: tuple[str, ...] = ()
    signal_failures: tuple[SignalFailure, ...] = ()

    @property
    def signals_delivered(self) -> bool:
        return not self.signal_failures

    @property
    def resumed(self) -> bool:
        return bool(self.skipped_steps)


@dataclass
class _Progress:
    committed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    # Writes already made by the step that is still running.
    partial: list[str] = field(default_factory=list)

    def wrote(self, step: str, record: str) -> None:
        self.partial.append(f"{step}:{record}")

    def reported(self) -> list[str]:
        return self.committed + self.partial

    def done(self, step: str, *, created: bool) -> None:
        self.committed.append(step)
        self.partial.clear()
        if not created:
            self.skipped.append(step)


class SettlementGuard:
    """Settlement ids currently being settled by this process."""

    def __init__(self) -> None:
        self._in_flight: set[str] = set()

    def is_in_flight(self, settlement_id: str) -> bool:
        return settlement_id in self._in_flight

    @contextmanager
    def hold(self, settlement_id: str):
        if settlement_id in self._in_flight:
            raise AppError(ErrorCatalog.SETTLEMENT_IN_PROGRESS, details={"settlement_id": settlement_id})
        self._in_flight.add(settlement_id)
        try:
            yield
        finally:
            self._in_flight.discard(settlement_id)


guard = SettlementGuard()


@dataclass
class SettlementGateway:
    """The collaborators a settlement writes through."""

    catalog: CatalogRepository
    drawer: DrawerService
    customers: CustomerRepository
    work_orders: WorkOrderRepository
    records: SettlementRepository
    db: object | None = None

    @classmethod
    def for_session(cls, db) -> "SettlementGateway":
        return cls(
            catalog=CatalogRepository(db),
            drawer=DrawerService(db),
            customers=CustomerRepository(db),
            work_orders=WorkOrderRepository(db),
            records=SettlementRepository(db),
            db=db,
        )

    async def recover(self) -> None:
        if self.db is not None:
            await self.db.rollback()


def sale_number_for(sale_id: uuid.UUID, created_at: datetime) -> str:
    return f"S-{created_at:%Y%m%d}-{sale_id.hex[:8].upper()}"


def _validation_error(message: str, **details) -> AppError:
    return AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": message, **details})


def _payment_details(intent: PaymentIntent) -> dict | None:
    if intent.method != "mobile_wallet":
        return None
    return {"payer_phone": intent.payer_phone, "payer_name": intent.payer_name}


def _reconciliation_metadata(
    reconciliation: BalanceReconciliation, intent: PaymentIntent, *, mode: str, sale: Sale
) -> dict:
    return {
        "sale_id": str(sale.id),
        "sale_number": sale.sale_number,
        "amount": str(money(intent.amount_paid)),
        "method": intent.method,
        "mode": mode,
        "order_total": str(money(reconciliation.order_total)),
        "total_paid_before": str(money(reconciliation.total_paid_before)),
        "total_paid_after": str(money(reconciliation.total_paid_after)),
        "balance_after": str(money(reconciliation.balance_after)),
        "paid": reconciliation.paid,
        "status_before": reconciliation.status_before,
        "status_transition": reconciliation.status_transition,
    }


def _reconciliation_from_metadata(order_id: str, metadata: dict) -> BalanceReconciliation:
    return BalanceReconciliation(
        order_id=order_id,
        order_total=to_decimal(metadata.get("order_total", "0")),
        total_paid_before=to_decimal(metadata.get("total_paid_before", "0")),
        total_paid_after=to_decimal(metadata.get("total_paid_after", "0")),
        balance_after=to_decimal(metadata.get("balance_after", "0")),
        paid=bool(metadata.get("paid")),
        status_before=metadata.get("status_before") or "",
        status_transition=metadata.get("status_transition"),
    )


def _payment_event_description(reconciliation: BalanceReconciliation, intent: PaymentIntent, mode: str) -> str:
    label = "Deposit received" if mode == DEPOSIT else "Payment received"
    description = f"{label}: ${money(intent.amount_paid)} ({intent.method})"
    if intent.change_due > 0:
        description += f" | Change: ${money(intent.change_due)}"
    if intent.method == "mobile_wallet":
        description += f" | {intent.payer_name} {intent.payer_phone}"
    description += f" | Balance due: ${money(reconciliation.balance_after)}"
    if reconciliation.status_transition:
        description += f" | Status: {reconciliation.status_transition}"
    return description


def _log_detached_outcome(task: asyncio.Task) -> None:
    """Report how a settlement ended after its caller was cancelled."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is None:
        outcome = task.result()
        log_json(logger, {"event": "settlement_detached_completed", "settlement_id": outcome.sale_id})
        return
    log_json(
        logger,
        {
            "event": "settlement_detached_failed",
            "error_class": exc.__class__.__name__,
            "code": exc.error.code if isinstance(exc, AppError) else None,
            "details": exc.details if isinstance(exc, AppError) else None,
        },
        level=logging.ERROR,
    )


class SettlementOrchestrator:
    def __init__(
        self,
        gateway: SettlementGateway,
        *,
        bus: SignalBus | None = None,
        settlement_guard: SettlementGuard | None = None,
    ):
        self.gateway = gateway
        self.bus = bus or signals.bus
        self.guard = settlement_guard or guard

    def check_preconditions(self, request: SettlementRequest) -> tuple[PaymentIntent, Totals]:
        """Everything that must hold before the first write; nothing is written here."""
        if request.cart.is_empty():
            raise _validation_error("cart is empty")
        assert_settleable(request.drawer_session)
        intent = request.payment.intent()
        if request.mode not in PAYMENT_MODES:
            raise _validation_error("unsupported payment mode", mode=request.mode)
        totals = compute_totals(request.cart.lines, request.discount, request.tax_rate)
        validate_discount(request.discount, totals.subtotal)
        if request.linked_order is not None:
            balance = outstanding_balance(request.linked_order, request.tax_rate)
            # An interrupted run may already have applied this payment to the order.
            applied = request.linked_order.last_payment_reference_id == str(request.settlement_id)
            if not applied and intent.amount_due > balance + settings.BALANCE_EPSILON:
                raise _validation_error(
                    "amount due exceeds the order's outstanding balance",
                    amount_due=str(money(intent.amount_due)),
                    balance=str(money(balance)),
                )
        elif request.mode == DEPOSIT:
            raise _validation_error("a deposit requires a linked work order")
        elif intent.amount_due != money(totals.total):
            raise _validation_error(
                "amount due does not match the cart total",
                amount_due=str(money(intent.amount_due)),
                total=str(money(totals.total)),
            )
        try:
            uuid.UUID(str(request.settlement_id))
        except ValueError:
            raise _validation_error("settlement id must be a UUID", settlement_id=request.settlement_id)
        return intent, totals

    async def settle(self, request: SettlementRequest) -> SettlementOutcome:
        # Once started, the sequence runs to completion even if the caller goes away.
        task = asyncio.ensure_future(self._settle(request))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            task.add_done_callback(_log_detached_outcome)
            raise

    async def _settle(self, request: SettlementRequest) -> SettlementOutcome:
        settlement_id = str(request.settlement_id)
        with self.guard.hold(settlement_id):
            try:
                intent, totals = self.check_preconditions(request)
                assert_settleable(await self.gateway.drawer.get_open_session_for_today())
            except AppError as exc:
                metrics.record_settlement(outcome="rejected", mode=request.mode)
                log_json(
                    logger,
                    {
                        "event": "settlement_rejected",
                        "settlement_id": settlement_id,
                        "code": exc.error.code,
                        "trace_id": current_trace_id(),
                    },
                    level=logging.WARNING,
                )
                raise
            return await self._run(request, intent, totals)

    async def _run(self, request: SettlementRequest, intent: PaymentIntent, totals: Totals) -> SettlementOutcome:
        sale_id = uuid.UUID(str(request.settlement_id))
        rounded = totals.rounded()
        points_earned = points_for(rounded.total) if request.customer and request.mode == FULL else 0
        existing = await self.gateway.records.get_sale(sale_id)
        if existing is not None and (
            money(to_decimal(existing.total)) != rounded.total
            or existing.payment_method != intent.method
            or existing.payment_mode != request.mode
        ):
            raise _validation_error(
                "settlement id already belongs to a different sale",
                sale_id=str(sale_id),
                sale_number=existing.sale_number,
            )

        log_json(
            logger,
            {
                "event": "settlement_started",
                "settlement_id": str(sale_id),
                "mode": request.mode,
                "method": intent.method,
                "total": rounded.total,
                "resuming": existing is not None,
                "trace_id": current_trace_id(),
            },
        )
        progress = _Progress()
        customer_summary = None
        work_order_summary = None
        step = STEP_SALE
        try:
            if existing is None:
                sale = await self._record_sale(sale_id, request, intent, rounded, points_earned)
            else:
                sale = existing
            self._step_done(progress, step, sale_id, created=existing is None)

            step = STEP_LEDGER
            created = await self._record_ledger(sale, request, intent, rounded)
            self._step_done(progress, step, sale_id, created=created)

            step = STEP_INVENTORY
            if any(line.kind == "product" for line in request.cart.lines):
                created = await self._record_inventory(sale, request, progress)
                self._step_done(progress, step, sale_id, created=created)

            step = STEP_LOYALTY
            if request.customer is not None and request.mode == FULL:
                customer_summary, created = await self._record_loyalty(sale_id, request, rounded, progress)
                self._step_done(progress, step, sale_id, created=created)

            step = STEP_WORK_ORDER
            if request.linked_order is not None:
                work_order_summary, created = await self._record_work_order(sale, request, intent, progress)
                self._step_done(progress, step, sale_id, created=created)
        except Exception as exc:
            await self._fail(step, sale_id, request, intent, progress, exc)

        failures = await self._publish(sale, request, intent, rounded, work_order_summary)
        outcome = SettlementOutcome(
            sale_id=str(sale_id),
            sale_number=sale.sale_number,
            created_at=sale.created_at,
            lines=line_breakdown(request.cart.lines),
            totals=rounded,
            discount=request.discount,
            tax_rate=request.tax_rate,
            method=intent.method,
            mode=request.mode,
            amount_paid=money(intent.amount_paid),
            amount_tendered=money(intent.amount_tendered),
            change_due=money(intent.change_due),
            points_earned=points_earned,
            payer_phone=intent.payer_phone,
            payer_name=intent.payer_name,
            customer=customer_summary,
            work_order=work_order_summary,
            completed_steps=tuple(step for step in progress.committed if step not in progress.skipped),
            skipped_steps=tuple(progress.skipped),
            signal_failures=tuple(failures),
        )
        metrics.record_settlement(outcome="resumed" if outcome.resumed else "completed", mode=request.mode)
        log_json(
            logger,
            {
                "event": "settlement_completed",
                "settlement_id": str(sale_id),
                "sale_number": sale.sale_number,
                "completed_steps": outcome.completed_steps,
                "skipped_steps": outcome.skipped_steps,
                "signals_delivered": outcome.signals_delivered,
                "trace_id": current_trace_id(),
            },
        )
        return outcome

    def _step_done(self, progress: _Progress, step: str, sale_id: uuid.UUID, *, created: bool) -> None:
        progress.done(step, created=created)
        log_json(
            logger,
            {
                "event": "settlement_step",
                "settlement_id": str(sale_id),
                "step": step,
                "status": "written" if created else "already_recorded",
            },
            level=logging.DEBUG,
        )

    async def _fail(
        self,
        step: str,
        sale_id: uuid.UUID,
        request: SettlementRequest,
        intent: PaymentIntent,
        progress: _Progress,
        exc: Exception,
    ) -> None:
        await self.gateway.recover()
        metrics.increment_write_failure(step)
        metrics.record_settlement(outcome="write_failure", mode=request.mode)
        details = {
            "step": step,
            "sale_id": str(sale_id),
            "committed_steps": progress.reported(),
            "amount_collected": str(money(intent.amount_paid)),
            "method": intent.method,
            "error": exc.__class__.__name__,
        }
        logger.exception("Settlement write failed", extra={"settlement_id": str(sale_id), "step": step})
        log_json(logger, {"event": "settlement_write_failure", **details, "trace_id": current_trace_id()}, level=logging.ERROR)
        raise AppError(ErrorCatalog.SETTLEMENT_WRITE_FAILURE, details=details) from exc

    async def _record_sale(
        self,
        sale_id: uuid.UUID,
        request: SettlementRequest,
        intent: PaymentIntent,
        totals: Totals,
        points_earned: int,
    ) -> Sale:
        created_at = datetime.utcnow()
        customer = request.customer
        order = request.linked_order
        sale = Sale(
            id=sale_id,
            sale_number=sale_number_for(sale_id, created_at),
            customer_id=uuid.UUID(customer.id) if customer else None,
            customer_name=customer.name if customer else None,
            order_id=uuid.UUID(order.id) if order else None,
            subtotal=float(totals.subtotal),
            discount_type=request.discount.kind,
            discount_value=float(request.discount.value),
            discount_amount=float(totals.discount_amount),
            tax_rate=float(request.tax_rate),
            tax_amount=float(totals.tax_amount),
            total=float(totals.total),
            amount_paid=float(money(intent.amount_paid)),
            amount_tendered=float(money(intent.amount_tendered)),
            change_due=float(money(intent.change_due)),
            payment_method=intent.method,
            payment_details=_payment_details(intent),
            payment_mode=request.mode,
            points_earned=points_earned,
            employee=request.operator,
            notes=request.notes,
            created_at=created_at,
        )
        lines = [
            SaleLine(
                sale_id=sale_id,
                position=position,
                item_id=line.item_id,
                kind=line.kind,
                name=line.name,
                quantity=line.quantity,
                unit_price=float(money(line.unit_price)),
                original_unit_price=float(money(line.original_unit_price)) if line.original_unit_price is not None else None,
                discount_label=line.discount_label,
                line_total=float(money(line.line_total)),
            )
            for position, line in enumerate(request.cart.lines)
        ]
        return await self.gateway.records.create_sale(sale, lines)

    async def _record_ledger(self, sale: Sale, request: SettlementRequest, intent: PaymentIntent, totals: Totals) -> bool:
        if await self.gateway.records.find_ledger_transaction(sale.id) is not None:
            return False
        description = f"{'Deposit' if request.mode == DEPOSIT else 'Sale'} {sale.sale_number}"
        if request.customer is not None:
            description += f" - {request.customer.name}"
        if request.linked_order is not None:
            description += f" (order {request.linked_order.order_number})"
        await self.gateway.records.create_ledger_transaction(
            LedgerTransaction(
                type="revenue",
                amount=float(totals.total),
                payment_method=intent.method,
                description=description,
                category="repair_payment" if request.linked_order is not None else "sale",
                order_id=sale.order_id,
                reference_id=sale.id,
                recorded_by=request.operator,
                payment_details=_payment_details(intent),
            )
        )
        return True

    async def _record_inventory(self, sale: Sale, request: SettlementRequest, progress: _Progress) -> bool:
        written = 0
        for line in request.cart.lines:
            if line.kind != "product":
                continue
            if await self.gateway.records.find_inventory_movement(sale.id, line.item_id) is not None:
                continue
            product = await self.gateway.catalog.read_stock(line.item_id)
            if product is None:
                log_json(
                    logger,
                    {"event": "inventory_product_missing", "sale_id": str(sale.id), "product_id": line.item_id},
                    level=logging.WARNING,
                )
                continue
            if product.last_sale_reference_id == sale.id:
                # Stock was already decremented by an interrupted run of this sale.
                new_stock = product.stock or 0
                previous_stock = new_stock + line.quantity
            else:
                previous_stock = product.stock or 0
                new_stock = max(0, previous_stock - line.quantity)
                await self.gateway.catalog.set_stock(product, new_stock, reference_id=sale.id)
                progress.wrote(STEP_INVENTORY, f"stock:{product.id}")
            await self.gateway.records.create_inventory_movement(
                InventoryMovement(
                    product_id=product.id,
                    product_name=product.name,
                    movement_type="out",
                    quantity=-line.quantity,
                    previous_stock=previous_stock,
                    new_stock=new_stock,
                    reference_type="sale",
                    reference_id=sale.id,
                    reference_number=sale.sale_number,
                    notes=f"Sale {sale.sale_number}",
                    performed_by=request.operator,
                )
            )
            progress.wrote(STEP_INVENTORY, f"movement:{product.id}")
            written += 1
        return written > 0

    async def _record_loyalty(
        self, sale_id: uuid.UUID, request: SettlementRequest, totals: Totals, progress: _Progress
    ) -> tuple[CustomerSummary, bool]:
        customers = self.gateway.customers
        entry = await customers.find_loyalty_entry(sale_id)
        if entry is not None:
            return (
                CustomerSummary(
                    id=request.customer.id,
                    name=request.customer.name,
                    points_earned=entry.points_delta,
                    loyalty_points=entry.points_after,
                    loyalty_tier=entry.tier_after,
                    tier_changed=entry.tier_before != entry.tier_after,
                ),
                False,
            )
        customer = await customers.get_customer(request.customer.id)
        if customer is None:
            raise LookupError(f"customer {request.customer.id} not found")
        if customer.last_sale_reference_id == sale_id:
            # Customer row already carries this sale; only the ledger entry is missing.
            spend_after = to_decimal(customer.total_spent or 0)
            accrual = LoyaltyAccrual(
                points_delta=points_for(totals.total),
                points_after=customer.loyalty_points or 0,
                tier_before=tier_for(spend_after - totals.total),
                tier_after=customer.loyalty_tier or tier_for(spend_after),
                lifetime_spend_after=spend_after,
                total_orders_after=customer.total_orders or 0,
            )
        else:
            accrual = accrue(
                points=customer.loyalty_points or 0,
                tier=customer.loyalty_tier,
                lifetime_spend=to_decimal(customer.total_spent or 0),
                total_orders=customer.total_orders or 0,
                sale_total=totals.total,
            )
            await customers.update_customer(
                customer,
                {
                    "loyalty_points": accrual.points_after,
                    "loyalty_tier": accrual.tier_after,
                    "total_spent": float(money(accrual.lifetime_spend_after)),
                    "total_orders": accrual.total_orders_after,
                    "last_sale_reference_id": sale_id,
                },
            )
            progress.wrote(STEP_LOYALTY, "customer_updated")
        await customers.create_loyalty_entry(
            LoyaltyEntry(
                customer_id=customer.id,
                reference_id=sale_id,
                points_delta=accrual.points_delta,
                points_after=accrual.points_after,
                tier_before=accrual.tier_before,
                tier_after=accrual.tier_after,
                lifetime_spend_after=float(money(accrual.lifetime_spend_after)),
            )
        )
        if accrual.tier_changed:
            log_json(
                logger,
                {
                    "event": "loyalty_tier_changed",
                    "customer_id": str(customer.id),
                    "tier_before": accrual.tier_before,
                    "tier_after": accrual.tier_after,
                },
            )
        return (
            CustomerSummary(
                id=str(customer.id),
                name=customer.name,
                points_earned=accrual.points_delta,
                loyalty_points=accrual.points_after,
                loyalty_tier=accrual.tier_after,
                tier_changed=accrual.tier_changed,
            ),
            True,
        )

    async def _record_work_order(
        self, sale: Sale, request: SettlementRequest, intent: PaymentIntent, progress: _Progress
    ) -> tuple[WorkOrderSummary, bool]:
        work_orders = self.gateway.work_orders
        linked = request.linked_order
        event = await work_orders.find_event(linked.id, PAYMENT_EVENT, sale.id)
        if event is not None:
            reconciliation = _reconciliation_from_metadata(linked.id, event.event_metadata or {})
            return WorkOrderSummary(linked.id, linked.order_number, reconciliation), False
        order = await work_orders.get_order(linked.id)
        if order is None:
            raise LookupError(f"work order {linked.id} not found")
        snapshot = order_snapshot(order)
        if order.last_payment_reference_id == sale.id:
            # Order already carries this payment; rebuild the state it had before it.
            before = replace(snapshot, total_paid=snapshot.total_paid - intent.amount_paid)
            reconciliation = reconcile(before, intent.amount_paid, mode=request.mode, tax_rate=request.tax_rate)
        else:
            reconciliation = reconcile(snapshot, intent.amount_paid, mode=request.mode, tax_rate=request.tax_rate)
            patch = {
                "total_paid": float(money(reconciliation.total_paid_after)),
                "balance_due": float(money(reconciliation.balance_after)),
                "paid": reconciliation.paid,
                "last_payment_reference_id": sale.id,
            }
            if reconciliation.status_transition:
                patch["status"] = reconciliation.status_transition
            await work_orders.update_order(order, patch)
            progress.wrote(STEP_WORK_ORDER, "order_updated")
        await work_orders.append_event(
            WorkOrderEvent(
                order_id=order.id,
                event_type=PAYMENT_EVENT,
                description=_payment_event_description(reconciliation, intent, request.mode),
                reference_id=sale.id,
                user_name=request.operator,
                event_metadata=_reconciliation_metadata(reconciliation, intent, mode=request.mode, sale=sale),
            )
        )
        if reconciliation.status_transition:
            log_json(
                logger,
                {
                    "event": "work_order_status_changed",
                    "order_id": snapshot.id,
                    "status_before": reconciliation.status_before,
                    "status_after": reconciliation.status_transition,
                },
            )
        return WorkOrderSummary(snapshot.id, snapshot.order_number, reconciliation), True

    async def _publish(
        self,
        sale: Sale,
        request: SettlementRequest,
        intent: PaymentIntent,
        totals: Totals,
        work_order: WorkOrderSummary | None,
    ) -> list[SignalFailure]:
        sale_id = str(sale.id)
        failures = await self.bus.publish(signals.DATA_CHANGED, {"source": "checkout", "sale_id": sale_id})
        failures += await self.bus.publish(
            signals.SALE_COMPLETED,
            {"sale_id": sale_id, "amount": totals.total, "method": intent.method},
        )
        if work_order is not None:
            failures += await self.bus.publish(
                signals.ORDER_PAYMENT_PROCESSED,
                {
                    "order_id": work_order.order_id,
                    "sale_id": sale_id,
                    "amount": money(intent.amount_paid),
                    "balance_after": money(work_order.reconciliation.balance_after),
                    "paid": work_order.reconciliation.paid,
                    "mode": request.mode,
                },
            )
        return failures
