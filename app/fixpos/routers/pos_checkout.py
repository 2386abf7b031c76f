from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.fixpos.core.error_catalog import AppError, ErrorCatalog
from app.fixpos.core.metrics import metrics
from app.fixpos.db.session import get_db
from app.fixpos.repos.customers import CustomerRepository
from app.fixpos.repos.settlement import SettlementRepository
from app.fixpos.repos.work_orders import WorkOrderRepository
from app.fixpos.routers.pos_drawer import drawer_warning
from app.fixpos.schemas.checkout import (
    CheckoutConfigResponse,
    CheckoutLineInput,
    CheckoutLineResponse,
    CheckoutQuoteRequest,
    CheckoutQuoteResponse,
    CheckoutSettleRequest,
    CustomerSummaryResponse,
    DiscountInput,
    PaymentInput,
    PaymentStatusResponse,
    SaleLineResponse,
    SaleResponse,
    SettlementReceiptResponse,
    TotalsResponse,
    WorkOrderBalanceResponse,
)
from app.fixpos.schemas.errors import ApiErrorResponse, ApiValidationErrorResponse, SettlementWriteFailureResponse
from app.fixpos.services.cart import Cart
from app.fixpos.services.catalog import CatalogService
from app.fixpos.services.checkout_config import CheckoutConfig, load_checkout_config
from app.fixpos.services.drawer_gate import DrawerService
from app.fixpos.services.idempotency import IdempotencyService, extract_idempotency_key
from app.fixpos.services.loyalty import points_for
from app.fixpos.services.payments import PaymentSession
from app.fixpos.services.pricing import (
    NO_DISCOUNT,
    CartLine,
    Discount,
    LineBreakdown,
    Totals,
    build_discount,
    compute_totals,
    line_breakdown,
    money,
    preset_discount,
    to_decimal,
    validate_discount,
)
from app.fixpos.services.reconciler import DEPOSIT, FULL, OrderSnapshot, outstanding_balance
from app.fixpos.services.settlement import (
    CustomerSnapshot,
    SettlementGateway,
    SettlementOrchestrator,
    SettlementOutcome,
    SettlementRequest,
    customer_snapshot,
    order_snapshot,
)

router = APIRouter()


def _parse_uuid(value: str, field: str) -> str:
    try:
        return str(UUID(str(value)))
    except ValueError:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": f"{field} must be a UUID", field: value})


def _is_uuid(value: str) -> bool:
    try:
        UUID(str(value))
    except ValueError:
        return False
    return True


async def _build_cart(catalog: CatalogService, lines: list[CheckoutLineInput], *, check_stock: bool = True) -> Cart:
    cart = Cart()
    for line in lines:
        if line.kind == "product":
            item = await catalog.find_item(_parse_uuid(line.item_id, "item_id"), "product")
            if item is None:
                raise AppError(
                    ErrorCatalog.VALIDATION_ERROR,
                    details={"message": "unknown catalog item", "item_id": line.item_id},
                )
            cart.add_item(item, line.quantity, check_stock=check_stock)
            continue
        item = await catalog.find_item(line.item_id, "service") if _is_uuid(line.item_id) else None
        if item is not None:
            cart.add_item(item, line.quantity)
        elif line.name and line.unit_price is not None and line.unit_price >= 0:
            cart.add_line(
                CartLine(
                    item_id=line.item_id,
                    kind="service",
                    name=line.name,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                )
            )
        else:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "unknown service; name and unit_price are required", "item_id": line.item_id},
            )
    if cart.is_empty():
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "cart is empty"})
    return cart


def _resolve_discount(payload: DiscountInput | None, config: CheckoutConfig) -> Discount:
    if payload is None:
        return NO_DISCOUNT
    if payload.preset is not None:
        return preset_discount(payload.preset, config.quick_discount_presets)
    return build_discount(payload.type, payload.value)


async def _load_customer(db, customer_id: str | None) -> CustomerSnapshot | None:
    if not customer_id:
        return None
    customer = await CustomerRepository(db).get_customer(_parse_uuid(customer_id, "customer_id"))
    if customer is None:
        raise AppError(ErrorCatalog.NOT_FOUND, details={"message": "customer not found", "customer_id": customer_id})
    return customer_snapshot(customer)


async def _load_order(db, order_id: str | None) -> OrderSnapshot | None:
    if not order_id:
        return None
    order = await WorkOrderRepository(db).get_order(_parse_uuid(order_id, "order_id"))
    if order is None:
        raise AppError(ErrorCatalog.NOT_FOUND, details={"message": "work order not found", "order_id": order_id})
    return order_snapshot(order)


def _amount_due(
    payload: CheckoutQuoteRequest, totals: Totals, order: OrderSnapshot | None, tax_rate: Decimal
) -> Decimal:
    """Full payments collect the order balance (or the cart total); deposits take the entered amount."""
    if payload.mode == DEPOSIT:
        if payload.amount_due is None:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "deposit amount is required"})
        return money(payload.amount_due)
    if order is not None:
        return money(outstanding_balance(order, tax_rate))
    return money(totals.total)


def _payment_session(amount_due: Decimal, payment: PaymentInput, config: CheckoutConfig) -> PaymentSession:
    session = PaymentSession(amount_due, enabled_methods=config.enabled_methods)
    session.select_method(payment.method)
    if payment.method == "cash" and payment.amount_tendered is not None:
        session.enter_tendered(payment.amount_tendered)
    if payment.method == "mobile_wallet":
        session.enter_payer(phone=payment.payer_phone, name=payment.payer_name)
    return session


def _line_response(row: LineBreakdown) -> CheckoutLineResponse:
    return CheckoutLineResponse(
        item_id=row.item_id,
        name=row.name,
        quantity=row.quantity,
        unit_price=money(row.unit_price),
        original_unit_price=money(row.original_unit_price) if row.original_unit_price is not None else None,
        discount_label=row.discount_label,
        line_total=money(row.line_total),
        promotion_savings=money(row.promotion_savings),
    )


def _totals_response(totals: Totals) -> TotalsResponse:
    rounded = totals.rounded()
    return TotalsResponse(
        subtotal=rounded.subtotal,
        discount_amount=rounded.discount_amount,
        taxable_amount=rounded.taxable_amount,
        tax_amount=rounded.tax_amount,
        total=rounded.total,
    )


def _receipt_response(outcome: SettlementOutcome) -> SettlementReceiptResponse:
    customer = None
    if outcome.customer is not None:
        customer = CustomerSummaryResponse(
            id=outcome.customer.id,
            name=outcome.customer.name,
            points_earned=outcome.customer.points_earned,
            loyalty_points=outcome.customer.loyalty_points,
            loyalty_tier=outcome.customer.loyalty_tier,
            tier_changed=outcome.customer.tier_changed,
        )
    work_order = None
    if outcome.work_order is not None:
        reconciliation = outcome.work_order.reconciliation
        work_order = WorkOrderBalanceResponse(
            order_id=outcome.work_order.order_id,
            order_number=outcome.work_order.order_number,
            order_total=money(reconciliation.order_total),
            total_paid_before=money(reconciliation.total_paid_before),
            total_paid_after=money(reconciliation.total_paid_after),
            balance_after=money(reconciliation.balance_after),
            paid=reconciliation.paid,
            status_before=reconciliation.status_before,
            status_transition=reconciliation.status_transition,
        )
    return SettlementReceiptResponse(
        sale_id=outcome.sale_id,
        sale_number=outcome.sale_number,
        created_at=outcome.created_at,
        lines=[_line_response(row) for row in outcome.lines],
        totals=_totals_response(outcome.totals),
        discount_type=outcome.discount.kind,
        discount_value=outcome.discount.value,
        tax_rate=outcome.tax_rate,
        method=outcome.method,
        mode=outcome.mode,
        amount_paid=outcome.amount_paid,
        amount_tendered=outcome.amount_tendered,
        change_due=outcome.change_due,
        points_earned=outcome.points_earned,
        payer_phone=outcome.payer_phone,
        payer_name=outcome.payer_name,
        customer=customer,
        work_order=work_order,
        completed_steps=list(outcome.completed_steps),
        skipped_steps=list(outcome.skipped_steps),
        signals_delivered=outcome.signals_delivered,
        signal_failures=[failure.signal for failure in outcome.signal_failures],
    )


@router.get("/fixpos/pos/checkout/config", response_model=CheckoutConfigResponse)
async def get_checkout_config(db=Depends(get_db)):
    config = await load_checkout_config(db)
    session = await DrawerService(db).get_open_session_for_today()
    return CheckoutConfigResponse(
        tax_rate_percent=config.tax_rate_percent,
        payment_methods=dict(config.enabled_methods),
        quick_discount_presets=list(config.quick_discount_presets),
        drawer_warning=drawer_warning(session),
    )


@router.post("/fixpos/pos/checkout/quote", response_model=CheckoutQuoteResponse)
async def quote_checkout(payload: CheckoutQuoteRequest, db=Depends(get_db)):
    config = await load_checkout_config(db)
    cart = await _build_cart(CatalogService(db), payload.lines)
    discount = _resolve_discount(payload.discount, config)
    totals = compute_totals(cart.lines, discount, config.tax_rate)
    validate_discount(discount, totals.subtotal)
    customer = await _load_customer(db, payload.customer_id)
    order = await _load_order(db, payload.order_id)
    amount_due = _amount_due(payload, totals, order, config.tax_rate)

    payment = None
    if payload.payment is not None:
        session = _payment_session(amount_due, payload.payment, config)
        payment = PaymentStatusResponse(
            method=session.method,
            state=session.state,
            ready=session.is_ready,
            amount_due=session.amount_due,
            change_due=money(session.change_due),
        )
    drawer = await DrawerService(db).get_open_session_for_today()
    return CheckoutQuoteResponse(
        lines=[_line_response(row) for row in line_breakdown(cart.lines)],
        totals=_totals_response(totals),
        tax_rate=config.tax_rate,
        mode=payload.mode,
        amount_due=amount_due,
        outstanding_balance=money(outstanding_balance(order, config.tax_rate)) if order else None,
        points_to_earn=points_for(money(totals.total)) if customer and payload.mode == FULL else 0,
        payment=payment,
        drawer_warning=drawer_warning(drawer),
    )


@router.post(
    "/fixpos/pos/checkout/settle",
    response_model=SettlementReceiptResponse,
    responses={
        400: {"description": "Idempotency-Key header missing", "model": ApiErrorResponse},
        409: {"description": "Drawer closed, settlement in progress or key reused", "model": ApiErrorResponse},
        422: {"description": "Checkout not settleable; nothing was recorded", "model": ApiValidationErrorResponse},
        500: {
            "description": "Settlement stopped after some records were written",
            "model": SettlementWriteFailureResponse,
            "content": {
                "application/json": {
                    "example": {
                        "code": "SETTLEMENT_WRITE_FAILURE",
                        "message": ErrorCatalog.SETTLEMENT_WRITE_FAILURE.message,
                        "details": {
                            "step": "inventory",
                            "sale_id": "6f1c2a4e-8d7b-4f7e-9a35-2c3b1d0e5a91",
                            "committed_steps": ["sale", "ledger"],
                            "amount_collected": "111.50",
                            "method": "card",
                            "error": "OperationalError",
                        },
                        "trace_id": "trace-123",
                    }
                }
            },
        },
    },
)
async def settle_checkout(request: Request, payload: CheckoutSettleRequest, db=Depends(get_db)):
    idempotency_key = extract_idempotency_key(request.headers, required=True)
    request_hash = IdempotencyService.fingerprint(payload.model_dump(mode="json"))
    context, replay = await IdempotencyService(db).start(
        endpoint=str(request.url.path),
        method=request.method,
        idempotency_key=idempotency_key,
        request_hash=request_hash,
    )
    if replay:
        metrics.increment_idempotency_replay()
        return JSONResponse(
            status_code=replay.status_code,
            content=replay.response_body,
            headers={"X-Idempotency-Result": ErrorCatalog.IDEMPOTENCY_REPLAY.code},
        )
    request.state.idempotency = context

    config = await load_checkout_config(db)
    # A sale already stored under this id belongs to an interrupted run being finished:
    # its stock may already be taken and the order balance may already include it.
    existing = await SettlementRepository(db).get_sale(str(payload.checkout_id))
    cart = await _build_cart(CatalogService(db), payload.lines, check_stock=existing is None)
    discount = _resolve_discount(payload.discount, config)
    totals = compute_totals(cart.lines, discount, config.tax_rate)
    customer = await _load_customer(db, payload.customer_id)
    order = await _load_order(db, payload.order_id)
    if existing is not None:
        amount_due = money(to_decimal(existing.amount_paid))
    else:
        amount_due = _amount_due(payload, totals, order, config.tax_rate)
    payment = _payment_session(amount_due, payload.payment, config)
    drawer = await DrawerService(db).get_open_session_for_today()

    outcome = await SettlementOrchestrator(SettlementGateway.for_session(db)).settle(
        SettlementRequest(
            settlement_id=str(payload.checkout_id),
            cart=cart,
            payment=payment,
            drawer_session=drawer,
            tax_rate=config.tax_rate,
            discount=discount,
            mode=payload.mode,
            customer=customer,
            linked_order=order,
            operator=payload.operator,
            notes=payload.notes,
        )
    )
    response = _receipt_response(outcome)
    await context.record_success(status_code=200, response_body=response.model_dump(mode="json"))
    return response


@router.get("/fixpos/pos/sales/{sale_id}", response_model=SaleResponse)
async def get_sale(sale_id: str, db=Depends(get_db)):
    repo = SettlementRepository(db)
    sale = await repo.get_sale(_parse_uuid(sale_id, "sale_id"))
    if sale is None:
        raise AppError(ErrorCatalog.NOT_FOUND, details={"message": "sale not found", "sale_id": sale_id})
    lines = await repo.get_sale_lines(str(sale.id))
    return SaleResponse(
        sale_id=str(sale.id),
        sale_number=sale.sale_number,
        customer_id=str(sale.customer_id) if sale.customer_id else None,
        customer_name=sale.customer_name,
        order_id=str(sale.order_id) if sale.order_id else None,
        subtotal=money(to_decimal(sale.subtotal)),
        discount_type=sale.discount_type,
        discount_amount=money(to_decimal(sale.discount_amount)),
        tax_rate=to_decimal(sale.tax_rate),
        tax_amount=money(to_decimal(sale.tax_amount)),
        total=money(to_decimal(sale.total)),
        amount_paid=money(to_decimal(sale.amount_paid)),
        amount_tendered=money(to_decimal(sale.amount_tendered)),
        change_due=money(to_decimal(sale.change_due)),
        payment_method=sale.payment_method,
        payment_mode=sale.payment_mode,
        points_earned=sale.points_earned,
        employee=sale.employee,
        created_at=sale.created_at,
        lines=[
            SaleLineResponse(
                position=line.position,
                item_id=line.item_id,
                kind=line.kind,
                name=line.name,
                quantity=line.quantity,
                unit_price=money(to_decimal(line.unit_price)),
                original_unit_price=(
                    money(to_decimal(line.original_unit_price)) if line.original_unit_price is not None else None
                ),
                discount_label=line.discount_label,
                line_total=money(to_decimal(line.line_total)),
            )
            for line in lines
        ],
    )
