from __future__ import annotations

import asyncio
import uuid
from datetime import date
from decimal import Decimal

from app.fixpos.db.models import Customer, Product, WorkOrder
from app.fixpos.services.cart import Cart
from app.fixpos.services.drawer_gate import DrawerSession
from app.fixpos.services.payments import PaymentSession
from app.fixpos.services.pricing import NO_DISCOUNT, CartLine, compute_totals, money
from app.fixpos.services.settlement import (
    SettlementGateway,
    SettlementOrchestrator,
    SettlementRequest,
    customer_snapshot,
    order_snapshot,
)
from app.fixpos.services.signals import SignalBus

TAX_RATE = Decimal("0.115")


class WriteFailed(RuntimeError):
    pass


class _FailureInjection:
    def __init__(self) -> None:
        self.fail_on: set[str] = set()

    def _maybe_fail(self, name: str) -> None:
        if name in self.fail_on:
            raise WriteFailed(f"{name} failed")


class FakeCatalog(_FailureInjection):
    def __init__(self, products: list[Product] = ()):
        super().__init__()
        self.products = {str(product.id): product for product in products}
        self.stock_writes = 0

    async def read_stock(self, product_id):
        return self.products.get(str(product_id))

    async def set_stock(self, product, stock, *, reference_id=None):
        self._maybe_fail("set_stock")
        product.stock = stock
        product.last_sale_reference_id = reference_id
        self.stock_writes += 1
        return product


class FakeDrawer:
    def __init__(self, session: DrawerSession | None):
        self.session = session
        self.calls = 0

    async def get_open_session_for_today(self):
        self.calls += 1
        # Yield to the loop like a real query would.
        await asyncio.sleep(0)
        return self.session


class FakeCustomers(_FailureInjection):
    def __init__(self, customers: list[Customer] = ()):
        super().__init__()
        self.customers = {str(customer.id): customer for customer in customers}
        self.entries = []

    async def get_customer(self, customer_id):
        return self.customers.get(str(customer_id))

    async def update_customer(self, customer, patch):
        self._maybe_fail("update_customer")
        for field, value in patch.items():
            setattr(customer, field, value)
        return customer

    async def find_loyalty_entry(self, reference_id):
        for entry in self.entries:
            if str(entry.reference_id) == str(reference_id):
                return entry
        return None

    async def create_loyalty_entry(self, entry):
        self._maybe_fail("create_loyalty_entry")
        self.entries.append(entry)
        return entry


class FakeWorkOrders(_FailureInjection):
    def __init__(self, orders: list[WorkOrder] = ()):
        super().__init__()
        self.orders = {str(order.id): order for order in orders}
        self.events = []

    async def get_order(self, order_id):
        return self.orders.get(str(order_id))

    async def update_order(self, order, patch):
        self._maybe_fail("update_order")
        for field, value in patch.items():
            setattr(order, field, value)
        return order

    async def find_event(self, order_id, event_type, reference_id):
        for event in self.events:
            if (
                str(event.order_id) == str(order_id)
                and event.event_type == event_type
                and str(event.reference_id) == str(reference_id)
            ):
                return event
        return None

    async def append_event(self, event):
        self._maybe_fail("append_event")
        self.events.append(event)
        return event


class FakeRecords(_FailureInjection):
    def __init__(self) -> None:
        super().__init__()
        self.sales = {}
        self.sale_lines = {}
        self.ledger = []
        self.movements = []

    async def get_sale(self, sale_id):
        return self.sales.get(str(sale_id))

    async def create_sale(self, sale, lines):
        self._maybe_fail("create_sale")
        self.sales[str(sale.id)] = sale
        self.sale_lines[str(sale.id)] = list(lines)
        return sale

    async def find_ledger_transaction(self, reference_id, tx_type="revenue"):
        for row in self.ledger:
            if str(row.reference_id) == str(reference_id) and row.type == tx_type:
                return row
        return None

    async def create_ledger_transaction(self, transaction):
        self._maybe_fail("create_ledger_transaction")
        self.ledger.append(transaction)
        return transaction

    async def find_inventory_movement(self, reference_id, product_id):
        for movement in self.movements:
            if str(movement.reference_id) == str(reference_id) and str(movement.product_id) == str(product_id):
                return movement
        return None

    async def create_inventory_movement(self, movement):
        self._maybe_fail("create_inventory_movement")
        self.movements.append(movement)
        return movement


class FakeStore:
    """Every collaborator a settlement writes through, held in memory."""

    def __init__(
        self,
        *,
        products: list[Product] = (),
        customers: list[Customer] = (),
        orders: list[WorkOrder] = (),
        drawer: DrawerSession | None = None,
    ):
        self.catalog = FakeCatalog(products)
        self.drawer = FakeDrawer(drawer if drawer is not None else open_drawer_session())
        self.customers = FakeCustomers(customers)
        self.work_orders = FakeWorkOrders(orders)
        self.records = FakeRecords()
        self.bus = SignalBus()
        self.published = []
        for name in ("data-changed", "sale-completed", "order-payment-processed"):
            self.bus.subscribe(name, self._capture)

    def _capture(self, signal, payload):
        self.published.append((signal, payload))

    def gateway(self) -> SettlementGateway:
        return SettlementGateway(
            catalog=self.catalog,
            drawer=self.drawer,
            customers=self.customers,
            work_orders=self.work_orders,
            records=self.records,
        )

    def orchestrator(self, **kwargs) -> SettlementOrchestrator:
        return SettlementOrchestrator(self.gateway(), bus=self.bus, **kwargs)


def open_drawer_session() -> DrawerSession:
    return DrawerSession(id=str(uuid.uuid4()), date=date.today(), status="open", opening_float=Decimal("100.00"))


def closed_drawer_session() -> DrawerSession:
    return DrawerSession(id=str(uuid.uuid4()), date=date.today(), status="closed", opening_float=Decimal("100.00"))


def make_product(*, name="Screen protector", price=10.0, stock=5) -> Product:
    return Product(id=uuid.uuid4(), name=name, price=price, stock=stock, active=True, discount_active=False)


def make_customer(*, name="Ana Rivera", points=0, tier="bronze", total_spent=0.0, total_orders=0) -> Customer:
    return Customer(
        id=uuid.uuid4(),
        name=name,
        loyalty_points=points,
        loyalty_tier=tier,
        total_spent=total_spent,
        total_orders=total_orders,
    )


def make_order(*, number="WO-1001", status="in_progress", total=100.0, total_paid=0.0, items=None) -> WorkOrder:
    return WorkOrder(
        id=uuid.uuid4(),
        order_number=number,
        status=status,
        total=total,
        total_paid=total_paid,
        paid=False,
        order_items=items,
    )


def product_line(product: Product, quantity: int = 1, *, ceiling: int | None = None) -> CartLine:
    return CartLine(
        item_id=str(product.id),
        kind="product",
        name=product.name,
        unit_price=Decimal(str(product.price)),
        quantity=quantity,
        stock_ceiling=ceiling,
    )


def service_line(name="Diagnostic", price="25.00", quantity: int = 1) -> CartLine:
    return CartLine(item_id=f"svc-{name.lower()}", kind="service", name=name, unit_price=Decimal(price), quantity=quantity)


def cash_payment(amount_due: Decimal, tendered: Decimal | None = None) -> PaymentSession:
    payment = PaymentSession(amount_due)
    payment.select_method("cash")
    payment.enter_tendered(tendered if tendered is not None else amount_due)
    return payment


def card_payment(amount_due: Decimal) -> PaymentSession:
    payment = PaymentSession(amount_due)
    payment.select_method("card")
    return payment


def build_request(
    lines: list[CartLine],
    *,
    payment: PaymentSession | None = None,
    discount=NO_DISCOUNT,
    customer: Customer | None = None,
    order: WorkOrder | None = None,
    mode: str = "full",
    drawer: DrawerSession | None = None,
    settlement_id: str | None = None,
) -> SettlementRequest:
    cart = Cart(lines)
    if payment is None:
        total = money(compute_totals(lines, discount, TAX_RATE).total)
        payment = card_payment(total)
    return SettlementRequest(
        settlement_id=settlement_id or str(uuid.uuid4()),
        cart=cart,
        payment=payment,
        drawer_session=drawer if drawer is not None else open_drawer_session(),
        tax_rate=TAX_RATE,
        discount=discount,
        mode=mode,
        customer=customer_snapshot(customer) if customer is not None else None,
        linked_order=order_snapshot(order) if order is not None else None,
        operator="maria",
    )
