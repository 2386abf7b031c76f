from __future__ import annotations

import uuid
from datetime import datetime

from app.fixpos.db.models import AppSettings, Customer, Product, ServiceItem, WorkOrder


def create_product(db_session, *, name="Screen protector", price=10.0, stock=5, active=True, **kwargs) -> Product:
    product = Product(id=uuid.uuid4(), name=name, price=price, stock=stock, active=active, **kwargs)
    db_session.add(product)
    db_session.commit()
    return product


def create_service(db_session, *, name="Diagnostic", price=25.0, code="DIAG", active=True) -> ServiceItem:
    service = ServiceItem(id=uuid.uuid4(), name=name, price=price, code=code, active=active)
    db_session.add(service)
    db_session.commit()
    return service


def create_customer(db_session, *, name="Ana Rivera", points=0, tier="bronze", total_spent=0.0) -> Customer:
    customer = Customer(
        id=uuid.uuid4(),
        name=name,
        phone="787-555-0101",
        loyalty_points=points,
        loyalty_tier=tier,
        total_spent=total_spent,
        total_orders=0,
    )
    db_session.add(customer)
    db_session.commit()
    return customer


def create_work_order(
    db_session, *, number="WO-1001", status="in_progress", total=100.0, total_paid=0.0, customer_id=None
) -> WorkOrder:
    order = WorkOrder(
        id=uuid.uuid4(),
        order_number=number,
        customer_id=customer_id,
        status=status,
        total=total,
        total_paid=total_paid,
        paid=False,
        device_brand="Apple",
        device_model="iPhone 13",
        created_at=datetime.utcnow(),
    )
    db_session.add(order)
    db_session.commit()
    return order


def set_app_setting(db_session, slug: str, payload: dict) -> AppSettings:
    row = AppSettings(id=uuid.uuid4(), slug=slug, payload=payload)
    db_session.add(row)
    db_session.commit()
    return row


def open_drawer(client, opening_float: str = "100.00"):
    response = client.post("/fixpos/pos/drawer/actions", json={"action": "OPEN", "opening_float": opening_float})
    assert response.status_code == 200
    return response.json()


def product_line(product, quantity: int = 1) -> dict:
    return {"item_id": str(product.id), "kind": "product", "quantity": quantity}


def service_line(service, quantity: int = 1) -> dict:
    return {"item_id": str(service.id), "kind": "service", "quantity": quantity}


def settle_payload(lines: list[dict], *, method="card", checkout_id: str | None = None, **kwargs) -> dict:
    payload = {
        "checkout_id": checkout_id or str(uuid.uuid4()),
        "lines": lines,
        "payment": {"method": method},
        "operator": "maria",
    }
    payload.update(kwargs)
    return payload


def settle(client, payload: dict, key: str | None = None):
    headers = {"Idempotency-Key": key or f"settle-{uuid.uuid4()}"}
    return client.post("/fixpos/pos/checkout/settle", json=payload, headers=headers)
