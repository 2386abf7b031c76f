from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from app.fixpos.db.models import Product, ServiceItem
from app.fixpos.repos.catalog import CatalogRepository
from app.fixpos.services.pricing import HUNDRED, ZERO, to_decimal


@dataclass(frozen=True)
class Promotion:
    percentage: Decimal
    label: str | None
    expires_at: datetime | None


@dataclass(frozen=True)
class CatalogItem:
    id: str
    kind: str
    name: str
    list_price: Decimal
    unit_price: Decimal
    stock: int | None = None
    sku: str | None = None
    code: str | None = None
    promotion: Promotion | None = None

    @property
    def discounted(self) -> bool:
        return self.promotion is not None and self.unit_price < self.list_price


def active_promotion(product: Product, now: datetime) -> Promotion | None:
    if not product.discount_active or not product.discount_percentage:
        return None
    percentage = to_decimal(product.discount_percentage)
    if percentage <= ZERO:
        return None
    if product.discount_end_date is not None and product.discount_end_date < now:
        return None
    return Promotion(percentage=percentage, label=product.discount_label, expires_at=product.discount_end_date)


def resolve_unit_price(product: Product, now: datetime | None = None) -> Decimal:
    list_price = to_decimal(product.price)
    promotion = active_promotion(product, now or datetime.utcnow())
    if promotion is None:
        return list_price
    return list_price * (HUNDRED - promotion.percentage) / HUNDRED


def product_item(product: Product, now: datetime | None = None) -> CatalogItem:
    now = now or datetime.utcnow()
    return CatalogItem(
        id=str(product.id),
        kind="product",
        name=product.name,
        list_price=to_decimal(product.price),
        unit_price=resolve_unit_price(product, now),
        stock=product.stock,
        sku=product.sku,
        promotion=active_promotion(product, now),
    )


def service_item(service: ServiceItem) -> CatalogItem:
    price = to_decimal(service.price)
    return CatalogItem(
        id=str(service.id),
        kind="service",
        name=service.name,
        list_price=price,
        unit_price=price,
        code=service.code,
    )


class CatalogService:
    def __init__(self, db):
        self.repo = CatalogRepository(db)

    async def list_active_products(self, *, search: str | None = None, offers_only: bool = False) -> list[CatalogItem]:
        now = datetime.utcnow()
        items = [product_item(product, now) for product in await self.repo.list_active_products(search=search)]
        if offers_only:
            items = [item for item in items if item.discounted]
        return items

    async def list_active_services(self, *, search: str | None = None) -> list[CatalogItem]:
        return [service_item(service) for service in await self.repo.list_active_services(search=search)]

    async def find_item(self, item_id: str, kind: str) -> CatalogItem | None:
        if kind == "product":
            product = await self.repo.get_product(item_id)
            if product is None or not product.active:
                return None
            return product_item(product)
        service = await self.repo.get_service(item_id)
        if service is None or not service.active:
            return None
        return service_item(service)
