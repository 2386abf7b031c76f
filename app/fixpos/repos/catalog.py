from __future__ import annotations

from datetime import datetime

from sqlalchemy import or_, select

from app.fixpos.core.config import settings
from app.fixpos.db.models import Product, ServiceItem


class CatalogRepository:
    def __init__(self, db):
        self.db = db

    async def list_active_products(self, *, search: str | None = None) -> list[Product]:
        query = select(Product).where(Product.active.is_(True))
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(Product.name.ilike(pattern), Product.sku.ilike(pattern), Product.description.ilike(pattern))
            )
        query = query.order_by(Product.name).limit(settings.CATALOG_LIST_LIMIT)
        return (await self.db.execute(query)).scalars().all()

    async def list_active_services(self, *, search: str | None = None) -> list[ServiceItem]:
        query = select(ServiceItem).where(ServiceItem.active.is_(True))
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(ServiceItem.name.ilike(pattern), ServiceItem.code.ilike(pattern), ServiceItem.description.ilike(pattern))
            )
        query = query.order_by(ServiceItem.name).limit(settings.CATALOG_LIST_LIMIT)
        return (await self.db.execute(query)).scalars().all()

    async def get_product(self, product_id: str) -> Product | None:
        return (await self.db.execute(select(Product).where(Product.id == product_id))).scalars().first()

    async def get_service(self, service_id: str) -> ServiceItem | None:
        return (await self.db.execute(select(ServiceItem).where(ServiceItem.id == service_id))).scalars().first()

    async def read_stock(self, product_id: str) -> Product | None:
        """Authoritative read that bypasses the session identity map."""
        query = select(Product).where(Product.id == product_id).execution_options(populate_existing=True)
        return (await self.db.execute(query)).scalars().first()

    async def set_stock(self, product: Product, stock: int, *, reference_id=None) -> Product:
        product.stock = stock
        product.last_sale_reference_id = reference_id
        product.updated_at = datetime.utcnow()
        self.db.add(product)
        await self.db.commit()
        return product
