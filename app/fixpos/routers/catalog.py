from __future__ import annotations

from fastapi import APIRouter, Depends

from app.fixpos.db.session import get_db
from app.fixpos.schemas.catalog import CatalogItemResponse, CatalogListResponse, PromotionResponse
from app.fixpos.services.catalog import CatalogItem, CatalogService
from app.fixpos.services.pricing import money

router = APIRouter()


def _item_response(item: CatalogItem) -> CatalogItemResponse:
    promotion = None
    if item.promotion is not None:
        promotion = PromotionResponse(
            percentage=item.promotion.percentage,
            label=item.promotion.label,
            expires_at=item.promotion.expires_at,
        )
    return CatalogItemResponse(
        id=item.id,
        kind=item.kind,
        name=item.name,
        list_price=money(item.list_price),
        unit_price=money(item.unit_price),
        stock=item.stock,
        sku=item.sku,
        code=item.code,
        discounted=item.discounted,
        promotion=promotion,
    )


@router.get("/fixpos/catalog/products", response_model=CatalogListResponse)
async def list_products(search: str | None = None, offers_only: bool = False, db=Depends(get_db)):
    items = await CatalogService(db).list_active_products(search=search, offers_only=offers_only)
    return CatalogListResponse(rows=[_item_response(item) for item in items], total=len(items))


@router.get("/fixpos/catalog/services", response_model=CatalogListResponse)
async def list_services(search: str | None = None, db=Depends(get_db)):
    items = await CatalogService(db).list_active_services(search=search)
    return CatalogListResponse(rows=[_item_response(item) for item in items], total=len(items))
