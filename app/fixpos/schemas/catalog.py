from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel


class PromotionResponse(BaseModel):
    percentage: Decimal
    label: str | None
    expires_at: datetime | None


class CatalogItemResponse(BaseModel):
    id: str
    kind: Literal["product", "service"]
    name: str
    list_price: Decimal
    unit_price: Decimal
    stock: int | None = None
    sku: str | None = None
    code: str | None = None
    discounted: bool = False
    promotion: PromotionResponse | None = None


class CatalogListResponse(BaseModel):
    rows: list[CatalogItemResponse]
    total: int
