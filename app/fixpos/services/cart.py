from __future__ import annotations

from dataclasses import replace

from app.fixpos.core.error_catalog import AppError, ErrorCatalog
from app.fixpos.services.catalog import CatalogItem
from app.fixpos.services.pricing import CartLine


def _stock_error(line_or_item, available: int | None, requested: int) -> AppError:
    return AppError(
        ErrorCatalog.STOCK_INSUFFICIENT,
        details={
            "message": "out of stock" if not available else f"only {available} units available",
            "item_id": getattr(line_or_item, "item_id", None) or getattr(line_or_item, "id", None),
            "available": available,
            "requested": requested,
        },
    )


def check_ceiling(line: CartLine) -> CartLine:
    if line.quantity < 1:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"message": "quantity must be at least 1", "item_id": line.item_id},
        )
    if line.kind == "product" and line.stock_ceiling is not None and line.quantity > line.stock_ceiling:
        raise _stock_error(line, line.stock_ceiling, line.quantity)
    return line


class Cart:
    """Lines of the active checkout; cleared on abandon and after settlement."""

    def __init__(self, lines: list[CartLine] | None = None):
        self._lines: list[CartLine] = []
        for line in lines or []:
            self.add_line(line)

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines)

    def is_empty(self) -> bool:
        return not self._lines

    def __len__(self) -> int:
        return len(self._lines)

    def _index_of(self, item_id: str, kind: str) -> int | None:
        for index, line in enumerate(self._lines):
            if line.item_id == item_id and line.kind == kind:
                return index
        return None

    def add_line(self, line: CartLine) -> CartLine:
        index = self._index_of(line.item_id, line.kind)
        if index is None:
            self._lines.append(check_ceiling(line))
            return line
        current = self._lines[index]
        merged = check_ceiling(replace(current, quantity=current.quantity + line.quantity))
        self._lines[index] = merged
        return merged

    def add_item(self, item: CatalogItem, quantity: int = 1, *, check_stock: bool = True) -> CartLine:
        """`check_stock=False` rebuilds a sale whose stock may already be taken by itself."""
        tracked = check_stock and item.kind == "product"
        if tracked and item.stock is not None and item.stock <= 0:
            raise _stock_error(item, 0, quantity)
        return self.add_line(
            CartLine(
                item_id=item.id,
                kind=item.kind,
                name=item.name,
                unit_price=item.unit_price,
                quantity=quantity,
                original_unit_price=item.list_price if item.discounted else None,
                discount_label=item.promotion.label if item.discounted else None,
                stock_ceiling=item.stock if tracked else None,
            )
        )

    def update_quantity(self, index: int, delta: int) -> CartLine | None:
        current = self._lines[index]
        quantity = current.quantity + delta
        if quantity < 1:
            self.remove(index)
            return None
        updated = check_ceiling(replace(current, quantity=quantity))
        self._lines[index] = updated
        return updated

    def remove(self, index: int) -> CartLine:
        return self._lines.pop(index)

    def clear(self) -> None:
        self._lines.clear()
