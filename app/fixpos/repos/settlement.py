from __future__ import annotations

from sqlalchemy import select

from app.fixpos.db.models import InventoryMovement, LedgerTransaction, Sale, SaleLine


class SettlementRepository:
    """Writes for the settlement record set; every call commits on its own."""

    def __init__(self, db):
        self.db = db

    async def get_sale(self, sale_id: str) -> Sale | None:
        return (await self.db.execute(select(Sale).where(Sale.id == sale_id))).scalars().first()

    async def get_sale_lines(self, sale_id: str) -> list[SaleLine]:
        query = select(SaleLine).where(SaleLine.sale_id == sale_id).order_by(SaleLine.position)
        return (await self.db.execute(query)).scalars().all()

    async def create_sale(self, sale: Sale, lines: list[SaleLine]) -> Sale:
        self.db.add(sale)
        await self.db.flush()
        self.db.add_all(lines)
        await self.db.commit()
        return sale

    async def find_ledger_transaction(self, reference_id: str, tx_type: str = "revenue") -> LedgerTransaction | None:
        query = select(LedgerTransaction).where(
            LedgerTransaction.reference_id == reference_id,
            LedgerTransaction.type == tx_type,
        )
        return (await self.db.execute(query)).scalars().first()

    async def create_ledger_transaction(self, transaction: LedgerTransaction) -> LedgerTransaction:
        self.db.add(transaction)
        await self.db.commit()
        return transaction

    async def find_inventory_movement(self, reference_id: str, product_id: str) -> InventoryMovement | None:
        query = select(InventoryMovement).where(
            InventoryMovement.reference_type == "sale",
            InventoryMovement.reference_id == reference_id,
            InventoryMovement.product_id == product_id,
        )
        return (await self.db.execute(query)).scalars().first()

    async def create_inventory_movement(self, movement: InventoryMovement) -> InventoryMovement:
        self.db.add(movement)
        await self.db.commit()
        return movement
