from __future__ import annotations

from datetime import date

from sqlalchemy import select

from app.fixpos.db.models import CashRegister


class DrawerRepository:
    def __init__(self, db):
        self.db = db

    async def get_open_for_date(self, business_date: date) -> CashRegister | None:
        query = (
            select(CashRegister)
            .where(CashRegister.business_date == business_date, CashRegister.status == "open")
            .order_by(CashRegister.opened_at.desc())
            .execution_options(populate_existing=True)
        )
        return (await self.db.execute(query)).scalars().first()

    async def create(self, register: CashRegister) -> CashRegister:
        self.db.add(register)
        await self.db.commit()
        await self.db.refresh(register)
        return register
