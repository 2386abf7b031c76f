from __future__ import annotations

from datetime import datetime

from sqlalchemy import select

from app.fixpos.db.models import Customer, LoyaltyEntry


class CustomerRepository:
    def __init__(self, db):
        self.db = db

    async def get_customer(self, customer_id: str) -> Customer | None:
        query = select(Customer).where(Customer.id == customer_id).execution_options(populate_existing=True)
        return (await self.db.execute(query)).scalars().first()

    async def update_customer(self, customer: Customer, patch: dict) -> Customer:
        for field, value in patch.items():
            setattr(customer, field, value)
        customer.updated_at = datetime.utcnow()
        self.db.add(customer)
        await self.db.commit()
        return customer

    async def find_loyalty_entry(self, reference_id: str) -> LoyaltyEntry | None:
        query = select(LoyaltyEntry).where(LoyaltyEntry.reference_id == reference_id)
        return (await self.db.execute(query)).scalars().first()

    async def create_loyalty_entry(self, entry: LoyaltyEntry) -> LoyaltyEntry:
        self.db.add(entry)
        await self.db.commit()
        return entry
