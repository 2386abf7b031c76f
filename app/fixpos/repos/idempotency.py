from sqlalchemy import select

from app.fixpos.db.models import IdempotencyRecord


class IdempotencyRepository:
    def __init__(self, db):
        self.db = db

    async def get_by_key(self, *, endpoint: str, method: str, idempotency_key: str):
        stmt = (
            select(IdempotencyRecord)
            .where(
                IdempotencyRecord.endpoint == endpoint,
                IdempotencyRecord.method == method,
                IdempotencyRecord.idempotency_key == idempotency_key,
            )
            .execution_options(populate_existing=True)
        )
        return (await self.db.execute(stmt)).scalars().first()

    async def get_by_id(self, record_id):
        stmt = (
            select(IdempotencyRecord)
            .where(IdempotencyRecord.id == record_id)
            .execution_options(populate_existing=True)
        )
        return (await self.db.execute(stmt)).scalars().first()

    async def create(self, record: IdempotencyRecord) -> IdempotencyRecord:
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def update(self, record: IdempotencyRecord) -> IdempotencyRecord:
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        return record
