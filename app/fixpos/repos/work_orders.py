from __future__ import annotations

from datetime import datetime

from sqlalchemy import select

from app.fixpos.db.models import WorkOrder, WorkOrderEvent


class WorkOrderRepository:
    def __init__(self, db):
        self.db = db

    async def get_order(self, order_id: str) -> WorkOrder | None:
        query = select(WorkOrder).where(WorkOrder.id == order_id).execution_options(populate_existing=True)
        return (await self.db.execute(query)).scalars().first()

    async def update_order(self, order: WorkOrder, patch: dict) -> WorkOrder:
        for field, value in patch.items():
            setattr(order, field, value)
        order.updated_at = datetime.utcnow()
        self.db.add(order)
        await self.db.commit()
        return order

    async def find_event(self, order_id: str, event_type: str, reference_id: str) -> WorkOrderEvent | None:
        query = select(WorkOrderEvent).where(
            WorkOrderEvent.order_id == order_id,
            WorkOrderEvent.event_type == event_type,
            WorkOrderEvent.reference_id == reference_id,
        )
        return (await self.db.execute(query)).scalars().first()

    async def append_event(self, event: WorkOrderEvent) -> WorkOrderEvent:
        self.db.add(event)
        await self.db.commit()
        return event
