from sqlalchemy import select

from app.fixpos.db.models import AppSettings


class AppSettingsRepository:
    def __init__(self, db):
        self.db = db

    async def list_by_slugs(self, slugs: list[str]) -> list[AppSettings]:
        stmt = select(AppSettings).where(AppSettings.slug.in_(slugs))
        return (await self.db.execute(stmt)).scalars().all()
