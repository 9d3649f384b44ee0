from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coffee_match.domain.models import Organisation


class OrganisationRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_all(self) -> list[Organisation]:
        result = await self.db.execute(select(Organisation).order_by(Organisation.created_at, Organisation.id))
        return list(result.scalars().all())

    async def find_by_id(self, organisation_id: str) -> Optional[Organisation]:
        result = await self.db.execute(select(Organisation).where(Organisation.id == organisation_id))
        return result.scalar_one_or_none()
