"""User directory: read access to organisation members."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coffee_match.domain.models import User


class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def find_by_organisation(self, organisation_id: str) -> list[User]:
        """Members of an organisation in a stable order (oldest account first)."""
        result = await self.db.execute(
            select(User)
            .where(User.organisation_id == organisation_id)
            .order_by(User.created_at, User.id)
        )
        return list(result.scalars().all())

    async def update(self, user: User) -> None:
        self.db.add(user)
        await self.db.flush()
