"""Availability store: one weekly grid per user."""

from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from coffee_match.domain.models import UserAvailabilityConfig


class AvailabilityConfigRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_user_id(self, user_id: str) -> Optional[UserAvailabilityConfig]:
        result = await self.db.execute(
            select(UserAvailabilityConfig).where(UserAvailabilityConfig.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def find_by_user_ids(self, user_ids: list[str]) -> dict[str, UserAvailabilityConfig]:
        if not user_ids:
            return {}
        result = await self.db.execute(
            select(UserAvailabilityConfig).where(UserAvailabilityConfig.user_id.in_(user_ids))
        )
        return {config.user_id: config for config in result.scalars().all()}

    async def create(self, config: UserAvailabilityConfig) -> UserAvailabilityConfig:
        self.db.add(config)
        await self.db.flush()
        return config

    async def update(self, config: UserAvailabilityConfig) -> UserAvailabilityConfig:
        self.db.add(config)
        await self.db.flush()
        return config

    async def delete(self, user_id: str) -> int:
        result = await self.db.execute(
            delete(UserAvailabilityConfig).where(UserAvailabilityConfig.user_id == user_id)
        )
        return result.rowcount or 0

    async def exists(self, user_id: str) -> bool:
        result = await self.db.execute(
            select(func.count()).select_from(UserAvailabilityConfig).where(UserAvailabilityConfig.user_id == user_id)
        )
        return (result.scalar() or 0) > 0
