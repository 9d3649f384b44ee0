"""Weekly availability grid management.

Saving a grid can make a user matchable, so create and update both queue a
reactive match attempt for that user on the background runner.
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coffee_match.domain.errors import ConfigAlreadyExists, ConfigNotFound, NoAvailabilitySet, UserNotFound
from coffee_match.domain.models import UserAvailabilityConfig
from coffee_match.repositories.availability_config_repository import AvailabilityConfigRepository
from coffee_match.repositories.user_repository import UserRepository
from coffee_match.services.availability_grid import SLOT_FIELDS, AvailabilityGrid
from coffee_match.services.pairing_engine import PairingEngine
from coffee_match.services.task_runner import BackgroundTaskRunner

logger = logging.getLogger(__name__)


class AvailabilityConfigService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        pairing_engine: PairingEngine,
        task_runner: BackgroundTaskRunner,
    ):
        self._session_factory = session_factory
        self._pairing = pairing_engine
        self._runner = task_runner

    def _schedule_rematch(self, user_id: str) -> None:
        self._runner.spawn(self._pairing.try_generate_match_for_user, user_id, name=f"rematch-{user_id}")

    async def create_config(self, user_id: str, slots: Mapping[str, Any]) -> UserAvailabilityConfig:
        """Store a user's first grid. Unlisted slots default to unavailable."""
        grid = AvailabilityGrid.from_mapping(slots)
        if grid.is_empty():
            raise NoAvailabilitySet()

        async with self._session_factory() as db:
            if await UserRepository(db).find_by_id(user_id) is None:
                raise UserNotFound()
            configs = AvailabilityConfigRepository(db)
            if await configs.exists(user_id):
                raise ConfigAlreadyExists()

            try:
                config = await configs.create(UserAvailabilityConfig(user_id=user_id, **grid.as_dict()))
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                raise ConfigAlreadyExists() from e

        logger.info("Availability config created for user %s", user_id)
        self._schedule_rematch(user_id)
        return config

    async def get_config(self, user_id: str) -> UserAvailabilityConfig:
        async with self._session_factory() as db:
            config = await AvailabilityConfigRepository(db).find_by_user_id(user_id)
        if config is None:
            raise ConfigNotFound()
        return config

    async def update_config(self, user_id: str, changes: Mapping[str, Optional[bool]]) -> UserAvailabilityConfig:
        """Partial update: only slots present (and not None) in ``changes`` are touched."""
        async with self._session_factory() as db:
            configs = AvailabilityConfigRepository(db)
            config = await configs.find_by_user_id(user_id)
            if config is None:
                raise ConfigNotFound()

            merged = AvailabilityGrid.from_config(config).as_dict()
            for field in SLOT_FIELDS:
                value = changes.get(field)
                if value is not None:
                    merged[field] = bool(value)
            if AvailabilityGrid.from_mapping(merged).is_empty():
                raise NoAvailabilitySet()

            for field, value in merged.items():
                setattr(config, field, value)
            await configs.update(config)
            await db.commit()

        logger.info("Availability config updated for user %s", user_id)
        self._schedule_rematch(user_id)
        return config

    async def delete_config(self, user_id: str) -> None:
        async with self._session_factory() as db:
            deleted = await AvailabilityConfigRepository(db).delete(user_id)
            if not deleted:
                raise ConfigNotFound()
            await db.commit()
        logger.info("Availability config deleted for user %s", user_id)

    async def has_config(self, user_id: str) -> bool:
        async with self._session_factory() as db:
            return await AvailabilityConfigRepository(db).exists(user_id)
