"""Admin-side user operations that feed the matching pool."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coffee_match.domain.enums import AccountType
from coffee_match.domain.errors import UnauthorizedUser, UserNotFound
from coffee_match.domain.models import User
from coffee_match.repositories.user_repository import UserRepository
from coffee_match.services.pairing_engine import PairingEngine
from coffee_match.services.task_runner import BackgroundTaskRunner

logger = logging.getLogger(__name__)


async def confirm_user(
    session_factory: async_sessionmaker[AsyncSession],
    pairing_engine: PairingEngine,
    task_runner: BackgroundTaskRunner,
    admin: User,
    user_id: str,
) -> User:
    """Confirm a member of the admin's organisation and try to match them right away."""
    if admin.account_type != AccountType.ADMIN.value or admin.organisation_id is None:
        raise UnauthorizedUser()

    async with session_factory() as db:
        users = UserRepository(db)
        user = await users.find_by_id(user_id)
        if user is None:
            raise UserNotFound()
        if user.organisation_id != admin.organisation_id:
            raise UnauthorizedUser()

        already_confirmed = user.is_confirmed
        user.is_confirmed = True
        await users.update(user)
        await db.commit()

    if not already_confirmed:
        logger.info("User %s confirmed by admin %s", user_id, admin.id)
    task_runner.spawn(pairing_engine.try_generate_match_for_user, user_id, name=f"rematch-{user_id}")
    return user
