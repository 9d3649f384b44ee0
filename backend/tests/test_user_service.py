"""Tests for admin confirmation of organisation members."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from coffee_match.domain.enums import AccountType
from coffee_match.domain.errors import UnauthorizedUser, UserNotFound
from coffee_match.domain.models import User
from coffee_match.services.user_service import confirm_user


@pytest.fixture
async def admin(make_organisation, make_user):
    org = await make_organisation()
    return await make_user(org, "admin", account_type=AccountType.ADMIN.value)


class TestConfirmUser:
    async def test_confirms_and_triggers_rematch(
        self, session_factory, pairing_engine, runner, admin, make_user, monkeypatch
    ):
        rematch = AsyncMock(return_value=None)
        monkeypatch.setattr(pairing_engine, "try_generate_match_for_user", rematch)
        newcomer = await make_user(admin.organisation_id, "newcomer", confirmed=False)

        confirmed = await confirm_user(session_factory, pairing_engine, runner, admin, newcomer.id)
        await runner.drain()

        assert confirmed.is_confirmed is True
        async with session_factory() as db:
            stored = (await db.execute(select(User).where(User.id == newcomer.id))).scalar_one()
        assert stored.is_confirmed is True
        rematch.assert_awaited_once_with(newcomer.id)

    async def test_confirmed_user_gets_matched(self, session_factory, pairing_engine, runner, lifecycle, admin, make_user):
        waiting = await make_user(admin.organisation_id, "waiting")
        newcomer = await make_user(admin.organisation_id, "newcomer", confirmed=False)

        await confirm_user(session_factory, pairing_engine, runner, admin, newcomer.id)
        await runner.drain()

        current = await lifecycle.get_current_match(newcomer.id)
        assert {current.user1_id, current.user2_id} == {newcomer.id, waiting.id}

    async def test_other_organisation_rejected(self, session_factory, pairing_engine, runner, admin, make_organisation, make_user):
        other_org = await make_organisation()
        outsider = await make_user(other_org, "outsider", confirmed=False)

        with pytest.raises(UnauthorizedUser):
            await confirm_user(session_factory, pairing_engine, runner, admin, outsider.id)

    async def test_non_admin_rejected(self, session_factory, pairing_engine, runner, admin, make_user):
        member = await make_user(admin.organisation_id, "member")
        newcomer = await make_user(admin.organisation_id, "newcomer", confirmed=False)

        with pytest.raises(UnauthorizedUser):
            await confirm_user(session_factory, pairing_engine, runner, member, newcomer.id)

    async def test_unknown_user(self, session_factory, pairing_engine, runner, admin):
        with pytest.raises(UserNotFound):
            await confirm_user(session_factory, pairing_engine, runner, admin, "missing")
