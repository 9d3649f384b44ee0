"""Tests for weekly availability grid management."""

from unittest.mock import AsyncMock

import pytest

from coffee_match.domain.errors import ConfigAlreadyExists, ConfigNotFound, NoAvailabilitySet, UserNotFound
from coffee_match.services.availability_config_service import AvailabilityConfigService


@pytest.fixture
def service(session_factory, pairing_engine, runner):
    return AvailabilityConfigService(session_factory, pairing_engine, runner)


class TestCreateConfig:
    async def test_create_and_get(self, service, make_user):
        user = await make_user(None, "alice", slots=None)

        created = await service.create_config(user.id, {"tuesday_morning": True, "friday_afternoon": True})

        assert created.tuesday_morning is True
        assert created.friday_afternoon is True
        assert created.monday_morning is False
        fetched = await service.get_config(user.id)
        assert fetched.id == created.id
        assert await service.has_config(user.id)

    async def test_all_false_rejected(self, service, make_user):
        user = await make_user(None, "alice", slots=None)
        with pytest.raises(NoAvailabilitySet):
            await service.create_config(user.id, {"monday_morning": False})
        assert not await service.has_config(user.id)

    async def test_unknown_user(self, service):
        with pytest.raises(UserNotFound):
            await service.create_config("missing", {"monday_morning": True})

    async def test_second_create_conflicts(self, service, make_user):
        user = await make_user(None, "alice")
        with pytest.raises(ConfigAlreadyExists):
            await service.create_config(user.id, {"monday_morning": True})

    async def test_create_triggers_reactive_match(self, service, lifecycle, runner, make_organisation, make_user):
        org = await make_organisation()
        alice = await make_user(org, "alice", slots=None)
        bob = await make_user(org, "bob", slots=["wednesday_morning"])

        await service.create_config(alice.id, {"wednesday_morning": True})
        await runner.drain()

        current = await lifecycle.get_current_match(alice.id)
        assert (current.user1_id, current.user2_id) == (alice.id, bob.id)


class TestUpdateConfig:
    async def test_partial_update(self, service, make_user):
        user = await make_user(None, "alice", slots=["monday_morning"])

        updated = await service.update_config(user.id, {"sunday_afternoon": True, "monday_afternoon": None})

        assert updated.monday_morning is True
        assert updated.sunday_afternoon is True
        assert updated.monday_afternoon is False

    async def test_update_to_all_false_rejected(self, service, make_user):
        user = await make_user(None, "alice", slots=["monday_morning"])

        with pytest.raises(NoAvailabilitySet):
            await service.update_config(user.id, {"monday_morning": False})
        assert (await service.get_config(user.id)).monday_morning is True

    async def test_update_missing_config(self, service, make_user):
        user = await make_user(None, "alice", slots=None)
        with pytest.raises(ConfigNotFound):
            await service.update_config(user.id, {"monday_morning": True})

    async def test_update_schedules_rematch(self, service, pairing_engine, runner, make_user, monkeypatch):
        rematch = AsyncMock(return_value=None)
        monkeypatch.setattr(pairing_engine, "try_generate_match_for_user", rematch)
        user = await make_user(None, "alice")

        await service.update_config(user.id, {"friday_morning": True})
        await runner.drain()

        rematch.assert_awaited_once_with(user.id)


class TestDeleteConfig:
    async def test_delete(self, service, make_user):
        user = await make_user(None, "alice")
        await service.delete_config(user.id)
        assert not await service.has_config(user.id)
        with pytest.raises(ConfigNotFound):
            await service.get_config(user.id)

    async def test_delete_missing(self, service, make_user):
        user = await make_user(None, "alice", slots=None)
        with pytest.raises(ConfigNotFound):
            await service.delete_config(user.id)
