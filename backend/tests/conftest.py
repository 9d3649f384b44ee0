"""Shared test infrastructure for the Coffee Match test suite.

Provides:
- engine / session_factory: file-backed async SQLite per test, all tables created
- runner: BackgroundTaskRunner, shut down after the test
- notifier: AsyncMock standing in for the acceptance email sender
- pairing_engine / lifecycle: match engine wired to the above
- make_organisation / make_user: factories for organisations, users, tags and grids
"""

import random
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

# Import Base first, then models to register all tables
from coffee_match.infra.database import Base, build_engine, build_session_factory

import coffee_match.domain.models  # noqa: F401

from coffee_match.domain.enums import AccountType
from coffee_match.domain.models import Organisation, Tag, User, UserAvailabilityConfig
from coffee_match.services.match_lifecycle import MatchLifecycle
from coffee_match.services.pairing_engine import PairingEngine
from coffee_match.services.task_runner import BackgroundTaskRunner

BASE_TIME = datetime(2025, 1, 6, 8, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine(tmp_path):
    """Fresh SQLite file per test so concurrent sessions see each other's commits."""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'coffee_match_test.db'}")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


# ---------------------------------------------------------------------------
# Match engine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
async def runner():
    task_runner = BackgroundTaskRunner(max_concurrency=4)
    yield task_runner
    await task_runner.shutdown(timeout=5.0)


@pytest.fixture
def notifier():
    return AsyncMock(return_value=True)


@pytest.fixture
def pairing_engine(session_factory):
    return PairingEngine(session_factory, rng=random.Random(1234))


@pytest.fixture
def lifecycle(session_factory, pairing_engine, runner, notifier):
    return MatchLifecycle(session_factory, pairing_engine, runner, notifier=notifier)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_organisation(session_factory):
    """Factory that creates an Organisation.

    Usage:
        org = await make_organisation("Acme")
    """
    counter = {"n": 0}

    async def _factory(name: str | None = None) -> Organisation:
        counter["n"] += 1
        org = Organisation(name=name or f"Org {counter['n']}")
        async with session_factory() as db:
            db.add(org)
            await db.commit()
        return org

    return _factory


@pytest.fixture
def make_user(session_factory):
    """Factory that creates a User with tags and an availability grid.

    ``slots`` lists the grid fields that are True; pass None for no grid at
    all. Users get strictly increasing created_at values so organisation
    order is the creation order.

    Usage:
        alice = await make_user(org, "alice", tags=["python"], slots=["monday_morning"])
    """
    counter = {"n": 0}
    tag_cache: dict[tuple[str, str], Tag] = {}

    async def _factory(
        organisation: Organisation | str | None,
        name: str,
        tags: list[str] = (),
        slots: list[str] | None = ("monday_morning",),
        confirmed: bool = True,
        account_type: str = AccountType.USER.value,
    ) -> User:
        counter["n"] += 1
        org_id = organisation.id if isinstance(organisation, Organisation) else organisation
        user = User(
            first_name=name.capitalize(),
            last_name="Tester",
            email=f"{name}@example.com",
            account_type=account_type,
            organisation_id=org_id,
            is_confirmed=confirmed,
            created_at=BASE_TIME + timedelta(seconds=counter["n"]),
        )
        async with session_factory() as db:
            user_tags = []
            for tag_name in tags:
                key = (org_id, tag_name)
                tag = tag_cache.get(key)
                if tag is None:
                    tag = Tag(organisation_id=org_id, name=tag_name)
                    db.add(tag)
                    tag_cache[key] = tag
                else:
                    tag = await db.merge(tag)
                user_tags.append(tag)
            user.tags = user_tags
            db.add(user)
            await db.flush()
            if slots is not None:
                db.add(UserAvailabilityConfig(user_id=user.id, **{field: True for field in slots}))
            await db.commit()
        return user

    return _factory
