"""Tests for the pairing engine: greedy selection, eligibility, dedup and the one-open-match guard."""

import asyncio
from collections import Counter
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select, update

from coffee_match.domain.enums import AccountType, MatchStatus
from coffee_match.domain.errors import NoUsersToMatch
from coffee_match.domain.models import ActiveMatchClaim, Match
from coffee_match.repositories.match_history_repository import MatchHistoryRepository
from coffee_match.repositories.match_repository import OPEN_STATUSES
from coffee_match.services.availability_grid import AvailabilityGrid
from coffee_match.services.pairing_engine import (
    Candidate,
    CandidatePair,
    best_partner,
    build_candidate_pairs,
    greedy_select,
)


def _pair(a, b, score, rank):
    return CandidatePair(user1_id=a, user2_id=b, score=score, rank=rank)


def _candidate(user_id, tags=(), slots=("monday_morning",)):
    grid = AvailabilityGrid.from_mapping({field: True for field in slots})
    return Candidate(user_id=user_id, tags=frozenset(tags), grid=grid)


async def _matches(session_factory, organisation_id=None) -> list[Match]:
    async with session_factory() as db:
        stmt = select(Match)
        if organisation_id is not None:
            stmt = stmt.where(Match.organisation_id == organisation_id)
        return list((await db.execute(stmt)).scalars().all())


def _pairs(matches) -> set[frozenset[str]]:
    return {frozenset((m.user1_id, m.user2_id)) for m in matches}


async def _soft_delete(session_factory, match_id) -> None:
    """Admin-side removal: only deleted_at is set, claims are left as they were."""
    async with session_factory() as db:
        await db.execute(update(Match).where(Match.id == match_id).values(deleted_at=datetime.now(timezone.utc)))
        await db.commit()


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


class TestGreedySelect:
    def test_worked_example(self):
        # Scores: A-B 80, A-C 50, A-D 10, B-C 30, B-D 60, C-D 90
        pairs = [
            _pair("A", "B", 80, (0, 1)),
            _pair("A", "C", 50, (0, 2)),
            _pair("A", "D", 10, (0, 3)),
            _pair("B", "C", 30, (1, 2)),
            _pair("B", "D", 60, (1, 3)),
            _pair("C", "D", 90, (2, 3)),
        ]
        selected = greedy_select(pairs)
        assert [(p.user1_id, p.user2_id) for p in selected] == [("C", "D"), ("A", "B")]

    def test_ties_broken_by_enumeration_order(self):
        pairs = [
            _pair("B", "C", 50, (1, 2)),
            _pair("A", "C", 50, (0, 2)),
            _pair("A", "B", 50, (0, 1)),
        ]
        selected = greedy_select(pairs)
        assert [(p.user1_id, p.user2_id) for p in selected] == [("A", "B")]

    def test_zero_score_pairs_still_selected(self):
        selected = greedy_select([_pair("A", "B", 0.0, (0, 1))])
        assert len(selected) == 1

    def test_no_user_selected_twice(self):
        pairs = [_pair(a, b, 10.0, (i, j)) for i, a in enumerate("ABCDE") for j, b in enumerate("ABCDE") if i < j]
        users = Counter()
        for p in greedy_select(pairs):
            users.update((p.user1_id, p.user2_id))
        assert users and max(users.values()) == 1


class TestBuildCandidatePairs:
    def test_skips_ledger_pairs_and_disjoint_grids(self):
        candidates = [
            _candidate("A", slots=("monday_morning",)),
            _candidate("B", slots=("monday_morning",)),
            _candidate("C", slots=("monday_morning",)),
            _candidate("D", slots=("sunday_afternoon",)),
        ]
        pairs = build_candidate_pairs(candidates, ledger={frozenset(("A", "B"))})
        assert {(p.user1_id, p.user2_id) for p in pairs} == {("A", "C"), ("B", "C")}

    def test_rank_is_enumeration_index(self):
        candidates = [_candidate("A"), _candidate("B"), _candidate("C")]
        pairs = build_candidate_pairs(candidates, ledger=set())
        assert [p.rank for p in pairs] == [(0, 1), (0, 2), (1, 2)]


class TestBestPartner:
    def test_highest_score_wins(self):
        seed = _candidate("S", tags=("a", "b"))
        others = [_candidate("X", tags=("a",)), _candidate("Y", tags=("a", "b"))]
        assert best_partner(seed, others, ledger=set()).user2_id == "Y"

    def test_first_wins_ties(self):
        seed = _candidate("S", tags=("a",))
        others = [_candidate("X", tags=("a",)), _candidate("Y", tags=("a",))]
        assert best_partner(seed, others, ledger=set()).user2_id == "X"

    def test_none_when_everyone_excluded(self):
        seed = _candidate("S")
        others = [_candidate("X"), _candidate("Y", slots=("friday_morning",))]
        assert best_partner(seed, others, ledger={frozenset(("S", "X"))}) is None


# ---------------------------------------------------------------------------
# Bulk generation
# ---------------------------------------------------------------------------


class TestGenerateMatchesForOrganisation:
    async def test_pairs_highest_scores(self, pairing_engine, session_factory, make_organisation, make_user):
        org = await make_organisation()
        a = await make_user(org, "alice", tags=["python"])
        b = await make_user(org, "bob", tags=["python"])
        c = await make_user(org, "carol", tags=["chess"])
        d = await make_user(org, "dave", tags=["chess"])

        created = await pairing_engine.generate_matches_for_organisation(org.id)

        assert created == 2
        matches = await _matches(session_factory, org.id)
        assert _pairs(matches) == {frozenset((a.id, b.id)), frozenset((c.id, d.id))}
        for match in matches:
            assert match.status == MatchStatus.PENDING.value
            assert match.match_score == 100.0
            assert match.scheduled_date.weekday() < 5
            assert not match.user1_accepted and not match.user2_accepted

    async def test_records_history_and_claims(self, pairing_engine, session_factory, make_organisation, make_user):
        org = await make_organisation()
        a = await make_user(org, "alice")
        b = await make_user(org, "bob")

        await pairing_engine.generate_matches_for_organisation(org.id)

        async with session_factory() as db:
            assert await MatchHistoryRepository(db).was_ever_matched(b.id, a.id)
            claims = (await db.execute(select(ActiveMatchClaim))).scalars().all()
        assert {c.user_id for c in claims} == {a.id, b.id}

    async def test_no_overlapping_availability(self, pairing_engine, make_organisation, make_user):
        org = await make_organisation()
        await make_user(org, "alice", tags=["python"], slots=["monday_morning"])
        await make_user(org, "bob", tags=["python"], slots=["monday_afternoon"])

        with pytest.raises(NoUsersToMatch):
            await pairing_engine.generate_matches_for_organisation(org.id)

    async def test_fewer_than_two_eligible(self, pairing_engine, make_organisation, make_user):
        org = await make_organisation()
        await make_user(org, "alice")

        with pytest.raises(NoUsersToMatch):
            await pairing_engine.generate_matches_for_organisation(org.id)

    async def test_ineligible_users_excluded(self, pairing_engine, session_factory, make_organisation, make_user):
        org = await make_organisation()
        a = await make_user(org, "alice")
        b = await make_user(org, "bob")
        await make_user(org, "admin", account_type=AccountType.ADMIN.value)
        await make_user(org, "unconfirmed", confirmed=False)
        await make_user(org, "nogrid", slots=None)
        await make_user(org, "emptygrid", slots=[])

        created = await pairing_engine.generate_matches_for_organisation(org.id)

        assert created == 1
        assert _pairs(await _matches(session_factory, org.id)) == {frozenset((a.id, b.id))}

    async def test_users_with_open_match_excluded(self, pairing_engine, session_factory, make_organisation, make_user):
        org = await make_organisation()
        await make_user(org, "alice")
        await make_user(org, "bob")
        await pairing_engine.generate_matches_for_organisation(org.id)

        await make_user(org, "carol")
        with pytest.raises(NoUsersToMatch):
            await pairing_engine.generate_matches_for_organisation(org.id)

        assert len(await _matches(session_factory, org.id)) == 1

    async def test_never_rematches_a_pair(self, pairing_engine, lifecycle, session_factory, make_organisation, make_user):
        org = await make_organisation()
        a = await make_user(org, "alice")
        await make_user(org, "bob")
        await pairing_engine.generate_matches_for_organisation(org.id)
        (match,) = await _matches(session_factory, org.id)

        await lifecycle.reject_match(a.id, match.id)

        with pytest.raises(NoUsersToMatch):
            await pairing_engine.generate_matches_for_organisation(org.id)
        assert await pairing_engine.try_generate_match_for_user(a.id) is None

    async def test_soft_deleted_match_frees_both_users(
        self, pairing_engine, session_factory, make_organisation, make_user
    ):
        org = await make_organisation()
        a = await make_user(org, "alice")
        b = await make_user(org, "bob")
        await pairing_engine.generate_matches_for_organisation(org.id)
        (deleted,) = await _matches(session_factory, org.id)
        await _soft_delete(session_factory, deleted.id)
        c = await make_user(org, "carol")
        d = await make_user(org, "dave")

        created = await pairing_engine.generate_matches_for_organisation(org.id)

        assert created == 2
        live = [m for m in await _matches(session_factory, org.id) if m.deleted_at is None]
        assert _pairs(live) == {frozenset((a.id, c.id)), frozenset((b.id, d.id))}
        async with session_factory() as db:
            claims = (await db.execute(select(ActiveMatchClaim))).scalars().all()
        assert {claim.match_id for claim in claims} == {m.id for m in live}

    async def test_never_crosses_organisations(self, pairing_engine, make_organisation, make_user):
        org1 = await make_organisation()
        org2 = await make_organisation()
        await make_user(org1, "alice")
        await make_user(org2, "bob")

        with pytest.raises(NoUsersToMatch):
            await pairing_engine.generate_matches_for_organisation(org1.id)


# ---------------------------------------------------------------------------
# Reactive generation
# ---------------------------------------------------------------------------


class TestTryGenerateMatchForUser:
    async def test_picks_best_partner(self, pairing_engine, make_organisation, make_user):
        org = await make_organisation()
        seed = await make_user(org, "seed", tags=["python", "chess"])
        await make_user(org, "weak", tags=["python"])
        strong = await make_user(org, "strong", tags=["python", "chess"])

        match = await pairing_engine.try_generate_match_for_user(seed.id)

        assert match is not None
        assert (match.user1_id, match.user2_id) == (seed.id, strong.id)
        assert match.match_score == 100.0

    async def test_no_candidate_returns_none(self, pairing_engine, make_organisation, make_user):
        org = await make_organisation()
        seed = await make_user(org, "seed")
        await make_user(org, "other", slots=["sunday_afternoon"])

        assert await pairing_engine.try_generate_match_for_user(seed.id) is None

    async def test_unknown_user_returns_none(self, pairing_engine):
        assert await pairing_engine.try_generate_match_for_user("does-not-exist") is None

    async def test_user_without_organisation_returns_none(self, pairing_engine, make_user):
        loner = await make_user(None, "loner")
        assert await pairing_engine.try_generate_match_for_user(loner.id) is None

    async def test_seed_freed_by_soft_delete(self, pairing_engine, session_factory, make_organisation, make_user):
        org = await make_organisation()
        seed = await make_user(org, "seed")
        await make_user(org, "bob")
        first = await pairing_engine.try_generate_match_for_user(seed.id)
        await _soft_delete(session_factory, first.id)
        carol = await make_user(org, "carol")

        match = await pairing_engine.try_generate_match_for_user(seed.id)

        assert match is not None
        assert (match.user1_id, match.user2_id) == (seed.id, carol.id)

    async def test_seed_with_open_match_returns_none(self, pairing_engine, make_organisation, make_user):
        org = await make_organisation()
        seed = await make_user(org, "seed")
        await make_user(org, "bob")
        assert await pairing_engine.try_generate_match_for_user(seed.id) is not None

        await make_user(org, "carol")
        assert await pairing_engine.try_generate_match_for_user(seed.id) is None


# ---------------------------------------------------------------------------
# One open match per user under concurrent triggers
# ---------------------------------------------------------------------------


class TestSingleOpenMatchInvariant:
    async def test_concurrent_bulk_and_reactive(self, pairing_engine, session_factory, make_organisation, make_user):
        org = await make_organisation()
        users = [await make_user(org, f"user{i}", tags=["coffee"]) for i in range(6)]

        await asyncio.gather(
            pairing_engine.generate_matches_for_organisation(org.id),
            *(pairing_engine.try_generate_match_for_user(u.id) for u in users),
            return_exceptions=True,
        )

        open_matches = [m for m in await _matches(session_factory, org.id) if m.status in OPEN_STATUSES]
        per_user = Counter()
        for match in open_matches:
            per_user.update((match.user1_id, match.user2_id))
        assert open_matches
        assert max(per_user.values()) == 1

        async with session_factory() as db:
            claims = (await db.execute(select(func.count()).select_from(ActiveMatchClaim))).scalar()
        assert claims == 2 * len(open_matches)

    async def test_repeated_bulk_runs(self, pairing_engine, session_factory, make_organisation, make_user):
        org = await make_organisation()
        for i in range(5):
            await make_user(org, f"user{i}")

        await pairing_engine.generate_matches_for_organisation(org.id)
        with pytest.raises(NoUsersToMatch):
            await pairing_engine.generate_matches_for_organisation(org.id)

        per_user = Counter()
        for match in await _matches(session_factory, org.id):
            per_user.update((match.user1_id, match.user2_id))
        assert len(per_user) == 4
        assert max(per_user.values()) == 1
