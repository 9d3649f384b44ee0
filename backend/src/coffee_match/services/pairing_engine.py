"""Pairing algorithm: turns an organisation's eligible members into coffee chats.

Two entry points share the same eligibility, overlap, dedup and scoring rules:

- ``generate_matches_for_organisation``: bulk, greedy over every candidate
  pair. Raises ``NoUsersToMatch`` when nothing can be paired.
- ``try_generate_match_for_user``: reactive, one seed user against the rest
  of their organisation. Never raises.

The greedy walk is not a maximum-weight matching. Candidate pairs are sorted
by score descending, ties broken by enumeration order (i, j) over the
organisation's members, and a pair is taken iff neither user is already
taken in this walk.

Every match is written in its own session together with its ledger row and
its two active-match claims; a claim conflict means another trigger got
there first, and the pair is skipped.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coffee_match.domain.enums import AccountType, MatchStatus
from coffee_match.domain.errors import NoUsersToMatch
from coffee_match.domain.models import Match, User
from coffee_match.repositories.availability_config_repository import AvailabilityConfigRepository
from coffee_match.repositories.match_history_repository import MatchHistoryRepository
from coffee_match.repositories.match_repository import MatchRepository
from coffee_match.repositories.user_repository import UserRepository
from coffee_match.services.availability_grid import AvailabilityGrid, grid_or_none
from coffee_match.services.compatibility_scorer import compute_match_score
from coffee_match.services.meeting_slots import pick_meeting_slot

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Candidate:
    """An eligible user with what the pairing rules need, detached from the session."""

    user_id: str
    tags: frozenset[str]
    grid: AvailabilityGrid


@dataclass(frozen=True)
class CandidatePair:
    user1_id: str
    user2_id: str
    score: float
    rank: tuple[int, int]  # enumeration position, used as tie-break


def is_matchable_account(user: User) -> bool:
    """Static part of eligibility: not an admin, confirmed."""
    return user.account_type != AccountType.ADMIN.value and bool(user.is_confirmed)


def build_candidate_pairs(
    candidates: list[Candidate],
    ledger: set[frozenset[str]],
) -> list[CandidatePair]:
    """Every unordered pair (i < j) that was never matched and shares a slot."""
    pairs: list[CandidatePair] = []
    for i in range(len(candidates)):
        for j in range(i + 1, len(candidates)):
            a, b = candidates[i], candidates[j]
            if frozenset((a.user_id, b.user_id)) in ledger:
                continue
            if not a.grid.overlaps(b.grid):
                continue
            pairs.append(
                CandidatePair(
                    user1_id=a.user_id,
                    user2_id=b.user_id,
                    score=compute_match_score(a.tags, b.tags),
                    rank=(i, j),
                )
            )
    return pairs


def greedy_select(pairs: list[CandidatePair]) -> list[CandidatePair]:
    """Highest score first; take a pair only if both users are still free."""
    ordered = sorted(pairs, key=lambda p: (-p.score, p.rank))
    taken: set[str] = set()
    selected: list[CandidatePair] = []
    for pair in ordered:
        if pair.user1_id in taken or pair.user2_id in taken:
            continue
        selected.append(pair)
        taken.add(pair.user1_id)
        taken.add(pair.user2_id)
    return selected


def best_partner(seed: Candidate, others: list[Candidate], ledger: set[frozenset[str]]) -> Optional[CandidatePair]:
    """Highest-scoring eligible partner for ``seed``; the first one wins ties."""
    best: Optional[CandidatePair] = None
    for index, other in enumerate(others):
        if other.user_id == seed.user_id:
            continue
        if frozenset((seed.user_id, other.user_id)) in ledger:
            continue
        if not seed.grid.overlaps(other.grid):
            continue
        score = compute_match_score(seed.tags, other.tags)
        if best is None or score > best.score:
            best = CandidatePair(user1_id=seed.user_id, user2_id=other.user_id, score=score, rank=(0, index))
    return best


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class PairingEngine:
    """Creates matches. Each write runs in its own session from ``session_factory``."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
        timezone_name: Optional[str] = None,
    ):
        self._session_factory = session_factory
        self._rng = rng or random.Random()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        # Calendar used for suggested meeting dates
        self._tz = ZoneInfo(timezone_name) if timezone_name else None

    async def _load_candidates(self, db: AsyncSession, users: list[User]) -> list[Candidate]:
        """Filter to eligible users, keeping load order."""
        accounts = [u for u in users if is_matchable_account(u)]
        ids = [u.id for u in accounts]
        busy = await MatchRepository(db).users_with_open_matches(ids)
        configs = await AvailabilityConfigRepository(db).find_by_user_ids(ids)

        candidates: list[Candidate] = []
        for user in accounts:
            if user.id in busy:
                continue
            grid = grid_or_none(configs.get(user.id))
            if grid is None:
                continue
            candidates.append(Candidate(user_id=user.id, tags=frozenset(user.tag_names), grid=grid))
        return candidates

    async def generate_matches_for_organisation(self, organisation_id: str) -> int:
        """Pair up an organisation's eligible members. Returns the number of matches created.

        Raises NoUsersToMatch when fewer than two users are eligible, when no
        pair survives the dedup/overlap filters, or when the greedy walk
        selects nothing.
        """
        async with self._session_factory() as db:
            users = await UserRepository(db).find_by_organisation(organisation_id)
            candidates = await self._load_candidates(db, users)
            if len(candidates) < 2:
                raise NoUsersToMatch()
            ledger = await MatchHistoryRepository(db).partners_of([c.user_id for c in candidates])

        pairs = build_candidate_pairs(candidates, ledger)
        if not pairs:
            raise NoUsersToMatch()

        selected = greedy_select(pairs)
        if not selected:
            raise NoUsersToMatch()

        created = 0
        for pair in selected:
            match = await self._create_match(organisation_id, pair)
            if match is not None:
                created += 1

        logger.info(
            "Organisation %s: %d eligible users, %d candidate pairs, %d matches created",
            organisation_id, len(candidates), len(pairs), created,
        )
        return created

    async def try_generate_match_for_user(self, user_id: str) -> Optional[Match]:
        """Best-effort single match for one user. Never raises; None means no match."""
        try:
            return await self._generate_for_user(user_id)
        except Exception:
            logger.exception("Reactive match generation failed for user %s", user_id)
            return None

    async def _generate_for_user(self, user_id: str) -> Optional[Match]:
        async with self._session_factory() as db:
            user = await UserRepository(db).find_by_id(user_id)
            if user is None or not is_matchable_account(user):
                logger.debug("User %s not matchable, skipping reactive match", user_id)
                return None
            if user.organisation_id is None:
                return None
            organisation_id = user.organisation_id

            members = await UserRepository(db).find_by_organisation(organisation_id)
            candidates = await self._load_candidates(db, members)
            seed = next((c for c in candidates if c.user_id == user_id), None)
            if seed is None:
                logger.debug("User %s has an open match or no availability, skipping", user_id)
                return None
            ledger = await MatchHistoryRepository(db).partners_of([user_id])

        others = [c for c in candidates if c.user_id != user_id]
        pair = best_partner(seed, others, ledger)
        if pair is None:
            logger.info("No candidate found for user %s", user_id)
            return None

        return await self._create_match(organisation_id, pair)

    async def _create_match(self, organisation_id: str, pair: CandidatePair) -> Optional[Match]:
        """Write match + ledger row + claims atomically. Logs and returns None on failure."""
        now = self._clock()
        scheduled_date, scheduled_time = pick_meeting_slot(now, self._rng, self._tz)

        async with self._session_factory() as db:
            try:
                matches = MatchRepository(db)
                match = await matches.create(
                    Match(
                        organisation_id=organisation_id,
                        user1_id=pair.user1_id,
                        user2_id=pair.user2_id,
                        match_score=pair.score,
                        status=MatchStatus.PENDING.value,
                        scheduled_date=scheduled_date,
                        scheduled_time=scheduled_time,
                    )
                )
                await matches.claim_users(match)
                await MatchHistoryRepository(db).record_match(pair.user1_id, pair.user2_id, now)
                await db.commit()
            except IntegrityError:
                await db.rollback()
                logger.warning(
                    "Skipped match %s/%s: one of the users already holds an open match",
                    pair.user1_id, pair.user2_id,
                )
                return None
            except SQLAlchemyError:
                await db.rollback()
                logger.exception("Failed to create match %s/%s", pair.user1_id, pair.user2_id)
                return None

        logger.info(
            "Match %s created: %s <-> %s (score %.1f, %s %s)",
            match.id, pair.user1_id, pair.user2_id, pair.score, scheduled_date, scheduled_time,
        )
        return match
