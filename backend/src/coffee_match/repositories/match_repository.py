"""Match store, including per-match availability submissions and active-match claims."""

from typing import Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from coffee_match.domain.enums import MatchStatus
from coffee_match.domain.models import ActiveMatchClaim, Match, MatchAvailability

# Statuses that keep a user out of the matching pool
OPEN_STATUSES = (MatchStatus.PENDING.value, MatchStatus.WAITING_FOR_FEEDBACK.value)


def _involves(user_id: str):
    return or_(Match.user1_id == user_id, Match.user2_id == user_id)


class MatchRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------

    async def create(self, match: Match) -> Match:
        self.db.add(match)
        await self.db.flush()
        return match

    async def update(self, match: Match) -> Match:
        self.db.add(match)
        await self.db.flush()
        return match

    async def find_by_id(self, match_id: str) -> Optional[Match]:
        result = await self.db.execute(
            select(Match)
            .where(Match.id == match_id, Match.deleted_at.is_(None))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_current_by_user_id(self, user_id: str) -> Optional[Match]:
        """Most recent pending / waiting-for-feedback match for a user."""
        result = await self.db.execute(
            select(Match)
            .where(
                _involves(user_id),
                Match.status.in_(OPEN_STATUSES),
                Match.deleted_at.is_(None),
            )
            .order_by(Match.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_by_organisation(self, organisation_id: str) -> list[Match]:
        result = await self.db.execute(
            select(Match)
            .where(Match.organisation_id == organisation_id, Match.deleted_at.is_(None))
            .order_by(Match.created_at.desc())
        )
        return list(result.scalars().all())

    async def find_by_user_id(self, user_id: str) -> list[Match]:
        result = await self.db.execute(
            select(Match)
            .where(_involves(user_id), Match.deleted_at.is_(None))
            .order_by(Match.created_at.desc())
        )
        return list(result.scalars().all())

    async def has_pending_match(self, user_id: str) -> bool:
        """Advisory eligibility check. The claim insert is the real guard."""
        result = await self.db.execute(
            select(func.count())
            .select_from(Match)
            .where(_involves(user_id), Match.status.in_(OPEN_STATUSES), Match.deleted_at.is_(None))
        )
        return (result.scalar() or 0) > 0

    async def users_with_open_matches(self, user_ids: list[str]) -> set[str]:
        """Subset of ``user_ids`` that currently hold an open match."""
        if not user_ids:
            return set()
        result = await self.db.execute(
            select(Match.user1_id, Match.user2_id).where(
                or_(Match.user1_id.in_(user_ids), Match.user2_id.in_(user_ids)),
                Match.status.in_(OPEN_STATUSES),
                Match.deleted_at.is_(None),
            )
        )
        busy: set[str] = set()
        for row in result.all():
            busy.update((row.user1_id, row.user2_id))
        return busy & set(user_ids)

    async def complete_if_waiting(self, match_id: str) -> bool:
        """Move a waiting match to completed. False if another writer already did."""
        result = await self.db.execute(
            update(Match)
            .where(
                Match.id == match_id,
                Match.status == MatchStatus.WAITING_FOR_FEEDBACK.value,
                Match.deleted_at.is_(None),
            )
            .values(status=MatchStatus.COMPLETED.value)
        )
        return (result.rowcount or 0) == 1

    # ------------------------------------------------------------------
    # Active-match claims
    # ------------------------------------------------------------------

    async def claim_users(self, match: Match) -> None:
        """Insert one claim per participant. Raises IntegrityError if either is taken.

        Claims left behind by matches that are no longer open (soft-deleted,
        closed outside the lifecycle) are dropped first.
        """
        await self.release_stale_claims(match.participant_ids())
        for user_id in match.participant_ids():
            self.db.add(ActiveMatchClaim(user_id=user_id, match_id=match.id))
        await self.db.flush()

    async def release_claims(self, match_id: str) -> int:
        result = await self.db.execute(delete(ActiveMatchClaim).where(ActiveMatchClaim.match_id == match_id))
        return result.rowcount or 0

    async def release_stale_claims(self, user_ids: list[str]) -> int:
        live_matches = select(Match.id).where(Match.status.in_(OPEN_STATUSES), Match.deleted_at.is_(None))
        result = await self.db.execute(
            delete(ActiveMatchClaim).where(
                ActiveMatchClaim.user_id.in_(user_ids),
                ActiveMatchClaim.match_id.not_in(live_matches),
            )
        )
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Per-match availability
    # ------------------------------------------------------------------

    async def find_availability(self, match_id: str, user_id: str) -> Optional[MatchAvailability]:
        result = await self.db.execute(
            select(MatchAvailability).where(
                MatchAvailability.match_id == match_id,
                MatchAvailability.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def create_availability(self, availability: MatchAvailability) -> MatchAvailability:
        self.db.add(availability)
        await self.db.flush()
        return availability

    async def update_availability(self, availability: MatchAvailability) -> MatchAvailability:
        self.db.add(availability)
        await self.db.flush()
        return availability

    async def find_availabilities_by_match(self, match_id: str) -> list[MatchAvailability]:
        result = await self.db.execute(
            select(MatchAvailability)
            .where(MatchAvailability.match_id == match_id)
            .order_by(MatchAvailability.created_at)
        )
        return list(result.scalars().all())
