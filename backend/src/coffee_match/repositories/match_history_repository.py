"""Dedup ledger: every pair ever matched. Append-only."""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from coffee_match.domain.models import MatchHistory, utcnow


def _pair_clause(user_a: str, user_b: str):
    return or_(
        and_(MatchHistory.user1_id == user_a, MatchHistory.user2_id == user_b),
        and_(MatchHistory.user1_id == user_b, MatchHistory.user2_id == user_a),
    )


class MatchHistoryRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_match(self, user1_id: str, user2_id: str, matched_at: Optional[datetime] = None) -> MatchHistory:
        history = MatchHistory(user1_id=user1_id, user2_id=user2_id, matched_at=matched_at or utcnow())
        self.db.add(history)
        await self.db.flush()
        return history

    async def was_ever_matched(self, user_a: str, user_b: str) -> bool:
        result = await self.db.execute(
            select(func.count()).select_from(MatchHistory).where(_pair_clause(user_a, user_b))
        )
        return (result.scalar() or 0) > 0

    async def partners_of(self, user_ids: list[str]) -> set[frozenset[str]]:
        """All ledger pairs touching any of ``user_ids``, as unordered frozensets.

        Lets the bulk pass answer ``was_ever_matched`` for every candidate pair
        with a single query.
        """
        if not user_ids:
            return set()
        result = await self.db.execute(
            select(MatchHistory.user1_id, MatchHistory.user2_id).where(
                or_(MatchHistory.user1_id.in_(user_ids), MatchHistory.user2_id.in_(user_ids))
            )
        )
        return {frozenset((row.user1_id, row.user2_id)) for row in result.all()}
