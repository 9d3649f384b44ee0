from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from coffee_match.domain.models import Match, MatchFeedback


class MatchFeedbackRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, feedback: MatchFeedback) -> MatchFeedback:
        self.db.add(feedback)
        await self.db.flush()
        return feedback

    async def find_by_match(self, match_id: str) -> list[MatchFeedback]:
        result = await self.db.execute(
            select(MatchFeedback)
            .where(MatchFeedback.match_id == match_id)
            .order_by(MatchFeedback.created_at)
        )
        return list(result.scalars().all())

    async def has_feedback(self, match_id: str, user_id: str) -> bool:
        result = await self.db.execute(
            select(func.count())
            .select_from(MatchFeedback)
            .where(MatchFeedback.match_id == match_id, MatchFeedback.user_id == user_id)
        )
        return (result.scalar() or 0) > 0

    async def count_by_match(self, match_id: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(MatchFeedback).where(MatchFeedback.match_id == match_id)
        )
        return result.scalar() or 0

    async def ratings_received_by(self, user_id: str) -> list[int]:
        """Every rating a user's counterparts gave them, across all their matches."""
        result = await self.db.execute(
            select(MatchFeedback.rating)
            .join(Match, Match.id == MatchFeedback.match_id)
            .where(
                or_(Match.user1_id == user_id, Match.user2_id == user_id),
                Match.deleted_at.is_(None),
                MatchFeedback.user_id != user_id,
            )
        )
        return [row[0] for row in result.all()]
