"""Match lifecycle: accept, reject, feedback and read access for participants.

All validation/authorization errors are raised to the caller as
``MatchEngineError`` subclasses. Side effects that must not block or fail the
caller (acceptance emails, reactive rematches after completion) are handed
to the ``BackgroundTaskRunner``.
"""

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coffee_match.domain.enums import MatchAction, MatchStatus, Weekday
from coffee_match.domain.errors import (
    FeedbackAlreadyExists,
    InvalidAvailability,
    InvalidRating,
    MatchClosed,
    MatchNotAccepted,
    MatchNotFound,
    UnauthorizedMatch,
)
from coffee_match.domain.models import Match, MatchAvailability, MatchFeedback, User
from coffee_match.repositories.match_feedback_repository import MatchFeedbackRepository
from coffee_match.repositories.match_repository import MatchRepository
from coffee_match.repositories.user_repository import UserRepository
from coffee_match.services import email_service
from coffee_match.services.availability_grid import format_availability_slots, grid_or_none
from coffee_match.services.match_state_machine import (
    TERMINAL_STATES,
    InvalidTransitionError,
    MatchStateMachine,
)
from coffee_match.services.pairing_engine import PairingEngine
from coffee_match.services.task_runner import BackgroundTaskRunner

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5
DEFAULT_EXPIRY_DAYS = 5
WEEKDAY_NAMES = frozenset(day.value for day in Weekday)

Notifier = Callable[[str, str, str, str, list[dict[str, str]]], Awaitable[bool]]


def validate_availability(availability: Any) -> dict[str, list[str]]:
    """Per-match availability must be ``{weekday name: [time or period, ...]}``."""
    if not isinstance(availability, Mapping):
        raise InvalidAvailability()
    cleaned: dict[str, list[str]] = {}
    for day, times in availability.items():
        if not isinstance(day, str) or day.strip().lower() not in WEEKDAY_NAMES:
            raise InvalidAvailability()
        if not isinstance(times, (list, tuple)) or not all(isinstance(t, str) for t in times):
            raise InvalidAvailability()
        cleaned[day] = list(times)
    return cleaned


class MatchLifecycle:
    """Owns per-match status transitions and the participant-facing queries."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        pairing_engine: PairingEngine,
        task_runner: BackgroundTaskRunner,
        notifier: Optional[Notifier] = None,
        expiry_days: int = DEFAULT_EXPIRY_DAYS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._session_factory = session_factory
        self._pairing = pairing_engine
        self._runner = task_runner
        self._notify = notifier or email_service.send_match_accepted
        self._expiry = timedelta(days=expiry_days)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.state_machine = MatchStateMachine()

    async def _load_for_participant(self, repo: MatchRepository, user_id: str, match_id: str) -> Match:
        match = await repo.find_by_id(match_id)
        if match is None:
            raise MatchNotFound()
        if not match.is_participant(user_id):
            raise UnauthorizedMatch()
        return match

    # ------------------------------------------------------------------
    # Accept
    # ------------------------------------------------------------------

    async def accept_match(self, user_id: str, match_id: str) -> Match:
        """Accept without submitting availability; the stored weekly grid is shared instead."""
        return await self.accept_match_with_availability(user_id, match_id, None)

    async def accept_match_with_availability(
        self,
        user_id: str,
        match_id: str,
        availability: Optional[Mapping[str, Any]],
    ) -> Match:
        """Record this participant's acceptance and upsert their availability.

        Once both participants have accepted, the match moves to
        waiting_for_feedback and expires ``expiry_days`` later. Re-accepting
        only refreshes the participant's timestamp.
        """
        submitted = validate_availability(availability) if availability is not None else None

        async with self._session_factory() as db:
            repo = MatchRepository(db)
            match = await self._load_for_participant(repo, user_id, match_id)

            current = MatchStatus(match.status)
            if current in TERMINAL_STATES:
                raise MatchClosed()

            now = self._clock()
            if match.user1_id == user_id:
                match.user1_accepted = True
                match.user1_accepted_at = now
            else:
                match.user2_accepted = True
                match.user2_accepted_at = now

            target = self.state_machine.status_after_accept(current, match.user1_accepted, match.user2_accepted)
            try:
                self.state_machine.validate_transition(current, target, MatchAction.ACCEPT)
            except InvalidTransitionError as e:
                raise MatchClosed(str(e)) from e

            if target != current:
                match.status = target.value
                match.expires_at = now + self._expiry
                logger.info("Match %s accepted by both participants, waiting for feedback", match.id)

            if submitted is not None:
                existing = await repo.find_availability(match.id, user_id)
                if existing is None:
                    await repo.create_availability(
                        MatchAvailability(match_id=match.id, user_id=user_id, availability=submitted)
                    )
                else:
                    existing.availability = submitted
                    await repo.update_availability(existing)

            await repo.update(match)
            await db.commit()

            match = await repo.find_by_id(match_id)
            acceptor, other = (match.user1, match.user2) if match.user1_id == user_id else (match.user2, match.user1)
            slots = await self._acceptance_slots(repo, match, acceptor, submitted)

        if slots:
            self._runner.spawn(
                self._notify_acceptance, other.email, other.full_name, acceptor.full_name, acceptor.email, slots,
                name=f"notify-accepted-{match.id}",
            )
        else:
            logger.warning("User %s accepted match %s without any availability to share", user_id, match.id)

        return match

    async def _acceptance_slots(
        self,
        repo: MatchRepository,
        match: Match,
        acceptor: User,
        submitted: Optional[dict[str, list[str]]],
    ) -> list[dict[str, str]]:
        """Submitted availability first, then a previous submission, then the weekly grid.

        A source that formats to no slots (e.g. ``{"Monday": []}``) falls
        through to the next one.
        """
        if submitted:
            slots = format_availability_slots(submitted)
            if slots:
                return slots
        else:
            previous = await repo.find_availability(match.id, acceptor.id)
            if previous is not None and previous.availability:
                slots = format_availability_slots(previous.availability)
                if slots:
                    return slots
        grid = grid_or_none(acceptor.availability_config)
        if grid is None:
            return []
        return format_availability_slots(grid.to_availability())

    async def _notify_acceptance(
        self,
        to_email: str,
        to_name: str,
        from_name: str,
        from_email: str,
        slots: list[dict[str, str]],
    ) -> None:
        try:
            sent = await self._notify(to_email, to_name, from_name, from_email, slots)
        except Exception:
            logger.exception("Match accepted notification to %s failed", to_email)
            return
        if not sent:
            logger.warning("Match accepted notification to %s was not delivered", to_email)

    # ------------------------------------------------------------------
    # Reject
    # ------------------------------------------------------------------

    async def reject_match(self, user_id: str, match_id: str) -> Match:
        """Any participant can void an open match for both of them."""
        async with self._session_factory() as db:
            repo = MatchRepository(db)
            match = await self._load_for_participant(repo, user_id, match_id)

            current = MatchStatus(match.status)
            if current == MatchStatus.REJECTED:
                return match
            try:
                self.state_machine.validate_transition(current, MatchStatus.REJECTED, MatchAction.REJECT)
            except InvalidTransitionError as e:
                raise MatchClosed(str(e)) from e

            match.status = MatchStatus.REJECTED.value
            await repo.update(match)
            await repo.release_claims(match.id)
            await db.commit()

        logger.info("Match %s rejected by user %s", match_id, user_id)
        return match

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    async def submit_feedback(self, user_id: str, match_id: str, rating: int, comment: str = "") -> MatchFeedback:
        """Rate the other participant. The second feedback completes the match.

        On completion both participants go back into the pool: a reactive
        match attempt is scheduled for each of them without waiting for it.
        """
        if not isinstance(rating, int) or isinstance(rating, bool) or not MIN_RATING <= rating <= MAX_RATING:
            raise InvalidRating()

        async with self._session_factory() as db:
            repo = MatchRepository(db)
            feedbacks = MatchFeedbackRepository(db)
            match = await self._load_for_participant(repo, user_id, match_id)

            current = MatchStatus(match.status)
            if current != MatchStatus.WAITING_FOR_FEEDBACK:
                raise MatchNotAccepted()
            if await feedbacks.has_feedback(match.id, user_id):
                raise FeedbackAlreadyExists()

            try:
                feedback = await feedbacks.create(
                    MatchFeedback(match_id=match.id, user_id=user_id, rating=rating, comment=comment or "")
                )
            except IntegrityError as e:
                await db.rollback()
                raise FeedbackAlreadyExists() from e

            rated_user_id = match.other_participant_id(user_id)
            await self._update_average_rating(db, rated_user_id)
            await db.commit()

        # Counted after commit so that of two concurrent final feedbacks the
        # later committer always sees both.
        await self._complete_if_ready(match)
        return feedback

    async def _complete_if_ready(self, match: Match) -> bool:
        """Complete a waiting match holding both feedbacks and free its participants.

        Only the writer whose conditional update lands releases the claims
        and schedules the rematches.
        """
        async with self._session_factory() as db:
            count = await MatchFeedbackRepository(db).count_by_match(match.id)
            current = MatchStatus.WAITING_FOR_FEEDBACK
            target = self.state_machine.status_after_feedback(current, count)
            if target != MatchStatus.COMPLETED:
                return False
            self.state_machine.validate_transition(current, target, MatchAction.FEEDBACK)

            repo = MatchRepository(db)
            if not await repo.complete_if_waiting(match.id):
                return False
            await repo.release_claims(match.id)
            await db.commit()

        match.status = MatchStatus.COMPLETED.value
        logger.info("Match %s completed, looking for new matches for both participants", match.id)
        for participant_id in match.participant_ids():
            self._runner.spawn(
                self._pairing.try_generate_match_for_user, participant_id,
                name=f"rematch-{participant_id}",
            )
        return True

    async def _update_average_rating(self, db: AsyncSession, user_id: str) -> Optional[float]:
        users = UserRepository(db)
        user = await users.find_by_id(user_id)
        if user is None:
            logger.warning("Rated user %s no longer exists", user_id)
            return None

        ratings = await MatchFeedbackRepository(db).ratings_received_by(user_id)
        user.average_rating = sum(ratings) / len(ratings) if ratings else None
        await users.update(user)
        return user.average_rating

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_current_match(self, user_id: str) -> Match:
        """The user's latest open match.

        A match that already holds both feedbacks is not "current" even if
        its status has not caught up yet; it is completed on the way out.
        """
        async with self._session_factory() as db:
            match = await MatchRepository(db).find_current_by_user_id(user_id)
            if match is None:
                raise MatchNotFound()
            feedback_count = await MatchFeedbackRepository(db).count_by_match(match.id)

        if feedback_count >= 2:
            await self._complete_if_ready(match)
            raise MatchNotFound()
        return match

    async def get_match_history(self, user_id: str) -> list[Match]:
        async with self._session_factory() as db:
            return await MatchRepository(db).find_by_user_id(user_id)

    async def get_organisation_matches(self, organisation_id: str) -> list[Match]:
        async with self._session_factory() as db:
            return await MatchRepository(db).find_by_organisation(organisation_id)

    async def get_match_availabilities(self, user_id: str, match_id: str) -> list[MatchAvailability]:
        async with self._session_factory() as db:
            repo = MatchRepository(db)
            await self._load_for_participant(repo, user_id, match_id)
            return await repo.find_availabilities_by_match(match_id)

    async def get_match_feedbacks(self, user_id: str, match_id: str) -> list[MatchFeedback]:
        async with self._session_factory() as db:
            await self._load_for_participant(MatchRepository(db), user_id, match_id)
            return await MatchFeedbackRepository(db).find_by_match(match_id)

    async def get_match_feedbacks_as_admin(self, organisation_id: Optional[str], match_id: str) -> list[MatchFeedback]:
        async with self._session_factory() as db:
            match = await MatchRepository(db).find_by_id(match_id)
            if match is None:
                raise MatchNotFound()
            if organisation_id is None or match.organisation_id != organisation_id:
                raise UnauthorizedMatch()
            return await MatchFeedbackRepository(db).find_by_match(match_id)

    async def get_matches_pending_feedback(self, user_id: str) -> list[Match]:
        """Waiting-for-feedback matches this user has not rated yet."""
        async with self._session_factory() as db:
            matches = await MatchRepository(db).find_by_user_id(user_id)
            feedbacks = MatchFeedbackRepository(db)
            pending = []
            for match in matches:
                if match.status != MatchStatus.WAITING_FOR_FEEDBACK.value:
                    continue
                if not await feedbacks.has_feedback(match.id, user_id):
                    pending.append(match)
            return pending
