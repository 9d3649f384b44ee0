"""Weekly match generation.

Runs the bulk pairing engine for every organisation once a week (Monday
09:00 in the configured timezone by default), plus once at startup. The next
firing time is recomputed from the wall clock after every run, so a slow run
never accumulates drift.

One organisation failing or timing out never stops the others.
"""

import asyncio
import logging
from datetime import datetime, time, timedelta, timezone
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coffee_match.domain.errors import NoUsersToMatch
from coffee_match.repositories.organisation_repository import OrganisationRepository
from coffee_match.services.pairing_engine import PairingEngine
from coffee_match.services.task_runner import BackgroundTaskRunner

logger = logging.getLogger(__name__)


def next_run_at(now: datetime, tz: ZoneInfo, weekday: int = 0, hour: int = 9) -> datetime:
    """Next ``weekday`` at ``hour``:00 local time strictly after ``now``.

    ``now`` must be timezone-aware. The result is in ``tz``; building it from
    the local date keeps the wall-clock hour across DST changes.
    """
    local = now.astimezone(tz)
    run_date = local.date() + timedelta(days=(weekday - local.weekday()) % 7)
    candidate = datetime.combine(run_date, time(hour=hour), tzinfo=tz)
    if candidate <= now:
        candidate = datetime.combine(run_date + timedelta(days=7), time(hour=hour), tzinfo=tz)
    return candidate


class MatchScheduler:
    """Drives ``PairingEngine.generate_matches_for_organisation`` on a weekly cadence."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        pairing_engine: PairingEngine,
        task_runner: BackgroundTaskRunner,
        timezone_name: str = "Europe/London",
        weekday: int = 0,
        hour: int = 9,
        org_timeout_seconds: float = 300.0,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._session_factory = session_factory
        self._pairing = pairing_engine
        self._runner = task_runner
        self._tz = ZoneInfo(timezone_name)
        self._weekday = weekday
        self._hour = hour
        self._org_timeout = org_timeout_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._run_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._loop_task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def check_and_generate_matches(self) -> dict[str, Any]:
        """Run bulk pairing for every organisation, one at a time.

        Returns a summary: organisations processed, matches created, and the
        ids of organisations that were skipped, failed or timed out. Runs
        never overlap; a second caller waits for the first to finish.
        """
        async with self._run_lock:
            async with self._session_factory() as db:
                organisations = await OrganisationRepository(db).find_all()
            org_ids = [org.id for org in organisations]

            logger.info("Match scheduler: generating matches for %d organisations", len(org_ids))
            summary: dict[str, Any] = {
                "organisations": len(org_ids),
                "matches_created": 0,
                "skipped": [],
                "failed": [],
                "timed_out": [],
            }

            for org_id in org_ids:
                try:
                    created = await asyncio.wait_for(
                        self._pairing.generate_matches_for_organisation(org_id),
                        timeout=self._org_timeout,
                    )
                    summary["matches_created"] += created
                except NoUsersToMatch:
                    logger.info("Organisation %s: no users to match", org_id)
                    summary["skipped"].append(org_id)
                except asyncio.TimeoutError:
                    logger.error("Organisation %s: match generation timed out after %.0fs", org_id, self._org_timeout)
                    summary["timed_out"].append(org_id)
                except Exception:
                    logger.exception("Organisation %s: match generation failed", org_id)
                    summary["failed"].append(org_id)

            logger.info(
                "Match scheduler: %d matches created (%d skipped, %d failed, %d timed out)",
                summary["matches_created"], len(summary["skipped"]),
                len(summary["failed"]), len(summary["timed_out"]),
            )
            return summary

    async def run_immediately(self) -> dict[str, Any]:
        """One synchronous pass, used at startup."""
        return await self.check_and_generate_matches()

    def run_now(self) -> Optional[asyncio.Task]:
        """Operator trigger: queue a pass on the task runner and return at once."""
        return self._runner.spawn(self.check_and_generate_matches, name="match-scheduler-manual")

    def start(self) -> None:
        if self.running:
            logger.warning("Match scheduler already running")
            return
        self._stop_event.clear()
        self._loop_task = asyncio.create_task(self._loop(), name="match-scheduler")
        logger.info("Match scheduler started")

    async def stop(self) -> None:
        """Signal the loop and wait for it; an in-flight pass finishes first."""
        if self._loop_task is None:
            return
        self._stop_event.set()
        await self._loop_task
        self._loop_task = None
        logger.info("Match scheduler stopped")

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            now = self._clock()
            fire_at = next_run_at(now, self._tz, self._weekday, self._hour)
            delay = (fire_at.astimezone(timezone.utc) - now.astimezone(timezone.utc)).total_seconds()
            logger.info("Next match generation at %s (in %.0fs)", fire_at.isoformat(), delay)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=max(delay, 0))
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.check_and_generate_matches()
            except Exception:
                logger.exception("Scheduled match generation failed")
