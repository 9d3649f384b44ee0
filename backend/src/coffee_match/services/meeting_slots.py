"""Suggested meeting date/time assigned when a match is created.

Notification metadata only: it is not checked against either participant's
grid and is never renegotiated.
"""

import random
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional

TIME_SLOTS = ("9 AM", "10 AM", "11 AM", "2 PM", "3 PM", "4 PM", "5 PM")

MIN_DAYS_AHEAD = 1
MAX_DAYS_AHEAD = 5


def pick_meeting_slot(
    now: datetime,
    rng: random.Random | None = None,
    tz: Optional[tzinfo] = None,
) -> tuple[date, str]:
    """Pick a weekday 1-5 days out (pushed past weekends) and a time label.

    Days are counted on the calendar of ``tz`` when given.
    """
    rng = rng or random
    if tz is not None:
        now = now.astimezone(tz)
    days_ahead = rng.randint(MIN_DAYS_AHEAD, MAX_DAYS_AHEAD)
    meeting_date = (now + timedelta(days=days_ahead)).date()

    # Saturday=5, Sunday=6
    while meeting_date.weekday() >= 5:
        days_ahead += 1
        meeting_date = (now + timedelta(days=days_ahead)).date()

    return meeting_date, rng.choice(TIME_SLOTS)
