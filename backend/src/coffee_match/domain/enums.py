"""Domain enumerations for Coffee Match.

All enums use the (str, Enum) pattern to ensure JSON serialization compatibility.
"""

from enum import Enum


class AccountType(str, Enum):
    """Account role. Admins manage an organisation and are never matched."""

    USER = "User"
    ADMIN = "Admin"


class MatchStatus(str, Enum):
    """Lifecycle status of a coffee chat match.

    "Accepted by one" is not a status of its own: it is carried by the
    per-participant accepted flags while the match stays pending.
    """

    PENDING = "pending"
    WAITING_FOR_FEEDBACK = "waiting_for_feedback"
    REJECTED = "rejected"
    COMPLETED = "completed"
    EXPIRED = "expired"


class MatchAction(str, Enum):
    """Things a participant (or the system) can do to a match."""

    ACCEPT = "accept"
    REJECT = "reject"
    FEEDBACK = "feedback"


class Weekday(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class DayPeriod(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"

    @property
    def label(self) -> str:
        return self.value.capitalize()
