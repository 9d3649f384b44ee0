"""Error taxonomy for the match engine.

Every error carries an ``ErrorKind``; the HTTP layer maps kinds to status
codes, so nothing downstream ever inspects a message string.
"""

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INVALID_INPUT = "invalid_input"
    CONFLICT = "conflict"
    PRECONDITION_FAILED = "precondition_failed"


class MatchEngineError(Exception):
    """Base class for errors returned to the immediate caller."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT
    message: str = "match engine error"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# NOT_FOUND
# ---------------------------------------------------------------------------


class MatchNotFound(MatchEngineError):
    kind = ErrorKind.NOT_FOUND
    message = "match not found"


class ConfigNotFound(MatchEngineError):
    kind = ErrorKind.NOT_FOUND
    message = "availability configuration not found"


class UserNotFound(MatchEngineError):
    kind = ErrorKind.NOT_FOUND
    message = "user not found"


class OrganisationNotFound(MatchEngineError):
    kind = ErrorKind.NOT_FOUND
    message = "organisation not found"


# ---------------------------------------------------------------------------
# UNAUTHORIZED
# ---------------------------------------------------------------------------


class UnauthorizedMatch(MatchEngineError):
    kind = ErrorKind.UNAUTHORIZED
    message = "unauthorized to modify this match"


class UnauthorizedUser(MatchEngineError):
    kind = ErrorKind.UNAUTHORIZED
    message = "user does not belong to admin's organisation"


# ---------------------------------------------------------------------------
# INVALID_INPUT
# ---------------------------------------------------------------------------


class InvalidRating(MatchEngineError):
    kind = ErrorKind.INVALID_INPUT
    message = "rating must be between 1 and 5"


class InvalidAvailability(MatchEngineError):
    kind = ErrorKind.INVALID_INPUT
    message = "availability must map weekday names to lists of times"


class NoAvailabilitySet(MatchEngineError):
    kind = ErrorKind.INVALID_INPUT
    message = "at least one availability slot must be selected"


# ---------------------------------------------------------------------------
# CONFLICT
# ---------------------------------------------------------------------------


class FeedbackAlreadyExists(MatchEngineError):
    kind = ErrorKind.CONFLICT
    message = "feedback already submitted for this match"


class NoUsersToMatch(MatchEngineError):
    kind = ErrorKind.CONFLICT
    message = "not enough users to create matches"


class ConfigAlreadyExists(MatchEngineError):
    kind = ErrorKind.CONFLICT
    message = "availability configuration already exists for this user"


# ---------------------------------------------------------------------------
# PRECONDITION_FAILED
# ---------------------------------------------------------------------------


class MatchNotAccepted(MatchEngineError):
    kind = ErrorKind.PRECONDITION_FAILED
    message = "can only provide feedback for accepted matches"


class MatchClosed(MatchEngineError):
    kind = ErrorKind.PRECONDITION_FAILED
    message = "match is no longer open"
