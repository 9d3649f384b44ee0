"""Match state machine: validates transitions and derives effective status.

pending ──accept (both)──▶ waiting_for_feedback ──feedback (both)──▶ completed
   │                               │
   └──────────reject───────────────┴──▶ rejected

``expired`` is never written by the engine: a waiting-for-feedback match
whose ``expires_at`` has passed is reported as expired by
``effective_status`` but keeps its stored status.
"""

from datetime import datetime, timezone
from typing import Optional

from coffee_match.domain.enums import MatchAction, MatchStatus


class InvalidTransitionError(Exception):
    """Raised when a match state transition is not allowed."""

    def __init__(
        self,
        current_status: MatchStatus,
        target_status: MatchStatus,
        action: MatchAction,
    ):
        self.current_status = current_status
        self.target_status = target_status
        self.action = action
        super().__init__(
            f"Invalid transition from {current_status.value} to {target_status.value} on {action.value}"
        )


# ---------------------------------------------------------------------------
# Transition map: from_status -> {to_status: set_of_allowed_actions}
# ---------------------------------------------------------------------------

S = MatchStatus
A = MatchAction

TRANSITION_MAP: dict[MatchStatus, dict[MatchStatus, set[MatchAction]]] = {
    S.PENDING: {
        S.PENDING: {A.ACCEPT},  # first participant accepts
        S.WAITING_FOR_FEEDBACK: {A.ACCEPT},
        S.REJECTED: {A.REJECT},
    },
    S.WAITING_FOR_FEEDBACK: {
        S.WAITING_FOR_FEEDBACK: {A.ACCEPT, A.FEEDBACK},  # re-accept, first feedback
        S.COMPLETED: {A.FEEDBACK},
        S.REJECTED: {A.REJECT},
    },
}

TERMINAL_STATES: set[MatchStatus] = {S.REJECTED, S.COMPLETED, S.EXPIRED}

OPEN_STATES: set[MatchStatus] = {S.PENDING, S.WAITING_FOR_FEEDBACK}


class MatchStateMachine:
    """Validates match state transitions."""

    def validate_transition(
        self,
        current_status: MatchStatus,
        target_status: MatchStatus,
        action: MatchAction,
    ) -> bool:
        """Return True if the transition is valid. Raise InvalidTransitionError if not."""
        allowed = TRANSITION_MAP.get(current_status, {}).get(target_status, set())
        if action not in allowed:
            raise InvalidTransitionError(current_status, target_status, action)
        return True

    def can_transition(
        self,
        current_status: MatchStatus,
        target_status: MatchStatus,
        action: MatchAction,
    ) -> bool:
        try:
            return self.validate_transition(current_status, target_status, action)
        except InvalidTransitionError:
            return False

    def status_after_accept(self, current_status: MatchStatus, user1_accepted: bool, user2_accepted: bool) -> MatchStatus:
        if current_status == S.PENDING and user1_accepted and user2_accepted:
            return S.WAITING_FOR_FEEDBACK
        return current_status

    def status_after_feedback(self, current_status: MatchStatus, feedback_count: int) -> MatchStatus:
        if current_status == S.WAITING_FOR_FEEDBACK and feedback_count >= 2:
            return S.COMPLETED
        return current_status

    def effective_status(self, match, now: Optional[datetime] = None) -> MatchStatus:
        """Stored status, except a lapsed waiting-for-feedback match reads as expired."""
        status = MatchStatus(match.status)
        if status != S.WAITING_FOR_FEEDBACK or match.expires_at is None:
            return status
        now = now or datetime.now(timezone.utc)
        if now >= as_utc(match.expires_at):
            return S.EXPIRED
        return status


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; the engine always writes UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
