"""Participant-facing match routes: current match, history, accept, reject, feedback."""

import logging

from fastapi import APIRouter, Depends, Response, status

from coffee_match.app.deps import get_current_user_dep, get_lifecycle
from coffee_match.domain.errors import MatchNotFound
from coffee_match.domain.models import Match, User
from coffee_match.domain.schemas import (
    AcceptMatchRequest,
    FeedbackCreate,
    FeedbackResponse,
    MatchAvailabilityResponse,
    MatchResponse,
)
from coffee_match.services.match_lifecycle import MatchLifecycle
from coffee_match.services.match_state_machine import MatchStateMachine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/matches", tags=["matches"])

_state_machine = MatchStateMachine()


def to_match_response(match: Match) -> MatchResponse:
    """Report a lapsed waiting-for-feedback match as expired."""
    response = MatchResponse.model_validate(match)
    response.status = _state_machine.effective_status(match).value
    return response


@router.get("/current", response_model=MatchResponse, responses={204: {"description": "No current match"}})
async def get_current_match(
    user: User = Depends(get_current_user_dep),
    lifecycle: MatchLifecycle = Depends(get_lifecycle),
):
    try:
        match = await lifecycle.get_current_match(user.id)
    except MatchNotFound:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return to_match_response(match)


@router.get("/history", response_model=list[MatchResponse])
async def get_match_history(
    user: User = Depends(get_current_user_dep),
    lifecycle: MatchLifecycle = Depends(get_lifecycle),
):
    return [to_match_response(m) for m in await lifecycle.get_match_history(user.id)]


@router.get("/pending-feedback", response_model=list[MatchResponse])
async def get_matches_pending_feedback(
    user: User = Depends(get_current_user_dep),
    lifecycle: MatchLifecycle = Depends(get_lifecycle),
):
    return [to_match_response(m) for m in await lifecycle.get_matches_pending_feedback(user.id)]


@router.patch("/{match_id}/accept", response_model=MatchResponse)
async def accept_match(
    match_id: str,
    body: AcceptMatchRequest | None = None,
    user: User = Depends(get_current_user_dep),
    lifecycle: MatchLifecycle = Depends(get_lifecycle),
):
    availability = body.availability if body else None
    match = await lifecycle.accept_match_with_availability(user.id, match_id, availability)
    return to_match_response(match)


@router.patch("/{match_id}/reject", response_model=MatchResponse)
async def reject_match(
    match_id: str,
    user: User = Depends(get_current_user_dep),
    lifecycle: MatchLifecycle = Depends(get_lifecycle),
):
    match = await lifecycle.reject_match(user.id, match_id)
    return to_match_response(match)


@router.get("/{match_id}/availabilities", response_model=list[MatchAvailabilityResponse])
async def get_match_availabilities(
    match_id: str,
    user: User = Depends(get_current_user_dep),
    lifecycle: MatchLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.get_match_availabilities(user.id, match_id)


@router.post("/{match_id}/feedback", response_model=FeedbackResponse, status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    match_id: str,
    body: FeedbackCreate,
    user: User = Depends(get_current_user_dep),
    lifecycle: MatchLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.submit_feedback(user.id, match_id, body.rating, body.comment)


@router.get("/{match_id}/feedbacks", response_model=list[FeedbackResponse])
async def get_match_feedbacks(
    match_id: str,
    user: User = Depends(get_current_user_dep),
    lifecycle: MatchLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.get_match_feedbacks(user.id, match_id)
