"""Admin routes: manual generation, scheduler trigger, organisation overview, user confirmation.

All routes are scoped to the calling admin's organisation.
"""

import logging

from fastapi import APIRouter, Depends, Request, status

from coffee_match.app.deps import get_lifecycle, get_pairing_engine, get_scheduler, require_admin
from coffee_match.app.routes.matches import to_match_response
from coffee_match.domain.errors import UnauthorizedUser
from coffee_match.domain.models import User
from coffee_match.domain.schemas import (
    ConfirmUserRequest,
    ConfirmUserResponse,
    FeedbackResponse,
    GenerateMatchesRequest,
    GenerateMatchesResponse,
    MatchResponse,
    TriggerSchedulerResponse,
)
from coffee_match.services.match_lifecycle import MatchLifecycle
from coffee_match.services.match_scheduler import MatchScheduler
from coffee_match.services.pairing_engine import PairingEngine
from coffee_match.services.user_service import confirm_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _admin_organisation(admin: User, requested: str | None = None) -> str:
    if admin.organisation_id is None:
        raise UnauthorizedUser("admin does not belong to an organisation")
    if requested is not None and requested != admin.organisation_id:
        raise UnauthorizedUser("admins can only act on their own organisation")
    return admin.organisation_id


@router.post("/matches/generate", response_model=GenerateMatchesResponse)
async def generate_matches(
    body: GenerateMatchesRequest | None = None,
    admin: User = Depends(require_admin),
    pairing_engine: PairingEngine = Depends(get_pairing_engine),
):
    """Run bulk pairing for the admin's organisation now. 409 when nobody can be paired."""
    organisation_id = _admin_organisation(admin, body.organisation_id if body else None)
    created = await pairing_engine.generate_matches_for_organisation(organisation_id)
    return GenerateMatchesResponse(organisation_id=organisation_id, matches_created=created)


@router.post(
    "/matches/trigger-scheduler",
    response_model=TriggerSchedulerResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def trigger_scheduler(
    admin: User = Depends(require_admin),
    scheduler: MatchScheduler = Depends(get_scheduler),
):
    """Queue a full scheduler pass across every organisation and return immediately."""
    scheduler.run_now()
    logger.info("Admin %s triggered a scheduler run", admin.id)
    return TriggerSchedulerResponse(status="accepted", message="Match generation started")


@router.get("/matches", response_model=list[MatchResponse])
async def list_organisation_matches(
    admin: User = Depends(require_admin),
    lifecycle: MatchLifecycle = Depends(get_lifecycle),
):
    organisation_id = _admin_organisation(admin)
    return [to_match_response(m) for m in await lifecycle.get_organisation_matches(organisation_id)]


@router.get("/matches/{match_id}/feedbacks", response_model=list[FeedbackResponse])
async def get_match_feedbacks(
    match_id: str,
    admin: User = Depends(require_admin),
    lifecycle: MatchLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.get_match_feedbacks_as_admin(admin.organisation_id, match_id)


@router.post("/confirm-user", response_model=ConfirmUserResponse)
async def confirm_user_route(
    body: ConfirmUserRequest,
    request: Request,
    admin: User = Depends(require_admin),
):
    state = request.app.state
    return await confirm_user(state.session_factory, state.pairing_engine, state.task_runner, admin, body.user_id)
