"""Weekly availability grid routes for the authenticated user."""

from fastapi import APIRouter, Depends, Response, status

from coffee_match.app.deps import get_availability_service, get_current_user_dep
from coffee_match.domain.models import User
from coffee_match.domain.schemas import (
    AvailabilityConfigCreate,
    AvailabilityConfigResponse,
    AvailabilityConfigUpdate,
)
from coffee_match.services.availability_config_service import AvailabilityConfigService

router = APIRouter(prefix="/api/availability-config", tags=["availability"])


@router.get("", response_model=AvailabilityConfigResponse)
async def get_availability_config(
    user: User = Depends(get_current_user_dep),
    service: AvailabilityConfigService = Depends(get_availability_service),
):
    return await service.get_config(user.id)


@router.post("", response_model=AvailabilityConfigResponse, status_code=status.HTTP_201_CREATED)
async def create_availability_config(
    body: AvailabilityConfigCreate,
    user: User = Depends(get_current_user_dep),
    service: AvailabilityConfigService = Depends(get_availability_service),
):
    return await service.create_config(user.id, body.model_dump())


@router.patch("", response_model=AvailabilityConfigResponse)
async def update_availability_config(
    body: AvailabilityConfigUpdate,
    user: User = Depends(get_current_user_dep),
    service: AvailabilityConfigService = Depends(get_availability_service),
):
    return await service.update_config(user.id, body.model_dump(exclude_none=True))


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_availability_config(
    user: User = Depends(get_current_user_dep),
    service: AvailabilityConfigService = Depends(get_availability_service),
):
    await service.delete_config(user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
