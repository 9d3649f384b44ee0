"""Pydantic v2 schemas for API request/response validation."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class MatchUserResponse(BaseModel):
    """The slice of a user shown to their match partner."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    first_name: str | None = None
    last_name: str | None = None
    email: str
    average_rating: float | None = None


class ConfirmUserRequest(BaseModel):
    user_id: str


class ConfirmUserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    is_confirmed: bool


# ---------------------------------------------------------------------------
# Match
# ---------------------------------------------------------------------------


class MatchResponse(BaseModel):
    """Schema for match API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    organisation_id: str
    user1_id: str
    user2_id: str
    user1: MatchUserResponse | None = None
    user2: MatchUserResponse | None = None
    match_score: float
    status: str
    user1_accepted: bool = False
    user2_accepted: bool = False
    user1_accepted_at: datetime | None = None
    user2_accepted_at: datetime | None = None
    expires_at: datetime | None = None
    scheduled_date: date
    scheduled_time: str
    created_at: datetime | None = None


class AcceptMatchRequest(BaseModel):
    """Per-match availability, e.g. {"Monday": ["morning", "14:30"]}. Shape checked by the service."""

    availability: dict[str, Any] | None = None


class MatchAvailabilityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    match_id: str
    user_id: str
    availability: dict[str, Any]
    created_at: datetime | None = None


class FeedbackCreate(BaseModel):
    """Rating range is enforced by the service so it maps to InvalidRating."""

    rating: int
    comment: str = ""


class FeedbackResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    match_id: str
    user_id: str
    rating: int
    comment: str
    created_at: datetime | None = None


class GenerateMatchesRequest(BaseModel):
    """Defaults to the calling admin's organisation."""

    organisation_id: str | None = None


class GenerateMatchesResponse(BaseModel):
    organisation_id: str
    matches_created: int


class TriggerSchedulerResponse(BaseModel):
    status: str
    message: str


# ---------------------------------------------------------------------------
# Availability config
# ---------------------------------------------------------------------------


class AvailabilityConfigCreate(BaseModel):
    """Weekly grid. Unlisted slots are unavailable; at least one must be True."""

    monday_morning: bool = False
    monday_afternoon: bool = False
    tuesday_morning: bool = False
    tuesday_afternoon: bool = False
    wednesday_morning: bool = False
    wednesday_afternoon: bool = False
    thursday_morning: bool = False
    thursday_afternoon: bool = False
    friday_morning: bool = False
    friday_afternoon: bool = False
    saturday_morning: bool = False
    saturday_afternoon: bool = False
    sunday_morning: bool = False
    sunday_afternoon: bool = False


class AvailabilityConfigUpdate(BaseModel):
    """Partial update; omitted slots keep their stored value."""

    monday_morning: bool | None = None
    monday_afternoon: bool | None = None
    tuesday_morning: bool | None = None
    tuesday_afternoon: bool | None = None
    wednesday_morning: bool | None = None
    wednesday_afternoon: bool | None = None
    thursday_morning: bool | None = None
    thursday_afternoon: bool | None = None
    friday_morning: bool | None = None
    friday_afternoon: bool | None = None
    saturday_morning: bool | None = None
    saturday_afternoon: bool | None = None
    sunday_morning: bool | None = None
    sunday_afternoon: bool | None = None


class AvailabilityConfigResponse(AvailabilityConfigCreate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
