"""SQLAlchemy ORM models for Coffee Match.

All models use SQLite-compatible types:
- String(36) for UUID primary keys
- JSON for structured data (no JSONB)
- DateTime for timestamps, written as UTC by the application
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from coffee_match.domain.enums import AccountType, MatchStatus
from coffee_match.infra.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Organisation / User
# ---------------------------------------------------------------------------


class Organisation(Base):
    """Tenant boundary. Matching never crosses organisations."""

    __tablename__ = "organisations"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), unique=True, nullable=False)
    company_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    users = relationship("User", back_populates="organisation")


user_tags = Table(
    "user_tags",
    Base.metadata,
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", String(36), ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Tag(Base):
    """Interest tag, scoped to an organisation."""

    __tablename__ = "tags"

    id = Column(String(36), primary_key=True, default=_uuid)
    organisation_id = Column(String(36), ForeignKey("organisations.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime, default=utcnow)


class User(Base):
    """Organisation member. The match engine reads users but never creates them."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    account_type = Column(String(10), nullable=False, default=AccountType.USER.value)
    organisation_id = Column(String(36), ForeignKey("organisations.id"), nullable=True, index=True)
    is_confirmed = Column(Boolean, default=False, nullable=False)
    average_rating = Column(Float, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    organisation = relationship("Organisation", back_populates="users")
    tags = relationship("Tag", secondary=user_tags, lazy="selectin")
    availability_config = relationship(
        "UserAvailabilityConfig", back_populates="user", uselist=False, lazy="selectin"
    )

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part) or self.email

    @property
    def tag_names(self) -> set[str]:
        return {tag.name for tag in self.tags}


class UserAvailabilityConfig(Base):
    """Weekly recurring availability: 7 days x {morning, afternoon}.

    Used only for match eligibility and overlap. An all-false row counts as
    no configuration at all.
    """

    __tablename__ = "user_availability_configs"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    monday_morning = Column(Boolean, default=False, nullable=False)
    monday_afternoon = Column(Boolean, default=False, nullable=False)
    tuesday_morning = Column(Boolean, default=False, nullable=False)
    tuesday_afternoon = Column(Boolean, default=False, nullable=False)
    wednesday_morning = Column(Boolean, default=False, nullable=False)
    wednesday_afternoon = Column(Boolean, default=False, nullable=False)
    thursday_morning = Column(Boolean, default=False, nullable=False)
    thursday_afternoon = Column(Boolean, default=False, nullable=False)
    friday_morning = Column(Boolean, default=False, nullable=False)
    friday_afternoon = Column(Boolean, default=False, nullable=False)
    saturday_morning = Column(Boolean, default=False, nullable=False)
    saturday_afternoon = Column(Boolean, default=False, nullable=False)
    sunday_morning = Column(Boolean, default=False, nullable=False)
    sunday_afternoon = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="availability_config")


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


class Match(Base):
    """A proposed one-on-one coffee chat between two organisation members."""

    __tablename__ = "matches"

    id = Column(String(36), primary_key=True, default=_uuid)
    organisation_id = Column(String(36), ForeignKey("organisations.id"), nullable=False, index=True)
    user1_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    user2_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    match_score = Column(Float, nullable=False, default=0.0)
    status = Column(String(30), nullable=False, default=MatchStatus.PENDING.value, index=True)
    user1_accepted = Column(Boolean, default=False, nullable=False)
    user2_accepted = Column(Boolean, default=False, nullable=False)
    user1_accepted_at = Column(DateTime, nullable=True)
    user2_accepted_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    scheduled_date = Column(Date, nullable=False)
    scheduled_time = Column(String(10), nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True, index=True)

    # Relationships
    user1 = relationship("User", foreign_keys=[user1_id], lazy="selectin")
    user2 = relationship("User", foreign_keys=[user2_id], lazy="selectin")
    availabilities = relationship(
        "MatchAvailability", back_populates="match", lazy="selectin", order_by="MatchAvailability.created_at"
    )
    feedbacks = relationship(
        "MatchFeedback", back_populates="match", lazy="selectin", order_by="MatchFeedback.created_at"
    )

    def participant_ids(self) -> tuple[str, str]:
        return self.user1_id, self.user2_id

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.user1_id, self.user2_id)

    def other_participant_id(self, user_id: str) -> str:
        return self.user2_id if user_id == self.user1_id else self.user1_id


class MatchHistory(Base):
    """Dedup ledger entry. Append-only; outlives the match it was written for."""

    __tablename__ = "match_history"

    id = Column(String(36), primary_key=True, default=_uuid)
    user1_id = Column(String(36), nullable=False, index=True)
    user2_id = Column(String(36), nullable=False, index=True)
    matched_at = Column(DateTime, nullable=False, default=utcnow)
    created_at = Column(DateTime, default=utcnow)


class ActiveMatchClaim(Base):
    """One row per participant of every non-terminal match.

    The primary key on user_id makes "at most one open match per user" an
    insert-or-fail property of the database.
    """

    __tablename__ = "active_match_claims"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    match_id = Column(String(36), ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    claimed_at = Column(DateTime, default=utcnow)


class MatchAvailability(Base):
    """Free-form availability a participant submits when accepting a match.

    Shape: {"Monday": ["morning", "14:30"], ...}. Notification content only.
    """

    __tablename__ = "match_availabilities"

    id = Column(String(36), primary_key=True, default=_uuid)
    match_id = Column(String(36), ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    availability = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    match = relationship("Match", back_populates="availabilities")

    __table_args__ = (UniqueConstraint("match_id", "user_id", name="uq_match_availability_user"),)


class MatchFeedback(Base):
    """Post-meeting rating one participant gives the other."""

    __tablename__ = "match_feedbacks"

    id = Column(String(36), primary_key=True, default=_uuid)
    match_id = Column(String(36), ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=utcnow)

    match = relationship("Match", back_populates="feedbacks")

    __table_args__ = (
        UniqueConstraint("match_id", "user_id", name="uq_match_feedback_user"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_match_feedback_rating"),
    )
