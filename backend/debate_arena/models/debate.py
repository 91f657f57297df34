import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from debate_arena.db.base import Base


STATUS_SETUP = "setup"
STATUS_WAITING = "waiting_for_players"
STATUS_READY = "ready_to_start"
STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"

# Debates only ever move forward through this sequence.
STATUS_ORDER = (STATUS_SETUP, STATUS_WAITING, STATUS_READY, STATUS_ACTIVE, STATUS_COMPLETED)

SLOT_A = "a"
SLOT_B = "b"
SLOTS = (SLOT_A, SLOT_B)

REQUEST_PENDING = "pending"
REQUEST_APPROVED = "approved"
REQUEST_DENIED = "denied"

SCORING_PENDING = "pending"
SCORING_SCORED = "scored"
SCORING_FALLBACK = "fallback"
SCORING_SKIPPED = "skipped"


class Debate(Base):
    __tablename__ = "debates"
    __table_args__ = (Index("ix_debates_status", "status"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    topic: Mapped[str] = mapped_column(Text, nullable=False)
    creator_identity: Mapped[str] = mapped_column(String(length=255), nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    position_a: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    position_b: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(length=32), nullable=False)
    current_turn: Mapped[Optional[str]] = mapped_column(String(length=255), nullable=True)
    round: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_rounds: Mapped[int] = mapped_column(Integer, nullable=False)
    round_time_limit_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    round_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    round_time_remaining_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    analysis: Mapped[Optional[dict]] = mapped_column(JSON(none_as_null=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    participants: Mapped[list["Participant"]] = relationship("Participant", back_populates="debate")
    join_requests: Mapped[list["JoinRequest"]] = relationship("JoinRequest", back_populates="debate")
    arguments: Mapped[list["Argument"]] = relationship("Argument", back_populates="debate")


class Participant(Base):
    __tablename__ = "debate_participants"
    __table_args__ = (
        UniqueConstraint("debate_id", "slot", name="uq_participants_debate_slot"),
        UniqueConstraint("debate_id", "identity", name="uq_participants_debate_identity"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    debate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("debates.id"),
        nullable=False,
    )
    slot: Mapped[str] = mapped_column(String(length=1), nullable=False)
    identity: Mapped[str] = mapped_column(String(length=255), nullable=False)
    display_alias: Mapped[str] = mapped_column(String(length=255), nullable=False)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    debate: Mapped["Debate"] = relationship("Debate", back_populates="participants")


class JoinRequest(Base):
    __tablename__ = "join_requests"
    __table_args__ = (
        UniqueConstraint("debate_id", "requester_identity", name="uq_join_requests_debate_requester"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    debate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("debates.id"),
        nullable=False,
    )
    requester_identity: Mapped[str] = mapped_column(String(length=255), nullable=False)
    display_name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    status: Mapped[str] = mapped_column(String(length=16), nullable=False)  # pending | approved | denied
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    debate: Mapped["Debate"] = relationship("Debate", back_populates="join_requests")


class Argument(Base):
    __tablename__ = "debate_arguments"
    __table_args__ = (
        # At most one argument per slot per round.
        UniqueConstraint("debate_id", "round", "slot", name="uq_arguments_debate_round_slot"),
        Index("ix_arguments_debate_id", "debate_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    debate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("debates.id"),
        nullable=False,
    )
    round: Mapped[int] = mapped_column(Integer, nullable=False)
    slot: Mapped[str] = mapped_column(String(length=1), nullable=False)
    author_identity: Mapped[str] = mapped_column(String(length=255), nullable=False)
    author_alias: Mapped[str] = mapped_column(String(length=255), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    skipped: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    scoring_status: Mapped[str] = mapped_column(String(length=16), nullable=False)
    reasoning: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    strengths: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    weaknesses: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    fallacies: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    scored_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    debate: Mapped["Debate"] = relationship("Debate", back_populates="arguments")
