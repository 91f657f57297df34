import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from debate_arena.db.base import Base


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (Index("ix_events_debate_id", "debate_id"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    debate_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("debates.id"),
        nullable=True,
    )
    type: Mapped[str] = mapped_column(String(length=64), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    actor_identity: Mapped[Optional[str]] = mapped_column(String(length=255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
