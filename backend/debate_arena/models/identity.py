import uuid
from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from debate_arena.db.base import Base


class Identity(Base):
    """A stable, opaque caller identity.

    Registered identities stand in for both signed-in accounts and durable
    anonymous tokens; debates only ever see ``str(id)``.
    """

    __tablename__ = "identities"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    display_name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    api_key_hash: Mapped[str] = mapped_column(String(length=255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    @property
    def identity(self) -> str:
        return str(self.id)
