from datetime import datetime, timezone
from typing import Any, Optional
import uuid

from sqlalchemy.orm import Session

from debate_arena.models.event import Event


def log_event(
    db: Session,
    *,
    event_type: str,
    payload: dict[str, Any],
    debate_id: Optional[uuid.UUID] = None,
    actor_identity: Optional[str] = None,
    commit: bool = True,
) -> Event:
    """Append an event. Pass ``commit=False`` to ride along in the caller's transaction."""
    now = datetime.now(timezone.utc)
    event = Event(
        type=event_type,
        payload=payload,
        debate_id=debate_id,
        actor_identity=actor_identity,
        created_at=now,
    )
    db.add(event)
    if commit:
        db.commit()
        db.refresh(event)
    return event
