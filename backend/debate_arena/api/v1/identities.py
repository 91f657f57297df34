from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from debate_arena.core.security import generate_api_key, hash_api_key, split_api_key, verify_api_key
from debate_arena.db.session import SessionLocal
from debate_arena.models.identity import Identity
from debate_arena.schemas.identity import IdentityRegisterRequest, IdentityResponse


router = APIRouter()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_identity(
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    db: Session = Depends(get_db),
) -> Identity:
    if not x_api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")

    parts = split_api_key(x_api_key)
    if parts is not None:
        identity_id, _secret = parts
        identity = db.get(Identity, identity_id)
        if identity and verify_api_key(x_api_key, identity.api_key_hash):
            return identity

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


@router.post("/register", response_model=IdentityResponse)
def register_identity(payload: IdentityRegisterRequest, db: Session = Depends(get_db)) -> IdentityResponse:
    display_name = payload.display_name.strip()
    if not display_name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="display_name is required")

    now = datetime.now(timezone.utc)
    identity = Identity(display_name=display_name, api_key_hash="", created_at=now)
    db.add(identity)
    db.flush()

    api_key = generate_api_key(identity.id)
    identity.api_key_hash = hash_api_key(api_key)
    db.commit()
    db.refresh(identity)

    return IdentityResponse(
        identity_id=identity.id,
        display_name=identity.display_name,
        api_key=api_key,
        created_at=identity.created_at,
    )
