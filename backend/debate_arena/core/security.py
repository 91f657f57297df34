import secrets
import uuid
from typing import Optional, Tuple

from passlib.context import CryptContext


pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_api_key(api_key: str) -> str:
    return pwd_context.hash(api_key)


def verify_api_key(plain_api_key: str, hashed_api_key: str) -> bool:
    return pwd_context.verify(plain_api_key, hashed_api_key)


def generate_api_key(identity_id: uuid.UUID) -> str:
    # The identity prefix lets us fetch a single row instead of verifying every hash.
    return f"{identity_id.hex}.{secrets.token_urlsafe(32)}"


def split_api_key(api_key: str) -> Optional[Tuple[uuid.UUID, str]]:
    prefix, sep, secret = api_key.partition(".")
    if not sep or not secret:
        return None
    try:
        return uuid.UUID(hex=prefix), secret
    except ValueError:
        return None
