from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from debate_arena.core.config import get_settings


def _connect_args(database_url: str) -> dict:
    # SQLite connections are handed between FastAPI's threadpool workers.
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


settings = get_settings()

engine = create_engine(
    settings.database_url,
    connect_args=_connect_args(settings.database_url),
    pool_pre_ping=True,
    future=True,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
