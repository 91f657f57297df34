import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from debate_arena.core.config import get_settings
from debate_arena.core.errors import DebateError
from debate_arena.api import api_router


settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Debate Arena API", version="0.1.0")

if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(DebateError)
async def debate_error_handler(request: Request, exc: DebateError) -> JSONResponse:
    """Rejected intents never change state; tell the caller why and whether to retry."""
    if exc.retryable:
        logger.info("Retryable failure on %s %s: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "retryable": exc.retryable},
    )


@app.get("/")
def root() -> dict:
    """Discovery: clients can start here to find the API and health."""
    return {
        "name": "Debate Arena",
        "status": "online",
        "identities": "/v1/identities/register",
        "debates": "/v1/debates",
        "events": "/v1/events",
        "health": "/health",
        "rules": [
            "Two slots per debate; the first to join takes Position A.",
            "Non-creators must be approved by the creator before joining.",
            "Position A opens every round; one argument per slot per round.",
            "An expired turn is recorded as a skipped argument scoring 0.",
            "The debate completes after max_rounds; the winner is decided once.",
        ],
    }


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


app.include_router(api_router)
