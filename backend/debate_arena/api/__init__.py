from fastapi import APIRouter

from debate_arena.api.v1 import identities as identities_router
from debate_arena.api.v1 import events as events_router
from debate_arena.api.v1 import debates as debates_router


api_router = APIRouter()

api_router.include_router(identities_router.router, prefix="/v1/identities", tags=["identities"])
api_router.include_router(events_router.router, prefix="/v1/events", tags=["events"])
api_router.include_router(debates_router.router, prefix="/v1/debates", tags=["debates"])
