import uuid
from functools import lru_cache
from typing import Any, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from debate_arena.api.v1.identities import get_current_identity, get_db
from debate_arena.core.config import get_settings
from debate_arena.models.identity import Identity
from debate_arena.schemas.debate import (
    CreateDebateRequest,
    DebateState,
    JoinBody,
    JoinRequestBody,
    ResolveJoinRequestBody,
    SubmitArgumentBody,
    TimeoutBody,
)
from debate_arena.services.engine import DebateService
from debate_arena.services.judge import Judge, build_judge
from debate_arena.services.scoring import ScorerAdapter
from debate_arena.services.store import DebateStore
from debate_arena.services.timer import Clock, SystemClock


router = APIRouter()


@lru_cache()
def get_judge() -> Judge:
    return build_judge(get_settings())


def get_clock() -> Clock:
    return SystemClock()


def get_debate_service(
    db: Session = Depends(get_db),
    judge: Judge = Depends(get_judge),
    clock: Clock = Depends(get_clock),
) -> DebateService:
    settings = get_settings()
    scorer = ScorerAdapter(
        judge,
        fallback_score=settings.fallback_score,
        attempts=settings.judge_attempts,
    )
    return DebateService(DebateStore(db), scorer, clock, settings)


def _state_payload(service: DebateService, state: DebateState) -> dict[str, Any]:
    payload = state.model_dump(mode="json")
    # Clients render the countdown from these two values instead of running their own timer.
    payload["round_time_left_seconds"] = service.remaining_seconds(state)
    payload["server_time"] = service.clock.now().isoformat()
    return payload


@router.post("")
def create_debate(
    body: CreateDebateRequest,
    service: DebateService = Depends(get_debate_service),
    identity: Identity = Depends(get_current_identity),
) -> dict[str, Any]:
    state = service.create_debate(
        identity.identity,
        body.topic,
        max_rounds=body.max_rounds,
        round_time_limit_seconds=body.round_time_limit_seconds,
        is_public=body.is_public,
    )
    return _state_payload(service, state)


@router.get("/{debate_id}")
def get_debate(
    debate_id: uuid.UUID,
    service: DebateService = Depends(get_debate_service),
) -> dict[str, Any]:
    return _state_payload(service, service.get_state(debate_id))


@router.get("/{debate_id}/arguments")
def list_arguments(
    debate_id: uuid.UUID,
    service: DebateService = Depends(get_debate_service),
) -> dict[str, Any]:
    arguments = service.list_arguments(debate_id)
    return {"items": [argument.model_dump(mode="json") for argument in arguments]}


@router.post("/{debate_id}/join-requests")
def request_join(
    debate_id: uuid.UUID,
    body: JoinRequestBody,
    service: DebateService = Depends(get_debate_service),
    identity: Identity = Depends(get_current_identity),
) -> dict[str, Any]:
    display_name = body.display_name.strip() or identity.display_name
    state = service.request_join(debate_id, identity.identity, display_name)
    request = state.join_requests[identity.identity]
    return {"debate_id": str(debate_id), "request": request.model_dump(mode="json")}


@router.post("/{debate_id}/join-requests/{requester}/resolve")
def resolve_join_request(
    debate_id: uuid.UUID,
    requester: str,
    body: ResolveJoinRequestBody,
    service: DebateService = Depends(get_debate_service),
    identity: Identity = Depends(get_current_identity),
) -> dict[str, Any]:
    state = service.resolve_join_request(
        debate_id, identity.identity, requester, approve=body.decision == "approve"
    )
    request = state.join_requests.get(requester)
    return {
        "debate_id": str(debate_id),
        "request": request.model_dump(mode="json") if request else None,
    }


@router.post("/{debate_id}/join")
def join(
    debate_id: uuid.UUID,
    body: JoinBody,
    service: DebateService = Depends(get_debate_service),
    identity: Identity = Depends(get_current_identity),
) -> dict[str, Any]:
    state = service.join(debate_id, identity.identity, body.alias, body.position_statement)
    return _state_payload(service, state)


@router.post("/{debate_id}/start")
def start(
    debate_id: uuid.UUID,
    service: DebateService = Depends(get_debate_service),
    identity: Identity = Depends(get_current_identity),
) -> dict[str, Any]:
    return _state_payload(service, service.start(debate_id, identity.identity))


@router.post("/{debate_id}/arguments")
def submit_argument(
    debate_id: uuid.UUID,
    body: SubmitArgumentBody,
    service: DebateService = Depends(get_debate_service),
    identity: Identity = Depends(get_current_identity),
) -> dict[str, Any]:
    result = service.submit_argument(debate_id, identity.identity, body.text)
    return {
        "argument": result.argument.model_dump(mode="json"),
        "state": _state_payload(service, result.state),
    }


@router.post("/{debate_id}/timeout")
def timeout_turn(
    debate_id: uuid.UUID,
    body: Optional[TimeoutBody] = None,
    service: DebateService = Depends(get_debate_service),
) -> dict[str, Any]:
    """Any observer may report an expired turn; expiry is checked against the server clock."""
    body = body or TimeoutBody()
    result = service.timeout_turn(debate_id, expected_round=body.round, expected_slot=body.slot)
    return {
        "status": "applied" if result.applied else "discarded",
        "state": _state_payload(service, result.state),
    }


@router.post("/{debate_id}/analysis")
def analyze(
    debate_id: uuid.UUID,
    service: DebateService = Depends(get_debate_service),
) -> dict[str, Any]:
    analysis = service.analyze_completed_debate(debate_id)
    return {"debate_id": str(debate_id), "analysis": analysis.model_dump(mode="json")}


@router.post("/{debate_id}/rescore")
def rescore(
    debate_id: uuid.UUID,
    service: DebateService = Depends(get_debate_service),
) -> dict[str, Any]:
    """Retry scoring for arguments whose score could not be saved earlier."""
    rescored = service.settle_scores(debate_id)
    return {"debate_id": str(debate_id), "rescored": rescored}
