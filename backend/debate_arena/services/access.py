"""Who may occupy a debate slot.

The creator may always join. Anyone else files a join request, waits for the
creator to approve it, and only then calls ``join``. Requests disappear once
the requester is seated.
"""

from datetime import datetime
from typing import Optional

from debate_arena.core.errors import (
    InvalidIntent,
    JoinRequestNotFound,
    PermissionDenied,
    PreconditionFailed,
)
from debate_arena.models.debate import (
    REQUEST_APPROVED,
    REQUEST_DENIED,
    REQUEST_PENDING,
    STATUS_READY,
    STATUS_WAITING,
)
from debate_arena.schemas.debate import DebateState
from debate_arena.services.state_machine import JoinRequestChange, NewParticipant, Transition


MAX_STATEMENT_CHARS = 100
MAX_NAME_CHARS = 255


def plan_request_join(
    state: DebateState, identity: str, display_name: str, now: datetime
) -> Transition:
    name = (display_name or "").strip()
    if not name:
        raise InvalidIntent("display_name is required")
    if len(name) > MAX_NAME_CHARS:
        raise InvalidIntent(f"display_name must be at most {MAX_NAME_CHARS} characters")
    if state.is_participant(identity):
        raise PreconditionFailed("You are already a participant in this debate")
    if identity == state.creator_identity:
        raise PreconditionFailed("The creator can join without a request")
    if not state.free_slots():
        raise PreconditionFailed("Both slots are already filled")
    if identity in state.join_requests:
        raise PreconditionFailed("A join request for this identity already exists")

    change = JoinRequestChange(
        requester_identity=identity,
        display_name=name,
        status=REQUEST_PENDING,
        at=now,
        create=True,
    )
    return Transition(
        actor=identity,
        join_request=change,
        events=[("join_requested", {"requester_identity": identity, "display_name": name})],
    )


def plan_resolve_join_request(
    state: DebateState, caller: str, requester: str, approve: bool, now: datetime
) -> Optional[Transition]:
    """Approve or deny a request. Repeating the current decision is a no-op (None)."""
    if caller != state.creator_identity:
        raise PermissionDenied("Only the debate creator can resolve join requests")
    request = state.join_requests.get(requester)
    if request is None:
        raise JoinRequestNotFound("Join request not found")

    target = REQUEST_APPROVED if approve else REQUEST_DENIED
    if request.status == target:
        return None
    if request.status != REQUEST_PENDING:
        raise PreconditionFailed(f"Join request was already {request.status}")

    change = JoinRequestChange(
        requester_identity=requester,
        display_name=request.display_name,
        status=target,
        at=now,
    )
    return Transition(
        actor=caller,
        join_request=change,
        events=[("join_request_resolved", {"requester_identity": requester, "status": target})],
    )


def ensure_may_join(state: DebateState, identity: str) -> None:
    if identity == state.creator_identity:
        return
    request = state.join_requests.get(identity)
    if request is None:
        raise PermissionDenied("Request to join first and wait for the creator's approval")
    if request.status == REQUEST_PENDING:
        raise PermissionDenied("Your join request is still pending")
    if request.status == REQUEST_DENIED:
        raise PermissionDenied("Your join request was denied")


def plan_join(
    state: DebateState,
    identity: str,
    alias: str,
    position_statement: str,
    now: datetime,
) -> Transition:
    if state.is_participant(identity):
        raise PreconditionFailed("You have already joined this debate")
    free = state.free_slots()
    if not free:
        raise PreconditionFailed("Both slots are already filled")
    ensure_may_join(state, identity)

    # First empty slot wins: the first occupant is always position A.
    slot = free[0]
    patch = {}
    statement = (position_statement or "").strip()
    if not state.position_statement(slot):
        if not statement:
            raise InvalidIntent(f"A position statement is required to take slot {slot.upper()}")
        if len(statement) > MAX_STATEMENT_CHARS:
            raise InvalidIntent(f"Position statement must be at most {MAX_STATEMENT_CHARS} characters")
        patch[f"position_{slot}"] = statement

    display_alias = (alias or "").strip() or f"User {len(state.participants) + 1}"
    if len(display_alias) > MAX_NAME_CHARS:
        raise InvalidIntent(f"Alias must be at most {MAX_NAME_CHARS} characters")
    seated = len(state.participants) + 1
    patch["status"] = STATUS_READY if seated == 2 else STATUS_WAITING

    consumed = identity if identity in state.join_requests else None
    return Transition(
        actor=identity,
        patch=patch,
        new_participant=NewParticipant(
            slot=slot,
            identity=identity,
            display_alias=display_alias,
            joined_at=now,
        ),
        consumed_request=consumed,
        events=[("participant_joined", {"slot": slot, "display_alias": display_alias})],
    )
