"""Turn and round rules for a running debate.

Every function here is pure: it takes the snapshot a caller just read, checks
the intent against it and returns the ``Transition`` that should be committed
if, and only if, the snapshot is still current. Nothing is written here.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from debate_arena.core.errors import InvalidIntent, PermissionDenied, PreconditionFailed
from debate_arena.models.debate import (
    SCORING_PENDING,
    SCORING_SKIPPED,
    SLOT_A,
    SLOT_B,
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    STATUS_ORDER,
    STATUS_READY,
)
from debate_arena.schemas.debate import DebateState
from debate_arena.services import timer


SKIPPED_TEXT = "[SKIPPED - Time expired]"
SKIPPED_REASONING = "Turn was automatically skipped due to time expiration."
SKIPPED_WEAKNESS = "Failed to respond within time limit"


@dataclass
class NewArgument:
    round: int
    slot: str
    author_identity: str
    author_alias: str
    text: str
    created_at: datetime
    skipped: bool = False
    score: Optional[float] = None
    scoring_status: str = SCORING_PENDING
    reasoning: Optional[str] = None
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)
    fallacies: List[str] = field(default_factory=list)
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass
class NewParticipant:
    slot: str
    identity: str
    display_alias: str
    joined_at: datetime


@dataclass
class JoinRequestChange:
    requester_identity: str
    display_name: str
    status: str
    at: datetime
    create: bool = False


@dataclass
class Transition:
    """Everything one intent changes, committed atomically or not at all."""

    actor: Optional[str]
    patch: Dict[str, Any] = field(default_factory=dict)
    new_argument: Optional[NewArgument] = None
    new_participant: Optional[NewParticipant] = None
    join_request: Optional[JoinRequestChange] = None
    consumed_request: Optional[str] = None
    events: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)


def other_slot(slot: str) -> str:
    return SLOT_B if slot == SLOT_A else SLOT_A


def ensure_forward(state: DebateState, transition: Transition) -> None:
    new_status = transition.patch.get("status")
    if new_status is None:
        return
    if STATUS_ORDER.index(new_status) < STATUS_ORDER.index(state.status):
        raise RuntimeError(
            f"Refusing to move debate {state.id} back from {state.status} to {new_status}"
        )


def count_words(text: str) -> int:
    return len(text.split())


def validate_argument_text(text: str, *, max_words: int, max_chars: int) -> str:
    cleaned = (text or "").strip()
    if not cleaned:
        raise InvalidIntent("Argument text is required")
    words = count_words(cleaned)
    if words > max_words:
        raise InvalidIntent(f"Argument is {words} words long; the limit is {max_words} words")
    if len(cleaned) > max_chars:
        raise InvalidIntent(f"Argument is {len(cleaned)} characters long; the limit is {max_chars}")
    return cleaned


def advance_turn(
    state: DebateState, argued_slot: str, now: datetime
) -> Tuple[Dict[str, Any], List[Tuple[str, Dict[str, Any]]]]:
    """Patch and events that follow ``argued_slot`` having argued in the current round."""
    other = other_slot(argued_slot)
    if state.argument_for(state.round, other) is None:
        # Opponent still owes an argument this round.
        next_participant = state.participant(other)
        patch = {"current_turn": next_participant.identity, **timer.arm(now, state.round_time_limit_seconds)}
        return patch, [("turn_passed", {"round": state.round, "slot": other})]

    next_round = state.round + 1
    if next_round > state.max_rounds:
        patch = {
            "round": next_round,
            "status": STATUS_COMPLETED,
            "current_turn": None,
            "completed_at": now,
            **timer.clear(),
        }
        return patch, [("debate_completed", {"rounds_played": state.max_rounds})]

    patch = {
        "round": next_round,
        "current_turn": state.participant(SLOT_A).identity,
        **timer.arm(now, state.round_time_limit_seconds),
    }
    return patch, [("round_advanced", {"round": next_round})]


def plan_start(state: DebateState, caller: str, now: datetime) -> Transition:
    if caller != state.creator_identity and not state.is_participant(caller):
        raise PermissionDenied("Only the creator or a participant can start the debate")
    if state.status in (STATUS_ACTIVE, STATUS_COMPLETED):
        raise PreconditionFailed("Debate has already started")
    if state.status != STATUS_READY or state.free_slots():
        raise PreconditionFailed("Both slots must be filled before the debate can start")

    first = state.participant(SLOT_A)
    patch = {
        "status": STATUS_ACTIVE,
        "current_turn": first.identity,
        "round": 1,
        **timer.arm(now, state.round_time_limit_seconds),
    }
    return Transition(
        actor=caller,
        patch=patch,
        events=[("debate_started", {"round": 1, "first_turn_slot": SLOT_A})],
    )


def plan_submit(
    state: DebateState,
    identity: str,
    text: str,
    now: datetime,
    *,
    max_words: int,
    max_chars: int,
) -> Transition:
    if state.status != STATUS_ACTIVE:
        raise PreconditionFailed("Debate is not active")
    slot = state.slot_of(identity)
    if slot is None:
        raise PermissionDenied("Only participants can submit arguments")
    if state.current_turn != identity:
        raise PreconditionFailed("It is not your turn")
    if state.argument_for(state.round, slot) is not None:
        raise PreconditionFailed(f"An argument for round {state.round} was already recorded")
    cleaned = validate_argument_text(text, max_words=max_words, max_chars=max_chars)

    argument = NewArgument(
        round=state.round,
        slot=slot,
        author_identity=identity,
        author_alias=state.participant(slot).display_alias,
        text=cleaned,
        created_at=now,
    )
    patch, events = advance_turn(state, slot, now)
    submitted = ("argument_submitted", {"argument_id": str(argument.id), "round": state.round, "slot": slot})
    return Transition(actor=identity, patch=patch, new_argument=argument, events=[submitted, *events])


def plan_timeout(
    state: DebateState,
    now: datetime,
    *,
    expected_round: Optional[int] = None,
    expected_slot: Optional[str] = None,
) -> Optional[Transition]:
    """Skip the current turn once its timer ran out.

    Returns None when the turn the caller wanted to expire is already over
    (the opponent's submission or another timeout won the race).
    """
    if state.status == STATUS_COMPLETED:
        return None
    if state.status != STATUS_ACTIVE:
        raise PreconditionFailed("Debate is not active")

    slot = state.current_slot()
    if expected_round is not None and expected_round != state.round:
        return None
    if expected_slot is not None and expected_slot != slot:
        return None
    if state.argument_for(state.round, slot) is not None:
        return None
    if not timer.is_expired(state, now):
        raise PreconditionFailed("The turn timer has not expired yet")

    participant = state.participant(slot)
    argument = NewArgument(
        round=state.round,
        slot=slot,
        author_identity=participant.identity,
        author_alias=participant.display_alias,
        text=SKIPPED_TEXT,
        created_at=now,
        skipped=True,
        score=0.0,
        scoring_status=SCORING_SKIPPED,
        reasoning=SKIPPED_REASONING,
        weaknesses=[SKIPPED_WEAKNESS],
    )
    patch, events = advance_turn(state, slot, now)
    skipped = ("turn_timed_out", {"argument_id": str(argument.id), "round": state.round, "slot": slot})
    return Transition(actor=None, patch=patch, new_argument=argument, events=[skipped, *events])
