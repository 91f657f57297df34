from datetime import datetime
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from debate_arena.models.debate import SLOT_A, SLOT_B, STATUS_ACTIVE
from debate_arena.schemas.judging import DebateAnalysis


class ParticipantView(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    slot: Literal["a", "b"]
    identity: str
    display_alias: str
    joined_at: datetime


class JoinRequestView(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    requester_identity: str
    display_name: str
    status: Literal["pending", "approved", "denied"]
    created_at: datetime
    resolved_at: Optional[datetime] = None


class ArgumentView(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    round: int
    slot: Literal["a", "b"]
    author_identity: str
    author_alias: str
    text: str
    skipped: bool
    score: Optional[float] = None
    scoring_status: str
    reasoning: Optional[str] = None
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    fallacies: List[str] = Field(default_factory=list)
    created_at: datetime
    scored_at: Optional[datetime] = None


class DebateState(BaseModel):
    """Immutable snapshot of one debate as read from the store.

    Every transition is planned against one of these and committed only if
    ``version`` is still current.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    topic: str
    creator_identity: str
    is_public: bool
    position_a: Optional[str] = None
    position_b: Optional[str] = None
    status: str
    current_turn: Optional[str] = None
    round: int
    max_rounds: int
    round_time_limit_seconds: int
    round_started_at: Optional[datetime] = None
    round_time_remaining_seconds: Optional[int] = None
    analysis: Optional[DebateAnalysis] = None
    version: int
    created_at: datetime
    completed_at: Optional[datetime] = None
    participants: Dict[str, ParticipantView] = Field(default_factory=dict)
    join_requests: Dict[str, JoinRequestView] = Field(default_factory=dict)
    arguments: List[ArgumentView] = Field(default_factory=list)

    def participant(self, slot: str) -> Optional[ParticipantView]:
        return self.participants.get(slot)

    def slot_of(self, identity: str) -> Optional[str]:
        for slot, participant in self.participants.items():
            if participant.identity == identity:
                return slot
        return None

    def is_participant(self, identity: str) -> bool:
        return self.slot_of(identity) is not None

    def free_slots(self) -> List[str]:
        return [slot for slot in (SLOT_A, SLOT_B) if slot not in self.participants]

    def position_statement(self, slot: str) -> Optional[str]:
        return self.position_a if slot == SLOT_A else self.position_b

    def argument_for(self, round_number: int, slot: str) -> Optional[ArgumentView]:
        for argument in self.arguments:
            if argument.round == round_number and argument.slot == slot:
                return argument
        return None

    def current_slot(self) -> Optional[str]:
        if self.status != STATUS_ACTIVE or self.current_turn is None:
            return None
        return self.slot_of(self.current_turn)


class CreateDebateRequest(BaseModel):
    topic: str
    max_rounds: Optional[int] = None
    round_time_limit_seconds: Optional[int] = None
    is_public: bool = True


class JoinRequestBody(BaseModel):
    display_name: str = ""


class ResolveJoinRequestBody(BaseModel):
    decision: Literal["approve", "deny"]


class JoinBody(BaseModel):
    alias: str = ""
    position_statement: str = ""


class SubmitArgumentBody(BaseModel):
    text: str


class TimeoutBody(BaseModel):
    round: Optional[int] = None
    slot: Optional[Literal["a", "b"]] = None
