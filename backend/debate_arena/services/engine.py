import logging
import uuid
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from debate_arena.core.config import Settings
from debate_arena.core.errors import (
    ConcurrencyConflict,
    DebateError,
    InvalidIntent,
    PreconditionFailed,
    StoreUnavailable,
)
from debate_arena.models.debate import SCORING_PENDING, STATUS_COMPLETED
from debate_arena.schemas.debate import ArgumentView, DebateState
from debate_arena.schemas.judging import DebateAnalysis, PriorArgument
from debate_arena.services import access, state_machine, timer
from debate_arena.services.scoring import ScorerAdapter
from debate_arena.services.state_machine import Transition
from debate_arena.services.store import DebateStore
from debate_arena.services.timer import Clock

logger = logging.getLogger(__name__)

Planner = Callable[[DebateState], Optional[Transition]]

MIN_TOPIC_CHARS = 3
MAX_TOPIC_CHARS = 200
MAX_ROUNDS_LIMIT = 10
MIN_ROUND_SECONDS = 10
MAX_ROUND_SECONDS = 3600


@dataclass(frozen=True)
class SubmissionResult:
    state: DebateState
    argument: ArgumentView


@dataclass(frozen=True)
class TimeoutResult:
    applied: bool
    state: DebateState


class DebateService:
    """Runs debate intents against the store.

    Each intent is read, planned and committed with compare-and-swap on the
    debate's version; on a conflict the whole cycle repeats against a fresh
    snapshot so the planner can decide whether the intent still applies.
    """

    def __init__(self, store: DebateStore, scorer: ScorerAdapter, clock: Clock, settings: Settings) -> None:
        self.store = store
        self.scorer = scorer
        self.clock = clock
        self.settings = settings

    def _transact(self, debate_id: uuid.UUID, plan: Planner) -> Tuple[DebateState, Optional[Transition]]:
        attempts = self.settings.transition_max_attempts
        last_conflict: Optional[ConcurrencyConflict] = None
        for attempt in range(1, attempts + 1):
            state = self.store.get(debate_id)
            try:
                transition = plan(state)
            except DebateError:
                self.store.release()
                raise
            if transition is None:
                self.store.release()
                return state, None
            state_machine.ensure_forward(state, transition)
            try:
                return self.store.apply(debate_id, state.version, transition), transition
            except ConcurrencyConflict as exc:
                last_conflict = exc
                logger.info(
                    "Debate %s changed under a transition (attempt %s/%s)", debate_id, attempt, attempts
                )
        raise ConcurrencyConflict(
            f"Debate is busy, gave up after {attempts} attempts; please retry"
        ) from last_conflict

    # Reads

    def get_state(self, debate_id: uuid.UUID) -> DebateState:
        state = self.store.get(debate_id)
        self.store.release()
        return state

    def list_arguments(self, debate_id: uuid.UUID) -> List[ArgumentView]:
        return self.get_state(debate_id).arguments

    def remaining_seconds(self, state: DebateState) -> Optional[int]:
        return timer.remaining_seconds(state, self.clock.now())

    # Setup and access

    def create_debate(
        self,
        creator: str,
        topic: str,
        *,
        max_rounds: Optional[int] = None,
        round_time_limit_seconds: Optional[int] = None,
        is_public: bool = True,
    ) -> DebateState:
        topic = (topic or "").strip()
        if len(topic) < MIN_TOPIC_CHARS or len(topic) > MAX_TOPIC_CHARS:
            raise InvalidIntent(
                f"topic must be between {MIN_TOPIC_CHARS} and {MAX_TOPIC_CHARS} characters"
            )
        rounds = max_rounds if max_rounds is not None else self.settings.default_max_rounds
        if not 1 <= rounds <= MAX_ROUNDS_LIMIT:
            raise InvalidIntent(f"max_rounds must be between 1 and {MAX_ROUNDS_LIMIT}")
        limit = (
            round_time_limit_seconds
            if round_time_limit_seconds is not None
            else self.settings.default_round_time_limit_seconds
        )
        if not MIN_ROUND_SECONDS <= limit <= MAX_ROUND_SECONDS:
            raise InvalidIntent(
                f"round_time_limit_seconds must be between {MIN_ROUND_SECONDS} and {MAX_ROUND_SECONDS}"
            )

        state = self.store.create(
            topic=topic,
            creator_identity=creator,
            max_rounds=rounds,
            round_time_limit_seconds=limit,
            is_public=is_public,
            now=self.clock.now(),
        )
        logger.info("Debate %s created by %s", state.id, creator)
        return state

    def request_join(self, debate_id: uuid.UUID, identity: str, display_name: str) -> DebateState:
        state, _ = self._transact(
            debate_id,
            lambda s: access.plan_request_join(s, identity, display_name, self.clock.now()),
        )
        return state

    def resolve_join_request(
        self, debate_id: uuid.UUID, caller: str, requester: str, approve: bool
    ) -> DebateState:
        state, _ = self._transact(
            debate_id,
            lambda s: access.plan_resolve_join_request(s, caller, requester, approve, self.clock.now()),
        )
        return state

    def join(
        self,
        debate_id: uuid.UUID,
        identity: str,
        alias: str = "",
        position_statement: str = "",
    ) -> DebateState:
        state, transition = self._transact(
            debate_id,
            lambda s: access.plan_join(s, identity, alias, position_statement, self.clock.now()),
        )
        logger.info(
            "Identity %s joined debate %s as slot %s",
            identity,
            debate_id,
            transition.new_participant.slot,
        )
        return state

    # Turns

    def start(self, debate_id: uuid.UUID, caller: str) -> DebateState:
        state, _ = self._transact(
            debate_id, lambda s: state_machine.plan_start(s, caller, self.clock.now())
        )
        logger.info("Debate %s started", debate_id)
        return state

    def submit_argument(self, debate_id: uuid.UUID, identity: str, text: str) -> SubmissionResult:
        state, transition = self._transact(
            debate_id,
            lambda s: state_machine.plan_submit(
                s,
                identity,
                text,
                self.clock.now(),
                max_words=self.settings.max_argument_words,
                max_chars=self.settings.max_argument_chars,
            ),
        )
        state = self._finish_if_completed(debate_id)
        argument = next(a for a in state.arguments if a.id == transition.new_argument.id)
        return SubmissionResult(state=state, argument=argument)

    def timeout_turn(
        self,
        debate_id: uuid.UUID,
        expected_round: Optional[int] = None,
        expected_slot: Optional[str] = None,
    ) -> TimeoutResult:
        expectation: dict = {}

        def plan(state: DebateState) -> Optional[Transition]:
            # Pin the turn seen on the first read so a retry after losing a race
            # discards itself instead of expiring the opponent's fresh turn.
            if not expectation:
                expectation["round"] = expected_round if expected_round is not None else state.round
                expectation["slot"] = expected_slot if expected_slot is not None else state.current_slot()
            return state_machine.plan_timeout(
                state,
                self.clock.now(),
                expected_round=expectation["round"],
                expected_slot=expectation["slot"],
            )

        state, transition = self._transact(debate_id, plan)
        if transition is None:
            logger.info("Timeout for debate %s discarded; the turn had already ended", debate_id)
            return TimeoutResult(applied=False, state=state)
        logger.info(
            "Turn for slot %s in round %s of debate %s timed out",
            transition.new_argument.slot,
            transition.new_argument.round,
            debate_id,
        )
        return TimeoutResult(applied=True, state=self._finish_if_completed(debate_id))

    # Scoring and outcome

    def settle_scores(self, debate_id: uuid.UUID) -> int:
        """Score every argument still pending. Safe to repeat; returns how many were settled."""
        state = self.store.get(debate_id)
        self.store.release()
        pending = [a for a in state.arguments if a.scoring_status == SCORING_PENDING]
        return sum(1 for argument in pending if self._score(state, argument))

    def _score(self, state: DebateState, argument: ArgumentView) -> bool:
        index = next(i for i, a in enumerate(state.arguments) if a.id == argument.id)
        prior = [
            PriorArgument(text=a.text, slot=a.slot)
            for a in state.arguments[:index]
            if not a.skipped
        ]
        scored = self.scorer.score(argument.text, argument.slot, state.topic, prior)
        try:
            saved = self.store.attach_score(state.id, argument.id, scored, self.clock.now())
        except StoreUnavailable:
            logger.warning("Score for argument %s was not saved; it stays pending", argument.id)
            return False
        if not saved:
            logger.info("Argument %s was already scored", argument.id)
        return saved

    def _finish_if_completed(self, debate_id: uuid.UUID) -> DebateState:
        # The transition is already committed; scoring and analysis only
        # decorate it, so their failures are logged and retried later.
        self.settle_scores(debate_id)
        state = self.store.get(debate_id)
        if state.status == STATUS_COMPLETED and state.analysis is None:
            self.store.release()
            try:
                self.analyze_completed_debate(debate_id)
            except StoreUnavailable:
                logger.warning("Analysis for debate %s was not saved; it stays pending", debate_id)
            state = self.store.get(debate_id)
        self.store.release()
        return state

    def analyze_completed_debate(self, debate_id: uuid.UUID) -> DebateAnalysis:
        state = self.store.get(debate_id)
        if state.status != STATUS_COMPLETED:
            self.store.release()
            raise PreconditionFailed("Debate is not completed yet")
        if state.analysis is not None:
            self.store.release()
            return state.analysis

        if any(a.scoring_status == SCORING_PENDING for a in state.arguments):
            self.settle_scores(debate_id)
            state = self.store.get(debate_id)
        self.store.release()
        analysis = self.scorer.analyze(
            state.topic,
            state.position_a or "",
            state.position_b or "",
            state.arguments,
        )
        if self.store.save_analysis(debate_id, analysis):
            logger.info("Debate %s analyzed: winner=%s (%s)", debate_id, analysis.winner, analysis.source)
        else:
            logger.info("Debate %s was analyzed concurrently; keeping the stored analysis", debate_id)
        return self.store.get(debate_id).analysis
