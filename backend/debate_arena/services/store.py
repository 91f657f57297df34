"""Persistence for debates.

The ``debates`` row is the single serialization point: every transition bumps
``version`` with ``UPDATE ... WHERE version = :expected`` in the same database
transaction as its child rows. A stale snapshot, or a duplicate argument
caught by the unique constraint, rolls the whole transition back.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from debate_arena.core.errors import ConcurrencyConflict, DebateNotFound, StoreUnavailable
from debate_arena.models.debate import (
    STATUS_COMPLETED,
    STATUS_SETUP,
    Argument,
    Debate,
    JoinRequest,
    Participant,
)
from debate_arena.schemas.debate import (
    ArgumentView,
    DebateState,
    JoinRequestView,
    ParticipantView,
)
from debate_arena.schemas.judging import DebateAnalysis
from debate_arena.services.events import log_event
from debate_arena.services.scoring import ScoredArgument
from debate_arena.services.state_machine import Transition
from debate_arena.services.subscriptions import Subscription, SubscriptionHub, hub as default_hub

logger = logging.getLogger(__name__)

ARGUMENTS = "arguments"


class DebateStore:
    def __init__(self, db: Session, hub: Optional[SubscriptionHub] = None) -> None:
        self.db = db
        self.hub = hub or default_hub

    # Reads

    def get(self, debate_id: uuid.UUID) -> DebateState:
        debate = self.db.execute(
            select(Debate).where(Debate.id == debate_id).execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if debate is None:
            raise DebateNotFound("Debate not found")

        participants = self.db.execute(
            select(Participant)
            .where(Participant.debate_id == debate_id)
            .execution_options(populate_existing=True)
        ).scalars().all()
        requests = self.db.execute(
            select(JoinRequest)
            .where(JoinRequest.debate_id == debate_id)
            .order_by(JoinRequest.created_at.asc())
            .execution_options(populate_existing=True)
        ).scalars().all()

        return DebateState(
            id=debate.id,
            topic=debate.topic,
            creator_identity=debate.creator_identity,
            is_public=debate.is_public,
            position_a=debate.position_a,
            position_b=debate.position_b,
            status=debate.status,
            current_turn=debate.current_turn,
            round=debate.round,
            max_rounds=debate.max_rounds,
            round_time_limit_seconds=debate.round_time_limit_seconds,
            round_started_at=debate.round_started_at,
            round_time_remaining_seconds=debate.round_time_remaining_seconds,
            analysis=DebateAnalysis.model_validate(debate.analysis) if debate.analysis else None,
            version=debate.version,
            created_at=debate.created_at,
            completed_at=debate.completed_at,
            participants={p.slot: ParticipantView.model_validate(p) for p in participants},
            join_requests={r.requester_identity: JoinRequestView.model_validate(r) for r in requests},
            arguments=self.list_arguments(debate_id),
        )

    def list_arguments(self, debate_id: uuid.UUID) -> List[ArgumentView]:
        rows = self.db.execute(
            select(Argument)
            .where(Argument.debate_id == debate_id)
            .order_by(Argument.created_at.asc(), Argument.round.asc(), Argument.slot.asc())
            .execution_options(populate_existing=True)
        ).scalars().all()
        return [ArgumentView.model_validate(row) for row in rows]

    def release(self) -> None:
        """End the session's implicit read transaction before slow, non-database work."""
        self.db.rollback()

    # Writes

    def create(
        self,
        *,
        topic: str,
        creator_identity: str,
        max_rounds: int,
        round_time_limit_seconds: int,
        is_public: bool,
        now: datetime,
    ) -> DebateState:
        debate = Debate(
            topic=topic,
            creator_identity=creator_identity,
            is_public=is_public,
            status=STATUS_SETUP,
            current_turn=None,
            round=0,
            max_rounds=max_rounds,
            round_time_limit_seconds=round_time_limit_seconds,
            version=0,
            created_at=now,
        )
        try:
            self.db.add(debate)
            self.db.flush()
            log_event(
                self.db,
                event_type="debate_created",
                payload={"topic": topic, "max_rounds": max_rounds},
                debate_id=debate.id,
                actor_identity=creator_identity,
                commit=False,
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to create debate")
            raise StoreUnavailable("Could not save the debate, please retry") from exc
        return self.get(debate.id)

    def apply(self, debate_id: uuid.UUID, expected_version: int, transition: Transition) -> DebateState:
        """Commit ``transition`` if the debate is still at ``expected_version``."""
        values: dict[str, Any] = dict(transition.patch)
        values["version"] = expected_version + 1
        try:
            result = self.db.execute(
                update(Debate)
                .where(Debate.id == debate_id, Debate.version == expected_version)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                raise ConcurrencyConflict("The debate changed while this action was being applied")

            self._write_children(debate_id, transition)
            for event_type, payload in transition.events:
                log_event(
                    self.db,
                    event_type=event_type,
                    payload=payload,
                    debate_id=debate_id,
                    actor_identity=transition.actor,
                    commit=False,
                )
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConcurrencyConflict("A conflicting record was written concurrently") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to apply transition to debate %s", debate_id)
            raise StoreUnavailable("Could not save the debate, please retry") from exc

        state = self.get(debate_id)
        self.hub.publish(debate_id, state)
        if transition.new_argument is not None:
            self.hub.publish(debate_id, state.arguments, collection=ARGUMENTS)
        return state

    def _write_children(self, debate_id: uuid.UUID, transition: Transition) -> None:
        if transition.new_participant is not None:
            p = transition.new_participant
            self.db.add(
                Participant(
                    debate_id=debate_id,
                    slot=p.slot,
                    identity=p.identity,
                    display_alias=p.display_alias,
                    joined_at=p.joined_at,
                )
            )

        change = transition.join_request
        if change is not None and change.create:
            self.db.add(
                JoinRequest(
                    debate_id=debate_id,
                    requester_identity=change.requester_identity,
                    display_name=change.display_name,
                    status=change.status,
                    created_at=change.at,
                )
            )
        elif change is not None:
            self.db.execute(
                update(JoinRequest)
                .where(
                    JoinRequest.debate_id == debate_id,
                    JoinRequest.requester_identity == change.requester_identity,
                )
                .values(status=change.status, resolved_at=change.at)
                .execution_options(synchronize_session=False)
            )

        if transition.consumed_request is not None:
            self.db.execute(
                delete(JoinRequest)
                .where(
                    JoinRequest.debate_id == debate_id,
                    JoinRequest.requester_identity == transition.consumed_request,
                )
                .execution_options(synchronize_session=False)
            )

        if transition.new_argument is not None:
            a = transition.new_argument
            self.db.add(
                Argument(
                    id=a.id,
                    debate_id=debate_id,
                    round=a.round,
                    slot=a.slot,
                    author_identity=a.author_identity,
                    author_alias=a.author_alias,
                    text=a.text,
                    skipped=a.skipped,
                    score=a.score,
                    scoring_status=a.scoring_status,
                    reasoning=a.reasoning,
                    strengths=a.strengths,
                    weaknesses=a.weaknesses,
                    fallacies=a.fallacies,
                    created_at=a.created_at,
                    scored_at=a.created_at if a.score is not None else None,
                )
            )

    def attach_score(
        self,
        debate_id: uuid.UUID,
        argument_id: uuid.UUID,
        scored: ScoredArgument,
        now: datetime,
    ) -> bool:
        """Write a judge result once. Returns False if the argument was already scored."""
        result_score = scored.score
        try:
            result = self.db.execute(
                update(Argument)
                .where(Argument.id == argument_id, Argument.score.is_(None))
                .values(
                    score=result_score.score,
                    scoring_status=scored.status,
                    reasoning=result_score.reasoning,
                    strengths=list(result_score.strengths),
                    weaknesses=list(result_score.weaknesses),
                    fallacies=list(result_score.fallacies),
                    scored_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                return False
            log_event(
                self.db,
                event_type="argument_scored",
                payload={
                    "argument_id": str(argument_id),
                    "score": result_score.score,
                    "scoring_status": scored.status,
                },
                debate_id=debate_id,
                commit=False,
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to attach score to argument %s", argument_id)
            raise StoreUnavailable("Could not save the argument score, please retry") from exc

        self.hub.publish(debate_id, self.list_arguments(debate_id), collection=ARGUMENTS)
        return True

    def save_analysis(self, debate_id: uuid.UUID, analysis: DebateAnalysis) -> bool:
        """Persist the final analysis once. Returns False if one is already stored."""
        try:
            result = self.db.execute(
                update(Debate)
                .where(
                    Debate.id == debate_id,
                    Debate.status == STATUS_COMPLETED,
                    Debate.analysis.is_(None),
                )
                .values(analysis=analysis.model_dump(mode="json"), version=Debate.version + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                return False
            log_event(
                self.db,
                event_type="debate_analyzed",
                payload={"winner": analysis.winner, "source": analysis.source},
                debate_id=debate_id,
                commit=False,
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to save analysis for debate %s", debate_id)
            raise StoreUnavailable("Could not save the debate analysis, please retry") from exc

        self.hub.publish(debate_id, self.get(debate_id))
        return True

    # Subscriptions

    def subscribe(self, debate_id: uuid.UUID, on_change: Callable[[DebateState], None]) -> Subscription:
        return self.hub.subscribe(debate_id, on_change)

    def subscribe_collection(
        self,
        debate_id: uuid.UUID,
        collection: str,
        on_change: Callable[[List[ArgumentView]], None],
    ) -> Subscription:
        if collection != ARGUMENTS:
            raise ValueError(f"Unknown debate collection: {collection}")
        return self.hub.subscribe(debate_id, on_change, collection=collection)
