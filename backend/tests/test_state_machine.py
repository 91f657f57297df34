import uuid

import pytest

from debate_arena.core.errors import (
    ConcurrencyConflict,
    DebateNotFound,
    InvalidIntent,
    PermissionDenied,
    PreconditionFailed,
    StoreUnavailable,
)
from debate_arena.services import state_machine


def test_full_debate_alternates_turns_and_completes(service, ready_debate, judge) -> None:
    state = ready_debate(max_rounds=2)
    assert state.status == "ready_to_start"
    assert state.join_requests == {}

    state = service.start(state.id, "bob")
    assert state.status == "active"
    assert state.round == 1
    assert state.current_turn == "alice"
    assert service.remaining_seconds(state) == 60

    result = service.submit_argument(state.id, "alice", "Cats are independent and clean.")
    assert result.argument.slot == "a"
    assert result.argument.round == 1
    assert result.argument.score == 7.0
    assert result.argument.scoring_status == "scored"
    assert result.state.current_turn == "bob"
    assert result.state.round == 1

    result = service.submit_argument(state.id, "bob", "Dogs are loyal companions.")
    assert result.state.round == 2
    assert result.state.current_turn == "alice"

    service.submit_argument(state.id, "alice", "Cats need less space.")
    result = service.submit_argument(state.id, "bob", "Dogs keep you active.")

    final = result.state
    assert final.status == "completed"
    assert final.current_turn is None
    assert final.completed_at is not None
    assert final.round_started_at is None
    assert len(final.arguments) == 4
    assert final.analysis is not None
    assert final.analysis.winner == "tie"
    assert final.analysis.source == "judge"
    assert judge.analyze_calls == 1


def test_each_transition_bumps_version(service, ready_debate) -> None:
    state = ready_debate(max_rounds=1)
    before = state.version
    started = service.start(state.id, "alice")
    assert started.version == before + 1
    result = service.submit_argument(state.id, "alice", "Opening argument.")
    assert result.state.version == started.version + 1


def test_submit_out_of_turn_is_rejected(service, ready_debate) -> None:
    state = ready_debate()
    service.start(state.id, "alice")

    with pytest.raises(PreconditionFailed):
        service.submit_argument(state.id, "bob", "Me first!")

    with pytest.raises(PermissionDenied):
        service.submit_argument(state.id, "carol", "I am not even in this debate.")

    assert service.list_arguments(state.id) == []


def test_submit_before_start_is_rejected(service, ready_debate) -> None:
    state = ready_debate()
    with pytest.raises(PreconditionFailed):
        service.submit_argument(state.id, "alice", "Too early.")


def test_argument_text_limits(service, ready_debate) -> None:
    state = ready_debate()
    service.start(state.id, "alice")

    with pytest.raises(InvalidIntent):
        service.submit_argument(state.id, "alice", "   ")
    with pytest.raises(InvalidIntent):
        service.submit_argument(state.id, "alice", "word " * 501)

    current = service.get_state(state.id)
    assert current.current_turn == "alice"
    assert current.arguments == []


def test_start_requires_both_slots_and_membership(service) -> None:
    state = service.create_debate("alice", "Remote work beats the office")
    service.join(state.id, "alice", "Alice", "Remote is better")

    with pytest.raises(PreconditionFailed):
        service.start(state.id, "alice")
    with pytest.raises(PermissionDenied):
        service.start(state.id, "mallory")


def test_start_twice_is_rejected(service, ready_debate) -> None:
    state = ready_debate()
    service.start(state.id, "alice")
    with pytest.raises(PreconditionFailed):
        service.start(state.id, "bob")


def test_create_debate_validates_settings(service) -> None:
    with pytest.raises(InvalidIntent):
        service.create_debate("alice", "ab")
    with pytest.raises(InvalidIntent):
        service.create_debate("alice", "A reasonable topic", max_rounds=0)
    with pytest.raises(InvalidIntent):
        service.create_debate("alice", "A reasonable topic", round_time_limit_seconds=5)

    state = service.create_debate("alice", "  A reasonable topic  ")
    assert state.topic == "A reasonable topic"
    assert state.status == "setup"
    assert state.max_rounds == 3
    assert state.round_time_limit_seconds == 120


def test_unknown_debate_is_not_found(service) -> None:
    with pytest.raises(DebateNotFound):
        service.get_state(uuid.uuid4())


def test_timeout_records_skipped_argument(service, ready_debate, clock) -> None:
    state = ready_debate(max_rounds=2, round_time_limit_seconds=30)
    service.start(state.id, "alice")

    with pytest.raises(PreconditionFailed):
        service.timeout_turn(state.id)

    clock.advance(30)
    result = service.timeout_turn(state.id)
    assert result.applied is True
    assert result.state.current_turn == "bob"
    assert service.remaining_seconds(result.state) == 30

    skipped = result.state.argument_for(1, "a")
    assert skipped is not None
    assert skipped.skipped is True
    assert skipped.text == state_machine.SKIPPED_TEXT
    assert skipped.score == 0.0
    assert skipped.scoring_status == "skipped"
    assert skipped.weaknesses == ["Failed to respond within time limit"]


def test_timeout_with_stale_expectation_is_discarded(service, ready_debate, clock) -> None:
    state = ready_debate()
    service.start(state.id, "alice")
    service.submit_argument(state.id, "alice", "Opening.")
    clock.advance(120)

    # The caller still thinks it is slot A's turn.
    result = service.timeout_turn(state.id, expected_round=1, expected_slot="a")
    assert result.applied is False
    assert result.state.current_turn == "bob"
    assert len(result.state.arguments) == 1


def test_timeout_on_completed_debate_is_discarded(service, ready_debate, clock) -> None:
    state = ready_debate(max_rounds=1)
    service.start(state.id, "alice")
    service.submit_argument(state.id, "alice", "Opening.")
    service.submit_argument(state.id, "bob", "Rebuttal.")

    clock.advance(600)
    result = service.timeout_turn(state.id)
    assert result.applied is False
    assert result.state.status == "completed"


def test_timeout_before_start_is_rejected(service, ready_debate, clock) -> None:
    state = ready_debate()
    clock.advance(600)
    with pytest.raises(PreconditionFailed):
        service.timeout_turn(state.id)


def test_debate_completed_by_timeout_is_analyzed(service, ready_debate, clock, judge) -> None:
    state = ready_debate(max_rounds=1, round_time_limit_seconds=10)
    service.start(state.id, "alice")
    service.submit_argument(state.id, "alice", "Opening.")

    clock.advance(11)
    result = service.timeout_turn(state.id)
    assert result.applied is True
    assert result.state.status == "completed"
    assert result.state.analysis.winner == "tie"
    assert result.state.analysis.a_score == 7.0
    assert result.state.analysis.b_score == 0.0
    assert judge.analyze_calls == 1


def test_stale_snapshot_cannot_commit(service, ready_debate, clock) -> None:
    state = ready_debate()
    service.start(state.id, "alice")
    service.submit_argument(state.id, "alice", "Opening.")
    clock.advance(61)

    stale = service.store.get(state.id)
    transition = state_machine.plan_timeout(stale, clock.now())
    assert transition is not None

    # The submission lands between the timeout's read and its commit.
    service.submit_argument(state.id, "bob", "Just in time.")

    with pytest.raises(ConcurrencyConflict):
        service.store.apply(state.id, stale.version, transition)

    current = service.get_state(state.id)
    round_one_b = [a for a in current.arguments if a.round == 1 and a.slot == "b"]
    assert len(round_one_b) == 1
    assert round_one_b[0].skipped is False
    assert current.round == 2


def test_timeout_losing_race_to_submission_discards_itself(
    service, second_service, ready_debate, clock
) -> None:
    state = ready_debate()
    service.start(state.id, "alice")
    service.submit_argument(state.id, "alice", "Opening.")
    clock.advance(61)

    real_apply = service.store.apply
    calls = []

    def racing_apply(debate_id, expected_version, transition):
        if not calls:
            second_service.submit_argument(debate_id, "bob", "Made it.")
        calls.append(expected_version)
        return real_apply(debate_id, expected_version, transition)

    service.store.apply = racing_apply

    result = service.timeout_turn(state.id)
    assert result.applied is False
    assert result.state.round == 2
    assert result.state.current_turn == "alice"
    assert len(calls) == 1
    assert all(not a.skipped for a in result.state.arguments)


def test_judge_failure_falls_back_and_debate_continues(service, ready_debate, judge) -> None:
    judge.fail = True
    state = ready_debate(max_rounds=1)
    service.start(state.id, "alice")

    result = service.submit_argument(state.id, "alice", "Opening.")
    assert result.argument.score == 5.0
    assert result.argument.scoring_status == "fallback"
    assert result.argument.reasoning.startswith("Scoring unavailable:")
    assert judge.score_calls == 2
    assert result.state.current_turn == "bob"

    result = service.submit_argument(state.id, "bob", "Rebuttal.")
    final = result.state
    assert final.status == "completed"
    assert final.analysis.source == "fallback"
    assert final.analysis.winner == "tie"
    assert final.analysis.summary == (
        "Debate completed. Position A averaged 5.0, Position B averaged 5.0."
    )


def test_analysis_is_computed_once(service, ready_debate, judge) -> None:
    state = ready_debate(max_rounds=1)
    service.start(state.id, "alice")
    service.submit_argument(state.id, "alice", "Opening.")
    service.submit_argument(state.id, "bob", "Rebuttal.")
    assert judge.analyze_calls == 1

    first = service.analyze_completed_debate(state.id)
    second = service.analyze_completed_debate(state.id)
    assert first == second
    assert judge.analyze_calls == 1


def test_analysis_requires_completed_debate(service, ready_debate) -> None:
    state = ready_debate()
    with pytest.raises(PreconditionFailed):
        service.analyze_completed_debate(state.id)


def test_status_never_moves_backwards(ready_debate, service) -> None:
    state = ready_debate()
    transition = state_machine.Transition(actor="alice", patch={"status": "setup"})
    with pytest.raises(RuntimeError):
        state_machine.ensure_forward(state, transition)


def test_count_words() -> None:
    assert state_machine.count_words("  one two\nthree\tfour ") == 4
    assert state_machine.count_words("") == 0


def _fail_once(target, name: str):
    real = getattr(target, name)
    calls = []

    def failing(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            raise StoreUnavailable("Debate store is unavailable")
        return real(*args, **kwargs)

    setattr(target, name, failing)
    return calls


def test_unsaved_score_is_retried_on_next_turn(service, ready_debate, judge) -> None:
    state = ready_debate(max_rounds=2)
    service.start(state.id, "alice")
    _fail_once(service.store, "attach_score")

    result = service.submit_argument(state.id, "alice", "Opening.")
    assert result.argument.scoring_status == "pending"
    assert result.argument.score is None
    assert result.state.current_turn == "bob"

    result = service.submit_argument(state.id, "bob", "Rebuttal.")
    opening = result.state.argument_for(1, "a")
    assert opening.scoring_status == "scored"
    assert opening.score == 7.0
    assert result.argument.score == 7.0
    assert judge.score_calls == 3


def test_settle_scores_is_idempotent(service, ready_debate, judge) -> None:
    state = ready_debate(max_rounds=2)
    service.start(state.id, "alice")
    _fail_once(service.store, "attach_score")
    service.submit_argument(state.id, "alice", "Opening.")

    assert service.settle_scores(state.id) == 1
    assert service.settle_scores(state.id) == 0
    assert service.get_state(state.id).argument_for(1, "a").score == 7.0
    assert judge.score_calls == 2


def test_unsaved_analysis_is_retried(service, ready_debate, judge) -> None:
    state = ready_debate(max_rounds=1)
    service.start(state.id, "alice")
    service.submit_argument(state.id, "alice", "Opening.")
    _fail_once(service.store, "save_analysis")

    result = service.submit_argument(state.id, "bob", "Rebuttal.")
    assert result.state.status == "completed"
    assert result.state.analysis is None

    analysis = service.analyze_completed_debate(state.id)
    assert analysis.winner == "tie"
    assert service.get_state(state.id).analysis == analysis
    assert judge.analyze_calls == 2


def test_pending_argument_is_scored_before_analysis(service, ready_debate, judge) -> None:
    state = ready_debate(max_rounds=1)
    service.start(state.id, "alice")
    _fail_once(service.store, "attach_score")
    service.submit_argument(state.id, "alice", "Opening.")
    judge.score = 3.0

    # An unsettled argument would be averaged at the fallback score of 5.0.
    result = service.submit_argument(state.id, "bob", "Rebuttal.")
    assert [a.scoring_status for a in result.state.arguments] == ["scored", "scored"]
    assert result.state.analysis.winner == "tie"
    assert result.state.analysis.a_score == 3.0
    assert result.state.analysis.b_score == 3.0
