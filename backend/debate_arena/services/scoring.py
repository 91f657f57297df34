"""Maps debate events onto judge calls and keeps the debate moving when the judge fails."""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from debate_arena.core.errors import JudgeError
from debate_arena.models.debate import SCORING_FALLBACK, SCORING_SCORED, SLOT_A, SLOT_B
from debate_arena.schemas.debate import ArgumentView
from debate_arena.schemas.judging import ArgumentScore, DebateAnalysis, PriorArgument
from debate_arena.services.judge import Judge, TranscriptEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoredArgument:
    score: ArgumentScore
    status: str  # scored | fallback


def slot_average(arguments: Sequence[ArgumentView], slot: str, fallback_score: float) -> float:
    """Mean score for one slot. Skipped turns count as 0, unscored ones as the fallback."""
    scores: List[float] = []
    for argument in arguments:
        if argument.slot != slot:
            continue
        if argument.skipped:
            scores.append(0.0)
        elif argument.score is None:
            scores.append(fallback_score)
        else:
            scores.append(argument.score)
    return sum(scores) / len(scores) if scores else 0.0


def fallback_analysis(a_average: float, b_average: float) -> DebateAnalysis:
    if a_average > b_average:
        winner = SLOT_A
    elif b_average > a_average:
        winner = SLOT_B
    else:
        winner = "tie"
    return DebateAnalysis(
        winner=winner,
        a_score=a_average,
        b_score=b_average,
        summary=(
            f"Debate completed. Position A averaged {a_average:.1f}, "
            f"Position B averaged {b_average:.1f}."
        ),
        source="fallback",
    )


class ScorerAdapter:
    def __init__(self, judge: Judge, *, fallback_score: float = 5.0, attempts: int = 2) -> None:
        self.judge = judge
        self.fallback_score = fallback_score
        self.attempts = max(1, attempts)

    def fallback_argument_score(self, reason: str) -> ArgumentScore:
        return ArgumentScore(
            score=self.fallback_score,
            reasoning=f"Scoring unavailable: {reason}",
            strengths=[],
            weaknesses=[],
            fallacies=[],
        )

    def score(
        self,
        text: str,
        slot: str,
        topic: str,
        prior_arguments: Sequence[PriorArgument],
    ) -> ScoredArgument:
        """Never raises: a failing judge yields the neutral fallback score."""
        last_error: Optional[JudgeError] = None
        for attempt in range(1, self.attempts + 1):
            try:
                score = self.judge.score_argument(text, slot, topic, prior_arguments)
                return ScoredArgument(score=score, status=SCORING_SCORED)
            except JudgeError as exc:
                last_error = exc
                logger.warning(
                    "Judge %s failed to score argument (attempt %s/%s): %s",
                    self.judge.name,
                    attempt,
                    self.attempts,
                    exc,
                )
        return ScoredArgument(
            score=self.fallback_argument_score(str(last_error)),
            status=SCORING_FALLBACK,
        )

    def analyze(
        self,
        topic: str,
        position_a: str,
        position_b: str,
        arguments: Sequence[ArgumentView],
    ) -> DebateAnalysis:
        a_average = slot_average(arguments, SLOT_A, self.fallback_score)
        b_average = slot_average(arguments, SLOT_B, self.fallback_score)
        a_entries = [_entry(argument) for argument in arguments if argument.slot == SLOT_A]
        b_entries = [_entry(argument) for argument in arguments if argument.slot == SLOT_B]

        for attempt in range(1, self.attempts + 1):
            try:
                analysis = self.judge.analyze_debate(
                    topic, position_a, position_b, a_entries, b_entries, a_average, b_average
                )
                return analysis.model_copy(update={"source": "judge"})
            except JudgeError as exc:
                logger.warning(
                    "Judge %s failed to analyze debate (attempt %s/%s): %s",
                    self.judge.name,
                    attempt,
                    self.attempts,
                    exc,
                )
        return fallback_analysis(a_average, b_average)


def _entry(argument: ArgumentView) -> TranscriptEntry:
    return TranscriptEntry(text=argument.text, score=argument.score, skipped=argument.skipped)
