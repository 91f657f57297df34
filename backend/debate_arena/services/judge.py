"""LLM judge that scores arguments and decides finished debates."""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from openai import OpenAI, OpenAIError
from pydantic import BaseModel, ValidationError

from debate_arena.core.config import Settings
from debate_arena.core.errors import JudgeError
from debate_arena.schemas.judging import ArgumentScore, DebateAnalysis, PriorArgument

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*\})\s*```", re.DOTALL)


class TranscriptEntry(BaseModel):
    text: str
    score: Optional[float] = None
    skipped: bool = False


class Judge(ABC):
    """Abstract base class for argument and debate judges."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def score_argument(
        self,
        text: str,
        slot: str,
        topic: str,
        prior_arguments: Sequence[PriorArgument],
    ) -> ArgumentScore:
        """Score one argument on a 0-10 scale. Raises JudgeError on any failure."""

    @abstractmethod
    def analyze_debate(
        self,
        topic: str,
        position_a: str,
        position_b: str,
        a_arguments: Sequence[TranscriptEntry],
        b_arguments: Sequence[TranscriptEntry],
        a_average: float,
        b_average: float,
    ) -> DebateAnalysis:
        """Pick a winner for a finished debate. Raises JudgeError on any failure."""


class UnavailableJudge(Judge):
    """Used when no judge is configured; every call takes the fallback path."""

    @property
    def name(self) -> str:
        return "unavailable"

    def score_argument(self, text, slot, topic, prior_arguments) -> ArgumentScore:
        raise JudgeError("No judge configured (OPENAI_API_KEY is not set)")

    def analyze_debate(self, topic, position_a, position_b, a_arguments, b_arguments, a_average, b_average) -> DebateAnalysis:
        raise JudgeError("No judge configured (OPENAI_API_KEY is not set)")


def extract_json(content: str) -> str:
    """Strip markdown fences some models wrap around JSON answers."""
    match = _FENCED_JSON.search(content)
    if match:
        return match.group(1)
    start, end = content.find("{"), content.rfind("}")
    if start != -1 and end > start:
        return content[start : end + 1]
    return content


def _label(slot: str) -> str:
    return f"Position {slot.upper()}"


class OpenAIJudge(Judge):
    """Judge backed by an OpenAI-compatible chat completions endpoint."""

    def __init__(self, settings: Settings, client: Optional[Any] = None) -> None:
        self.model = settings.judge_model
        if client is not None:
            self._client = client
        else:
            self._client = OpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=settings.judge_timeout_seconds,
                max_retries=settings.judge_max_retries,
            )

    @property
    def name(self) -> str:
        return f"openai:{self.model}"

    def _complete(self, prompt: str, max_tokens: int) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": "You are an impartial expert debate judge. Answer with JSON only."},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.3,
                max_tokens=max_tokens,
                response_format={"type": "json_object"},
            )
        except OpenAIError as exc:
            raise JudgeError(f"Judge request failed: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise JudgeError("Judge returned an empty response")
        return extract_json(content)

    def score_argument(
        self,
        text: str,
        slot: str,
        topic: str,
        prior_arguments: Sequence[PriorArgument],
    ) -> ArgumentScore:
        lines: List[str] = [f'Topic: "{topic}"', f"Speaker: {_label(slot)}", ""]
        if prior_arguments:
            lines.append("Earlier arguments in this debate:")
            lines.extend(f"{_label(prior.slot)}: {prior.text}" for prior in prior_arguments)
            lines.append("")
        lines.extend(
            [
                "Argument to score:",
                json.dumps(text),
                "",
                "Score it from 0 to 10 for logic, evidence, relevance and persuasiveness.",
                'Reply as {"score": number, "reasoning": string, "strengths": [string], '
                '"weaknesses": [string], "logicalFallacies": [string]}.',
            ]
        )
        content = self._complete("\n".join(lines), max_tokens=500)
        try:
            return ArgumentScore.model_validate_json(content)
        except ValidationError as exc:
            logger.debug("Unparseable judge score: %s", content)
            raise JudgeError(f"Malformed judge score: {exc.error_count()} validation errors") from exc

    def analyze_debate(
        self,
        topic: str,
        position_a: str,
        position_b: str,
        a_arguments: Sequence[TranscriptEntry],
        b_arguments: Sequence[TranscriptEntry],
        a_average: float,
        b_average: float,
    ) -> DebateAnalysis:
        lines: List[str] = [
            f'Topic: "{topic}"',
            f"Position A: {position_a}",
            f"Position B: {position_b}",
            "",
        ]
        for slot, entries in (("a", a_arguments), ("b", b_arguments)):
            for entry in entries:
                shown = "skipped (time expired)" if entry.skipped else entry.text
                lines.append(f"{_label(slot)}: {shown}")
        lines.extend(
            [
                "",
                f"Average argument score for Position A: {a_average:.1f}/10",
                f"Average argument score for Position B: {b_average:.1f}/10",
                "",
                "Decide the winner considering logical consistency, evidence, rebuttals and persuasiveness.",
                'Reply as {"winner": "a" | "b" | "tie", "aScore": number, "bScore": number, "summary": string}.',
            ]
        )
        content = self._complete("\n".join(lines), max_tokens=300)
        try:
            analysis = DebateAnalysis.model_validate_json(content)
        except ValidationError as exc:
            logger.debug("Unparseable judge analysis: %s", content)
            raise JudgeError(f"Malformed judge analysis: {exc.error_count()} validation errors") from exc
        return analysis.model_copy(update={"source": "judge"})


def build_judge(settings: Settings) -> Judge:
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; arguments will receive the fallback score")
        return UnavailableJudge()
    return OpenAIJudge(settings)
