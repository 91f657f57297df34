from typing import List, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


MIN_SCORE = 0.0
MAX_SCORE = 10.0


def clamp_to_scale(value: float) -> float:
    return max(MIN_SCORE, min(MAX_SCORE, value))


class PriorArgument(BaseModel):
    text: str
    slot: Literal["a", "b"]


class ArgumentScore(BaseModel):
    """Judge verdict on a single argument."""

    model_config = ConfigDict(populate_by_name=True)

    score: float = Field(allow_inf_nan=False)
    reasoning: str = ""
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    fallacies: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("fallacies", "logicalFallacies", "logical_fallacies"),
    )

    @field_validator("score")
    @classmethod
    def clamp_score(cls, v: float) -> float:
        # Judges occasionally answer outside the scale; clamp rather than reject.
        return clamp_to_scale(v)


class DebateAnalysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    winner: Literal["a", "b", "tie"]
    a_score: float = Field(validation_alias=AliasChoices("a_score", "aScore"), allow_inf_nan=False)
    b_score: float = Field(validation_alias=AliasChoices("b_score", "bScore"), allow_inf_nan=False)
    summary: str = ""
    source: Literal["judge", "fallback"] = "judge"

    @field_validator("winner", mode="before")
    @classmethod
    def normalize_winner(cls, v: object) -> object:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("a_score", "b_score")
    @classmethod
    def clamp_scores(cls, v: float) -> float:
        return clamp_to_scale(v)
