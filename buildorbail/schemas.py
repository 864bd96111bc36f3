import math
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import MAX_SCORE, MIN_SCORE, VERDICTS
from .utils import clamp


# -------------------------------------------------------------------
# Submission payload (what the form posts)
# -------------------------------------------------------------------
class IdeaSubmission(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    appName: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=10, max_length=5000)
    targetMarket: str = Field(min_length=1, max_length=500)
    budget: Optional[str] = Field(default=None, max_length=500)
    userName: Optional[str] = Field(default=None, max_length=100)
    features: Optional[str] = Field(default=None, max_length=2000)
    competition: Optional[str] = Field(default=None, max_length=2000)
    agreeToTerms: bool = Field(default=False, validate_default=True)

    @field_validator("budget", "userName", "features", "competition", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("agreeToTerms")
    @classmethod
    def must_agree(cls, value):
        if value is not True:
            raise ValueError("You must agree to receive brutally honest feedback")
        return value


def validate_submission(payload):
    return IdeaSubmission.model_validate(payload)


# -------------------------------------------------------------------
# LLM payload
# -------------------------------------------------------------------
def _bounded_score(value):
    try:
        score = float(value)
    except (TypeError, ValueError):
        return float(MIN_SCORE)
    if not math.isfinite(score):
        return float(MIN_SCORE)
    return float(clamp(score, MIN_SCORE, MAX_SCORE))


class SectionScore(BaseModel):
    score: float = 0
    analysis: str = ""

    @field_validator("score", mode="before")
    @classmethod
    def bound_score(cls, value):
        return _bounded_score(value)


class BrutalAnalysis(BaseModel):
    """Critique as returned by the model, normalized to the stored ranges."""

    model_config = ConfigDict(extra="allow")

    verdict: str
    overall_score: float
    market_reality: SectionScore = Field(default_factory=SectionScore)
    competition_analysis: SectionScore = Field(default_factory=SectionScore)
    technical_feasibility: SectionScore = Field(default_factory=SectionScore)
    monetization_reality: SectionScore = Field(default_factory=SectionScore)
    fatal_flaws: List[str] = Field(default_factory=list)
    time_saved_hours: float = 0
    brutal_summary: Optional[str] = None
    actionable_steps: List[str] = Field(default_factory=list)
    differentiation_strategy: Optional[str] = None
    pivot_suggestions: List[str] = Field(default_factory=list)
    validation_steps: List[str] = Field(default_factory=list)
    fallback: bool = False

    @field_validator("verdict", mode="before")
    @classmethod
    def normalize_verdict(cls, value):
        verdict = str(value or "").strip().upper()
        return verdict if verdict in VERDICTS else "CAUTION"

    @field_validator("overall_score", mode="before")
    @classmethod
    def bound_overall(cls, value):
        return _bounded_score(value)

    @field_validator("time_saved_hours", mode="before")
    @classmethod
    def non_negative_hours(cls, value):
        try:
            hours = float(value)
        except (TypeError, ValueError):
            return 0.0
        return max(0.0, hours) if math.isfinite(hours) else 0.0

    @field_validator(
        "fatal_flaws", "actionable_steps", "pivot_suggestions", "validation_steps", mode="before"
    )
    @classmethod
    def string_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        if not isinstance(value, (list, tuple)):
            raise ValueError("expected a list of strings")
        return [str(item) for item in value if item is not None and str(item).strip()]
