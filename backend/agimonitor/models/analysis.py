"""Analysis records: oracle verdicts, score breakdowns, persisted results."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Severity(str, Enum):
    """Ordered severity tiers, lowest first."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def coerce(cls, value: Any) -> Severity:
        """Parse a severity leniently; unknown values map to NONE."""
        if isinstance(value, Severity):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.NONE


_SEVERITY_RANK = {
    Severity.NONE: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class Recommendation(str, Enum):
    CONFIRM = "confirm"
    INVESTIGATE = "investigate"
    DISMISS = "dismiss"


class HeuristicSignal(BaseModel):
    name: str
    value: float
    detail: str | None = None


class HeuristicResult(BaseModel):
    score: float = 0.0
    signals: list[HeuristicSignal] = Field(default_factory=list)


def _clamp_unit(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return max(0.0, min(1.0, number))


def _string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [str(item) for item in value if item is not None and str(item).strip()]
    return []


class OracleVerdict(BaseModel):
    """Structured verdict returned by the language-model oracle.

    Keys are accepted in snake_case or camelCase; ``severityHint`` is read as
    ``severity``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    score: float = 0.0
    confidence: float = 0.0
    indicators: list[str] = Field(default_factory=list)
    explanation: str = "No analysis available"
    severity: Severity = Field(
        default=Severity.NONE, validation_alias=AliasChoices("severity", "severityHint", "severity_hint")
    )
    evidence_quality: str = "speculative"
    requires_verification: bool = False
    cross_references: list[str] = Field(default_factory=list)
    recommendation: Recommendation = Recommendation.INVESTIGATE
    arc_relevance: bool = False
    secrecy_flags: list[str] = Field(default_factory=list)
    disqualifiers_detected: list[str] = Field(default_factory=list)

    @field_validator("score", "confidence", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float:
        return _clamp_unit(value)

    @field_validator("severity", mode="before")
    @classmethod
    def _severity(cls, value: Any) -> Severity:
        return Severity.coerce(value)

    @field_validator("recommendation", mode="before")
    @classmethod
    def _recommendation(cls, value: Any) -> Recommendation:
        try:
            return Recommendation(str(value).strip().lower())
        except ValueError:
            return Recommendation.INVESTIGATE

    @field_validator("indicators", "cross_references", "secrecy_flags", "disqualifiers_detected", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> list[str]:
        return _string_list(value)

    @field_validator("explanation", "evidence_quality", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @classmethod
    def default(cls) -> OracleVerdict:
        return cls()


class ValidationVerdict(BaseModel):
    """Second-opinion oracle output used by the re-validation pass."""

    agrees: bool = False
    validated_score: float = 0.0
    reasoning: str = "Validation failed"
    additional_indicators: list[str] = Field(default_factory=list)
    recommendation: Recommendation = Recommendation.INVESTIGATE

    @field_validator("validated_score", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float:
        return _clamp_unit(value)

    @field_validator("recommendation", mode="before")
    @classmethod
    def _recommendation(cls, value: Any) -> Recommendation:
        try:
            return Recommendation(str(value).strip().lower())
        except ValueError:
            return Recommendation.INVESTIGATE

    @field_validator("additional_indicators", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> list[str]:
        return _string_list(value)


class ScoreBreakdown(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_score: float = 0.0
    heuristic_score: float = 0.0
    secrecy_boost: float = 0.0
    corroboration_penalty: float = 0.0
    combined_score: float = 0.0
    weights: dict[str, float] = Field(default_factory=dict)
    signals: list[HeuristicSignal] = Field(default_factory=list)
    prior_score: float | None = None
    filtered: bool = False
    filter_reason: str | None = None


class LastValidation(BaseModel):
    validated_at: str
    agrees: bool
    validated_score: float
    recommendation: Recommendation
    reasoning: str
    previous_score: float
    previous_severity: Severity
    corroboration_penalty: float = 0.0


class AnalysisResult(BaseModel):
    """Persisted scoring of one document. At most one per document."""

    model_config = ConfigDict(protected_namespaces=())

    id: str
    document_id: str
    score: float
    model_score: float = 0.0
    heuristic_score: float = 0.0
    secrecy_boost: float = 0.0
    corroboration_penalty: float = 0.0
    confidence: float = 0.0
    severity: Severity = Severity.NONE
    indicators: list[str] = Field(default_factory=list)
    explanation: str = ""
    evidence_quality: str = "speculative"
    requires_verification: bool = False
    cross_references: list[str] = Field(default_factory=list)
    breakdown: ScoreBreakdown = Field(default_factory=ScoreBreakdown)
    last_validation: LastValidation | None = None
    validated_at: str | None = None
    created_at: str | None = None
