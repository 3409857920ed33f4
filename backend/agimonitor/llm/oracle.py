"""Language-model oracle: scores a document for capability-breakthrough relevance."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from pydantic import ValidationError

from agimonitor.llm.json_utils import parse_json_object
from agimonitor.llm.providers import LLMProvider
from agimonitor.models.analysis import AnalysisResult, OracleVerdict, ValidationVerdict

logger = logging.getLogger(__name__)

MAX_CONTENT_CHARS = 12_000

AGI_DETECTION_PROMPT = """You are a skeptical AI safety researcher. Your job is to identify GENUINE progress toward general intelligence, not incremental ML improvements. Most documents are NOT relevant. Be conservative.

DEFINITION: AGI = AI that matches human cognitive abilities across ALL domains, not narrow tasks.

DISQUALIFIERS (score <= 0.2 if ANY apply):
- Single-domain focus (only vision, only NLP, only audio)
- Gains on narrow benchmarks only
- "Human-level" on ONE task rather than general cognition
- "Reasoning" that only means chain-of-thought prompting on math/logic
- Incremental methods (new loss, architecture tweak) presented as novel
- Beating other models is not human-level performance
- Efficiency improvements without capability gains

GENUINE INDICATORS (require extraordinary evidence):
1. Recursive self-improvement (0.8+); not AutoML or hyperparameter search
2. Cross-domain generalization with zero retraining (0.6+)
3. Emergent capabilities without a training signal (0.5+)
4. Human-level performance on open-ended, novel tasks (0.6+)
5. Autonomous scientific research (0.7+)

ARC-AGI: note score improvements, novel abstract reasoning, and evidence of generalization versus memorization.

SECRECY PATTERNS: labs going silent, researchers departing under NDA, undisclosed government briefings.

SCORING GUIDE:
- 0.0-0.1 standard ML research
- 0.1-0.3 interesting but narrow
- 0.3-0.5 cross-domain potential, needs verification
- 0.5-0.7 major breakthrough claim (rare)
- 0.7-1.0 extraordinary; almost never appropriate

If a motivated PhD student could replicate this in 6 months, score <= 0.3.

Return a single JSON object:
{
  "score": number,
  "confidence": number,
  "indicators": string[],
  "explanation": string,
  "severity": "none" | "low" | "medium" | "high" | "critical",
  "evidence_quality": "speculative" | "circumstantial" | "direct",
  "requires_verification": boolean,
  "cross_references": string[],
  "recommendation": "confirm" | "investigate" | "dismiss",
  "arc_relevance": boolean,
  "secrecy_flags": string[],
  "disqualifiers_detected": string[]
}"""

VALIDATION_PROMPT = """You are a second-opinion AI safety expert reviewing an earlier capability-breakthrough analysis. Make sure genuine progress is neither missed nor overstated.

Earlier analysis:
Score: {score}
Indicators: {indicators}
Severity: {severity}

Review the content independently. Look for missed indicators, capability jumps, emergent behaviour, and architectural breakthroughs, and for claims the earlier analysis accepted without evidence.

Return a single JSON object:
{{
  "agrees": boolean,
  "validatedScore": number,
  "reasoning": string,
  "additionalIndicators": string[],
  "recommendation": "confirm" | "investigate" | "dismiss"
}}"""


@dataclass
class OracleRequest:
    title: str
    content: str
    snippets: list[str] = field(default_factory=list)
    translated_title: str | None = None
    translated_snippets: list[str] = field(default_factory=list)


def build_user_message(request: OracleRequest) -> str:
    lines = [f"Title: {request.title}"]
    if request.translated_title and request.translated_title != request.title:
        lines.append(f"Translated Title: {request.translated_title}")
    lines.append("")
    lines.append("Evidence Snippets:")
    lines.extend(f"- {s}" for s in request.snippets)
    if request.translated_snippets:
        lines.append("")
        lines.append("Translated Evidence:")
        lines.extend(f"- {s}" for s in request.translated_snippets)
    lines.append("")
    lines.append(f"Content: {request.content[:MAX_CONTENT_CHARS]}")
    return "\n".join(lines)


def parse_oracle_response(text: str | None) -> OracleVerdict:
    """Parse oracle output; anything unusable yields the default verdict."""
    data = parse_json_object(text)
    if data is None:
        logger.warning("Oracle returned unparseable output; using default verdict")
        return OracleVerdict.default()
    try:
        return OracleVerdict.model_validate(data)
    except ValidationError as e:
        logger.warning("Oracle output failed validation: %s", e)
        return OracleVerdict.default()


def parse_validation_response(text: str | None) -> ValidationVerdict:
    data = parse_json_object(text)
    if data is None:
        return ValidationVerdict()
    normalized = {
        "agrees": bool(data.get("agrees", False)),
        "validated_score": data.get("validatedScore", data.get("validated_score", 0.0)),
        "reasoning": str(data.get("reasoning") or ""),
        "additional_indicators": data.get("additionalIndicators", data.get("additional_indicators")),
        "recommendation": data.get("recommendation", "investigate"),
    }
    try:
        return ValidationVerdict.model_validate(normalized)
    except ValidationError as e:
        logger.warning("Validation output failed validation: %s", e)
        return ValidationVerdict()


class ModelOracle:
    """Synchronous oracle; callers offload it to a worker thread."""

    def __init__(
        self,
        provider: LLMProvider,
        *,
        model: str,
        temperature: float = 0.2,
        max_tokens: int = 1500,
    ) -> None:
        self.provider = provider
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def score(self, request: OracleRequest, *, timeout: float = 15.0) -> OracleVerdict:
        reply = self.provider.complete_json(
            AGI_DETECTION_PROMPT,
            build_user_message(request),
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            timeout=timeout,
        )
        return parse_oracle_response(reply.text)

    def validate(
        self,
        analysis: AnalysisResult,
        *,
        title: str,
        content: str,
        timeout: float = 15.0,
    ) -> ValidationVerdict:
        system = VALIDATION_PROMPT.format(
            score=f"{analysis.score:.3f}",
            indicators=json.dumps(analysis.indicators, ensure_ascii=False),
            severity=analysis.severity.value,
        )
        reply = self.provider.complete_json(
            system,
            f"Title: {title}\n\nContent: {content[:MAX_CONTENT_CHARS]}",
            model=self.model,
            temperature=self.temperature,
            max_tokens=800,
            timeout=timeout,
        )
        return parse_validation_response(reply.text)
