"""Factory functions and fakes for test data creation.

Usage:
    from tests.factories import make_document, FakeOracle

    doc = make_document(title="New model", content="...")
    oracle = FakeOracle(OracleVerdict(score=0.5))
"""

from __future__ import annotations

import time
import uuid
from typing import Any

from agimonitor.llm.oracle import OracleRequest
from agimonitor.llm.providers import LLMProvider, Reply
from agimonitor.models.analysis import AnalysisResult, OracleVerdict, ScoreBreakdown, Severity, ValidationVerdict
from agimonitor.models.documents import Document, build_document
from agimonitor.models.evidence import Claim
from agimonitor.settings import LLMProviderEnum

CAPABILITY_TEXT = (
    "Our new reasoning model achieves state of the art accuracy on the MMLU benchmark. "
    "The model reports MMLU: 87.5% on the standard split. "
    "ARC-AGI accuracy improved from 21% to 34% over the previous release. "
    "We also evaluate generalization to unseen tasks."
)


def make_document(
    *,
    source: str = "OpenAI Blog",
    url: str | None = None,
    title: str = "A new reasoning model",
    content: str = CAPABILITY_TEXT,
    published_at: str | None = None,
) -> Document:
    url = url or f"https://example.com/posts/{uuid.uuid4().hex[:8]}"
    return build_document(source=source, url=url, title=title, content=content, published_at=published_at)


def make_claim(
    *,
    claim: str = "MMLU 87.5%",
    evidence: str = "The model reports MMLU: 87.5%.",
    benchmark: str | None = "MMLU",
    metric: str | None = "accuracy",
    value: float | None = 0.875,
    delta: float | None = None,
    unit: str | None = "%",
    tags: list[str] | None = None,
) -> Claim:
    return Claim(
        claim=claim,
        evidence=evidence,
        benchmark=benchmark,
        metric=metric,
        value=value,
        delta=delta,
        unit=unit,
        tags=tags or [],
    )


def make_analysis(
    *,
    document_id: str,
    score: float = 0.5,
    severity: Severity = Severity.MEDIUM,
    confidence: float = 0.5,
    cross_references: list[str] | None = None,
    indicators: list[str] | None = None,
) -> AnalysisResult:
    return AnalysisResult(
        id=uuid.uuid4().hex,
        document_id=document_id,
        score=score,
        model_score=score,
        confidence=confidence,
        severity=severity,
        indicators=indicators or ["cross-domain transfer"],
        explanation="test",
        cross_references=cross_references or [],
        breakdown=ScoreBreakdown(model_score=score, combined_score=score),
    )


class FakeOracle:
    """Stands in for ModelOracle; records every request."""

    def __init__(
        self,
        verdict: OracleVerdict | None = None,
        *,
        validation: ValidationVerdict | None = None,
        delay_s: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.verdict = verdict or OracleVerdict(score=0.5, confidence=0.6, severity="medium")
        self.validation = validation or ValidationVerdict(agrees=True, validated_score=0.5, recommendation="confirm")
        self.delay_s = delay_s
        self.error = error
        self.requests: list[OracleRequest] = []
        self.validated: list[str] = []

    def score(self, request: OracleRequest, *, timeout: float = 15.0) -> OracleVerdict:
        self.requests.append(request)
        if self.delay_s:
            time.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return self.verdict

    def validate(self, analysis: AnalysisResult, *, title: str, content: str, timeout: float = 15.0) -> ValidationVerdict:
        self.validated.append(analysis.id)
        if self.delay_s:
            time.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return self.validation


class FakeProvider(LLMProvider):
    """LLM provider returning canned content."""

    kind = LLMProviderEnum.OPENAI

    def __init__(self, content: str = "{}") -> None:
        self.content = content
        self.calls: list[dict[str, Any]] = []

    def _send(self, system, user, *, model, timeout, max_tokens, temperature):
        self.calls.append({"system": system, "user": user, "model": model, "timeout": timeout})
        return Reply(text=self.content, model=model)


def fast_limiter():
    """Token bucket that never makes a test wait."""
    from agimonitor.acquisition.rate_limit import TokenBucket

    return TokenBucket(capacity=1000, refill_interval_s=0.001, sleep_fn=no_sleep)


async def no_sleep(_seconds: float) -> None:
    return None
