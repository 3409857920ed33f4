"""Evidence snippets and structured claims extracted from document text.

A snippet is a sentence that mentions capability keywords, benchmarks, or
numbers. A claim is a structured reading of a top-ranked snippet: which
benchmark, which metric, the reported value, and any reported improvement.

Percentages are stored as ratios in ``value`` (``87.5%`` becomes ``0.875``
with ``unit="%"``). Deltas are kept in the unit they were written in, so
"improves by 12%" has ``delta=12.0``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class EvidenceSnippet(BaseModel):
    """A scored sentence from the document body."""

    text: str
    score: int = Field(default=0, ge=0)
    tags: list[str] = Field(default_factory=list)


class Claim(BaseModel):
    """A structured benchmark claim.

    ``evidence`` is always the snippet text the claim was read from, verbatim.
    """

    claim: str
    evidence: str
    benchmark: str | None = None
    metric: str | None = None
    value: float | None = None
    delta: float | None = None
    unit: str | None = None
    tags: list[str] = Field(default_factory=list)

    @property
    def value_points(self) -> float | None:
        """Value on the scale it was reported in (percent points for %)."""
        if self.value is None:
            return None
        if self.unit == "%":
            return round(self.value * 100, 6)
        return self.value

    @property
    def has_numeric_delta(self) -> bool:
        return self.delta is not None


class EvidenceBundle(BaseModel):
    snippets: list[EvidenceSnippet] = Field(default_factory=list)
    claims: list[Claim] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.snippets and not self.claims
