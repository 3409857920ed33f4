"""Severity tiers, the evidence gate, and the never-decrease ratchet."""

from __future__ import annotations

from collections.abc import Iterable

from agimonitor.models.analysis import Recommendation, Severity
from agimonitor.models.evidence import Claim


def severity_for_score(score: float) -> Severity:
    """Map a combined score in [0, 1] to a tier. Monotone non-decreasing."""
    if score >= 0.8:
        return Severity.CRITICAL
    if score >= 0.6:
        return Severity.HIGH
    if score >= 0.3:
        return Severity.MEDIUM
    if score > 0:
        return Severity.LOW
    return Severity.NONE


def max_severity(*severities: Severity | str | None) -> Severity:
    best = Severity.NONE
    for value in severities:
        if value is None:
            continue
        sev = Severity.coerce(value)
        if sev.rank > best.rank:
            best = sev
    return best


def compute_severity(score: float, prior: Severity | str | None = None) -> Severity:
    """Tier for ``score``, never below ``prior``."""
    return max_severity(severity_for_score(score), prior)


def has_benchmark_delta(claims: Iterable[Claim]) -> bool:
    return any(claim.delta is not None for claim in claims)


def apply_evidence_gate(severity: Severity, claims: Iterable[Claim]) -> Severity:
    """Critical requires at least one claim with a numeric delta; otherwise cap at high."""
    if severity is Severity.CRITICAL and not has_benchmark_delta(claims):
        return Severity.HIGH
    return severity


def apply_validation_override(
    computed: Severity,
    recommendation: Recommendation,
    prior: Severity | str | None,
) -> Severity:
    """Let a second-opinion recommendation steer the new tier.

    ``confirm`` and ``investigate`` accept the recomputed tier; ``dismiss``
    holds the prior tier. In every case the result is at least ``prior``.
    """
    if recommendation is Recommendation.DISMISS:
        return max_severity(prior)
    return max_severity(computed, prior)
