"""Secrecy and caution language detection.

Flags wording that suggests withheld results, unusual caution, government
involvement, or senior researcher departures. The strongest indicator
determines a small additive boost to the combined score.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from agimonitor.models.analysis import Severity

SECRECY_KEYWORDS: tuple[str, ...] = (
    "cannot discuss", "classified", "confidential", "under review", "embargo",
    "restricted", "private briefing", "closed door", "non-disclosure", "nda",
    "internal only", "not for public", "redacted", "removed at request",
    "taken down", "withdrawn",
)

CAUTION_KEYWORDS: tuple[str, ...] = (
    "proceed with caution", "safety concerns", "alignment concerns",
    "pausing development", "slowing down", "careful consideration",
    "responsible disclosure", "staged release", "limited access", "controlled rollout",
)

GOVERNMENT_KEYWORDS: tuple[str, ...] = (
    "executive order", "congressional briefing", "senate hearing", "classified meeting",
    "national security", "defense department", "intelligence agency",
    "regulatory review", "government consultation", "policy briefing",
)

DEPARTURE_KEYWORDS: tuple[str, ...] = (
    "leaving", "departing", "stepping down", "resigned", "left the company",
    "no longer with", "joined another", "new venture",
)

SENIOR_ROLES: tuple[str, ...] = (
    "chief scientist", "head of ai", "research director", "vp of research",
    "lead researcher", "principal scientist", "cto", "chief technology",
)

CRITICAL_SECRECY = ("classified", "redacted", "removed at request")
HIGH_SECRECY = ("confidential", "non-disclosure", "nda", "private briefing")

CONTEXT_CHARS = 50


@dataclass(frozen=True)
class SecrecyIndicator:
    kind: str
    severity: Severity
    description: str
    source: str
    evidence: list[str] = field(default_factory=list)
    confidence: float = 0.5


def _pattern(keyword: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE)


_PATTERNS = {
    kw: _pattern(kw)
    for kw in (*SECRECY_KEYWORDS, *CAUTION_KEYWORDS, *GOVERNMENT_KEYWORDS, *DEPARTURE_KEYWORDS, *SENIOR_ROLES)
}


def _keyword_severity(keyword: str) -> Severity:
    if any(k in keyword for k in CRITICAL_SECRECY):
        return Severity.CRITICAL
    if keyword in HIGH_SECRECY:
        return Severity.HIGH
    return Severity.MEDIUM


def _context(content: str, match: re.Match[str]) -> str:
    start = max(0, match.start() - CONTEXT_CHARS)
    end = min(len(content), match.end() + CONTEXT_CHARS)
    return f"...{content[start:end]}..."


def detect_secrecy_indicators(content: str, source: str) -> list[SecrecyIndicator]:
    indicators: list[SecrecyIndicator] = []

    for keyword in SECRECY_KEYWORDS:
        m = _PATTERNS[keyword].search(content)
        if m:
            indicators.append(SecrecyIndicator(
                kind="silence",
                severity=_keyword_severity(keyword),
                description=f'Secrecy-related language detected: "{keyword}"',
                source=source,
                evidence=[_context(content, m)],
                confidence=0.7,
            ))

    for keyword in CAUTION_KEYWORDS:
        m = _PATTERNS[keyword].search(content)
        if m:
            indicators.append(SecrecyIndicator(
                kind="safety_meeting",
                severity=Severity.MEDIUM,
                description=f'Unusual caution detected: "{keyword}"',
                source=source,
                evidence=[_context(content, m)],
                confidence=0.5,
            ))

    for keyword in GOVERNMENT_KEYWORDS:
        m = _PATTERNS[keyword].search(content)
        if m:
            indicators.append(SecrecyIndicator(
                kind="government",
                severity=Severity.HIGH,
                description=f'Government involvement detected: "{keyword}"',
                source=source,
                evidence=[_context(content, m)],
                confidence=0.8,
            ))

    indicators.extend(detect_researcher_departures(content, source))
    return indicators


def detect_researcher_departures(content: str, source: str) -> list[SecrecyIndicator]:
    has_departure = any(_PATTERNS[k].search(content) for k in DEPARTURE_KEYWORDS)
    has_senior_role = any(_PATTERNS[k].search(content) for k in SENIOR_ROLES)
    if not (has_departure and has_senior_role):
        return []
    return [SecrecyIndicator(
        kind="departure",
        severity=Severity.HIGH,
        description="Senior AI researcher departure detected",
        source=source,
        evidence=[content[:200]],
        confidence=0.6,
    )]


def secrecy_boost(indicators: list[SecrecyIndicator]) -> float:
    if any(i.severity is Severity.CRITICAL for i in indicators):
        return 0.2
    if any(i.severity is Severity.HIGH for i in indicators):
        return 0.1
    return 0.0
