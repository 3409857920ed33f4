"""Check oracle-claimed cross-references against sources we actually crawled."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from agimonitor.models.analysis import HeuristicSignal


@dataclass(frozen=True)
class CorroborationResult:
    penalty: float
    verified: list[str]
    unverified: list[str]

    def signal(self) -> HeuristicSignal | None:
        if self.penalty <= 0:
            return None
        return HeuristicSignal(
            name="unverified_cross_reference",
            value=-self.penalty,
            detail=", ".join(self.unverified[:5]),
        )


def check_cross_references(
    cross_references: Iterable[str],
    known_sources: Iterable[str],
    *,
    penalty: float,
) -> CorroborationResult:
    """Penalize when references were claimed but none matches a crawled source.

    Matching is case-insensitive on the source name.
    """
    refs = [r.strip() for r in cross_references if r and r.strip()]
    known = {s.strip().lower() for s in known_sources if s}
    verified = [r for r in refs if r.lower() in known]
    unverified = [r for r in refs if r.lower() not in known]
    if refs and not verified:
        return CorroborationResult(penalty=penalty, verified=[], unverified=unverified)
    return CorroborationResult(penalty=0.0, verified=verified, unverified=unverified)
