"""Additive heuristic scoring over structured evidence claims."""

from __future__ import annotations

from agimonitor.models.analysis import HeuristicResult, HeuristicSignal
from agimonitor.models.evidence import Claim, EvidenceSnippet

DEFAULT_HEURISTIC_MAX = 0.4

GENERAL_REASONING_BENCHMARKS = frozenset({"ARC", "ARC-AGI", "ARC-AGI-2"})

# Per-rule ceilings; the total is clamped to heuristic_max separately.
RULE_CAPS = {
    "benchmark": 0.09,
    "arc_high_score": 0.15,
    "arc_score": 0.10,
    "benchmark_delta": 0.10,
    "human_level": 0.06,
    "generalization": 0.04,
    "multiple_evidence": 0.03,
}


class _SignalLedger:
    def __init__(self) -> None:
        self.signals: list[HeuristicSignal] = []
        self._used = dict.fromkeys(RULE_CAPS, 0.0)

    def add(self, name: str, value: float, detail: str | None = None) -> None:
        room = RULE_CAPS[name] - self._used[name]
        value = round(min(value, room), 6)
        if value <= 0:
            return
        self._used[name] += value
        self.signals.append(HeuristicSignal(name=name, value=value, detail=detail))

    @property
    def total(self) -> float:
        return sum(s.value for s in self.signals)


def _fmt(number: float, unit: str | None) -> str:
    return f"{number:g}{unit or ''}"


def score_heuristics(
    claims: list[Claim],
    snippets: list[EvidenceSnippet] | None = None,
    *,
    heuristic_max: float = DEFAULT_HEURISTIC_MAX,
) -> HeuristicResult:
    ledger = _SignalLedger()

    for claim in claims:
        if claim.benchmark:
            ledger.add("benchmark", 0.03, claim.benchmark)

        points = claim.value_points
        if claim.benchmark in GENERAL_REASONING_BENCHMARKS and points is not None:
            if points >= 25:
                ledger.add("arc_high_score", 0.15, _fmt(points, claim.unit))
            elif points >= 10:
                ledger.add("arc_score", 0.10, _fmt(points, claim.unit))

        if claim.delta is not None:
            if claim.delta >= 10:
                ledger.add("benchmark_delta", 0.10, f"Δ {_fmt(claim.delta, claim.unit)}")
            elif claim.delta >= 5:
                ledger.add("benchmark_delta", 0.05, f"Δ {_fmt(claim.delta, claim.unit)}")

        if "human-level" in claim.tags:
            ledger.add("human_level", 0.06)
        if "generalization" in claim.tags:
            ledger.add("generalization", 0.04)

    if snippets is not None and len(snippets) >= 3:
        ledger.add("multiple_evidence", 0.03)

    score = max(0.0, min(heuristic_max, round(ledger.total, 6)))
    return HeuristicResult(score=score, signals=ledger.signals)
