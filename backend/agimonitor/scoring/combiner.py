"""Combine oracle and heuristic scores into the final document score."""

from __future__ import annotations

from agimonitor.models.analysis import HeuristicSignal, ScoreBreakdown

DEFAULT_MODEL_WEIGHT = 0.85
DEFAULT_HEURISTIC_WEIGHT = 0.15


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def combine_scores(
    *,
    model_score: float,
    heuristic_score: float,
    secrecy_boost: float = 0.0,
    corroboration_penalty: float = 0.0,
    signals: list[HeuristicSignal] | None = None,
    prior_score: float | None = None,
    model_weight: float = DEFAULT_MODEL_WEIGHT,
    heuristic_weight: float = DEFAULT_HEURISTIC_WEIGHT,
) -> ScoreBreakdown:
    """Weighted blend that never falls below the oracle's own score.

    ``combined = clamp(max(model, model*wm + heuristic*wh) + secrecy_boost)``.
    With a ``prior_score`` (re-validation), the result is floored at
    ``max(0, prior - corroboration_penalty)``.
    """
    model_score = _clamp(model_score)
    heuristic_score = _clamp(heuristic_score)
    weighted = model_score * model_weight + heuristic_score * heuristic_weight
    combined = _clamp(max(model_score, weighted) + secrecy_boost)
    if prior_score is not None:
        combined = max(max(0.0, prior_score - corroboration_penalty), combined)
    return ScoreBreakdown(
        model_score=model_score,
        heuristic_score=heuristic_score,
        secrecy_boost=secrecy_boost,
        corroboration_penalty=corroboration_penalty,
        combined_score=round(combined, 6),
        weights={"model": model_weight, "heuristic": heuristic_weight},
        signals=list(signals or []),
        prior_score=prior_score,
    )
