"""EvidenceExtractor - pattern-based evidence extraction from document text.

Sentences are scored by capability keywords, benchmark mentions, and
numbers; the best ones become snippets. The top snippets are then read for
structured benchmark claims:

- benchmark: "MMLU", "ARC-AGI", "SWE-bench", ...
- metric: "accuracy", "pass@1", ...
- value: first percentage (stored as a ratio), else first number
- delta: "improves by 12%", "from 40% to 55%", "40 -> 55", ...

A claim is only produced when a benchmark or a numeric pattern was found.
"""

from __future__ import annotations

import re

from agimonitor.models.evidence import Claim, EvidenceBundle, EvidenceSnippet

MAX_SNIPPETS = 6
MAX_CLAIMS = 4
MIN_SENTENCE_CHARS = 20
MAX_SENTENCE_CHARS = 300

CAPABILITY_KEYWORDS: tuple[str, ...] = (
    "state of the art",
    "sota",
    "outperforms",
    "surpasses",
    "beats",
    "achieves",
    "improves",
    "improvement",
    "benchmark",
    "human-level",
    "generalization",
    "emergent",
    "novel",
    "breakthrough",
)

# (pattern, label), most specific first so "ARC-AGI-2" is not read as "ARC".
BENCHMARK_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\barc[-\s]?agi[-\s]?2\b", re.IGNORECASE), "ARC-AGI-2"),
    (re.compile(r"\barc[-\s]?agi\b", re.IGNORECASE), "ARC-AGI"),
    (re.compile(r"\barc\b", re.IGNORECASE), "ARC"),
    (re.compile(r"\bmmlu[-\s]?pro\b", re.IGNORECASE), "MMLU-Pro"),
    (re.compile(r"\bmmlu\b", re.IGNORECASE), "MMLU"),
    (re.compile(r"\bgpqa\b", re.IGNORECASE), "GPQA"),
    (re.compile(r"\bswe[-\s]?bench\b", re.IGNORECASE), "SWE-bench"),
    (re.compile(r"\bhuman[-\s]?eval\b", re.IGNORECASE), "HumanEval"),
    (re.compile(r"\bimagenet\b", re.IGNORECASE), "ImageNet"),
    (re.compile(r"\bsuperglue\b", re.IGNORECASE), "SuperGLUE"),
    (re.compile(r"\bglue\b", re.IGNORECASE), "GLUE"),
    (re.compile(r"\bhellaswag\b", re.IGNORECASE), "HellaSwag"),
    (re.compile(r"\bgsm[-\s]?8k\b", re.IGNORECASE), "GSM8K"),
    (re.compile(r"\bbig[-\s]?bench\b", re.IGNORECASE), "BIG-bench"),
    (re.compile(r"\bfrontiermath\b", re.IGNORECASE), "FrontierMath"),
    (re.compile(r"\baime\b", re.IGNORECASE), "AIME"),
    # Upper-case only; "math" in prose is not the benchmark.
    (re.compile(r"\bMATH\b"), "MATH"),
]

METRIC_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"pass@1\b", re.IGNORECASE), "pass@1"),
    (re.compile(r"pass@k\b", re.IGNORECASE), "pass@k"),
    (re.compile(r"\bf1[-\s]score\b", re.IGNORECASE), "f1-score"),
    (re.compile(r"\bf1\b", re.IGNORECASE), "f1"),
    (re.compile(r"\baccuracy\b", re.IGNORECASE), "accuracy"),
    (re.compile(r"\bscores?\b", re.IGNORECASE), "score"),
    (re.compile(r"\bbleu\b", re.IGNORECASE), "bleu"),
    (re.compile(r"\bmap\b", re.IGNORECASE), "map"),
    (re.compile(r"\bmrr\b", re.IGNORECASE), "mrr"),
    (re.compile(r"\bem\b", re.IGNORECASE), "em"),
]

NUMBER = r"(\d+(?:\.\d+)?)"
NUMBER_PATTERN = re.compile(r"\d+(?:\.\d+)?")
PERCENT_PATTERN = re.compile(NUMBER + r"\s*%")

# "from 40% to 55%" and "40% -> 55%" / "40 → 55"
TRANSITION_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"from\s+" + NUMBER + r"\s*(%)?\s+to\s+" + NUMBER + r"\s*(%)?", re.IGNORECASE),
    re.compile(NUMBER + r"\s*(%)?\s*(?:→|->|=>)\s*" + NUMBER + r"\s*(%)?"),
]

PERCENT_DELTA_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"improv(?:e|es|ed)\s+by\s+" + NUMBER + r"\s*%", re.IGNORECASE),
    re.compile(r"improvement\s+of\s+" + NUMBER + r"\s*%", re.IGNORECASE),
    re.compile(r"increase\s+of\s+" + NUMBER + r"\s*%", re.IGNORECASE),
    re.compile(r"gain\s+of\s+" + NUMBER + r"\s*%", re.IGNORECASE),
    re.compile(r"\bup\s+" + NUMBER + r"\s*%", re.IGNORECASE),
]

ABSOLUTE_DELTA_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"improv(?:e|es|ed)\s+by\s+" + NUMBER, re.IGNORECASE),
    re.compile(r"improvement\s+of\s+" + NUMBER, re.IGNORECASE),
    re.compile(r"increase\s+of\s+" + NUMBER, re.IGNORECASE),
    re.compile(r"gain\s+of\s+" + NUMBER, re.IGNORECASE),
    re.compile(r"delta\s+" + NUMBER, re.IGNORECASE),
]

SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


def split_sentences(text: str) -> list[str]:
    normalized = re.sub(r"\s+", " ", text).strip()
    if not normalized:
        return []
    return [s.strip() for s in SENTENCE_SPLIT.split(normalized) if s.strip()]


def find_benchmark(sentence: str) -> str | None:
    for pattern, label in BENCHMARK_PATTERNS:
        if pattern.search(sentence):
            return label
    return None


def find_metric(sentence: str) -> str | None:
    for pattern, label in METRIC_PATTERNS:
        if pattern.search(sentence):
            return label
    return None


def _strip_benchmarks(sentence: str) -> str:
    """Remove benchmark names so digits inside them ("GSM8K") are not read as values."""
    for pattern, _label in BENCHMARK_PATTERNS:
        sentence = pattern.sub(" ", sentence)
    return sentence


def find_transition(sentence: str) -> tuple[float, float, str | None] | None:
    """Return (before, after, unit) for "from X to Y" / "X -> Y" phrasing."""
    for pattern in TRANSITION_PATTERNS:
        m = pattern.search(sentence)
        if m:
            unit = "%" if (m.group(2) or m.group(4)) else None
            return float(m.group(1)), float(m.group(3)), unit
    return None


def find_value(sentence: str) -> tuple[float | None, str | None]:
    """First percentage as a ratio, else the first plain number."""
    text = _strip_benchmarks(sentence)
    m = PERCENT_PATTERN.search(text)
    if m:
        return float(m.group(1)) / 100.0, "%"
    m = NUMBER_PATTERN.search(text)
    if m:
        return float(m.group(0)), None
    return None, None


def find_delta(sentence: str) -> tuple[float | None, str | None]:
    for pattern in PERCENT_DELTA_PATTERNS:
        m = pattern.search(sentence)
        if m:
            return float(m.group(1)), "%"
    for pattern in ABSOLUTE_DELTA_PATTERNS:
        m = pattern.search(sentence)
        if m:
            return float(m.group(1)), None
    return None, None


def score_sentence(sentence: str) -> EvidenceSnippet | None:
    trimmed = sentence.strip()
    if len(trimmed) < MIN_SENTENCE_CHARS or len(trimmed) > MAX_SENTENCE_CHARS:
        return None

    lower = trimmed.lower()
    tags: list[str] = []
    score = 0

    for keyword in CAPABILITY_KEYWORDS:
        if keyword in lower:
            score += 2
            tags.append(keyword)

    for pattern, label in BENCHMARK_PATTERNS:
        if pattern.search(trimmed):
            score += 2
            tags.append(label.lower())

    if NUMBER_PATTERN.search(trimmed):
        score += 2
        tags.append("numbers")

    if "%" in trimmed:
        score += 1
        tags.append("percent")

    return EvidenceSnippet(text=trimmed, score=score, tags=list(dict.fromkeys(tags)))


class EvidenceExtractor:
    """Pattern-based extractor for evidence snippets and benchmark claims."""

    def __init__(self, max_snippets: int = MAX_SNIPPETS, max_claims: int = MAX_CLAIMS) -> None:
        self.max_snippets = max_snippets
        self.max_claims = max_claims

    def extract_snippets(self, text: str) -> list[EvidenceSnippet]:
        """Top-scoring sentences, deduplicated case-insensitively, best first."""
        seen: set[str] = set()
        snippets: list[EvidenceSnippet] = []
        for sentence in split_sentences(text):
            snippet = score_sentence(sentence)
            if snippet is None or snippet.score <= 0:
                continue
            key = snippet.text.lower()
            if key in seen:
                continue
            seen.add(key)
            snippets.append(snippet)
        # Stable sort keeps document order among equal scores
        snippets.sort(key=lambda s: s.score, reverse=True)
        return snippets[: self.max_snippets]

    def extract_claims(self, snippets: list[EvidenceSnippet]) -> list[Claim]:
        claims: list[Claim] = []
        for snippet in snippets[: self.max_claims]:
            claim = self._claim_from_snippet(snippet)
            if claim is not None:
                claims.append(claim)
        return claims

    def _claim_from_snippet(self, snippet: EvidenceSnippet) -> Claim | None:
        text = snippet.text
        benchmark = find_benchmark(text)
        metric = find_metric(text)

        transition = find_transition(_strip_benchmarks(text))
        if transition is not None:
            before, after, unit = transition
            delta: float | None = round(after - before, 6)
            value: float | None = after / 100.0 if unit == "%" else after
            value_unit = unit
        else:
            value, value_unit = find_value(text)
            delta, delta_unit = find_delta(text)
            if value is None and delta is not None:
                value_unit = delta_unit

        if benchmark is None and value is None and delta is None:
            return None

        return Claim(
            claim=text,
            evidence=text,
            benchmark=benchmark,
            metric=metric,
            value=value,
            delta=delta,
            unit=value_unit,
            tags=list(snippet.tags),
        )

    def extract(self, text: str, *, title: str | None = None) -> EvidenceBundle:
        body = text if text and text.strip() else (title or "")
        snippets = self.extract_snippets(body)
        return EvidenceBundle(snippets=snippets, claims=self.extract_claims(snippets))


def build_evidence_bundle(content: str, *, title: str | None = None) -> EvidenceBundle:
    return EvidenceExtractor().extract(content, title=title)
