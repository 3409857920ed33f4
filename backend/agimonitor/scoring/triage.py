"""Cheap pre-oracle filter for obvious non-capability content.

Funding rounds, pricing pages, hiring posts and similar updates rarely carry
capability evidence; they are recorded with a fixed low score instead of
spending an oracle call on them.
"""

from __future__ import annotations

from dataclasses import dataclass, field

SHORT_UPDATE_WORDS = 120

NOISE_KEYWORDS: tuple[str, ...] = (
    "funding", "series", "seed round", "raises", "raised", "investment", "valuation",
    "acquired", "acquisition", "merger", "ipo", "earnings", "revenue", "quarter",
    "profit", "loss", "pricing", "subscription", "plan", "billing", "product update",
    "feature update", "release notes", "roadmap", "partnership", "collaboration",
    "conference", "summit", "webinar", "hackathon", "sponsor", "hiring", "job opening",
    "careers", "appointed", "joins as", "ceo", "cto", "cfo", "award", "community update",
    "policy update", "terms of service", "privacy policy",
    "融资", "估值", "收购", "并购", "发布会", "合作", "招聘", "岗位", "公告", "政策",
    "服务条款", "隐私政策",
)

CAPABILITY_KEYWORDS: tuple[str, ...] = (
    "benchmark", "state of the art", "sota", "accuracy", "score", "outperforms",
    "surpasses", "achieves", "generalization", "reasoning", "planning", "agent",
    "autonomous", "multimodal", "vision", "language", "training", "model",
    "architecture", "scaling", "parameters", "evaluation", "dataset", "paper", "arxiv",
    "preprint", "novel", "algorithm", "compute", "capability", "performance",
    "human-level", "superhuman", "arc", "mmlu", "gpqa", "swe-bench", "gsm8k",
    "hellaswag", "imagenet", "big-bench",
    "基准", "评测", "准确率", "得分", "性能", "泛化", "推理", "规划", "多模态", "模型",
    "架构", "训练", "参数", "数据集", "论文", "预印本", "算法", "能力", "人类水平",
)

# Filtered documents are stored with these values.
FILTERED_SCORE = 0.05
FILTERED_CONFIDENCE = 0.9


@dataclass(frozen=True)
class TriageResult:
    skip: bool
    reason: str | None = None
    matches: list[str] = field(default_factory=list)


def run_triage(title: str, content: str) -> TriageResult:
    text = f"{title or ''} {content or ''}".lower()
    word_count = len((content or "").split())

    has_capability = any(kw in text for kw in CAPABILITY_KEYWORDS)
    if has_capability:
        return TriageResult(skip=False)

    if word_count < SHORT_UPDATE_WORDS:
        return TriageResult(skip=True, reason="Short update without capability signals")

    noise = [kw for kw in NOISE_KEYWORDS if kw in text]
    if noise:
        return TriageResult(skip=True, reason=f"Noise keywords: {', '.join(noise[:3])}", matches=noise)

    return TriageResult(skip=False)
