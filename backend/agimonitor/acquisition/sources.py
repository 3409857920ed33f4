"""Source registry: which sites to crawl and how."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from agimonitor.config_store import load_yaml

logger = logging.getLogger(__name__)

# Sites known to reject plain HTTP clients; rendered right after feeds fail.
BLOCKED_SOURCES = frozenset({
    "OpenAI Blog",
    "DeepMind Research",
    "Anthropic Blog",
    "Anthropic Research",
    "Microsoft AI Blog",
    "BAAI Research",
    "ByteDance Seed Research",
    "Tencent AI Lab",
    "Shanghai AI Lab",
    "ChinaXiv",
})


class SourceConfig(BaseModel):
    name: str
    url: str
    selector: str = "article"
    title_selector: str = "h2, h3"
    content_selector: str = "p"
    link_selector: str = "a"
    feeds: list[str] = Field(default_factory=list)
    blocked: bool | None = None
    playwright_first: bool = False
    auto_discover: bool = False
    playwright_retries: int | None = None
    search_terms: str | None = None
    slug_title_fallback: bool = False
    language: str = "en"

    @property
    def is_blocked(self) -> bool:
        if self.blocked is not None:
            return self.blocked
        return self.name in BLOCKED_SOURCES


def load_sources(path: Path) -> list[SourceConfig]:
    """Load the source registry; malformed entries are logged and skipped."""
    if not path.exists():
        logger.warning("Source registry not found: %s", path)
        return []
    raw = load_yaml(path).get("sources") or []
    sources: list[SourceConfig] = []
    for entry in raw:
        try:
            sources.append(SourceConfig.model_validate(entry))
        except ValidationError as e:
            logger.warning("Skipping invalid source entry %r: %s", entry, e)
    return sources
