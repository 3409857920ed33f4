"""Tests for the source registry."""
from __future__ import annotations

from pathlib import Path

from agimonitor.acquisition.sources import SourceConfig, load_sources

REGISTRY = """
sources:
  - name: OpenAI Blog
    url: https://openai.com/blog
    feeds:
      - https://openai.com/blog/rss.xml
  - name: Example Lab
    url: https://lab.example.com/blog
    auto_discover: true
    playwright_retries: 3
  - url: https://missing-name.example.com
"""


def test_load_sources_skips_invalid_entries(tmp_path: Path) -> None:
    path = tmp_path / "sources.yaml"
    path.write_text(REGISTRY, encoding="utf-8")

    sources = load_sources(path)

    assert [s.name for s in sources] == ["OpenAI Blog", "Example Lab"]
    assert sources[0].feeds == ["https://openai.com/blog/rss.xml"]
    assert sources[1].auto_discover is True
    assert sources[1].playwright_retries == 3
    assert sources[1].selector == "article"


def test_missing_registry_is_empty(tmp_path: Path) -> None:
    assert load_sources(tmp_path / "nope.yaml") == []


def test_blocked_defaults_to_known_list_and_can_be_overridden() -> None:
    assert SourceConfig(name="OpenAI Blog", url="https://openai.com/blog").is_blocked is True
    assert SourceConfig(name="Example Lab", url="https://lab.example.com").is_blocked is False
    assert SourceConfig(name="OpenAI Blog", url="https://openai.com/blog", blocked=False).is_blocked is False
